"""Azure DevOps REST client for pull request operations."""

import functools
import logging

import requests
import requests.exceptions

import config
from config import GET_POLICY, POST_POLICY, CircuitBreaker, validate_required, with_retry
from errors import (
    ParseError,
    RemoteServiceError,
    RequestTimeoutError,
    TransportError,
)

logger = logging.getLogger(__name__)

USER_AGENT = "ADOLens/1.0"


class AzureDevOpsClient:
    """
    Thin wrapper over the Azure DevOps Git REST API.

    Every call goes through :meth:`make_request`, which turns transport
    failures, timeouts, non-2xx responses and undecodable bodies into the
    typed errors from ``errors``. Read operations retry 5xx failures three
    times, thread creation twice, thread updates never.
    """

    def __init__(
        self,
        organization: str,
        personal_access_token: str,
        api_version: str = "7.0",
        timeout: float = 30.0,
        session: requests.Session | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ):
        self.organization = organization
        self.base_url = f"https://dev.azure.com/{organization}"
        self.api_version = api_version
        self.timeout = timeout
        self.circuit_breaker = circuit_breaker

        self.session = session or requests.Session()
        self.session.auth = ("", personal_access_token)
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        })

    # -----------------------------------------------------------------------
    # Transport
    # -----------------------------------------------------------------------
    def make_request(
        self,
        method: str,
        path: str,
        body: dict | None = None,
        params: dict | None = None,
    ) -> dict:
        """
        Perform one authenticated call and return the decoded JSON body.

        Args:
            method: HTTP method
            path: Path below the organization URL, starting with "/"
            body: JSON body for POST/PATCH
            params: Extra query parameters (``api-version`` is always added)

        Returns:
            Parsed JSON, or ``{}`` for an empty body

        Raises:
            RequestTimeoutError: The request exceeded ``timeout``
            TransportError: No response was received
            RemoteServiceError: Non-2xx status
            ParseError: The body is not valid JSON
            CircuitOpenError: The circuit breaker is open
        """
        if self.circuit_breaker is not None:
            return self.circuit_breaker.call(lambda: self._send(method, path, body, params))
        return self._send(method, path, body, params)

    def _send(self, method: str, path: str, body: dict | None, params: dict | None) -> dict:
        url = f"{self.base_url}{path}"
        query = {"api-version": self.api_version, **(params or {})}
        logger.debug("%s %s", method, url)

        try:
            response = self.session.request(
                method,
                url,
                params=query,
                json=body,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise RequestTimeoutError(
                f"Request timed out after {self.timeout}s",
                details={"method": method, "path": path},
            ) from e
        except requests.exceptions.RequestException as e:
            raise TransportError(
                f"Request failed: {e}",
                details={"method": method, "path": path},
            ) from e

        if not 200 <= response.status_code < 300:
            raise RemoteServiceError(
                f"API request failed: {response.status_code} - {_error_message(response)}",
                status_code=response.status_code,
                details={"method": method, "path": path, "body": response.text},
            )

        if not response.text:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise ParseError(
                f"Failed to parse response: {e}",
                details={"method": method, "path": path},
            ) from e

    def _repo_path(self, project: str, repository_id: str) -> str:
        return f"/{project}/_apis/git/repositories/{repository_id}"

    def _pr_path(self, project: str, repository_id: str, pull_request_id: int) -> str:
        return f"{self._repo_path(project, repository_id)}/pullrequests/{pull_request_id}"

    # -----------------------------------------------------------------------
    # Read operations
    # -----------------------------------------------------------------------
    @with_retry(GET_POLICY)
    def get_pull_request(self, project: str, repository_id: str, pull_request_id: int) -> dict:
        """Fetch pull request details."""
        validate_required(
            {"project": project, "repository_id": repository_id, "pull_request_id": pull_request_id},
            ["project", "repository_id", "pull_request_id"],
        )
        return self.make_request("GET", self._pr_path(project, repository_id, pull_request_id))

    @with_retry(GET_POLICY)
    def get_pull_request_iterations(
        self, project: str, repository_id: str, pull_request_id: int
    ) -> list[dict]:
        validate_required(
            {"project": project, "repository_id": repository_id, "pull_request_id": pull_request_id},
            ["project", "repository_id", "pull_request_id"],
        )
        data = self.make_request(
            "GET", f"{self._pr_path(project, repository_id, pull_request_id)}/iterations"
        )
        return data.get("value", [])

    def get_pull_request_changes(
        self,
        project: str,
        repository_id: str,
        pull_request_id: int,
        iteration_id: int | None = None,
    ) -> dict:
        """
        Fetch the change entries of one PR iteration.

        Args:
            project: Project name or id
            repository_id: Repository name or id
            pull_request_id: Pull request id
            iteration_id: Iteration to read; the latest one when omitted

        Returns:
            The changes response (``{"changeEntries": [...]}``)
        """
        if iteration_id is None:
            iterations = self.get_pull_request_iterations(project, repository_id, pull_request_id)
            if not iterations:
                logger.info("PR #%s has no iterations", pull_request_id)
                return {"changeEntries": []}
            iteration_id = max(iteration["id"] for iteration in iterations)

        return self._get_iteration_changes(project, repository_id, pull_request_id, iteration_id)

    @with_retry(GET_POLICY)
    def _get_iteration_changes(
        self, project: str, repository_id: str, pull_request_id: int, iteration_id: int
    ) -> dict:
        validate_required(
            {
                "project": project,
                "repository_id": repository_id,
                "pull_request_id": pull_request_id,
                "iteration_id": iteration_id,
            },
            ["project", "repository_id", "pull_request_id", "iteration_id"],
        )
        path = (
            f"{self._pr_path(project, repository_id, pull_request_id)}"
            f"/iterations/{iteration_id}/changes"
        )
        return self.make_request("GET", path)

    def get_file_content(
        self, project: str, repository_id: str, path: str, commit_id: str
    ) -> str | None:
        """
        Fetch the text of one file at a commit.

        Returns:
            File content, or ``None`` if the item is binary or does not exist
        """
        try:
            item = self._get_item(project, repository_id, path, commit_id)
        except RemoteServiceError as e:
            if e.status_code == 404:
                logger.debug("%s not found at %s", path, commit_id)
                return None
            raise

        if (item.get("contentMetadata") or {}).get("isBinary"):
            return None
        return item.get("content")

    @with_retry(GET_POLICY)
    def _get_item(self, project: str, repository_id: str, path: str, commit_id: str) -> dict:
        validate_required(
            {
                "project": project,
                "repository_id": repository_id,
                "path": path,
                "commit_id": commit_id,
            },
            ["project", "repository_id", "path", "commit_id"],
        )
        return self.make_request(
            "GET",
            f"{self._repo_path(project, repository_id)}/items",
            params={
                "path": path,
                "versionDescriptor.version": commit_id,
                "versionDescriptor.versionType": "commit",
                "includeContent": "true",
                "$format": "json",
            },
        )

    @with_retry(GET_POLICY)
    def get_repository(self, project: str, repository_id: str) -> dict:
        validate_required(
            {"project": project, "repository_id": repository_id},
            ["project", "repository_id"],
        )
        return self.make_request("GET", self._repo_path(project, repository_id))

    # -----------------------------------------------------------------------
    # Write operations
    # -----------------------------------------------------------------------
    @with_retry(POST_POLICY)
    def create_pull_request_thread(
        self, project: str, repository_id: str, pull_request_id: int, content: str
    ) -> dict:
        """
        Post *content* as a new comment thread on the PR.

        Returns:
            The created thread (its ``id`` identifies it for updates)
        """
        validate_required(
            {
                "project": project,
                "repository_id": repository_id,
                "pull_request_id": pull_request_id,
                "content": content,
            },
            ["project", "repository_id", "pull_request_id", "content"],
        )
        thread = self.make_request(
            "POST",
            f"{self._pr_path(project, repository_id, pull_request_id)}/threads",
            body=thread_payload(content),
        )
        logger.info("Posted thread %s on PR #%s", thread.get("id"), pull_request_id)
        return thread

    def update_pull_request_thread(
        self,
        project: str,
        repository_id: str,
        pull_request_id: int,
        thread_id: int,
        thread_data: dict,
    ) -> dict:
        validate_required(
            {
                "project": project,
                "repository_id": repository_id,
                "pull_request_id": pull_request_id,
                "thread_id": thread_id,
            },
            ["project", "repository_id", "pull_request_id", "thread_id"],
        )
        return self.make_request(
            "PATCH",
            f"{self._pr_path(project, repository_id, pull_request_id)}/threads/{thread_id}",
            body=thread_data,
        )


def thread_payload(content: str) -> dict:
    """Body for a new thread holding one top-level text comment."""
    return {"comments": [{"content": content, "parentCommentId": 0, "commentType": 1}]}


def _error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict) and data.get("message"):
        return data["message"]
    return response.text


# ---------------------------------------------------------------------------
# Cached client
# ---------------------------------------------------------------------------
@functools.lru_cache(maxsize=1)
def get_azure_client() -> AzureDevOpsClient:
    """Create or return a cached client configured from the environment."""
    validate_required(
        {"AZURE_DEVOPS_ORG": config.AZURE_DEVOPS_ORG, "AZURE_DEVOPS_PAT": config.AZURE_DEVOPS_PAT},
        ["AZURE_DEVOPS_ORG", "AZURE_DEVOPS_PAT"],
    )
    return AzureDevOpsClient(
        config.AZURE_DEVOPS_ORG,
        config.AZURE_DEVOPS_PAT,
        api_version=config.AZURE_DEVOPS_API_VERSION,
        timeout=config.REQUEST_TIMEOUT,
        circuit_breaker=CircuitBreaker(),
    )
