"""FastAPI webhook receiver for Azure DevOps pull request events."""

import hashlib
import hmac
import json
import logging

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

import config
from agent import run_review
from azure_client import AzureDevOpsClient, get_azure_client
from errors import ReviewError, WebhookError, handle_error

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature-256"
HANDLED_EVENTS = {"git.pullrequest.created", "git.pullrequest.updated"}


def verify_signature(payload: bytes, signature_header: str | None, secret: str) -> None:
    """Check the HMAC-SHA256 hex digest of *payload* (``sha256=`` prefix optional)."""
    if not signature_header:
        raise WebhookError("Missing signature", details={"header": SIGNATURE_HEADER})

    signature = signature_header.removeprefix("sha256=")
    mac = hmac.new(secret.encode(), msg=payload, digestmod=hashlib.sha256)
    if not hmac.compare_digest(mac.hexdigest(), signature):
        raise WebhookError("Invalid signature", status_code=401)


def parse_event(payload: bytes) -> dict:
    try:
        event = json.loads(payload)
    except ValueError as e:
        raise WebhookError("Invalid JSON payload") from e
    if not isinstance(event, dict):
        raise WebhookError("Webhook payload must be a JSON object")
    return event


def pull_request_target(event: dict) -> tuple[str, str, int]:
    """
    Extract ``(project_id, repository_id, pull_request_id)`` from a PR event.

    Raises:
        WebhookError: Naming every missing field
    """
    resource = event.get("resource") or {}
    repository = resource.get("repository") or {}
    fields = {
        "resource.pullRequestId": resource.get("pullRequestId"),
        "resource.repository.id": repository.get("id"),
        "resource.repository.project.id": (repository.get("project") or {}).get("id"),
    }
    missing = [name for name, value in fields.items() if value in (None, "")]
    if missing:
        raise WebhookError(
            f"Missing required fields: {', '.join(missing)}",
            details={"missing_fields": missing},
        )
    return (
        fields["resource.repository.project.id"],
        fields["resource.repository.id"],
        fields["resource.pullRequestId"],
    )


def create_app(
    client: AzureDevOpsClient | None = None,
    webhook_secret: str | None = None,
    post_comments: bool = True,
) -> FastAPI:
    """
    Build the webhook application.

    Args:
        client: Azure DevOps client; the cached environment client when omitted
        webhook_secret: HMAC secret; ``WEBHOOK_SECRET`` when omitted, disabled if empty
        post_comments: Post the report back to the PR
    """
    secret = config.WEBHOOK_SECRET if webhook_secret is None else webhook_secret
    app = FastAPI(title="ADOLens")

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.post("/webhook/pr")
    async def handle_pull_request_event(request: Request):
        payload = await request.body()
        context = {"path": "/webhook/pr"}

        try:
            if secret:
                verify_signature(payload, request.headers.get(SIGNATURE_HEADER), secret)

            event = parse_event(payload)
            event_type = event.get("eventType")
            context["event_type"] = event_type

            if event_type not in HANDLED_EVENTS:
                logger.info("Ignoring webhook event %s", event_type)
                return {"success": True, "message": "Event type not handled"}

            project, repository_id, pull_request_id = pull_request_target(event)
            context["pull_request_id"] = pull_request_id
            logger.info("🔄 Processing %s for PR #%s", event_type, pull_request_id)

            state = await run_in_threadpool(
                run_review,
                client or get_azure_client(),
                project,
                repository_id,
                pull_request_id,
                report_format=config.REPORT_FORMAT,
                post=post_comments,
            )
        except ReviewError as e:
            return JSONResponse(handle_error(e, context), status_code=e.status_code)
        except Exception as e:
            return JSONResponse(handle_error(e, context), status_code=500)

        if state.get("error"):
            body = {
                "success": False,
                "error": {
                    "message": state["error"],
                    "code": state.get("error_code") or "INTERNAL_ERROR",
                },
            }
            return JSONResponse(body, status_code=502)

        analysis = state.get("analysis")
        return {
            "success": True,
            "message": "Webhook processed successfully",
            "riskScore": analysis.risk_score if analysis else 0,
            "threadId": state.get("thread_id"),
        }

    return app
