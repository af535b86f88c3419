"""Shared fixtures: a fake Azure DevOps client, report data and patched sleeps."""

from datetime import datetime, timezone

import pytest

import config
from errors import ReviewError
from models import Issue, ReportData, RiskFactor, Suggestion

GENERATED_AT = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

PR_DATA = {
    "pullRequestId": 7,
    "title": "Add user lookup",
    "status": "active",
    "createdBy": {"displayName": "Dana Reyes"},
    "repository": {"id": "repo-1", "name": "shop", "project": {"id": "proj-1", "name": "Retail"}},
    "sourceRefName": "refs/heads/feature/users",
    "targetRefName": "refs/heads/main",
    "lastMergeSourceCommit": {"commitId": "src1"},
    "lastMergeTargetCommit": {"commitId": "tgt1"},
}

OLD_USERS_JS = "function find(id) {\n  return null;\n}\n"
NEW_USERS_JS = (
    "function find(userId) {\n"
    '  const query = "SELECT * FROM users WHERE id=" + userId;\n'
    "  return db.run(query);\n"
    "}\n"
)

CHANGE_ENTRIES = [
    {"item": {"path": "/src/users.js"}, "changeType": "edit"},
    {"item": {"path": "/assets/logo.png"}, "changeType": "add"},
    {"item": {"path": "/README.md"}, "changeType": "edit"},
]


class FakeAzureClient:
    """In-memory stand-in for AzureDevOpsClient."""

    def __init__(self, pr_data=None, changes=None, contents=None, fail_on=None):
        self.pr_data = pr_data if pr_data is not None else PR_DATA
        self.changes = changes if changes is not None else CHANGE_ENTRIES
        self.contents = contents if contents is not None else {
            ("/src/users.js", "tgt1"): OLD_USERS_JS,
            ("/src/users.js", "src1"): NEW_USERS_JS,
        }
        self.fail_on = fail_on or {}
        self.content_requests = []
        self.threads = []

    def _maybe_fail(self, operation: str) -> None:
        error = self.fail_on.get(operation)
        if isinstance(error, ReviewError):
            raise error

    def get_pull_request(self, project, repository_id, pull_request_id):
        self._maybe_fail("get_pull_request")
        return self.pr_data

    def get_pull_request_changes(self, project, repository_id, pull_request_id):
        self._maybe_fail("get_pull_request_changes")
        return {"changeEntries": self.changes}

    def get_file_content(self, project, repository_id, path, commit_id):
        self._maybe_fail("get_file_content")
        self.content_requests.append((path, commit_id))
        return self.contents.get((path, commit_id))

    def create_pull_request_thread(self, project, repository_id, pull_request_id, content):
        self._maybe_fail("create_pull_request_thread")
        self.threads.append(content)
        return {"id": 42, "comments": [{"content": content}]}


@pytest.fixture
def fake_client():
    return FakeAzureClient()


@pytest.fixture
def make_fake_client():
    return FakeAzureClient


@pytest.fixture(autouse=True)
def sleeps(monkeypatch):
    """Record retry back-off delays instead of sleeping."""
    recorded: list[float] = []
    monkeypatch.setattr(config.time, "sleep", recorded.append)
    return recorded


@pytest.fixture
def report_data() -> ReportData:
    sql = Issue(
        type="sql_injection",
        severity="critical",
        description="Potential SQL injection vulnerability",
        content='const query = "SELECT * FROM users WHERE id=" + userId;',
        file="/src/users.js",
        suggestion="Use parameterized queries or prepared statements",
    )
    loop = Issue(
        type="inefficient_query",
        severity="medium",
        description="Potentially inefficient database query",
        file="/src/users.js",
        suggestion="Optimize query or add proper indexing",
    )
    return ReportData(
        repository="shop",
        pull_request_id=7,
        title="Add user lookup",
        source_branch="feature/users",
        target_branch="main",
        author="Dana Reyes",
        review_id="review-1",
        risk_score=7,
        files_changed=2,
        lines_added=12,
        lines_removed=3,
        languages=["javascript"],
        critical_issues=[sql],
        security=[sql],
        performance=[loop],
        suggestions=[
            Suggestion(
                type="security_review",
                priority="high",
                description="Security review recommended due to potential vulnerabilities",
                action="Have a security expert review the changes",
            ),
        ],
        risk_factors=[
            RiskFactor(
                type="database_migration",
                severity="high",
                file="/db/migrations/001_users.sql",
                description="Database migration file detected",
            ),
        ],
        generated_at=GENERATED_AT,
    )
