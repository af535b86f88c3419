"""Tests for the FastAPI webhook receiver."""

import hashlib
import hmac
import json

import pytest
from fastapi.testclient import TestClient

from errors import RemoteServiceError, WebhookError
from webhook import create_app, verify_signature

SECRET = "s3cret"

PR_EVENT = {
    "eventType": "git.pullrequest.created",
    "resource": {
        "pullRequestId": 7,
        "repository": {"id": "shop", "project": {"id": "Retail"}},
    },
}


def sign(body: bytes, secret: str = SECRET) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def post(http: TestClient, payload, signature: str | None = "auto"):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    headers = {"Content-Type": "application/json"}
    if signature == "auto":
        headers["X-Hub-Signature-256"] = sign(body)
    elif signature is not None:
        headers["X-Hub-Signature-256"] = signature
    return http.post("/webhook/pr", content=body, headers=headers)


@pytest.fixture
def http(fake_client):
    return TestClient(create_app(client=fake_client, webhook_secret=SECRET))


class TestSignature:
    def test_valid_with_and_without_prefix(self):
        body = b'{"a": 1}'
        verify_signature(body, sign(body), SECRET)
        verify_signature(body, sign(body).removeprefix("sha256="), SECRET)

    def test_invalid(self):
        with pytest.raises(WebhookError) as exc_info:
            verify_signature(b"{}", sign(b"{}", "other"), SECRET)
        assert exc_info.value.status_code == 401

    def test_missing(self):
        with pytest.raises(WebhookError) as exc_info:
            verify_signature(b"{}", None, SECRET)
        assert exc_info.value.status_code == 400


class TestWebhook:
    def test_health(self, http):
        assert http.get("/health").json() == {"status": "ok"}

    def test_pull_request_created(self, http, fake_client):
        resp = post(http, PR_EVENT)
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "message": "Webhook processed successfully",
            "riskScore": 5,
            "threadId": 42,
        }
        assert len(fake_client.threads) == 1

    def test_pull_request_updated(self, http):
        event = {**PR_EVENT, "eventType": "git.pullrequest.updated"}
        assert post(http, event).json()["success"] is True

    def test_other_events_are_acknowledged(self, http, fake_client):
        resp = post(http, {"eventType": "git.push", "resource": {}})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Event type not handled"}
        assert fake_client.threads == []

    def test_bad_signature(self, http, fake_client):
        resp = post(http, PR_EVENT, signature="sha256=deadbeef")
        assert resp.status_code == 401
        body = resp.json()
        assert body["success"] is False
        assert body["error"]["code"] == "WEBHOOK_ERROR"
        assert "Traceback" not in resp.text
        assert fake_client.threads == []

    def test_missing_signature(self, http):
        assert post(http, PR_EVENT, signature=None).status_code == 400

    def test_malformed_json(self, http):
        resp = post(http, b"{not json")
        assert resp.status_code == 400
        assert resp.json()["error"]["message"] == "Invalid JSON payload"

    def test_missing_pull_request_fields(self, http):
        resp = post(http, {"eventType": "git.pullrequest.created", "resource": {"pullRequestId": 7}})
        assert resp.status_code == 400
        assert resp.json()["error"]["details"]["missing_fields"] == [
            "resource.repository.id",
            "resource.repository.project.id",
        ]

    def test_no_secret_configured(self, fake_client):
        http = TestClient(create_app(client=fake_client, webhook_secret=""))
        assert post(http, PR_EVENT, signature=None).json()["success"] is True

    def test_post_comments_disabled(self, fake_client):
        http = TestClient(create_app(client=fake_client, webhook_secret=SECRET, post_comments=False))
        resp = post(http, PR_EVENT)
        assert resp.json()["threadId"] is None
        assert fake_client.threads == []

    def test_pipeline_failure(self, make_fake_client):
        client = make_fake_client(
            fail_on={"get_pull_request": RemoteServiceError("PR not found", status_code=404)}
        )
        http = TestClient(create_app(client=client, webhook_secret=SECRET))
        resp = post(http, PR_EVENT)
        assert resp.status_code == 502
        assert resp.json() == {
            "success": False,
            "error": {"message": "PR not found", "code": "AZURE_DEVOPS_ERROR"},
        }
