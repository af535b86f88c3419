"""Tests for the LangGraph review pipeline."""

import json

from agent import ReviewState, continue_unless_error, run_review, should_post_report
from errors import RemoteServiceError


class TestRunReview:
    def test_full_review(self, fake_client):
        state = run_review(fake_client, "Retail", "shop", 7)

        assert state["error"] is None
        analysis = state["analysis"]
        assert [i.type for i in analysis.security] == ["sql_injection"]
        assert [i.type for i in analysis.performance] == ["inefficient_query"]
        assert analysis.risk_score == 5

        assert state["review_posted"] is True
        assert state["thread_id"] == 42
        assert fake_client.threads == [state["comment"]]
        assert state["report"] == state["comment"]
        assert state["comment"].startswith("# 🔍")
        assert "**Pull Request:** #7" in state["comment"]
        assert "**Branch:** feature/users → main" in state["comment"]
        assert state["review_id"]

    def test_change_statistics(self, fake_client):
        state = run_review(fake_client, "Retail", "shop", 7, post=False)

        parsed = state["parsed"]
        assert (parsed.summary.files, parsed.summary.edited, parsed.summary.added) == (3, 2, 1)
        assert parsed.lines_added == 3
        assert parsed.lines_deleted == 2
        assert parsed.languages == ["javascript"]
        assert state["metrics"].complexity == 1

    def test_skipped_files_are_not_fetched(self, fake_client):
        run_review(fake_client, "Retail", "shop", 7, post=False)
        assert fake_client.content_requests == [
            ("/src/users.js", "tgt1"),
            ("/src/users.js", "src1"),
        ]

    def test_no_post(self, fake_client):
        state = run_review(fake_client, "Retail", "shop", 7, post=False)
        assert fake_client.threads == []
        assert state["review_posted"] is False
        assert state["thread_id"] is None

    def test_json_report_with_markdown_comment(self, fake_client):
        state = run_review(fake_client, "Retail", "shop", 7, report_format="json")
        assert json.loads(state["report"])["summary"]["riskScore"] == 5
        assert fake_client.threads[0].startswith("# 🔍")

    def test_added_file_with_inline_content(self, make_fake_client):
        client = make_fake_client(
            changes=[
                {
                    "item": {"path": "/src/token.py"},
                    "changeType": "add",
                    "content": "import random\nvalue = random.random()\n",
                }
            ],
            contents={},
        )
        state = run_review(client, "Retail", "shop", 7, post=False)

        assert client.content_requests == []
        assert [i.type for i in state["analysis"].security] == ["insecure_random"]
        assert [f.type for f in state["parsed"].risk_factors] == ["security_sensitive"]

    def test_fetch_error_stops_pipeline(self, make_fake_client):
        client = make_fake_client(
            fail_on={"get_pull_request": RemoteServiceError("PR not found", status_code=404)}
        )
        state = run_review(client, "Retail", "shop", 7)

        assert state["error"] == "PR not found"
        assert state["error_code"] == "AZURE_DEVOPS_ERROR"
        assert state["analysis"] is None
        assert state["report"] == ""
        assert client.threads == []

    def test_content_error_is_recorded(self, make_fake_client):
        client = make_fake_client(
            fail_on={"get_file_content": RemoteServiceError("unavailable", status_code=503)}
        )
        state = run_review(client, "Retail", "shop", 7)
        assert state["error_code"] == "AZURE_DEVOPS_ERROR"
        assert state["report"] == ""

    def test_unsupported_format_is_recorded(self, fake_client):
        state = run_review(fake_client, "Retail", "shop", 7, report_format="yaml")
        assert state["error_code"] == "UNSUPPORTED_FORMAT"
        assert fake_client.threads == []

    def test_post_error_is_recorded(self, make_fake_client):
        client = make_fake_client(
            fail_on={"create_pull_request_thread": RemoteServiceError("boom", status_code=500)}
        )
        state = run_review(client, "Retail", "shop", 7)
        assert state["error"] == "boom"
        assert state["review_posted"] is False
        assert state["report"]


class TestDecisions:
    def test_continue_unless_error(self):
        assert continue_unless_error(ReviewState("p", "r", 1)) == "continue"
        assert continue_unless_error({"error": "x"}) == "end"

    def test_should_post_report(self):
        assert should_post_report(ReviewState("p", "r", 1)) == "post_report"
        assert should_post_report(ReviewState("p", "r", 1, post=False)) == "end"
        assert should_post_report({"error": "x", "post": True}) == "end"
