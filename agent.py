"""
ADOLens Agent - LangGraph-based PR review pipeline

The review runs as a state machine: fetch the PR and its latest iteration's
changes from Azure DevOps, analyze every reviewable file, render the report,
then optionally post it back to the PR as a comment thread.
"""

import logging
import uuid
from dataclasses import dataclass, field

from langgraph.graph import END, START, StateGraph

import config as _config  # noqa: F401  (loads .env and configures logging)
from analyzer import analyze_diff, merge_results
from azure_client import AzureDevOpsClient
from change_parser import (
    analyze_complexity,
    build_parsed_changes,
    change_content,
    change_entries,
    parse_file_change,
)
from diff_parser import build_unified_diff, diff_stats, should_review_file
from errors import ReviewError
from models import (
    AnalysisResult,
    CodeMetrics,
    FileChange,
    ParsedChanges,
    PullRequestInfo,
    ReportData,
)
from report_formatter import format_report

logger = logging.getLogger(__name__)


# =============================================================================
# STATE DEFINITION
# =============================================================================
@dataclass
class ReviewState:
    """
    State that flows through the review graph.

    Each node reads what it needs and returns a dict of the fields it updates.
    """

    # Input (required)
    project: str
    repository_id: str
    pull_request_id: int

    # Options
    report_format: str = "markdown"
    post: bool = True
    review_id: str = ""

    # Intermediate data (populated by nodes)
    pull_request: PullRequestInfo | None = None
    changes: list[dict] = field(default_factory=list)
    analysis: AnalysisResult | None = None
    parsed: ParsedChanges | None = None
    metrics: CodeMetrics | None = None

    # Output
    report: str = ""
    comment: str = ""
    thread_id: int | None = None
    review_posted: bool = False
    error: str | None = None
    error_code: str | None = None


def _field(state, name: str):
    # LangGraph may pass state as dict or dataclass
    return state.get(name) if isinstance(state, dict) else getattr(state, name)


def _failed(error: ReviewError, step: str) -> dict:
    logger.error("❌ %s failed: %s", step, error.message)
    return {"error": error.message, "error_code": error.code}


# =============================================================================
# NODE FUNCTIONS
# =============================================================================
def fetch_pr_data(state: ReviewState, client: AzureDevOpsClient) -> dict:
    """
    Node 1: Fetch PR metadata and change entries.

    Reads: project, repository_id, pull_request_id
    Updates: pull_request, changes, error
    """
    logger.info(
        "📥 Fetching PR #%s from %s/%s...",
        state.pull_request_id,
        state.project,
        state.repository_id,
    )

    try:
        pr_data = client.get_pull_request(state.project, state.repository_id, state.pull_request_id)
        changes = client.get_pull_request_changes(
            state.project, state.repository_id, state.pull_request_id
        )
    except ReviewError as e:
        return _failed(e, "Fetching PR")

    pull_request = PullRequestInfo.from_api(pr_data)
    entries = change_entries(changes)
    logger.info("   PR: %s by %s, %d change(s)", pull_request.title, pull_request.author, len(entries))

    return {"pull_request": pull_request, "changes": entries}


def _fetch_content(
    client: AzureDevOpsClient,
    state: ReviewState,
    path: str,
    commit_id: str | None,
) -> str | None:
    if not commit_id:
        return None
    return client.get_file_content(state.project, state.repository_id, path, commit_id)


def _review_file(
    client: AzureDevOpsClient,
    state: ReviewState,
    change: dict,
    file: FileChange,
) -> tuple[FileChange, AnalysisResult, int | None]:
    """Diff one file between target and source commits and analyze it."""
    pull_request = state.pull_request

    old = None
    if file.change_type != "add":
        original_path = change.get("originalPath") or file.path
        old = _fetch_content(client, state, original_path, pull_request.target_commit)

    new = None
    if file.change_type != "delete":
        new = change_content(change)
        if new is None:
            new = _fetch_content(client, state, file.path, pull_request.source_commit)

    diff = build_unified_diff(old, new, file.path)
    added, removed = diff_stats(diff)
    file = file.model_copy(update={"lines_added": added, "lines_deleted": removed})

    complexity = analyze_complexity(new).score if new else None
    return file, analyze_diff(diff, file.path), complexity


def analyze_changes(state: ReviewState, client: AzureDevOpsClient) -> dict:
    """
    Node 2: Analyze every reviewable file and merge the results.

    Reads: pull_request, changes
    Updates: analysis, parsed, metrics, error
    """
    files: list[FileChange] = []
    results: list[AnalysisResult] = []
    complexities: list[int] = []

    logger.info("🔍 Analysing %d change(s)...", len(state.changes))

    for change in state.changes:
        file = parse_file_change(change)

        if file.is_binary or not should_review_file(file.path):
            logger.info("   Skipping %s", file.path or "<unnamed>")
            files.append(file)
            continue

        try:
            file, result, complexity = _review_file(client, state, change, file)
        except ReviewError as e:
            return _failed(e, f"Analysing {file.path}")

        files.append(file)
        results.append(result)
        if complexity is not None:
            complexities.append(complexity)

        logger.info("   Found %d issue(s) in %s", result.total_issues, file.path)

    analysis = merge_results(results)
    parsed = build_parsed_changes(files)
    metrics = CodeMetrics(complexity=max(complexities)) if complexities else None

    logger.info(
        "   Risk score %d/10 across %d file(s), %d risk factor(s)",
        analysis.risk_score,
        parsed.summary.files,
        len(parsed.risk_factors),
    )
    return {"analysis": analysis, "parsed": parsed, "metrics": metrics}


def format_report_node(state: ReviewState) -> dict:
    """
    Node 3: Render the report and the markdown comment.

    Reads: analysis, pull_request, parsed, metrics, report_format
    Updates: report, comment, error
    """
    data = ReportData.build(
        state.analysis or AnalysisResult(),
        pull_request=state.pull_request,
        parsed=state.parsed,
        metrics=state.metrics,
        review_id=state.review_id,
    )

    try:
        report = format_report(data, state.report_format)
    except ReviewError as e:
        return _failed(e, "Formatting report")

    comment = report if state.report_format.lower() == "markdown" else format_report(data)
    return {"report": report, "comment": comment}


def post_report(state: ReviewState, client: AzureDevOpsClient) -> dict:
    """
    Node 4: Post the markdown comment as a new PR thread.

    Reads: project, repository_id, pull_request_id, comment
    Updates: thread_id, review_posted, error
    """
    logger.info("📝 Posting review to Azure DevOps...")

    try:
        thread = client.create_pull_request_thread(
            state.project, state.repository_id, state.pull_request_id, state.comment
        )
    except ReviewError as e:
        return _failed(e, "Posting review")

    logger.info("   ✅ Posted thread #%s", thread.get("id"))
    return {"thread_id": thread.get("id"), "review_posted": True}


# =============================================================================
# DECISION FUNCTIONS (for conditional edges)
# =============================================================================
def continue_unless_error(state: ReviewState) -> str:
    if _field(state, "error"):
        logger.info("🔀 Decision: error recorded → ending")
        return "end"
    return "continue"


def should_post_report(state: ReviewState) -> str:
    """
    Decide whether to post the report or end.

    Returns:
        "post_report" if posting is enabled and nothing failed
        "end" otherwise
    """
    if _field(state, "error") or not _field(state, "post"):
        logger.info("🔀 Decision: not posting")
        return "end"
    return "post_report"


# =============================================================================
# GRAPH CONSTRUCTION
# =============================================================================
def build_review_graph(client: AzureDevOpsClient) -> StateGraph:
    """Build the review workflow graph around *client*."""
    graph = StateGraph(ReviewState)

    graph.add_node("fetch_pr_data", lambda state: fetch_pr_data(state, client))
    graph.add_node("analyze_changes", lambda state: analyze_changes(state, client))
    graph.add_node("format_report", format_report_node)
    graph.add_node("post_report", lambda state: post_report(state, client))

    graph.add_edge(START, "fetch_pr_data")
    graph.add_conditional_edges(
        "fetch_pr_data",
        continue_unless_error,
        {"continue": "analyze_changes", "end": END},
    )
    graph.add_conditional_edges(
        "analyze_changes",
        continue_unless_error,
        {"continue": "format_report", "end": END},
    )
    graph.add_conditional_edges(
        "format_report",
        should_post_report,
        {"post_report": "post_report", "end": END},
    )
    graph.add_edge("post_report", END)

    return graph


def create_agent(client: AzureDevOpsClient):
    """Create and compile the review agent."""
    return build_review_graph(client).compile()


def run_review(
    client: AzureDevOpsClient,
    project: str,
    repository_id: str,
    pull_request_id: int,
    report_format: str = "markdown",
    post: bool = True,
) -> dict:
    """
    Review one pull request end to end.

    Args:
        client: Azure DevOps client
        project: Project name or id
        repository_id: Repository name or id
        pull_request_id: Pull request id
        report_format: markdown, json, html or text
        post: Post the markdown report as a PR thread

    Returns:
        Final state as a dict. ``error``/``error_code`` are set when a typed
        error stopped the pipeline.
    """
    initial_state = ReviewState(
        project=project,
        repository_id=repository_id,
        pull_request_id=pull_request_id,
        report_format=report_format,
        post=post,
        review_id=str(uuid.uuid4()),
    )

    logger.info("🤖 Running ADOLens on %s/%s PR #%s", project, repository_id, pull_request_id)
    return create_agent(client).invoke(initial_state)
