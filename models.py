"""Data models for analysis results, file changes and reports."""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["critical", "high", "medium", "low"]
Category = Literal["security", "performance", "quality"]
Priority = Literal["high", "medium", "low"]
ChangeType = Literal["add", "modify", "delete", "rename"]

SEVERITIES: tuple[str, ...] = ("critical", "high", "medium", "low")
CATEGORIES: tuple[str, ...] = ("security", "performance", "quality")


class Issue(BaseModel):
    """A single rule match on a changed line."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(description="Rule id, e.g. sql_injection")
    severity: Severity
    description: str
    line: int = Field(default=0, description="Best-effort line number, 0 if unknown")
    content: str = Field(default="", description="Matched line, trimmed")
    file: str = ""
    suggestion: str = ""


class Suggestion(BaseModel):
    """A top-level recommendation for the PR."""

    type: str
    priority: Priority
    description: str
    action: str = ""
    file: str | None = None


class AnalysisResult(BaseModel):
    """Findings for one file change, or the merge of several."""

    security: list[Issue] = Field(default_factory=list)
    performance: list[Issue] = Field(default_factory=list)
    quality: list[Issue] = Field(default_factory=list)
    suggestions: list[Suggestion] = Field(default_factory=list)
    risk_score: int = Field(default=0, ge=0, le=10)

    @property
    def critical_issues(self) -> list[Issue]:
        return [
            issue
            for issue in (*self.security, *self.performance, *self.quality)
            if issue.severity == "critical"
        ]

    @property
    def total_issues(self) -> int:
        return len(self.security) + len(self.performance) + len(self.quality)


class FileChange(BaseModel):
    """One entry of a PR change list, normalised."""

    path: str
    file_name: str = ""
    extension: str = ""
    change_type: ChangeType = "modify"
    lines_added: int = 0
    lines_deleted: int = 0
    is_binary: bool = False
    language: str = "unknown"


class RiskFactor(BaseModel):
    """A path- or size-based concern, independent of line-level issues."""

    type: Literal[
        "configuration_change", "database_migration", "security_sensitive", "large_change"
    ]
    severity: Severity
    file: str
    description: str


class ChangeSummary(BaseModel):
    """File counts: ``files`` is the total, the rest is the per-type breakdown."""

    files: int = 0
    added: int = 0
    deleted: int = 0
    edited: int = 0
    renamed: int = 0


class ParsedChanges(BaseModel):
    """A whole change list after normalisation."""

    files: list[FileChange] = Field(default_factory=list)
    summary: ChangeSummary = Field(default_factory=ChangeSummary)
    lines_added: int = 0
    lines_deleted: int = 0
    languages: list[str] = Field(default_factory=list)
    risk_factors: list[RiskFactor] = Field(default_factory=list)


class Complexity(BaseModel):
    """Rough complexity estimate for one file's content."""

    score: int = 0
    max_nesting: int = 0
    factors: list[str] = Field(default_factory=list)


class CodeMetrics(BaseModel):
    """Optional metrics rendered in the report's metrics table."""

    complexity: int | None = None
    test_coverage: float | None = None
    duplication: float | None = None
    technical_debt: float | None = None
    maintainability: float | None = None


class PullRequestInfo(BaseModel):
    """The subset of Azure DevOps PR metadata the report needs."""

    pull_request_id: int
    title: str = ""
    author: str = ""
    repository: str = ""
    project: str = ""
    source_branch: str = ""
    target_branch: str = ""
    source_commit: str | None = None
    target_commit: str | None = None
    status: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "PullRequestInfo":
        """Build from the JSON returned by the pull request endpoint."""
        repository = data.get("repository") or {}
        return cls(
            pull_request_id=data.get("pullRequestId", 0),
            title=data.get("title", ""),
            author=(data.get("createdBy") or {}).get("displayName", ""),
            repository=repository.get("name", ""),
            project=(repository.get("project") or {}).get("name", ""),
            source_branch=_short_ref(data.get("sourceRefName", "")),
            target_branch=_short_ref(data.get("targetRefName", "")),
            source_commit=(data.get("lastMergeSourceCommit") or {}).get("commitId"),
            target_commit=(data.get("lastMergeTargetCommit") or {}).get("commitId"),
            status=data.get("status", ""),
        )


def _short_ref(ref: str) -> str:
    return ref.removeprefix("refs/heads/")


class ReportData(BaseModel):
    """Everything the report formatter renders."""

    repository: str = ""
    pull_request_id: int | None = None
    title: str = ""
    source_branch: str = ""
    target_branch: str = ""
    author: str = ""
    review_id: str = ""
    recommendation: str = ""

    risk_score: int = Field(default=0, ge=0, le=10)
    files_changed: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    languages: list[str] = Field(default_factory=list)

    critical_issues: list[Issue] = Field(default_factory=list)
    security: list[Issue] = Field(default_factory=list)
    performance: list[Issue] = Field(default_factory=list)
    quality: list[Issue] = Field(default_factory=list)
    suggestions: list[Suggestion] = Field(default_factory=list)
    risk_factors: list[RiskFactor] = Field(default_factory=list)
    metrics: CodeMetrics | None = None

    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def build(
        cls,
        analysis: AnalysisResult,
        pull_request: PullRequestInfo | None = None,
        parsed: ParsedChanges | None = None,
        metrics: CodeMetrics | None = None,
        **extra,
    ) -> "ReportData":
        """Combine an analysis with PR metadata and change statistics."""
        fields: dict = {
            "risk_score": analysis.risk_score,
            "critical_issues": analysis.critical_issues,
            "security": analysis.security,
            "performance": analysis.performance,
            "quality": analysis.quality,
            "suggestions": analysis.suggestions,
            "metrics": metrics,
        }
        if pull_request is not None:
            fields.update(
                repository=pull_request.repository,
                pull_request_id=pull_request.pull_request_id,
                title=pull_request.title,
                source_branch=pull_request.source_branch,
                target_branch=pull_request.target_branch,
                author=pull_request.author,
            )
        if parsed is not None:
            fields.update(
                files_changed=parsed.summary.files,
                lines_added=parsed.lines_added,
                lines_removed=parsed.lines_deleted,
                languages=parsed.languages,
                risk_factors=parsed.risk_factors,
            )
        fields.update(extra)
        return cls(**fields)
