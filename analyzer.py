"""Pattern-based diff analysis, risk scoring and suggestion generation."""

import logging
import math
from fractions import Fraction
from itertools import takewhile
from typing import Iterable

from diff_parser import DiffLine, split_diff_lines
from models import AnalysisResult, Issue, Suggestion
from rules import DEFAULT_RULES, REMOVED_LINE_CHECKS, Rule, RuleSet

logger = logging.getLogger(__name__)

MAX_RISK_SCORE = 10

# Per-category weight for critical/high/medium/low issues
SEVERITY_WEIGHTS: dict[str, dict[str, Fraction]] = {
    "security": {
        "critical": Fraction(4),
        "high": Fraction(3),
        "medium": Fraction(2),
        "low": Fraction(1),
    },
    "performance": {
        "critical": Fraction(3),
        "high": Fraction(2),
        "medium": Fraction(1),
        "low": Fraction(1, 2),
    },
    "quality": {
        "critical": Fraction(2),
        "high": Fraction(1),
        "medium": Fraction(1, 2),
        "low": Fraction(1, 4),
    },
}

PERFORMANCE_TESTING_THRESHOLD = 2
CODE_REFACTORING_THRESHOLD = 5


# ---------------------------------------------------------------------------
# Line matching
# ---------------------------------------------------------------------------
def _window_text(added: list[DiffLine], index: int, size: int) -> str:
    block = added[index].block
    window = takewhile(lambda line: line.block == block, added[index:index + size])
    return "\n".join(line.content for line in window) + "\n"


def _rule_matches(rule: Rule, added: list[DiffLine], index: int) -> bool:
    """Test *rule* against the added line at *index*.

    Multi-line rules see the anchor line plus the added lines directly
    after it in the diff, stopping at the first context, removed or hunk
    line. They only count when the match begins on the anchor line, so one
    long block is reported once.
    """
    anchor = added[index].content
    if rule.window <= 1:
        return rule.matches(anchor)

    match = rule.pattern.search(_window_text(added, index, rule.window))
    return match is not None and match.start() < len(anchor)


def _issue(rule: Rule, line: DiffLine, path: str) -> Issue:
    return Issue(
        type=rule.type,
        severity=rule.severity,
        description=rule.description,
        line=line.line_number,
        content=line.content.strip(),
        file=path,
        suggestion=rule.suggestion,
    )


def removed_line_suggestions(removed: Iterable[DiffLine], path: str) -> list[Suggestion]:
    """Flag removed lines that mention error handling, validation, auth or logging."""
    suggestions = []
    for line in removed:
        for check in REMOVED_LINE_CHECKS:
            if check.pattern.search(line.content):
                suggestions.append(Suggestion(
                    type="removed_functionality",
                    priority="medium",
                    description=f"Important functionality may have been removed: {check.label}",
                    action="Verify that this functionality is replaced or no longer needed",
                    file=path,
                ))
    return suggestions


# ---------------------------------------------------------------------------
# Scoring and suggestions
# ---------------------------------------------------------------------------
def calculate_risk_score(
    security: list[Issue],
    performance: list[Issue],
    quality: list[Issue],
) -> int:
    """
    Reduce the three issue lists to an integer risk score.

    The weighted sum is kept exact and rounded half up, then capped at 10.
    Severities outside the weight table contribute nothing.

    Returns:
        Integer between 0 and 10
    """
    total = Fraction(0)
    for category, issues in (
        ("security", security),
        ("performance", performance),
        ("quality", quality),
    ):
        weights = SEVERITY_WEIGHTS[category]
        for issue in issues:
            total += weights.get(issue.severity, Fraction(0))

    return min(MAX_RISK_SCORE, math.floor(total + Fraction(1, 2)))


def generate_suggestions(
    security: list[Issue],
    performance: list[Issue],
    quality: list[Issue],
    removed: Iterable[Suggestion] = (),
) -> list[Suggestion]:
    """Threshold suggestions for the issue counts, followed by *removed*."""
    suggestions = []

    if security:
        suggestions.append(Suggestion(
            type="security_review",
            priority="high",
            description="Security review recommended due to potential vulnerabilities",
            action="Have a security expert review the changes",
        ))

    if len(performance) > PERFORMANCE_TESTING_THRESHOLD:
        suggestions.append(Suggestion(
            type="performance_testing",
            priority="medium",
            description="Performance testing recommended due to multiple performance concerns",
            action="Run performance tests before merging",
        ))

    if len(quality) > CODE_REFACTORING_THRESHOLD:
        suggestions.append(Suggestion(
            type="code_refactoring",
            priority="low",
            description="Consider refactoring to improve code quality",
            action="Address code quality issues in a follow-up PR",
        ))

    suggestions.extend(removed)
    return suggestions


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------
def analyze_diff(
    diff_text: str | None,
    path: str = "",
    rules: RuleSet = DEFAULT_RULES,
) -> AnalysisResult:
    """
    Run every rule over the added lines of one file's diff.

    Args:
        diff_text: Unified diff text for a single file (``None`` is allowed)
        path: File path recorded on every issue and suggestion
        rules: Rule set to apply

    Returns:
        AnalysisResult with issues, suggestions and risk score
    """
    lines = split_diff_lines(diff_text)
    found: dict[str, list[Issue]] = {"security": [], "performance": [], "quality": []}

    for index, line in enumerate(lines.added):
        for category, category_rules in rules.categories():
            for rule in category_rules:
                if _rule_matches(rule, lines.added, index):
                    found[category].append(_issue(rule, line, path))

    removed = removed_line_suggestions(lines.removed, path)

    result = AnalysisResult(
        security=found["security"],
        performance=found["performance"],
        quality=found["quality"],
        suggestions=generate_suggestions(
            found["security"], found["performance"], found["quality"], removed
        ),
        risk_score=calculate_risk_score(
            found["security"], found["performance"], found["quality"]
        ),
    )

    if result.total_issues:
        logger.debug(
            "%s: %d security, %d performance, %d quality issue(s), risk %d",
            path or "<diff>",
            len(result.security),
            len(result.performance),
            len(result.quality),
            result.risk_score,
        )
    return result


def merge_results(results: Iterable[AnalysisResult]) -> AnalysisResult:
    """
    Combine per-file results into one PR-level result.

    Issues are concatenated in order. Threshold suggestions and the risk
    score are recomputed from the merged lists; removed-functionality
    suggestions from every file are kept.
    """
    security: list[Issue] = []
    performance: list[Issue] = []
    quality: list[Issue] = []
    removed: list[Suggestion] = []

    for result in results:
        security.extend(result.security)
        performance.extend(result.performance)
        quality.extend(result.quality)
        removed.extend(s for s in result.suggestions if s.type == "removed_functionality")

    return AnalysisResult(
        security=security,
        performance=performance,
        quality=quality,
        suggestions=generate_suggestions(security, performance, quality, removed),
        risk_score=calculate_risk_score(security, performance, quality),
    )
