"""Render review results as markdown, JSON, HTML or plain text."""

import html
import json
from typing import Callable

from errors import UnsupportedFormatError
from models import CodeMetrics, Issue, ReportData, Suggestion

REPORT_VERSION = "1.0.0"
REPORT_TITLE = "ADOLens Code Review Report"

RISK_EMOJIS = {
    "Critical": "🔴",
    "High": "🟠",
    "Medium": "🟡",
    "Low": "🟢",
    "Minimal": "⚪",
}

SEVERITY_EMOJIS = {
    "critical": "🔴",
    "high": "🟠",
    "medium": "🟡",
    "low": "🟢",
}

RECOMMENDATIONS = {
    "Critical": "Changes required: resolve critical issues before merging",
    "High": "Changes required: address high-risk issues before merging",
    "Medium": "Review required",
    "Low": "Approve after a standard review",
    "Minimal": "Approve",
}

PRIORITY_ORDER = ("high", "medium", "low")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def risk_level(score: int) -> str:
    if score >= 8:
        return "Critical"
    if score >= 6:
        return "High"
    if score >= 4:
        return "Medium"
    if score >= 2:
        return "Low"
    return "Minimal"


def risk_emoji(level: str) -> str:
    return RISK_EMOJIS.get(level, "⚪")


def severity_emoji(severity: str) -> str:
    return SEVERITY_EMOJIS.get(severity, "⚪")


def recommendation_for(score: int) -> str:
    return RECOMMENDATIONS[risk_level(score)]


def group_issues_by_type(issues: list[Issue]) -> dict[str, list[Issue]]:
    """Group issues by ``type``, keeping the order types first appear in."""
    groups: dict[str, list[Issue]] = {}
    for issue in issues:
        groups.setdefault(issue.type or "unknown", []).append(issue)
    return groups


def group_suggestions_by_priority(suggestions: list[Suggestion]) -> dict[str, list[Suggestion]]:
    """Group suggestions as high, medium, low; empty priorities are left out."""
    groups: dict[str, list[Suggestion]] = {}
    for priority in PRIORITY_ORDER:
        matching = [s for s in suggestions if s.priority == priority]
        if matching:
            groups[priority] = matching
    return groups


def _title(type_: str) -> str:
    return type_.replace("_", " ").upper()


def _at_line(issue: Issue) -> str:
    return f" (Line {issue.line})" if issue.line else ""


def _recommendation(data: ReportData) -> str:
    return data.recommendation or recommendation_for(data.risk_score)


def _timestamp(data: ReportData) -> str:
    return data.generated_at.isoformat()


# Metric status thresholds

def complexity_status(value: float | None) -> str:
    if not value:
        return "Unknown"
    if value > 15:
        return "❌ High"
    if value > 10:
        return "⚠️ Medium"
    return "✅ Good"


def coverage_status(value: float | None) -> str:
    if not value:
        return "Unknown"
    if value < 60:
        return "❌ Low"
    if value < 80:
        return "⚠️ Medium"
    return "✅ Good"


def duplication_status(value: float | None) -> str:
    if not value:
        return "Unknown"
    if value > 10:
        return "❌ High"
    if value > 5:
        return "⚠️ Medium"
    return "✅ Good"


def debt_status(value: float | None) -> str:
    if not value:
        return "Unknown"
    return "❌ High" if value > 5 else "✅ Low"


def maintainability_status(value: float | None) -> str:
    if not value:
        return "Unknown"
    if value < 60:
        return "❌ Poor"
    if value < 80:
        return "⚠️ Fair"
    return "✅ Good"


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------
def _md_header(data: ReportData) -> str:
    return "\n".join([
        f"# 🔍 {REPORT_TITLE}",
        "",
        f"**Repository:** {data.repository or 'Unknown'}",
        f"**Pull Request:** #{data.pull_request_id or 'Unknown'}",
        f"**Title:** {data.title or 'Unknown'}",
        f"**Branch:** {data.source_branch or 'Unknown'} → {data.target_branch or 'Unknown'}",
        f"**Author:** {data.author or 'Unknown'}",
        f"**Review Date:** {data.generated_at.date().isoformat()}",
        "",
        "---",
    ])


def _md_summary(data: ReportData) -> str:
    level = risk_level(data.risk_score)
    lines = [
        "## 📊 Executive Summary",
        "",
        f"**Overall Risk Score:** {risk_emoji(level)} {data.risk_score}/10 ({level})",
        f"**Recommendation:** {_recommendation(data)}",
        "",
        "### 📈 Change Statistics",
        f"- **Files Changed:** {data.files_changed}",
        f"- **Lines Added:** +{data.lines_added}",
        f"- **Lines Removed:** -{data.lines_removed}",
        f"- **Languages:** {', '.join(data.languages) or 'Unknown'}",
        "",
        "### 🎯 Issue Summary",
        f"- **Critical Issues:** {len(data.critical_issues)}",
        f"- **Security Concerns:** {len(data.security)}",
        f"- **Performance Issues:** {len(data.performance)}",
        f"- **Quality Issues:** {len(data.quality)}",
    ]

    if data.risk_factors:
        lines += ["", "### 🚩 Risk Factors"]
        for factor in data.risk_factors:
            lines.append(
                f"- {severity_emoji(factor.severity)} **{factor.file}**: "
                f"{factor.description} ({factor.severity})"
            )

    return "\n".join(lines)


def _md_critical(issues: list[Issue]) -> str:
    blocks = ["## ⚠️ Critical Issues"]
    for issue in issues:
        block = [
            f"### {severity_emoji(issue.severity)} {issue.type}",
            "",
            f"**File:** `{issue.file}`{_at_line(issue)}",
            f"**Severity:** {issue.severity}",
            "",
            issue.description,
        ]
        if issue.suggestion:
            block += ["", f"**Suggested Fix:** {issue.suggestion}"]
        if issue.content:
            block += ["", "```", issue.content, "```"]
        block += ["", "---"]
        blocks.append("\n".join(block))
    return "\n\n".join(blocks)


def _md_issue_section(heading: str, issues: list[Issue], hint: str) -> str:
    parts = [heading]
    for type_, grouped in group_issues_by_type(issues).items():
        lines = [f"### {_title(type_)}", ""]
        for issue in grouped:
            lines.append(f"- **{issue.file}**{_at_line(issue)}: {issue.description}")
            if issue.suggestion:
                lines.append(f"  - *{hint}: {issue.suggestion}*")
        parts.append("\n".join(lines))
    return "\n\n".join(parts)


def _md_suggestions(suggestions: list[Suggestion]) -> str:
    parts = ["## 💡 Recommendations"]
    for priority, grouped in group_suggestions_by_priority(suggestions).items():
        lines = [f"### {priority.upper()} Priority", ""]
        for suggestion in grouped:
            target = f" (`{suggestion.file}`)" if suggestion.file else ""
            lines.append(
                f"- **{suggestion.type.replace('_', ' ')}**{target}: {suggestion.description}"
            )
            if suggestion.action:
                lines.append(f"  - *Action: {suggestion.action}*")
        parts.append("\n".join(lines))
    return "\n\n".join(parts)


def _metric(value: float | None, suffix: str = "") -> str:
    return "N/A" if value is None else f"{value}{suffix}"


def _md_metrics(metrics: CodeMetrics) -> str:
    return "\n".join([
        "## 📊 Code Metrics",
        "",
        "| Metric | Value | Status |",
        "|--------|-------|--------|",
        f"| Cyclomatic Complexity | {_metric(metrics.complexity)} "
        f"| {complexity_status(metrics.complexity)} |",
        f"| Test Coverage | {_metric(metrics.test_coverage, '%')} "
        f"| {coverage_status(metrics.test_coverage)} |",
        f"| Code Duplication | {_metric(metrics.duplication, '%')} "
        f"| {duplication_status(metrics.duplication)} |",
        f"| Technical Debt | {_metric(metrics.technical_debt)} "
        f"| {debt_status(metrics.technical_debt)} |",
        f"| Maintainability Index | {_metric(metrics.maintainability)} "
        f"| {maintainability_status(metrics.maintainability)} |",
    ])


def _md_footer(data: ReportData) -> str:
    return "\n".join([
        "---",
        "",
        f"*This report was generated by ADOLens v{REPORT_VERSION}*",
        f"*Analysis completed at: {_timestamp(data)}*",
        f"*Review ID: {data.review_id or 'Unknown'}*",
    ])


def format_markdown(data: ReportData) -> str:
    sections = [_md_header(data), _md_summary(data)]

    if data.critical_issues:
        sections.append(_md_critical(data.critical_issues))
    if data.security:
        sections.append(_md_issue_section("## 🔒 Security Analysis", data.security, "Suggestion"))
    if data.performance:
        sections.append(
            _md_issue_section("## ⚡ Performance Analysis", data.performance, "Optimization")
        )
    if data.quality:
        sections.append(
            _md_issue_section("## 📝 Code Quality Analysis", data.quality, "Improvement")
        )
    if data.suggestions:
        sections.append(_md_suggestions(data.suggestions))
    if data.metrics is not None:
        sections.append(_md_metrics(data.metrics))

    sections.append(_md_footer(data))
    return "\n\n".join(sections)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------
def _metrics_dict(metrics: CodeMetrics | None) -> dict:
    if metrics is None:
        return {}
    return {
        "complexity": metrics.complexity,
        "testCoverage": metrics.test_coverage,
        "duplication": metrics.duplication,
        "technicalDebt": metrics.technical_debt,
        "maintainability": metrics.maintainability,
    }


def format_json(data: ReportData) -> str:
    def dump(items):
        return [item.model_dump(mode="json") for item in items]

    return json.dumps(
        {
            "metadata": {
                "reviewId": data.review_id,
                "timestamp": _timestamp(data),
                "version": REPORT_VERSION,
            },
            "summary": {
                "riskScore": data.risk_score,
                "riskLevel": risk_level(data.risk_score),
                "recommendation": _recommendation(data),
                "filesChanged": data.files_changed,
                "linesAdded": data.lines_added,
                "linesRemoved": data.lines_removed,
                "languages": data.languages,
            },
            "issues": {
                "critical": dump(data.critical_issues),
                "security": dump(data.security),
                "performance": dump(data.performance),
                "quality": dump(data.quality),
            },
            "suggestions": dump(data.suggestions),
            "riskFactors": dump(data.risk_factors),
            "metrics": _metrics_dict(data.metrics),
        },
        indent=2,
        ensure_ascii=False,
    )


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------
_HTML_STYLE = """\
        body { font-family: Arial, sans-serif; margin: 20px; }
        .header { background: #f5f5f5; padding: 20px; border-radius: 5px; }
        .section { margin: 20px 0; }
        .issue { background: #fff3cd; padding: 10px; margin: 10px 0; border-radius: 3px; }
        .critical { background: #f8d7da; }
        .suggestion { background: #d1ecf1; }"""


def _html_issues(title: str, issues: list[Issue]) -> str:
    items = []
    for issue in issues:
        css = "issue critical" if issue.severity == "critical" else "issue"
        items.append(
            f'        <div class="{css}">'
            f"<strong>{html.escape(issue.type)}</strong> "
            f"({html.escape(issue.severity)}) in <code>{html.escape(issue.file)}</code>: "
            f"{html.escape(issue.description)}</div>"
        )
    return "\n".join([
        '    <div class="section">',
        f"        <h2>{title}</h2>",
        *items,
        "    </div>",
    ])


def format_html(data: ReportData) -> str:
    level = risk_level(data.risk_score)
    esc = html.escape
    sections = []
    for title, issues in (
        ("Critical Issues", data.critical_issues),
        ("Security Analysis", data.security),
        ("Performance Analysis", data.performance),
        ("Code Quality Analysis", data.quality),
    ):
        if issues:
            sections.append(_html_issues(title, issues))

    if data.suggestions:
        items = [
            f'        <div class="suggestion"><strong>{esc(s.priority.upper())}</strong> '
            f"{esc(s.type.replace('_', ' '))}: {esc(s.description)}</div>"
            for priority in group_suggestions_by_priority(data.suggestions).values()
            for s in priority
        ]
        sections.append("\n".join([
            '    <div class="section">',
            "        <h2>Recommendations</h2>",
            *items,
            "    </div>",
        ]))

    return "\n".join([
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        '    <meta charset="utf-8">',
        f"    <title>{REPORT_TITLE}</title>",
        "    <style>",
        _HTML_STYLE,
        "    </style>",
        "</head>",
        "<body>",
        '    <div class="header">',
        f"        <h1>🔍 {REPORT_TITLE}</h1>",
        f"        <p><strong>Repository:</strong> {esc(data.repository or 'Unknown')}</p>",
        f"        <p><strong>Pull Request:</strong> #{esc(str(data.pull_request_id or 'Unknown'))}</p>",
        f"        <p><strong>Title:</strong> {esc(data.title or 'Unknown')}</p>",
        f"        <p><strong>Author:</strong> {esc(data.author or 'Unknown')}</p>",
        f"        <p><strong>Risk Score:</strong> {risk_emoji(level)} {data.risk_score}/10 ({level})</p>",
        f"        <p><strong>Recommendation:</strong> {esc(_recommendation(data))}</p>",
        "    </div>",
        '    <div class="section">',
        "        <h2>Summary</h2>",
        f"        <p>Files Changed: {data.files_changed}</p>",
        f"        <p>Lines Added: +{data.lines_added}</p>",
        f"        <p>Lines Removed: -{data.lines_removed}</p>",
        f"        <p>Languages: {esc(', '.join(data.languages) or 'Unknown')}</p>",
        "    </div>",
        *sections,
        "    <footer>",
        f"        <p><em>Generated by ADOLens v{REPORT_VERSION} at {_timestamp(data)}</em></p>",
        "    </footer>",
        "</body>",
        "</html>",
    ])


# ---------------------------------------------------------------------------
# Plain text
# ---------------------------------------------------------------------------
def format_text(data: ReportData) -> str:
    rule = "=" * 60
    lines = [
        rule,
        REPORT_TITLE.upper(),
        rule,
        "",
        f"Repository: {data.repository or 'Unknown'}",
        f"Pull Request: #{data.pull_request_id or 'Unknown'}",
        f"Title: {data.title or 'Unknown'}",
        f"Author: {data.author or 'Unknown'}",
        f"Branch: {data.source_branch or 'Unknown'} -> {data.target_branch or 'Unknown'}",
        f"Risk Score: {data.risk_score}/10 ({risk_level(data.risk_score)})",
        f"Recommendation: {_recommendation(data)}",
        "",
        f"Critical: {len(data.critical_issues)}  Security: {len(data.security)}  "
        f"Performance: {len(data.performance)}  Quality: {len(data.quality)}",
    ]

    if data.critical_issues:
        lines += ["", "CRITICAL ISSUES:", "-" * 20]
        for issue in data.critical_issues:
            lines += [f"- {issue.type}: {issue.description}", f"  File: {issue.file}"]

    if data.suggestions:
        lines += ["", "RECOMMENDATIONS:", "-" * 20]
        for priority, grouped in group_suggestions_by_priority(data.suggestions).items():
            for suggestion in grouped:
                lines.append(f"- [{priority.upper()}] {suggestion.description}")

    lines += ["", rule, f"Generated at: {_timestamp(data)}", ""]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
FORMATTERS: dict[str, Callable[[ReportData], str]] = {
    "markdown": format_markdown,
    "json": format_json,
    "html": format_html,
    "text": format_text,
}


def format_report(data: ReportData, fmt: str = "markdown") -> str:
    """
    Render *data* in the requested format.

    Args:
        data: Report content
        fmt: One of markdown, json, html, text (case-insensitive)

    Returns:
        The rendered report

    Raises:
        UnsupportedFormatError: For any other format
    """
    formatter = FORMATTERS.get((fmt or "").lower())
    if formatter is None:
        raise UnsupportedFormatError(
            f"Unsupported format: {fmt}",
            details={"format": fmt, "supported": sorted(FORMATTERS)},
        )
    return formatter(data)
