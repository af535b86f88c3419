"""Parse Azure DevOps change entries into FileChange objects and summaries."""

import posixpath
import re
from typing import Iterable

from models import (
    ChangeSummary,
    ChangeType,
    Complexity,
    FileChange,
    ParsedChanges,
    RiskFactor,
)

LANGUAGES: dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".cs": "csharp",
    ".java": "java",
    ".go": "go",
    ".rs": "rust",
    ".sql": "sql",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".xml": "xml",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".less": "less",
}

BINARY_EXTENSIONS = {
    ".exe", ".dll", ".so", ".dylib",
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".ico",
    ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
    ".zip", ".tar", ".gz", ".rar", ".7z",
    ".mp3", ".mp4", ".avi", ".mov", ".wmv",
    ".bin", ".dat", ".db", ".sqlite",
}

LARGE_CHANGE_LINES = 500

_CONFIG_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\.config$",
        r"\.ini$",
        r"\.env$",
        r"\.properties$",
        r"appsettings.*\.json$",
        r"package\.json$",
        r"requirements\.txt$",
        r"Dockerfile$",
        r"docker-compose.*\.ya?ml$",
    )
]

_MIGRATION_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"migrations?/",
        r"migrate/",
        r"\.migration\.",
        r"\d+_.*\.sql$",
    )
]

_SECURITY_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"auth",
        r"security",
        r"crypto",
        r"password",
        r"token",
        r"certificate",
        r"\.key$",
        r"\.pem$",
        r"\.crt$",
    )
]

_DECISION_POINTS = re.compile(
    r"\b(?:if|elif|else|while|for|switch|case|catch|except|and|or)\b|&&|\|\|"
)


# ---------------------------------------------------------------------------
# Single entries
# ---------------------------------------------------------------------------
def normalize_change_type(raw: str | None) -> ChangeType:
    """Map an Azure DevOps changeType string onto add/modify/delete/rename.

    Matching is by case-insensitive substring, so compound values such as
    ``"edit, rename"`` resolve to the first matching kind in the order
    add, delete, edit/modify, rename. Anything else is ``modify``.
    """
    value = (raw or "").lower()
    if "add" in value:
        return "add"
    if "delete" in value:
        return "delete"
    if "edit" in value or "modify" in value:
        return "modify"
    if "rename" in value:
        return "rename"
    return "modify"


def detect_language(path: str) -> str:
    return LANGUAGES.get(posixpath.splitext(path)[1].lower(), "unknown")


def is_binary_file(path: str) -> bool:
    return posixpath.splitext(path)[1].lower() in BINARY_EXTENSIONS


def file_change_for_path(
    path: str,
    change_type: ChangeType = "modify",
    lines_added: int = 0,
    lines_deleted: int = 0,
) -> FileChange:
    extension = posixpath.splitext(path)[1].lower()
    return FileChange(
        path=path,
        file_name=posixpath.basename(path),
        extension=extension,
        change_type=change_type,
        lines_added=lines_added,
        lines_deleted=lines_deleted,
        is_binary=extension in BINARY_EXTENSIONS,
        language=LANGUAGES.get(extension, "unknown"),
    )


def parse_file_change(change: dict) -> FileChange:
    """Build a FileChange from one change record (``{item: {path}, changeType}``)."""
    return file_change_for_path(
        (change.get("item") or {}).get("path", ""),
        change_type=normalize_change_type(change.get("changeType")),
        lines_added=change.get("linesAdded") or 0,
        lines_deleted=change.get("linesDeleted") or 0,
    )


def change_content(change: dict) -> str | None:
    """Inline file content carried by a change record, if any."""
    if change.get("content") is not None:
        return change["content"]
    return (change.get("newContent") or {}).get("content")


def change_entries(payload: dict | list | None) -> list[dict]:
    """Return the change records from a changes response or a plain list."""
    if not payload:
        return []
    if isinstance(payload, list):
        return payload
    return payload.get("changeEntries") or payload.get("changes") or []


# ---------------------------------------------------------------------------
# Risk factors
# ---------------------------------------------------------------------------
def is_configuration_file(path: str) -> bool:
    return any(p.search(path) for p in _CONFIG_PATTERNS)


def is_database_migration(path: str) -> bool:
    return any(p.search(path) for p in _MIGRATION_PATTERNS)


def is_security_sensitive(path: str) -> bool:
    return any(p.search(path) for p in _SECURITY_PATTERNS)


def identify_risk_factors(file: FileChange) -> list[RiskFactor]:
    """Path- and size-based risk factors for one file."""
    factors: list[RiskFactor] = []

    if is_configuration_file(file.path):
        factors.append(RiskFactor(
            type="configuration_change",
            severity="medium",
            file=file.path,
            description="Configuration file modified",
        ))

    if is_database_migration(file.path):
        factors.append(RiskFactor(
            type="database_migration",
            severity="high",
            file=file.path,
            description="Database migration file detected",
        ))

    if is_security_sensitive(file.path):
        factors.append(RiskFactor(
            type="security_sensitive",
            severity="high",
            file=file.path,
            description="Security-sensitive file modified",
        ))

    total = file.lines_added + file.lines_deleted
    if total > LARGE_CHANGE_LINES:
        factors.append(RiskFactor(
            type="large_change",
            severity="medium",
            file=file.path,
            description=f"Large change: {total} lines",
        ))

    return factors


# ---------------------------------------------------------------------------
# Whole change lists
# ---------------------------------------------------------------------------
def summarize_changes(changes: Iterable[FileChange | dict]) -> ChangeSummary:
    """Count files by change type. Accepts FileChanges or raw change records."""
    summary = ChangeSummary()
    for change in changes:
        if isinstance(change, dict):
            change_type = normalize_change_type(change.get("changeType"))
        else:
            change_type = change.change_type

        summary.files += 1
        if change_type == "add":
            summary.added += 1
        elif change_type == "delete":
            summary.deleted += 1
        elif change_type == "rename":
            summary.renamed += 1
        else:
            summary.edited += 1
    return summary


def build_parsed_changes(files: list[FileChange]) -> ParsedChanges:
    """Aggregate already-parsed files into totals, languages and risk factors."""
    risk_factors: list[RiskFactor] = []
    for file in files:
        risk_factors.extend(identify_risk_factors(file))

    return ParsedChanges(
        files=files,
        summary=summarize_changes(files),
        lines_added=sum(f.lines_added for f in files),
        lines_deleted=sum(f.lines_deleted for f in files),
        languages=sorted({f.language for f in files if f.language != "unknown"}),
        risk_factors=risk_factors,
    )


def parse_pull_request_changes(changes: dict | list | None) -> ParsedChanges:
    """Parse a changes response (or list of records) into ParsedChanges."""
    return build_parsed_changes([parse_file_change(c) for c in change_entries(changes)])


# ---------------------------------------------------------------------------
# Complexity
# ---------------------------------------------------------------------------
def analyze_complexity(content: str | None) -> Complexity:
    """Estimate cyclomatic complexity and brace nesting for file content."""
    if not content:
        return Complexity()

    score = 1
    nesting = 0
    max_nesting = 0
    lines = content.split("\n")

    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith(("//", "/*", "#")):
            continue

        score += len(_DECISION_POINTS.findall(stripped))
        nesting += stripped.count("{") - stripped.count("}")
        max_nesting = max(max_nesting, nesting)

    factors = []
    if score > 10:
        factors.append("High cyclomatic complexity")
    if max_nesting > 4:
        factors.append("Deep nesting detected")
    if len(lines) > 100:
        factors.append("Large file size")

    return Complexity(score=score, max_nesting=max_nesting, factors=factors)
