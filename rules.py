"""Rule tables for the diff analyzer.

Each rule is a compiled regular expression plus the metadata reported when
it matches an added line. Rule sets are built once at import and never
mutated; pass ``DEFAULT_RULES`` (or your own ``RuleSet``) into the analyzer.
"""

import re
from dataclasses import dataclass

from models import Category, Severity


@dataclass(frozen=True)
class Rule:
    """One pattern check.

    ``window`` is the number of consecutive added lines the pattern is
    tested against, starting at the anchor line. ``1`` means line-local.
    """

    category: Category
    type: str
    pattern: re.Pattern
    severity: Severity
    description: str
    suggestion: str
    window: int = 1

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


@dataclass(frozen=True)
class RuleSet:
    security: tuple[Rule, ...]
    performance: tuple[Rule, ...]
    quality: tuple[Rule, ...]

    def categories(self) -> tuple[tuple[str, tuple[Rule, ...]], ...]:
        return (
            ("security", self.security),
            ("performance", self.performance),
            ("quality", self.quality),
        )


@dataclass(frozen=True)
class RemovedLineCheck:
    """Keyword hint that a removed line carried important behaviour."""

    label: str
    pattern: re.Pattern


def _rule(
    category: Category,
    type_: str,
    pattern: str,
    severity: Severity,
    description: str,
    suggestion: str,
    window: int = 1,
    flags: int = re.IGNORECASE,
) -> Rule:
    return Rule(
        category=category,
        type=type_,
        pattern=re.compile(pattern, flags),
        severity=severity,
        description=description,
        suggestion=suggestion,
        window=window,
    )


# =============================================================================
# SECURITY
# =============================================================================

def _security_rules() -> tuple[Rule, ...]:
    return (
        _rule(
            "security",
            "sql_injection",
            r"\b(?:select|insert|update|delete|drop|create|alter)\b.*"
            r"(?:[\"'`]\s*\+|\+\s*[\"'`]|\$\{|[\"']\s*%\s*\(?\w|\.format\()",
            "critical",
            "Potential SQL injection vulnerability",
            "Use parameterized queries or prepared statements",
        ),
        _rule(
            "security",
            "hardcoded_secret",
            r"(?:password|passwd|pwd|secret|api_?key|key|token)\s*[=:]\s*[\"'][^\"']{8,}[\"']",
            "high",
            "Hardcoded secret detected",
            "Move secrets to environment variables or secure configuration",
        ),
        _rule(
            "security",
            "xss_vulnerability",
            r"\b(?:innerHTML|outerHTML)\b|document\.write|\beval\s*\(",
            "high",
            "Potential XSS vulnerability",
            "Use safe DOM manipulation methods or sanitize input",
        ),
        _rule(
            "security",
            "insecure_random",
            r"Math\.random\(\)|(?<![\w.])Random\(\)|\brandom\.(?:random|randint|randrange|choice)\(",
            "medium",
            "Insecure random number generation",
            "Use a cryptographically secure random number generator",
        ),
        _rule(
            "security",
            "weak_crypto",
            r"\b(?:md5|sha-?1|des)\b",
            "medium",
            "Weak cryptographic algorithm",
            "Use stronger cryptographic algorithms like SHA-256 or AES",
        ),
    )


# =============================================================================
# PERFORMANCE
# =============================================================================

def _performance_rules() -> tuple[Rule, ...]:
    return (
        _rule(
            "performance",
            "inefficient_loop",
            r"for\s*\([^)]*\)\s*\{[^}]*\n.*\n.*\n.*\n.*\n.*\}",
            "medium",
            "Potentially inefficient loop detected",
            "Consider optimizing loop logic or using more efficient algorithms",
            window=12,
            flags=0,
        ),
        _rule(
            "performance",
            "blocking_operation",
            r"(?:sleep|wait|block|synchronous|sync)\s*\(",
            "medium",
            "Blocking operation detected",
            "Consider using asynchronous alternatives",
        ),
        _rule(
            "performance",
            "inefficient_query",
            r"select\s+\*\s+from|\bn\+1\b|nested\s+loop",
            "medium",
            "Potentially inefficient database query",
            "Optimize query or add proper indexing",
        ),
        _rule(
            "performance",
            "memory_leak",
            r"\b(?:addEventListener|setInterval|setTimeout)\s*\("
            r"(?!.*\b(?:removeEventListener|clearInterval|clearTimeout)\b)",
            "high",
            "Potential memory leak",
            "Ensure proper cleanup of event listeners and timers",
        ),
    )


# =============================================================================
# QUALITY
# =============================================================================

def _quality_rules() -> tuple[Rule, ...]:
    return (
        _rule(
            "quality",
            "long_method",
            r"function\s+\w+\s*\([^)]*\)\s*\{(?:[^}\n]*\n){20,}",
            "low",
            "Long method detected",
            "Consider breaking down into smaller functions",
            window=25,
            flags=0,
        ),
        _rule(
            "quality",
            "magic_number",
            r"(?<![\w.])\d{2,}(?![\w.])",
            "low",
            "Magic number detected",
            "Consider using named constants",
            flags=0,
        ),
        _rule(
            "quality",
            "duplicate_code",
            r"\b(?:copy|copied|duplicated?|repeated)\b",
            "medium",
            "Potential code duplication",
            "Extract common functionality into reusable functions",
        ),
        _rule(
            "quality",
            "poor_naming",
            r"\b(?:temp|tmp|data|info|obj|item|foo|bar)\d*\b",
            "low",
            "Poor variable naming",
            "Use more descriptive variable names",
        ),
        _rule(
            "quality",
            "missing_error_handling",
            r"\b(?:fetch|axios|requests?|query)\s*[.(](?!.*\b(?:catch|try|except)\b)",
            "medium",
            "Missing error handling",
            "Add proper error handling for external calls",
        ),
    )


# =============================================================================
# REMOVED LINES
# =============================================================================

REMOVED_LINE_CHECKS: tuple[RemovedLineCheck, ...] = tuple(
    RemovedLineCheck(label, re.compile(pattern, re.IGNORECASE))
    for label, pattern in (
        ("error handling", r"error.?handling"),
        ("validation", r"validat(?:e|ion|or)"),
        ("security", r"security"),
        ("authentication", r"authenticat"),
        ("authorization", r"authori[sz]"),
        ("logging", r"\blog(?:ging|ger)\b"),
    )
)


def load_rules() -> RuleSet:
    """Build the default rule set."""
    return RuleSet(
        security=_security_rules(),
        performance=_performance_rules(),
        quality=_quality_rules(),
    )


DEFAULT_RULES: RuleSet = load_rules()
