"""Tests for change list parsing, risk factors and complexity."""

import pytest

from change_parser import (
    analyze_complexity,
    build_parsed_changes,
    change_content,
    change_entries,
    detect_language,
    file_change_for_path,
    identify_risk_factors,
    is_binary_file,
    normalize_change_type,
    parse_file_change,
    parse_pull_request_changes,
    summarize_changes,
)
from models import ChangeSummary


class TestNormalizeChangeType:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("add", "add"),
            ("Add", "add"),
            ("delete", "delete"),
            ("edit", "modify"),
            ("EDIT", "modify"),
            ("modify", "modify"),
            ("rename", "rename"),
            ("edit, rename", "modify"),
            ("sourceRename", "rename"),
            ("undelete", "delete"),
            ("unknown", "modify"),
            ("", "modify"),
            (None, "modify"),
        ],
    )
    def test_substring_matching(self, raw, expected):
        assert normalize_change_type(raw) == expected


class TestSummarizeChanges:
    def test_mixed_change_types(self):
        summary = summarize_changes(
            [{"changeType": "add"}, {"changeType": "delete"}, {"changeType": "edit"}]
        )
        assert summary == ChangeSummary(files=3, added=1, deleted=1, edited=1, renamed=0)

    def test_empty(self):
        assert summarize_changes([]) == ChangeSummary(files=0, added=0, deleted=0, edited=0)

    def test_renames_counted_separately(self):
        summary = summarize_changes([{"changeType": "rename"}, {"changeType": "edit"}])
        assert (summary.files, summary.renamed, summary.edited) == (2, 1, 1)

    def test_accepts_file_changes(self):
        files = [file_change_for_path("a.py", "add"), file_change_for_path("b.py", "delete")]
        summary = summarize_changes(files)
        assert (summary.files, summary.added, summary.deleted) == (2, 1, 1)


class TestFileChanges:
    def test_parse_file_change(self):
        change = parse_file_change(
            {"item": {"path": "/src/app.py"}, "changeType": "edit", "linesAdded": 3}
        )
        assert change.path == "/src/app.py"
        assert change.file_name == "app.py"
        assert change.extension == ".py"
        assert change.language == "python"
        assert change.change_type == "modify"
        assert change.lines_added == 3
        assert change.lines_deleted == 0
        assert not change.is_binary

    def test_missing_item(self):
        change = parse_file_change({"changeType": "add"})
        assert change.path == ""
        assert change.language == "unknown"

    @pytest.mark.parametrize(
        "path, language",
        [
            ("src/App.TSX", "typescript"),
            ("lib/main.rs", "rust"),
            ("Service.cs", "csharp"),
            ("config.yml", "yaml"),
            ("Makefile", "unknown"),
        ],
    )
    def test_detect_language(self, path, language):
        assert detect_language(path) == language

    def test_binary(self):
        assert is_binary_file("logo.PNG")
        assert file_change_for_path("/bin/tool.exe").is_binary
        assert not is_binary_file("main.go")


class TestRawChangeRecords:
    def test_change_entries(self):
        assert change_entries(None) == []
        assert change_entries([{"a": 1}]) == [{"a": 1}]
        assert change_entries({"changeEntries": [{"a": 1}]}) == [{"a": 1}]
        assert change_entries({"changes": [{"b": 2}]}) == [{"b": 2}]

    def test_change_content(self):
        assert change_content({"content": "x"}) == "x"
        assert change_content({"newContent": {"content": "y"}}) == "y"
        assert change_content({}) is None


class TestRiskFactors:
    def test_configuration_file(self):
        factors = identify_risk_factors(file_change_for_path("/config/appsettings.Production.json"))
        assert [(f.type, f.severity) for f in factors] == [("configuration_change", "medium")]

    def test_migration(self):
        factors = identify_risk_factors(file_change_for_path("/db/migrations/001_add_users.sql"))
        assert [(f.type, f.severity) for f in factors] == [("database_migration", "high")]

    def test_security_sensitive(self):
        factors = identify_risk_factors(file_change_for_path("/src/auth/login.py"))
        assert [(f.type, f.severity) for f in factors] == [("security_sensitive", "high")]
        assert factors[0].file == "/src/auth/login.py"

    def test_large_change(self):
        factors = identify_risk_factors(
            file_change_for_path("/src/app.py", lines_added=400, lines_deleted=200)
        )
        assert [f.type for f in factors] == ["large_change"]
        assert factors[0].description == "Large change: 600 lines"

    def test_plain_file(self):
        assert identify_risk_factors(file_change_for_path("/src/app.py", lines_added=10)) == []


class TestParsedChanges:
    def test_parse_pull_request_changes(self):
        parsed = parse_pull_request_changes(
            {
                "changeEntries": [
                    {"item": {"path": "/src/app.ts"}, "changeType": "edit", "linesAdded": 5},
                    {"item": {"path": "/src/util.ts"}, "changeType": "add", "linesAdded": 2},
                    {"item": {"path": "/Dockerfile"}, "changeType": "edit", "linesDeleted": 4},
                    {"item": {"path": "/api/main.py"}, "changeType": "delete"},
                ]
            }
        )
        assert parsed.summary == ChangeSummary(files=4, added=1, deleted=1, edited=2)
        assert parsed.lines_added == 7
        assert parsed.lines_deleted == 4
        assert parsed.languages == ["python", "typescript"]
        assert [f.type for f in parsed.risk_factors] == ["configuration_change"]

    def test_empty(self):
        parsed = build_parsed_changes([])
        assert parsed.summary == ChangeSummary()
        assert parsed.languages == []


class TestComplexity:
    def test_empty(self):
        complexity = analyze_complexity(None)
        assert (complexity.score, complexity.max_nesting, complexity.factors) == (0, 0, [])

    def test_nested_ifs(self):
        content = "if (a) {\n  if (b) {\n    run();\n  }\n}\n"
        complexity = analyze_complexity(content)
        assert complexity.score == 3
        assert complexity.max_nesting == 2
        assert complexity.factors == []

    def test_comments_ignored(self):
        assert analyze_complexity("// if else while\n# for or and\nx = 1\n").score == 1

    def test_factors(self):
        content = "\n".join(["if (x) {"] * 11 + ["}"] * 11 + ["y = 1"] * 90)
        complexity = analyze_complexity(content)
        assert complexity.factors == [
            "High cyclomatic complexity",
            "Deep nesting detected",
            "Large file size",
        ]
