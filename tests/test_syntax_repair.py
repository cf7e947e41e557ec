# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Unit tests for heuristic syntax repair."""

import pytest

from repo_context.repair.base import RepairStep, is_material_change
from repo_context.repair.syntax import (
    SyntaxRepairer,
    create_error_report,
    detect_syntax_errors,
    scan_brackets,
    validate_fix,
)


@pytest.fixture
def repairer():
    return SyntaxRepairer()


def _bracket_counts(text):
    return {pair: (text.count(pair[0]), text.count(pair[1])) for pair in ("{}", "()", "[]")}


class TestIncompleteObjectDeclaration:
    """Test the missing-brace-after-assignment repair."""

    def test_inserts_brace_before_async_method(self, repairer):
        """An async method after `const x =` gets an object literal around it."""
        content = "export const helper = \n  async doWork() {\n    return 1;\n  }\n"

        result = repairer.repair(content, "src/helper.js")

        assert result.fixed
        assert result.should_commit
        assert result.content == "export const helper = {\n  async doWork() {\n    return 1;\n  }\n};\n"
        fix_types = [f.type for f in result.fixes]
        assert "incomplete-object-declaration" in fix_types
        assert "missing-closing-brace" in fix_types

    def test_leaves_async_function_alone(self, repairer):
        """`async function` is an expression, not a method."""
        content = "const run =\n  async function () {\n    return 1;\n  };\n"

        result = repairer.repair(content, "run.js")

        assert not result.fixed
        assert result.content == content


class TestMissingSemicolons:
    """Test statement terminator insertion."""

    def test_adds_semicolons_to_complete_statements(self, repairer):
        content = "const a = 1\nlet b = 2\nimport x from 'y'\n"

        result = repairer.repair(content, "a.js")

        assert result.content == "const a = 1;\nlet b = 2;\nimport x from 'y';\n"
        semicolon_fixes = [f for f in result.fixes if f.type == "missing-semicolon"]
        assert [f.line for f in semicolon_fixes] == [1, 2, 3]
        assert semicolon_fixes[0].before == "const a = 1"
        assert semicolon_fixes[0].after == "const a = 1;"

    def test_skips_continued_lines(self, repairer):
        """A line followed by a method chain is not terminated."""
        content = "const value = items\n  .map(fn);\n"

        result = repairer.repair(content, "a.js")

        assert not result.fixed

    def test_not_applied_to_python(self, repairer):
        content = "import os\nx = 1\n"

        result = repairer.repair(content, "tool.py")

        assert not result.fixed


class TestMissingCommas:
    """Test separator insertion between object members."""

    def test_adds_comma_between_properties(self, repairer):
        content = "const cfg = {\n  a: 1\n  b: 2\n};\n"

        result = repairer.repair(content, "cfg.js")

        assert result.content == "const cfg = {\n  a: 1,\n  b: 2\n};\n"
        assert any(f.type == "missing-comma" for f in result.fixes)

    def test_adds_comma_after_nested_object(self, repairer):
        content = "const cfg = {\n  a: {\n    b: 1\n  }\n  c: 2\n};\n"

        result = repairer.repair(content, "cfg.js")

        assert "  },\n  c: 2" in result.content

    def test_adds_comma_between_object_methods(self, repairer):
        content = "const api = {\n  async a() {\n    return 1;\n  }\n  async b() {\n    return 2;\n  }\n};\n"

        result = repairer.repair(content, "api.js")

        assert "  },\n  async b() {" in result.content

    def test_class_bodies_untouched(self, repairer):
        """Class members are not comma separated."""
        content = "class A {\n  async a() {\n    return 1;\n  }\n  async b() {\n    return 2;\n  }\n}\n"

        result = repairer.repair(content, "a.js")

        assert not result.fixed


class TestIncompleteType:
    """Test the TypeScript-only annotation repair."""

    def test_completes_dangling_annotation(self, repairer):
        content = "let value:\nexport const other: number = 1;\n"

        result = repairer.repair(content, "a.ts")

        assert result.content.startswith("let value: any")
        assert any(f.type == "incomplete-type" for f in result.fixes)

    def test_not_applied_to_javascript(self, repairer):
        content = "let value:\n"

        result = repairer.repair(content, "a.js")

        assert "any" not in result.content


class TestBracketBalance:
    """Test closing and stray-bracket handling."""

    @pytest.mark.parametrize(
        "content",
        [
            "function f() {\n  if (x) {\n    return 1;\n",
            ")))(((]]]{{",
            "}{",
            "call(a, [b, {c: 1\n",
            "{[(",
            "",
        ],
    )
    def test_brackets_balanced_after_repair(self, repairer, content):
        result = repairer.repair(content, "broken.js")

        for opened, closed in _bracket_counts(result.content).values():
            assert opened == closed

    def test_closers_follow_stack_order(self, repairer):
        result = repairer.repair("call(a, [b, {c: 1\n", "broken.js")

        assert result.content.endswith("}])\n")

    def test_stray_closers_removed(self):
        stray, closing = scan_brackets("a)b]")

        assert stray == [1, 3]
        assert closing == ""

    def test_applies_to_unknown_languages(self, repairer):
        result = repairer.repair("fn main() {\n", "main.rs")

        assert result.content == "fn main() {\n}\n"


class TestTrailingSeparators:
    def test_removes_comma_before_closer(self, repairer):
        result = repairer.repair("const a = [1, 2,];\nconst b = { x: 1, };\n", "a.js")

        assert result.content == "const a = [1, 2];\nconst b = { x: 1 };\n"


class TestIdempotence:
    """Repairing repaired content is a no-op."""

    @pytest.mark.parametrize(
        "content,path",
        [
            ("export const helper = \n  async doWork() {\n    return 1;\n  }\n", "helper.js"),
            ("function f() {\n  if (x) {\n    return 1;\n", "f.js"),
            (")))(((]]]{{", "x.js"),
            ("const cfg = {\n  a: 1\n  b: {\n    c: 2\n  }\n  d: 3\n", "cfg.js"),
            ("const o = {\n  a: {\n    b: 1\n  },\n", "o.js"),
            ("let value:\nconst x = [1,\n", "v.ts"),
            ("import a from 'a'\nexport default a\n", "ok.js"),
        ],
    )
    def test_second_repair_is_noop(self, repairer, content, path):
        first = repairer.repair(content, path)
        second = repairer.repair(first.content, path)

        assert not second.fixed
        assert second.content == first.content


class TestRepairResult:
    def test_whitespace_only_change_is_not_material(self):
        assert not is_material_change("a {\n}", "a {\n}\n\n")
        assert is_material_change("a {", "a {}")

    def test_internal_failure_returns_original(self):
        """A crashing step is reported, never raised."""

        def explode(content):
            raise RuntimeError("boom")

        repairer = SyntaxRepairer(steps=(RepairStep(name="explode", precondition=lambda c: True, transform=explode),))

        result = repairer.repair("const a = 1", "a.js")

        assert not result.fixed
        assert result.content == "const a = 1"
        assert result.errors == ["boom"]


class TestDiagnostics:
    """Test detection and reporting helpers."""

    def test_detect_unclosed_and_extra(self):
        errors = detect_syntax_errors("{{ ) ]", "javascript")
        types = {e["type"]: e["count"] for e in errors}

        assert types["unclosed-brace"] == 2
        assert types["extra-closing-paren"] == 1
        assert types["extra-closing-bracket"] == 1

    def test_report_lists_issues(self):
        report = create_error_report([{"type": "unclosed-brace", "count": 2}])

        assert "Found 1 syntax issue(s)" in report
        assert "2 unclosed brace(s) {" in report

    def test_report_without_issues(self):
        assert create_error_report([]) == "No syntax errors detected"

    def test_validate_fix_rejects_large_rewrites(self):
        assert validate_fix("a {", "a {\n}")
        assert not validate_fix("a", "a\n" * 20)
        assert not validate_fix("x", "x" + "{" * 5)
