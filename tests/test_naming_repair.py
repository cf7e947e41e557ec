# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Unit tests for cross-file export-name repair."""

import pytest

from repo_context.codebase.models import SourceFile
from repo_context.repair.naming import (
    NamingRepairer,
    NamingTypo,
    apply_naming_fixes,
    detect_export_name_typos,
    find_import_attempts,
    string_similarity,
)


@pytest.fixture
def repairer():
    return NamingRepairer()


class TestStringSimilarity:
    """Test Levenshtein similarity."""

    def test_equal_strings(self):
        assert string_similarity("Helper", "helper") == 1.0

    def test_completely_different(self):
        assert string_similarity("abc", "xyz") == 0.0

    def test_partial(self):
        assert string_similarity("hlp", "helper") == pytest.approx(0.5)


class TestFindImportAttempts:
    """Test discovery of imports that target a file."""

    def test_named_alias_and_namespace_imports(self):
        files = [
            SourceFile(path="utils.js", content="export const a = 1;\n"),
            SourceFile(path="main.js", content="import { helper as h, other } from './utils';\n"),
            SourceFile(path="cli.js", content="import * as tools from './utils.js';\n"),
            SourceFile(path="app.js", content="import React from 'react';\n"),
        ]

        attempts = find_import_attempts("utils.js", files)

        by_file = {a.file_path: a.imported_names for a in attempts}
        assert by_file == {"main.js": ["helper", "other"], "cli.js": ["tools"]}

    def test_skips_the_target_itself(self):
        files = [SourceFile(path="utils.js", content="import { x } from './utils';\n")]

        assert find_import_attempts("utils.js", files) == []


class TestDetectExportNameTypos:
    """Test typo detection rules."""

    def test_abbreviated_export(self):
        files = [
            SourceFile(path="utils.js", content="export const hlp = () => 1;\n"),
            SourceFile(path="main.js", content="import { helper } from './utils';\n"),
        ]

        typos = detect_export_name_typos(files[0].content, "utils.js", files)

        assert len(typos) == 1
        assert typos[0].original == "hlp"
        assert typos[0].suggested == "helper"
        assert typos[0].confidence == "high"
        assert typos[0].imported_in == "main.js"

    def test_export_unlike_import_named_after_file(self):
        """Duplicate candidates collapse to the highest confidence."""
        content = "export const svc = {};\n"
        files = [
            SourceFile(path="src/PDFService.js", content=content),
            SourceFile(path="src/index.js", content="import { PDFService } from './PDFService';\n"),
        ]

        typos = detect_export_name_typos(content, "src/PDFService.js", files)

        assert [(t.original, t.suggested, t.confidence) for t in typos] == [("svc", "PDFService", "high")]

    def test_consistent_names_report_nothing(self):
        content = "export const helper = 1;\nexport const hlp = 2;\n"
        files = [
            SourceFile(path="utils.js", content=content),
            SourceFile(path="main.js", content="import { helper } from './utils';\n"),
        ]

        assert detect_export_name_typos(content, "utils.js", files) == []

    def test_no_exports(self):
        files = [SourceFile(path="main.js", content="import { helper } from './utils';\n")]

        assert detect_export_name_typos("const x = 1;\n", "utils.js", files) == []


class TestApplyNamingFixes:
    """Test applying detected typos."""

    def test_medium_confidence_not_applied(self):
        typo = NamingTypo(
            line=1, original="svc", suggested="PDFService", reason="guess", confidence="medium", imported_in="a.js"
        )

        result = apply_naming_fixes("export const svc = 1;\n", "PDFService.js", [typo])

        assert not result.fixed

    def test_two_exports_never_renamed_to_same_name(self):
        content = "export const hp = 1;\nexport const hlp = 2;\n"
        typos = [
            NamingTypo(line=1, original="hp", suggested="helper", reason="", confidence="high", imported_in="a.js"),
            NamingTypo(line=2, original="hlp", suggested="helper", reason="", confidence="high", imported_in="a.js"),
        ]

        result = apply_naming_fixes(content, "utils.js", typos)

        assert result.content.count("helper") == 1
        assert len(result.fixes) == 1
        assert result.fixes[0].type == "export-name-typo"
        assert result.fixes[0].original == "hlp"
        assert result.fixes[0].fixed == "helper"


class TestNamingRepairer:
    """Test the repairer entry point."""

    def test_repair_renames_and_settles(self, repairer):
        files = [
            SourceFile(path="utils.js", content="export const hlp = () => 1;\n"),
            SourceFile(path="main.js", content="import { helper } from './utils';\n"),
        ]

        first = repairer.repair(files[0].content, "utils.js", files)

        assert first.fixed
        assert first.should_commit
        assert first.content == "export const helper = () => 1;\n"

        files[0] = SourceFile(path="utils.js", content=first.content)
        second = repairer.repair(first.content, "utils.js", files)

        assert not second.fixed

    def test_failure_is_reported_not_raised(self, repairer):
        def broken_files():
            raise OSError("disk gone")
            yield

        result = repairer.repair("export const a = 1;\n", "a.js", broken_files())

        assert not result.fixed
        assert result.content == "export const a = 1;\n"
        assert result.errors == ["disk gone"]
