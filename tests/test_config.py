# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Unit tests for configuration, errors and language tiers."""

import pytest
from pydantic import ValidationError

from repo_context.config import IndexConfig
from repo_context.errors import EmbeddingModelError, IndexCorruptedError, RepoContextError
from repo_context.languages import LanguageTier, detect_language, get_display_language, get_tier


class TestIndexConfig:
    """Test defaults and environment loading."""

    def test_defaults(self):
        config = IndexConfig()

        assert config.index_dir == "data/indexes"
        assert config.embedding_model_name == "all-MiniLM-L6-v2"
        assert config.dimension == 384
        assert config.snippet_context_lines == 5
        assert config.default_max_tokens == 10000

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("REPO_CONTEXT_INDEX_DIR", "/var/lib/indexes")
        monkeypatch.setenv("REPO_CONTEXT_DIMENSION", "128")
        monkeypatch.setenv("REPO_CONTEXT_EMBEDDING_MODEL_TYPE", "hashing")

        config = IndexConfig.from_env(dimension=64)

        assert config.index_dir == "/var/lib/indexes"
        assert config.embedding_model_type == "hashing"
        assert config.dimension == 64

    def test_constructor_reads_environment(self, monkeypatch):
        monkeypatch.setenv("repo_context_snippet_context_lines", "2")
        monkeypatch.setenv("REPO_CONTEXT_NOT_A_FIELD", "ignored")

        config = IndexConfig(index_dir="/tmp/explicit")

        assert config.snippet_context_lines == 2
        assert config.index_dir == "/tmp/explicit"
        assert not hasattr(config, "not_a_field")

    def test_from_env_rejects_bad_values(self, monkeypatch):
        monkeypatch.setenv("REPO_CONTEXT_DIMENSION", "lots")

        with pytest.raises(ValidationError):
            IndexConfig.from_env()


class TestErrors:
    def test_hierarchy_and_messages(self, tmp_path):
        model_error = EmbeddingModelError("mini", "no weights")
        corrupted = IndexCorruptedError(tmp_path / "x.json", "bad json", repo_id="x")

        assert isinstance(model_error, RepoContextError)
        assert "mini" in str(model_error)
        assert "corrupted document (bad json)" in str(corrupted)
        assert corrupted.path == tmp_path / "x.json"


class TestLanguageTiers:
    """Test language detection and tier routing."""

    @pytest.mark.parametrize(
        "path,language,tier",
        [
            ("src/app.js", "javascript", LanguageTier.AST),
            ("src/App.JSX", "javascript", LanguageTier.AST),
            ("src/app.ts", "typescript", LanguageTier.AST),
            ("src/app.tsx", "tsx", LanguageTier.AST),
            ("tools/run.py", "python", LanguageTier.PATTERN),
            ("main.go", "go", LanguageTier.GENERIC),
            ("README", "unknown", LanguageTier.GENERIC),
        ],
    )
    def test_routing(self, path, language, tier):
        assert detect_language(path) == language
        assert get_tier(language).tier == tier

    def test_tsx_reports_typescript(self):
        assert get_display_language("ui/App.tsx") == "typescript"

    def test_unregistered_language_is_generic(self):
        assert get_tier("cobol").tier == LanguageTier.GENERIC
