# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.

"""Unit tests for context retrieval, formatting and compaction."""

import pytest

from repo_context.codebase.embeddings.index import EmbeddingIndexBuilder
from repo_context.codebase.graph import GraphAssembler
from repo_context.codebase.models import SearchResult
from repo_context.retrieval import (
    INTENT_QUERIES,
    SUGGESTION_INTENTS,
    CallReference,
    ContextBundle,
    ContextRetriever,
    ContextSummary,
    Dependency,
    FileContext,
    RetrievalOptions,
    Snippet,
    SymbolMatch,
    TopFile,
    create_compact_context,
    estimate_tokens,
    extract_snippets,
    format_for_consumption,
)


async def _prepare(model, files):
    graph = GraphAssembler().assemble(files)
    builder = EmbeddingIndexBuilder(model)
    index = await builder.build(graph, "acme/sample")
    return graph, index, ContextRetriever(builder)


def _result(name, line, file="src/a.js", similarity=0.5, symbol_type="function"):
    return SearchResult(
        id=f"{file}::{name}",
        symbol_name=name,
        symbol_type=symbol_type,
        file=file,
        line=line,
        text=f"{symbol_type} {name}",
        similarity=similarity,
    )


def _large_bundle():
    files = [
        FileContext(
            path=f"src/f{i}.js",
            language="javascript",
            snippets=[Snippet(symbol_name=f"s{j}", line=j + 1, code=f"{j + 1}: x\n") for j in range(4)],
            full_content="x" * 400,
        )
        for i in range(8)
    ]
    return ContextBundle(
        query="everything",
        relevant_files=files,
        relevant_symbols=[_result(f"s{i}", i + 1) for i in range(30)],
        call_graph=[CallReference(caller=f"a::{i}", callee=f"b::{i}", symbol_name="s") for i in range(15)],
        dependencies=[Dependency(source_file="src/f0.js", target=f"pkg{i}::x", symbol="x") for i in range(15)],
    )


class TestRetrieveContext:
    """Test bundle assembly against the sample checkout."""

    @pytest.mark.asyncio
    async def test_bundle_contents(self, hashing_model, sample_checkout, tmp_path):
        graph, index, retriever = await _prepare(hashing_model, sample_checkout)

        bundle = await retriever.retrieve_context(
            index, graph, tmp_path / "repo", RetrievalOptions(query="password hashing", max_symbols=50)
        )

        paths = [f.path for f in bundle.relevant_files]
        assert sorted(paths) == sorted(graph.files)
        assert all(s.file in paths for s in bundle.relevant_symbols)
        assert bundle.query == "password hashing"
        assert bundle.summary.total_files == 4
        assert bundle.summary.total_symbols == len(bundle.relevant_symbols) == len(index.embeddings)
        assert len(bundle.summary.top_files) == 4

        auth = next(f for f in bundle.relevant_files if f.path == "src/auth.js")
        assert auth.imports == ["hashPassword", "express"]
        assert auth.full_content is None
        assert auth.snippets
        assert all(line.split(": ", 1)[0].isdigit() for s in auth.snippets for line in s.code.splitlines())

        assert Dependency(
            source_file="src/auth.js", target="src/crypto.js::hashPassword", symbol="hashPassword", resolved=True
        ) in bundle.dependencies
        assert Dependency(
            source_file="src/auth.js", target="express::express", symbol="express", resolved=False
        ) in bundle.dependencies
        assert CallReference(
            caller="src/auth.js::hashPassword", callee="src/crypto.js::hashPassword", symbol_name="hashPassword"
        ) in bundle.call_graph

    @pytest.mark.asyncio
    async def test_file_limit(self, hashing_model, sample_checkout, tmp_path):
        graph, index, retriever = await _prepare(hashing_model, sample_checkout)

        bundle = await retriever.retrieve_context(
            index, graph, tmp_path / "repo", RetrievalOptions(query="user", max_files=1)
        )

        assert len(bundle.relevant_files) == 1

    @pytest.mark.asyncio
    async def test_full_files(self, hashing_model, sample_checkout, sample_repo, tmp_path):
        graph, index, retriever = await _prepare(hashing_model, sample_checkout)

        bundle = await retriever.retrieve_context(
            index, graph, tmp_path / "repo", RetrievalOptions(max_symbols=50, include_full_files=True)
        )

        for file in bundle.relevant_files:
            assert file.full_content == sample_repo[file.path]
            assert file.snippets == []

    @pytest.mark.asyncio
    async def test_missing_file_is_omitted(self, hashing_model, sample_checkout, tmp_path):
        graph, index, retriever = await _prepare(hashing_model, sample_checkout)
        (tmp_path / "repo" / "src" / "crypto.js").unlink()

        bundle = await retriever.retrieve_context(
            index, graph, tmp_path / "repo", RetrievalOptions(max_symbols=50)
        )

        paths = {f.path for f in bundle.relevant_files}
        assert "src/crypto.js" not in paths
        assert "src/auth.js" in paths
        assert all(s.file != "src/crypto.js" for s in bundle.relevant_symbols)


class TestRetrieverQueries:
    """Test intent queries, usages and focused context."""

    @pytest.mark.asyncio
    async def test_query_pattern(self, hashing_model, sample_checkout, tmp_path):
        graph, index, retriever = await _prepare(hashing_model, sample_checkout)

        security = await retriever.query_pattern(index, graph, tmp_path / "repo", "security")
        custom = await retriever.query_pattern(index, graph, tmp_path / "repo", "session handling")

        assert security.query == INTENT_QUERIES["security"]
        assert custom.query == "session handling"

    @pytest.mark.asyncio
    async def test_improvement_suggestions(self, hashing_model, sample_checkout, tmp_path):
        graph, index, retriever = await _prepare(hashing_model, sample_checkout)

        suggestions = await retriever.get_improvement_suggestions(index, graph, tmp_path / "repo")

        assert tuple(suggestions) == SUGGESTION_INTENTS
        assert suggestions["testing"].query == INTENT_QUERIES["testing"]

    @pytest.mark.asyncio
    async def test_find_all_usages(self, hashing_model, sample_checkout):
        graph, index, retriever = await _prepare(hashing_model, sample_checkout)

        report = await retriever.find_all_usages(index, graph, "hashPassword")

        assert {s.id for s in report.definitions} == {"src/auth.js::hashPassword", "src/crypto.js::hashPassword"}
        assert len(report.references) == 1
        assert report.total_usages == 3
        assert len(report.similar_symbols) == 10

    @pytest.mark.asyncio
    async def test_focused_context(self, hashing_model, sample_checkout, tmp_path):
        graph, index, retriever = await _prepare(hashing_model, sample_checkout)

        focused = await retriever.get_focused_context(index, graph, tmp_path / "repo", ["src/auth.js"])

        assert [f.path for f in focused.files] == ["src/auth.js"]
        assert all(s.file != "src/auth.js" for s in focused.related_symbols)
        assert {d.symbol for d in focused.dependencies} == {"hashPassword", "express"}


class TestSnippets:
    def test_overlapping_windows_are_not_repeated(self):
        content = "\n".join(f"l{i}" for i in range(1, 21))

        snippets = extract_snippets(content, [_result("a", 3), _result("b", 5)], context_lines=2)

        assert snippets[0].code == "1: l1\n2: l2\n3: l3\n4: l4\n5: l5\n"
        assert snippets[1].code == "6: l6\n7: l7\n"

    def test_limits_and_file_records(self):
        content = "\n".join(f"l{i}" for i in range(1, 101))
        matches = [_result("file", 0)] + [_result(f"s{i}", i * 20) for i in range(1, 5)]

        snippets = extract_snippets(content, matches, context_lines=1, max_snippets=3)

        assert [s.symbol_name for s in snippets] == ["s1", "s2", "s3"]

    def test_file_record_does_not_use_a_snippet_slot(self):
        content = "\n".join(f"l{i}" for i in range(1, 201))
        matches = [_result("file", 0)] + [_result(f"s{i}", i * 30) for i in range(1, 7)]

        snippets = extract_snippets(content, matches, context_lines=1)

        assert [s.symbol_name for s in snippets] == ["s1", "s2", "s3", "s4", "s5"]

    def test_estimate_tokens(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcde") == 2


class TestFormatting:
    """Test the plain-text rendering."""

    def _bundle(self, **overrides):
        file = FileContext(
            path="src/a.js",
            language="javascript",
            relevant_symbols=[
                SymbolMatch(
                    name="a", type="function", line=3, similarity=0.875,
                    documentation="Does a.", signature="function a(x)",
                )
            ],
            imports=["b"],
            exports=["a"],
            snippets=[Snippet(symbol_name="a", line=3, code="3: function a(x) {\n")],
        )
        values = dict(
            query="a",
            relevant_files=[file],
            summary=ContextSummary(
                total_files=1,
                total_symbols=1,
                languages=["javascript"],
                symbol_types={"function": 1},
                top_files=[TopFile(path="src/a.js", symbol_count=1, language="javascript")],
            ),
        )
        values.update(overrides)
        return ContextBundle(**values)

    def test_sections(self):
        text = format_for_consumption(
            self._bundle(dependencies=[Dependency(source_file="src/a.js", target="src/b.js::b", symbol="b")])
        )

        assert text.startswith("=== CODE CONTEXT SUMMARY ===\nTotal Files: 1\nTotal Symbols: 1\n")
        assert 'Symbol Types: {\n  "function": 1\n}' in text
        assert "- src/a.js (javascript, 1 relevant symbols)" in text
        assert "--- File: src/a.js (javascript) ---" in text
        assert "Imports: b\nExports: a" in text
        assert "  - a (function) at line 3\n    Doc: Does a.\n    Signature: function a(x)\n    Relevance: 87.5%" in text
        assert "  Symbol: a (line 3)\n  ```\n3: function a(x) {\n" in text
        assert text.endswith("=== DEPENDENCIES ===\nsrc/a.js -> src/b.js::b (b)")

    def test_dependencies_section_omitted_when_empty(self):
        text = format_for_consumption(self._bundle())

        assert "DEPENDENCIES" not in text
        assert "Full Content:" not in text


class TestCompaction:
    """Test compaction caps and the token budget."""

    def test_caps_always_apply(self):
        bundle = _large_bundle()

        compact = create_compact_context(bundle, max_tokens=1_000_000)

        assert len(compact.relevant_files) == 5
        assert len(compact.relevant_symbols) == 20
        assert len(compact.call_graph) == 10
        assert len(compact.dependencies) == 10
        assert all(len(f.snippets) == 2 for f in compact.relevant_files)
        assert all(f.full_content is not None for f in compact.relevant_files)

    def test_over_budget_drops_full_content(self):
        bundle = _large_bundle()

        compact = create_compact_context(bundle, max_tokens=10)

        assert all(f.full_content is None for f in compact.relevant_files)

    def test_input_is_not_modified(self):
        bundle = _large_bundle()
        before = bundle.model_dump()

        create_compact_context(bundle, max_tokens=10)

        assert bundle.model_dump() == before
