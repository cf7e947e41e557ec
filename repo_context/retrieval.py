# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Query-driven context retrieval.

Fetches only the files and symbols relevant to a query instead of a whole
repository:

1. Similarity search for ``max_symbols`` records
2. Group hits by file, rank files by hit count, keep ``max_files``
3. Per file: imports/exports from the graph plus code snippets (or the
   full text) read from the checkout
4. Dependencies from the graph's import edges, references from edges
   mentioning a matched function or method
5. Summary statistics

The bundle renders to a plain-text report with ``format_for_consumption``
and can be shrunk to fixed caps with ``create_compact_context``.
"""

import asyncio
import json
import logging
import math
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field

from repo_context.codebase.embeddings.index import EmbeddingIndexBuilder, find_symbols_in_file
from repo_context.codebase.graph import find_references, find_symbols_by_name
from repo_context.codebase.models import (
    Edge,
    EdgeType,
    EmbeddingIndex,
    EmbeddingRecord,
    SearchResult,
    Symbol,
    SymbolGraph,
    make_symbol_id,
)
from repo_context.config import IndexConfig

logger = logging.getLogger(__name__)

DEFAULT_QUERY = "code quality and improvements"

# Canned queries for named review intents
INTENT_QUERIES: Dict[str, str] = {
    "security": "security vulnerabilities, SQL injection, XSS, authentication issues, password handling",
    "performance": "performance issues, slow loops, inefficient algorithms, memory leaks, N+1 queries",
    "bugs": "potential bugs, null pointer, undefined, error handling, edge cases",
    "best-practices": "code quality, best practices, clean code, SOLID principles, maintainability",
    "dependencies": "external dependencies, imports, third-party libraries, API calls",
    "testing": "test coverage, unit tests, integration tests, test cases, assertions",
}

SUGGESTION_INTENTS = ("security", "performance", "best-practices", "testing")

# Compaction caps
COMPACT_MAX_FILES = 5
COMPACT_MAX_SYMBOLS = 20
COMPACT_MAX_CALL_REFERENCES = 10
COMPACT_MAX_DEPENDENCIES = 10
COMPACT_MAX_SNIPPETS = 2

# Rendering limits
FORMAT_MAX_SYMBOLS = 10
FORMAT_MAX_SNIPPETS = 3
FORMAT_MAX_DEPENDENCIES = 20


class RetrievalOptions(BaseModel):
    """Options for ``retrieve_context``."""

    query: str = Field(default=DEFAULT_QUERY, description="Free-text query")
    max_files: int = Field(default=10, description="Files kept after ranking")
    max_symbols: int = Field(default=50, description="Similarity hits requested")
    include_full_files: bool = Field(default=False, description="Attach full text instead of snippets")
    focus_areas: List[str] = Field(default_factory=list, description="Intents that produced the query")


class SymbolMatch(BaseModel):
    name: str
    type: str
    line: int
    similarity: float
    documentation: Optional[str] = None
    signature: Optional[str] = None


class Snippet(BaseModel):
    """Numbered source lines around a matched symbol."""

    symbol_name: str
    line: int
    code: str


class FileContext(BaseModel):
    path: str
    language: str
    relevant_symbols: List[SymbolMatch] = Field(default_factory=list)
    imports: List[str] = Field(default_factory=list)
    exports: List[str] = Field(default_factory=list)
    snippets: List[Snippet] = Field(default_factory=list)
    full_content: Optional[str] = None


class Dependency(BaseModel):
    """An import of ``symbol`` by ``source_file``, with the edge's target reference."""

    source_file: str
    target: str
    symbol: str
    resolved: bool = False
    type: str = EdgeType.IMPORTS.value


class CallReference(BaseModel):
    caller: str
    callee: str
    symbol_name: str


class TopFile(BaseModel):
    path: str
    symbol_count: int
    language: str


class ContextSummary(BaseModel):
    total_files: int = 0
    total_symbols: int = 0
    languages: List[str] = Field(default_factory=list)
    symbol_types: Dict[str, int] = Field(default_factory=dict)
    top_files: List[TopFile] = Field(default_factory=list)


class ContextBundle(BaseModel):
    """Ranked, size-bounded context for one query."""

    query: str = DEFAULT_QUERY
    relevant_files: List[FileContext] = Field(default_factory=list)
    relevant_symbols: List[SearchResult] = Field(default_factory=list)
    call_graph: List[CallReference] = Field(default_factory=list)
    dependencies: List[Dependency] = Field(default_factory=list)
    summary: ContextSummary = Field(default_factory=ContextSummary)


class UsageReport(BaseModel):
    definitions: List[Symbol] = Field(default_factory=list)
    similar_symbols: List[SearchResult] = Field(default_factory=list)
    references: List[Edge] = Field(default_factory=list)
    total_usages: int = 0


class FocusedContext(BaseModel):
    files: List[FileContext] = Field(default_factory=list)
    dependencies: List[Dependency] = Field(default_factory=list)
    related_symbols: List[SearchResult] = Field(default_factory=list)


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters."""
    return math.ceil(len(text) / 4)


def extract_snippets(
    content: str,
    matches: List[Union[SearchResult, EmbeddingRecord]],
    context_lines: int = 5,
    max_snippets: int = 5,
) -> List[Snippet]:
    """Numbered windows of ``context_lines`` around the first symbol matches.

    File-level records (line 0) are skipped before ``max_snippets`` is applied.

    A line already shown in an earlier window is not repeated; a window
    that ends up empty is dropped.
    """
    lines = content.split("\n")
    shown = set()
    snippets: List[Snippet] = []

    symbol_matches = [m for m in matches if m.line]
    for match in symbol_matches[:max_snippets]:
        start = max(0, match.line - context_lines - 1)
        end = min(len(lines), match.line + context_lines)
        code = ""
        for index in range(start, end):
            if index not in shown:
                code += f"{index + 1}: {lines[index]}\n"
                shown.add(index)
        if code:
            snippets.append(Snippet(symbol_name=match.symbol_name, line=match.line, code=code))
    return snippets


def build_dependencies(files: List[FileContext], graph: SymbolGraph) -> List[Dependency]:
    """Cross-reference each file's imports with the graph's import edges."""
    edges_by_source: Dict[str, List[Edge]] = {}
    for edge in graph.edges:
        if edge.type == EdgeType.IMPORTS:
            edges_by_source.setdefault(edge.source, []).append(edge)

    dependencies: List[Dependency] = []
    for file in files:
        for name in file.imports:
            for edge in edges_by_source.get(make_symbol_id(file.path, name), []):
                dependencies.append(
                    Dependency(
                        source_file=file.path,
                        target=edge.target.ref,
                        symbol=name,
                        resolved=edge.is_resolved,
                    )
                )
    return dependencies


def build_call_graph(
    symbols: List[SearchResult], graph: SymbolGraph, per_symbol: int = 5
) -> List[CallReference]:
    """Edges mentioning each matched function or method, ``per_symbol`` at most."""
    call_graph: List[CallReference] = []
    for symbol in symbols:
        if symbol.symbol_type not in ("function", "method"):
            continue
        for edge in find_references(graph, symbol.symbol_name)[:per_symbol]:
            call_graph.append(
                CallReference(caller=edge.source, callee=edge.target.ref, symbol_name=symbol.symbol_name)
            )
    return call_graph


def summarize(files: List[FileContext], symbols: List[SearchResult]) -> ContextSummary:
    languages: List[str] = []
    symbol_types: Dict[str, int] = {}
    for file in files:
        if file.language not in languages:
            languages.append(file.language)
        for symbol in file.relevant_symbols:
            symbol_types[symbol.type] = symbol_types.get(symbol.type, 0) + 1

    return ContextSummary(
        total_files=len(files),
        total_symbols=len(symbols),
        languages=languages,
        symbol_types=symbol_types,
        top_files=[
            TopFile(path=f.path, symbol_count=len(f.relevant_symbols), language=f.language)
            for f in files[:5]
        ],
    )


def format_for_consumption(bundle: ContextBundle) -> str:
    """Render a bundle as the plain-text report handed to downstream readers."""
    summary = bundle.summary
    sections = [
        "=== CODE CONTEXT SUMMARY ===",
        f"Total Files: {summary.total_files}",
        f"Total Symbols: {summary.total_symbols}",
        f"Languages: {', '.join(summary.languages)}",
        f"Symbol Types: {json.dumps(summary.symbol_types, indent=2)}",
        "",
        "=== TOP RELEVANT FILES ===",
    ]
    for top in summary.top_files:
        sections.append(f"- {top.path} ({top.language}, {top.symbol_count} relevant symbols)")
    sections.append("")

    sections.append("=== FILE DETAILS ===")
    for file in bundle.relevant_files:
        sections.append(f"\n--- File: {file.path} ({file.language}) ---")
        if file.imports:
            sections.append(f"Imports: {', '.join(file.imports)}")
        if file.exports:
            sections.append(f"Exports: {', '.join(file.exports)}")

        sections.append("\nRelevant Symbols:")
        for symbol in file.relevant_symbols[:FORMAT_MAX_SYMBOLS]:
            sections.append(f"  - {symbol.name} ({symbol.type}) at line {symbol.line}")
            if symbol.documentation:
                sections.append(f"    Doc: {symbol.documentation}")
            if symbol.signature:
                sections.append(f"    Signature: {symbol.signature}")
            sections.append(f"    Relevance: {symbol.similarity * 100:.1f}%")

        if file.snippets:
            sections.append("\nCode Snippets:")
            for snippet in file.snippets[:FORMAT_MAX_SNIPPETS]:
                sections.append(f"\n  Symbol: {snippet.symbol_name} (line {snippet.line})")
                sections.append("  ```")
                sections.append(snippet.code)
                sections.append("  ```")

        if file.full_content is not None:
            sections.append("\nFull Content:")
            sections.append("  ```")
            sections.append(file.full_content)
            sections.append("  ```")

    if bundle.dependencies:
        sections.append("\n=== DEPENDENCIES ===")
        for dep in bundle.dependencies[:FORMAT_MAX_DEPENDENCIES]:
            sections.append(f"{dep.source_file} -> {dep.target} ({dep.symbol})")

    return "\n".join(sections)


def create_compact_context(bundle: ContextBundle, max_tokens: int = 10000) -> ContextBundle:
    """Shrink a bundle to the fixed caps.

    The caps (5 files, 20 symbols, 10 references, 10 dependencies, 2
    snippets per file) always hold for the returned bundle. Full file
    contents are dropped only when the rendered bundle exceeds
    ``max_tokens``. The input bundle is not modified.
    """
    over_budget = estimate_tokens(format_for_consumption(bundle)) > max_tokens

    files = []
    for file in bundle.relevant_files[:COMPACT_MAX_FILES]:
        update = {"snippets": file.snippets[:COMPACT_MAX_SNIPPETS]}
        if over_budget:
            update["full_content"] = None
        files.append(file.model_copy(update=update))

    compact = bundle.model_copy(
        update={
            "relevant_files": files,
            "relevant_symbols": bundle.relevant_symbols[:COMPACT_MAX_SYMBOLS],
            "call_graph": bundle.call_graph[:COMPACT_MAX_CALL_REFERENCES],
            "dependencies": bundle.dependencies[:COMPACT_MAX_DEPENDENCIES],
        }
    )
    if over_budget:
        logger.debug(
            f"Compacted context from ~{estimate_tokens(format_for_consumption(bundle))} to "
            f"~{estimate_tokens(format_for_consumption(compact))} tokens (budget {max_tokens})"
        )
    return compact


class ContextRetriever:
    """Assembles context bundles from an index, a graph and a checkout.

    Args:
        index_builder: Provides similarity search (and its embedding model)
        config: Snippet and reference limits
    """

    def __init__(self, index_builder: EmbeddingIndexBuilder, config: Optional[IndexConfig] = None):
        self.index_builder = index_builder
        self.config = config or IndexConfig()

    async def retrieve_context(
        self,
        index: EmbeddingIndex,
        graph: SymbolGraph,
        root_path: Union[str, Path],
        options: Optional[RetrievalOptions] = None,
    ) -> ContextBundle:
        """Retrieve the context relevant to ``options.query``.

        Files that cannot be read are left out of the bundle with a warning.

        Raises:
            EmbeddingModelError: If the query cannot be embedded
        """
        options = options or RetrievalOptions()
        logger.info(f"Retrieving context for query: {options.query!r}")

        results = await self.index_builder.search(index, options.query, options.max_symbols)

        groups: Dict[str, List[SearchResult]] = {}
        for result in results:
            groups.setdefault(result.file, []).append(result)
        # Stable sort keeps similarity order between files with equal hit counts
        ranked = sorted(groups.items(), key=lambda item: len(item[1]), reverse=True)[: options.max_files]

        files: List[FileContext] = []
        symbols: List[SearchResult] = []
        for file_path, matches in ranked:
            file_context = await self._build_file_context(
                file_path, matches, graph, Path(root_path), options.include_full_files
            )
            if file_context is None:
                continue
            files.append(file_context)
            symbols.extend(matches)

        bundle = ContextBundle(
            query=options.query,
            relevant_files=files,
            relevant_symbols=symbols,
            dependencies=build_dependencies(files, graph),
            call_graph=build_call_graph(symbols, graph, self.config.max_references_per_symbol),
            summary=summarize(files, symbols),
        )
        logger.info(f"Context retrieved: {len(files)} files, {len(symbols)} symbols")
        return bundle

    async def _build_file_context(
        self,
        file_path: str,
        matches: List[Union[SearchResult, EmbeddingRecord]],
        graph: SymbolGraph,
        root_path: Path,
        include_full_content: bool,
    ) -> Optional[FileContext]:
        try:
            content = await _read_text(root_path / file_path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read {file_path} while building context: {e}")
            return None

        record = graph.files.get(file_path)
        file_context = FileContext(
            path=file_path,
            language=record.language if record else "unknown",
            relevant_symbols=[
                SymbolMatch(
                    name=m.symbol_name,
                    type=m.symbol_type,
                    line=m.line,
                    similarity=getattr(m, "similarity", 1.0),
                    documentation=m.documentation,
                    signature=m.signature,
                )
                for m in matches
            ],
            imports=[s.name for s in record.imports] if record else [],
            exports=[s.name for s in record.exports] if record else [],
        )

        if include_full_content:
            file_context.full_content = content
        else:
            file_context.snippets = extract_snippets(
                content, matches, self.config.snippet_context_lines, self.config.snippets_per_file
            )
        return file_context

    async def query_pattern(
        self, index: EmbeddingIndex, graph: SymbolGraph, root_path: Union[str, Path], intent: str
    ) -> ContextBundle:
        """Retrieve context for a named intent; unknown intents are used as the query text."""
        query = INTENT_QUERIES.get(intent, intent)
        logger.info(f"Querying for: {intent}")
        return await self.retrieve_context(
            index,
            graph,
            root_path,
            RetrievalOptions(query=query, max_files=15, max_symbols=30, focus_areas=[intent]),
        )

    async def find_all_usages(self, index: EmbeddingIndex, graph: SymbolGraph, symbol_name: str) -> UsageReport:
        """Exact-name definitions, similar symbols and graph references for a name."""
        definitions = find_symbols_by_name(graph, symbol_name)
        similar = await self.index_builder.find_similar_symbols(index, symbol_name, 10)
        references = find_references(graph, symbol_name)
        return UsageReport(
            definitions=definitions,
            similar_symbols=similar,
            references=references,
            total_usages=len(definitions) + len(references),
        )

    async def get_focused_context(
        self,
        index: EmbeddingIndex,
        graph: SymbolGraph,
        root_path: Union[str, Path],
        target_paths: List[str],
    ) -> FocusedContext:
        """Context for specific files plus similar symbols elsewhere in the repository."""
        logger.info(f"Getting focused context for {len(target_paths)} path(s)")
        focused = FocusedContext()

        for target in target_paths:
            records = find_symbols_in_file(index, target)
            file_context = await self._build_file_context(target, records, graph, Path(root_path), False)
            if file_context is not None:
                focused.files.append(file_context)

            for record in records[:5]:
                similar = await self.index_builder.find_similar_symbols(index, record.symbol_name, 5)
                focused.related_symbols.extend(s for s in similar if s.file != target)

        focused.dependencies = build_dependencies(focused.files, graph)
        return focused

    async def get_improvement_suggestions(
        self, index: EmbeddingIndex, graph: SymbolGraph, root_path: Union[str, Path]
    ) -> Dict[str, ContextBundle]:
        """One bundle per review intent (security, performance, best-practices, testing)."""
        logger.info("Analyzing code for potential improvements")
        suggestions: Dict[str, ContextBundle] = {}
        for intent in SUGGESTION_INTENTS:
            suggestions[intent] = await self.query_pattern(index, graph, root_path, intent)
        return suggestions


async def _read_text(path: Path) -> str:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, lambda: path.read_text(encoding="utf-8"))
