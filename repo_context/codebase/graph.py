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

"""Symbol graph assembly.

Assembly runs in two phases:

1. Naming repair over every file, using all known files as cross-reference
   context. Repaired content replaces the original in memory.
2. Extraction per file and merge into one graph. Symbols are keyed by
   ``file::name``; a later symbol with the same key replaces the earlier one
   and the replacement is counted in ``metadata.overwrites``.

Edges are built last so relative imports can resolve against the complete
symbol table. Unresolvable targets stay in the graph as ``UnresolvedTarget``
(external packages, files outside the analyzed set).
"""

import logging
import posixpath
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from repo_context.codebase.extractor import SymbolExtractor
from repo_context.codebase.ignore_patterns import collect_source_files
from repo_context.codebase.models import (
    Edge,
    EdgeTarget,
    EdgeType,
    FileRecord,
    Fix,
    GraphMetadata,
    ResolvedTarget,
    SourceFile,
    Symbol,
    SymbolGraph,
    SymbolKind,
    UnresolvedTarget,
    make_symbol_id,
)
from repo_context.languages.tiers import get_display_language
from repo_context.repair.naming import NamingRepairer

logger = logging.getLogger(__name__)

RESOLVABLE_EXTENSIONS = (".js", ".ts", ".tsx", ".jsx", ".mjs", ".cjs", ".mts", ".cts")


@dataclass
class SymbolHierarchy:
    """Symbols of one file grouped by kind."""

    classes: List[Symbol] = field(default_factory=list)
    functions: List[Symbol] = field(default_factory=list)
    methods: List[Symbol] = field(default_factory=list)
    imports: List[Symbol] = field(default_factory=list)
    exports: List[Symbol] = field(default_factory=list)


class GraphAssembler:
    """Builds a SymbolGraph from a snapshot of source files."""

    def __init__(
        self,
        extractor: Optional[SymbolExtractor] = None,
        naming_repairer: Optional[NamingRepairer] = None,
    ):
        self.extractor = extractor or SymbolExtractor()
        self.naming_repairer = naming_repairer or NamingRepairer()

    def assemble(
        self, files: Iterable[SourceFile], root_path: Optional[Union[str, Path]] = None
    ) -> SymbolGraph:
        """Assemble the graph for ``files``.

        Args:
            files: Files to analyze (relative paths)
            root_path: Checkout root; when given, every code file beneath it
                is used as naming-repair context

        Returns:
            The assembled SymbolGraph
        """
        start = time.perf_counter()
        files = list(files)
        graph = SymbolGraph()

        context = self._context_files(files, root_path)

        # Phase 1: naming repair
        logger.info(f"Running naming analysis on {len(files)} file(s)")
        contents: Dict[str, str] = {}
        for source in files:
            result = self.naming_repairer.repair(source.content, source.path, context)
            contents[source.path] = result.content
            if result.fixed:
                graph.syntax_fixes.append(result.to_fix(source.path, source.content, "naming"))

        naming_fixed = len(graph.syntax_fixes)
        if naming_fixed:
            logger.info(f"Applied naming fixes to {naming_fixed} file(s)")

        # Phase 2: extraction and merge
        extracted: Dict[str, List[Symbol]] = {}
        for source in files:
            content = contents[source.path]
            extraction = self.extractor.extract(SourceFile(path=source.path, content=content))
            extracted[source.path] = extraction.symbols
            if extraction.fix_applied is not None:
                self._track_fix(graph, extraction.fix_applied)

            for symbol in extraction.symbols:
                self._merge_symbol(graph, symbol)

            graph.files[source.path] = FileRecord(
                path=source.path,
                language=get_display_language(source.path),
                symbol_count=0,
                size=len(content),
                imports=[s for s in extraction.symbols if s.kind == SymbolKind.IMPORT],
                exports=[s for s in extraction.symbols if s.kind == SymbolKind.EXPORT],
            )

        # Counts reflect the merged table, after overwrites
        counts: Dict[str, int] = {}
        for symbol in graph.symbols.values():
            counts[symbol.file] = counts.get(symbol.file, 0) + 1
        for path, record in graph.files.items():
            record.symbol_count = counts.get(path, 0)

        for path, symbols in extracted.items():
            graph.edges.extend(self._build_edges(graph, path, symbols))

        graph.metadata = GraphMetadata(
            total_symbols=len(graph.symbols),
            total_files=len(graph.files),
            build_time=time.perf_counter() - start,
            overwrites=graph.metadata.overwrites,
        )
        logger.info(
            f"Symbol graph built: {graph.metadata.total_symbols} symbols, "
            f"{graph.metadata.total_files} files, {len(graph.edges)} edges "
            f"in {graph.metadata.build_time:.2f}s"
        )
        return graph

    def _context_files(
        self, files: List[SourceFile], root_path: Optional[Union[str, Path]]
    ) -> List[SourceFile]:
        if root_path is None:
            return files

        try:
            repo_files = collect_source_files(Path(root_path))
        except OSError as e:
            logger.warning(f"Could not scan {root_path} for naming context: {e}")
            return files

        if len(repo_files) <= len(files):
            logger.debug("Using only analyzed files for naming context")
            return files

        logger.info(f"Loaded {len(repo_files)} files from {root_path} for naming context")
        analyzed = {f.path: f for f in files}
        return list(analyzed.values()) + [f for f in repo_files if f.path not in analyzed]

    def _track_fix(self, graph: SymbolGraph, fix: Fix) -> None:
        if fix.should_commit:
            logger.info(f"Tracking syntax fix for {fix.file_path} to be committed")
        else:
            logger.warning(f"Syntax fix applied to {fix.file_path} but should_commit=False")
        graph.syntax_fixes.append(fix)

    def _merge_symbol(self, graph: SymbolGraph, symbol: Symbol) -> None:
        existing = graph.symbols.get(symbol.id)
        # Export markers are placeholders for the declaration that follows
        if existing is not None and existing.kind != SymbolKind.EXPORT:
            graph.metadata.overwrites += 1
            logger.debug(
                f"Symbol {symbol.id} ({existing.kind.value}, line {existing.line}) "
                f"replaced by {symbol.kind.value} at line {symbol.line}"
            )
        graph.symbols[symbol.id] = symbol

    def _build_edges(self, graph: SymbolGraph, file_path: str, symbols: List[Symbol]) -> List[Edge]:
        edges: List[Edge] = []
        imports = {s.name: s for s in symbols if s.kind == SymbolKind.IMPORT}

        for imported in imports.values():
            edges.append(
                Edge(
                    source=make_symbol_id(file_path, imported.name),
                    target=self._resolve_import(
                        graph, file_path, imported.source, imported.name, imported.is_default
                    ),
                    type=EdgeType.IMPORTS,
                )
            )

        for cls in symbols:
            if cls.kind != SymbolKind.CLASS or not cls.extends:
                continue
            edges.append(
                Edge(
                    source=cls.id,
                    target=self._resolve_base(graph, file_path, cls.extends, imports),
                    type=EdgeType.EXTENDS,
                )
            )
        return edges

    def _resolve_base(
        self, graph: SymbolGraph, file_path: str, base: str, imports: Dict[str, Symbol]
    ) -> EdgeTarget:
        local = graph.symbols.get(make_symbol_id(file_path, base))
        if local is not None and local.kind != SymbolKind.IMPORT:
            return ResolvedTarget(symbol_id=local.id)

        root_name = base.split(".")[0]
        if root_name in imports:
            imported = imports[root_name]
            return self._resolve_import(
                graph, file_path, imported.source, base, imported.is_default and root_name == base
            )
        return UnresolvedTarget(specifier=make_symbol_id(file_path, base))

    def _resolve_import(
        self,
        graph: SymbolGraph,
        file_path: str,
        specifier: Optional[str],
        name: str,
        default_import: bool = False,
    ) -> EdgeTarget:
        """Resolve ``name`` imported from ``specifier`` to a graph symbol if possible.

        Only a default import may fall back to the module's default export;
        a named import of a missing name stays unresolved.
        """
        module = specifier or name
        target_file = resolve_module_path(file_path, module, graph.files.keys())
        if target_file is not None:
            candidate = graph.symbols.get(make_symbol_id(target_file, name))
            if candidate is not None and candidate.kind != SymbolKind.IMPORT:
                return ResolvedTarget(symbol_id=candidate.id)
            if not default_import:
                return UnresolvedTarget(specifier=make_symbol_id(module, name))
            for symbol in graph.symbols.values():
                if symbol.file == target_file and symbol.is_default and symbol.kind != SymbolKind.EXPORT:
                    return ResolvedTarget(symbol_id=symbol.id)
        return UnresolvedTarget(specifier=make_symbol_id(module, name))


def resolve_module_path(importer: str, specifier: str, known_files: Iterable[str]) -> Optional[str]:
    """Map an import specifier to one of ``known_files``.

    Relative specifiers (``./x``, ``../x``) are tried as written, with each
    JS/TS extension and as a directory ``index`` file. Dotted Python module
    names map to ``a/b.py`` or ``a/b/__init__.py``. Bare package names never
    resolve.
    """
    known = set(known_files)

    if specifier.startswith("."):
        if specifier.startswith(("./", "../")) or specifier in (".", ".."):
            base = posixpath.normpath(posixpath.join(posixpath.dirname(importer), specifier))
            candidates = [base]
            candidates += [base + ext for ext in RESOLVABLE_EXTENSIONS]
            candidates += [posixpath.join(base, "index" + ext) for ext in RESOLVABLE_EXTENSIONS]
            for candidate in candidates:
                if candidate in known:
                    return candidate
            return None

    if importer.endswith(".py"):
        dots = len(specifier) - len(specifier.lstrip("."))
        module = specifier.lstrip(".").replace(".", "/")
        if dots:
            package = posixpath.dirname(importer)
            for _ in range(dots - 1):
                package = posixpath.dirname(package)
            module = posixpath.join(package, module) if module else package
        for candidate in (f"{module}.py", f"{module}/__init__.py"):
            if candidate in known:
                return candidate
    return None


def find_symbols_by_name(graph: SymbolGraph, query: str) -> List[Symbol]:
    """Case-insensitive substring match on symbol names."""
    needle = query.lower()
    return [s for s in graph.symbols.values() if needle in s.name.lower()]


def find_references(graph: SymbolGraph, symbol_name: str) -> List[Edge]:
    """Edges whose source id or target reference mentions ``symbol_name``."""
    return [e for e in graph.edges if symbol_name in e.source or symbol_name in e.target.ref]


def get_symbol_hierarchy(graph: SymbolGraph, file_path: str) -> SymbolHierarchy:
    """Group a file's symbols by kind."""
    hierarchy = SymbolHierarchy()
    buckets = {
        SymbolKind.CLASS: hierarchy.classes,
        SymbolKind.FUNCTION: hierarchy.functions,
        SymbolKind.METHOD: hierarchy.methods,
        SymbolKind.IMPORT: hierarchy.imports,
        SymbolKind.EXPORT: hierarchy.exports,
    }
    for symbol in graph.symbols_in_file(file_path):
        bucket = buckets.get(symbol.kind)
        if bucket is not None:
            bucket.append(symbol)
    return hierarchy
