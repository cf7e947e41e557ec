# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
# SPDX-License-Identifier: Apache-2.0

"""Codebase analysis: symbol extraction, graph assembly and embeddings."""

from repo_context.codebase.extractor import ExtractionResult, SymbolExtractor
from repo_context.codebase.graph import (
    GraphAssembler,
    SymbolHierarchy,
    find_references,
    find_symbols_by_name,
    get_symbol_hierarchy,
)

__all__ = [
    "ExtractionResult",
    "GraphAssembler",
    "SymbolExtractor",
    "SymbolHierarchy",
    "find_references",
    "find_symbols_by_name",
    "get_symbol_hierarchy",
]
