# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
# SPDX-License-Identifier: Apache-2.0

"""Local semantic code index.

Extracts a symbol graph from a source tree (repairing unparsable files on
the way), embeds symbols and files, and assembles token-bounded context
bundles for a query.
"""

from repo_context.config import IndexConfig
from repo_context.engine import RepoContextEngine
from repo_context.errors import (
    EmbeddingModelError,
    IndexCorruptedError,
    IndexStorageError,
    RepoContextError,
)
from repo_context.retrieval import ContextBundle, RetrievalOptions

__version__ = "0.1.0"

__all__ = [
    "ContextBundle",
    "EmbeddingModelError",
    "IndexConfig",
    "IndexCorruptedError",
    "IndexStorageError",
    "RepoContextEngine",
    "RepoContextError",
    "RetrievalOptions",
]
