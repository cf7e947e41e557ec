# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
# SPDX-License-Identifier: Apache-2.0

"""Embedding system for repository context.

This module combines:
1. Embedding models (text -> vector)
2. Index construction and linear-scan search
3. JSON persistence of indexes and graphs
"""

from repo_context.codebase.embeddings.index import (
    EmbeddingIndexBuilder,
    IndexStats,
    cosine_similarity,
    create_file_text,
    create_symbol_text,
    find_symbols_by_type,
    find_symbols_in_file,
    summarize_index,
)
from repo_context.codebase.embeddings.models import (
    BaseEmbeddingModel,
    EmbeddingModelConfig,
    HashingEmbeddingModel,
    SentenceTransformerModel,
    create_embedding_model,
    get_default_embedding_model,
)
from repo_context.codebase.embeddings.store import IndexStore, sanitize_repo_id

__all__ = [
    # Models
    "BaseEmbeddingModel",
    "EmbeddingModelConfig",
    "HashingEmbeddingModel",
    "SentenceTransformerModel",
    "create_embedding_model",
    "get_default_embedding_model",
    # Index
    "EmbeddingIndexBuilder",
    "IndexStats",
    "cosine_similarity",
    "create_file_text",
    "create_symbol_text",
    "find_symbols_by_type",
    "find_symbols_in_file",
    "summarize_index",
    # Storage
    "IndexStore",
    "sanitize_repo_id",
]
