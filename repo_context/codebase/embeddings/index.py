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

"""Embedding index construction and linear-scan similarity search.

The index holds one vector per graph symbol plus one per file. Symbol text
combines kind and name, signature, parameters, documentation, the
``dir/file`` location and the owning class for methods. File text lists the
path, language, and up to ten imports, exports and contained symbols.

Search compares the query vector with every stored vector (no approximate
nearest-neighbour structure) and returns the top K without raw vectors.
"""

import logging
import time
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Sequence

import numpy as np
from pydantic import BaseModel, Field

from repo_context.codebase.embeddings.models import BaseEmbeddingModel
from repo_context.codebase.embeddings.store import IndexStore
from repo_context.codebase.models import (
    EmbeddingIndex,
    EmbeddingRecord,
    FileRecord,
    IndexMetadata,
    SearchResult,
    Symbol,
    SymbolGraph,
    make_file_record_id,
)
from repo_context.config import IndexConfig

logger = logging.getLogger(__name__)


class IndexStats(BaseModel):
    """Summary of a stored index."""

    total_embeddings: int
    build_time: float
    model: str
    dimension: int
    symbol_types: Dict[str, int] = Field(default_factory=dict)
    languages: Dict[str, int] = Field(default_factory=dict)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1].

    Returns 0.0 when either vector has zero norm.

    Raises:
        ValueError: If the vectors differ in dimension
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Vector dimension mismatch: {va.shape[0]} != {vb.shape[0]}")

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0 or not np.isfinite(norm_a) or not np.isfinite(norm_b):
        return 0.0

    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    if not np.isfinite(similarity):
        return 0.0
    return max(-1.0, min(1.0, similarity))


def create_symbol_text(symbol: Symbol) -> str:
    """Descriptive text embedded for a symbol."""
    parts = [f"{symbol.kind.value} {symbol.name}"]
    if symbol.signature:
        parts.append(symbol.signature)
    if symbol.params:
        parts.append(f"parameters: {', '.join(symbol.params)}")
    if symbol.documentation:
        parts.append(symbol.documentation)
    if symbol.file:
        path = PurePosixPath(symbol.file)
        parts.append(f"in {path.parent.name}/{path.name}")
    if symbol.class_name:
        parts.append(f"method of class {symbol.class_name}")
    return " ".join(parts)


def create_file_text(record: FileRecord, graph: SymbolGraph, limit: int = 10) -> str:
    """Descriptive text embedded for a file."""
    parts = [record.path, f"{record.language} file"]
    if record.imports:
        parts.append(f"imports: {', '.join(s.name for s in record.imports[:limit])}")
    if record.exports:
        parts.append(f"exports: {', '.join(s.name for s in record.exports[:limit])}")
    contained = [s.name for s in graph.symbols_in_file(record.path)[:limit]]
    if contained:
        parts.append(f"contains: {', '.join(contained)}")
    return " ".join(parts)


class EmbeddingIndexBuilder:
    """Builds, searches and persists embedding indexes.

    Args:
        model: Embedding model shared by build and search
        store: Where built indexes are saved (None = keep in memory only)
        config: Tuning for embedding text
    """

    def __init__(
        self,
        model: BaseEmbeddingModel,
        store: Optional[IndexStore] = None,
        config: Optional[IndexConfig] = None,
    ):
        self.model = model
        self.store = store
        self.config = config or IndexConfig()

    async def build(self, graph: SymbolGraph, repo_id: str) -> EmbeddingIndex:
        """Embed every symbol and file of ``graph``.

        A symbol or file that fails to embed is logged and skipped. The
        index is saved (when a store is configured) only after every item
        was attempted.

        Raises:
            EmbeddingModelError: If the model cannot be initialized
            IndexStorageError: If the finished index cannot be saved
        """
        start = time.perf_counter()
        await self.model.initialize()
        dimension = self.model.get_dimension()

        logger.info(f"Building embedding index for {repo_id} ({len(graph.symbols)} symbols)")
        records: List[EmbeddingRecord] = []

        total = len(graph.symbols)
        for position, (symbol_id, symbol) in enumerate(graph.symbols.items(), start=1):
            text = create_symbol_text(symbol)
            logger.debug(f"Embedding symbol {position}/{total}: {symbol.name}")
            vector = await self._embed(text, f"symbol {symbol_id}", dimension)
            if vector is None:
                continue
            records.append(
                EmbeddingRecord(
                    id=symbol_id,
                    symbol_name=symbol.name,
                    symbol_type=symbol.kind.value,
                    file=symbol.file,
                    line=symbol.line,
                    vector=vector,
                    text=text,
                    documentation=symbol.documentation,
                    signature=symbol.signature,
                )
            )

        for path, record in graph.files.items():
            text = create_file_text(record, graph, self.config.max_file_symbols)
            vector = await self._embed(text, f"file {path}", dimension)
            if vector is None:
                continue
            records.append(
                EmbeddingRecord(
                    id=make_file_record_id(path),
                    symbol_name=PurePosixPath(path).name,
                    symbol_type="file",
                    file=path,
                    line=0,
                    vector=vector,
                    text=text,
                    language=record.language,
                    symbol_count=record.symbol_count,
                )
            )

        index = EmbeddingIndex(
            repo_id=repo_id,
            embeddings=records,
            metadata=IndexMetadata(
                total_embeddings=len(records),
                build_time=time.perf_counter() - start,
                model=self.model.name,
                dimension=dimension,
            ),
        )
        logger.info(
            f"Embedding index built: {len(records)} embeddings in {index.metadata.build_time:.2f}s"
        )

        if self.store is not None:
            await self.store.save_index(index)
        return index

    async def _embed(self, text: str, label: str, dimension: int) -> Optional[List[float]]:
        try:
            vector = await self.model.embed_text(text)
        except Exception as e:
            logger.warning(f"Failed to embed {label}: {e}")
            return None
        if len(vector) != dimension:
            logger.warning(f"Skipping {label}: got {len(vector)}-dim vector, expected {dimension}")
            return None
        return vector

    async def rebuild(self, graph: SymbolGraph, repo_id: str) -> EmbeddingIndex:
        """Delete the stored index for ``repo_id`` and build a fresh one."""
        logger.info(f"Rebuilding index for {repo_id}")
        if self.store is not None:
            await self.store.delete_index(repo_id)
        return await self.build(graph, repo_id)

    async def search(self, index: EmbeddingIndex, query: str, top_k: int = 10) -> List[SearchResult]:
        """Rank stored records by cosine similarity to ``query``.

        Returns:
            At most ``top_k`` results, highest similarity first
        """
        if top_k <= 0 or not index.embeddings:
            return []

        query_vector = await self.model.embed_text(query)
        scored = []
        for record in index.embeddings:
            try:
                similarity = cosine_similarity(query_vector, record.vector)
            except ValueError as e:
                logger.warning(f"Skipping {record.id} during search: {e}")
                continue
            scored.append((similarity, record))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [SearchResult.from_record(record, similarity) for similarity, record in scored[:top_k]]

    async def find_similar_symbols(
        self, index: EmbeddingIndex, symbol_name: str, top_k: int = 5
    ) -> List[SearchResult]:
        return await self.search(index, f"function or class named {symbol_name}", top_k)

    async def get_index_stats(self, repo_id: str) -> Optional[IndexStats]:
        """Stats for a stored index, or None when it does not exist."""
        if self.store is None:
            return None
        index = await self.store.load_index(repo_id)
        return summarize_index(index) if index is not None else None


def find_symbols_by_type(index: EmbeddingIndex, symbol_type: str, limit: int = 50) -> List[EmbeddingRecord]:
    return [r for r in index.embeddings if r.symbol_type == symbol_type][:limit]


def find_symbols_in_file(index: EmbeddingIndex, file_path: str, limit: int = 50) -> List[EmbeddingRecord]:
    return [r for r in index.embeddings if r.file == file_path][:limit]


def summarize_index(index: EmbeddingIndex) -> IndexStats:
    """Histogram of record types and file languages."""
    symbol_types: Dict[str, int] = {}
    languages: Dict[str, int] = {}
    for record in index.embeddings:
        symbol_types[record.symbol_type] = symbol_types.get(record.symbol_type, 0) + 1
        if record.language:
            languages[record.language] = languages.get(record.language, 0) + 1
    return IndexStats(
        total_embeddings=index.metadata.total_embeddings,
        build_time=index.metadata.build_time,
        model=index.metadata.model,
        dimension=index.metadata.dimension,
        symbol_types=symbol_types,
        languages=languages,
    )
