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

"""Entry point tying graph assembly, embeddings and retrieval together.

Usage:
    engine = RepoContextEngine(IndexConfig.from_env())
    graph = engine.build_index(files, root_path="/path/to/checkout")
    index = await engine.build_embeddings(graph, "owner/repo")
    bundle = await engine.retrieve_context(index, graph, "/path/to/checkout", query="auth")
    print(engine.format_for_consumption(bundle))
    await engine.delete_index("owner/repo")
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from repo_context.codebase.embeddings.index import EmbeddingIndexBuilder
from repo_context.codebase.embeddings.models import BaseEmbeddingModel, get_default_embedding_model
from repo_context.codebase.embeddings.store import IndexStore
from repo_context.codebase.graph import GraphAssembler, find_references, find_symbols_by_name
from repo_context.codebase.models import Edge, EmbeddingIndex, SearchResult, SourceFile, Symbol, SymbolGraph
from repo_context.config import IndexConfig
from repo_context.retrieval import (
    ContextBundle,
    ContextRetriever,
    RetrievalOptions,
    create_compact_context,
    format_for_consumption,
)

logger = logging.getLogger(__name__)


class RepoContextEngine:
    """Facade over the indexing and retrieval pipeline.

    Args:
        config: Pipeline configuration (defaults from ``IndexConfig()``)
        embedding_model: Model override; defaults to the shared model for
            ``config``
        assembler: Graph assembler override
    """

    def __init__(
        self,
        config: Optional[IndexConfig] = None,
        embedding_model: Optional[BaseEmbeddingModel] = None,
        assembler: Optional[GraphAssembler] = None,
    ):
        self.config = config or IndexConfig()
        self.embedding_model = embedding_model or get_default_embedding_model(self.config)
        self.store = IndexStore(self.config.index_dir)
        self.assembler = assembler or GraphAssembler()
        self.index_builder = EmbeddingIndexBuilder(self.embedding_model, self.store, self.config)
        self.retriever = ContextRetriever(self.index_builder, self.config)

    def build_index(
        self, files: Iterable[SourceFile], root_path: Optional[Union[str, Path]] = None
    ) -> SymbolGraph:
        """Build the symbol graph for a snapshot of files."""
        return self.assembler.assemble(files, root_path)

    async def build_embeddings(self, graph: SymbolGraph, repo_id: str, save_graph: bool = True) -> EmbeddingIndex:
        """Embed ``graph`` and persist the index (and the graph) under ``repo_id``."""
        index = await self.index_builder.build(graph, repo_id)
        if save_graph:
            await self.store.save_graph(repo_id, graph)
        return index

    async def get_or_build_embeddings(self, graph: SymbolGraph, repo_id: str) -> EmbeddingIndex:
        """Load the stored index for ``repo_id`` or build one.

        A corrupted stored index raises IndexCorruptedError rather than
        being rebuilt over.
        """
        index = await self.store.load_index(repo_id)
        if index is not None:
            logger.info(f"Using existing index for {repo_id}")
            return index
        return await self.build_embeddings(graph, repo_id)

    def index_exists(self, repo_id: str) -> bool:
        return self.store.index_exists(repo_id)

    async def load_index(self, repo_id: str) -> Optional[EmbeddingIndex]:
        return await self.store.load_index(repo_id)

    async def load_graph(self, repo_id: str) -> Optional[SymbolGraph]:
        return await self.store.load_graph(repo_id)

    async def delete_index(self, repo_id: str) -> bool:
        return await self.store.delete_index(repo_id)

    async def retrieve_context(
        self,
        index: EmbeddingIndex,
        graph: SymbolGraph,
        root_path: Union[str, Path],
        options: Optional[RetrievalOptions] = None,
        **option_overrides,
    ) -> ContextBundle:
        """Retrieve a context bundle; keyword overrides are merged into ``options``."""
        options = options or RetrievalOptions()
        if option_overrides:
            options = options.model_copy(update=option_overrides)
        return await self.retriever.retrieve_context(index, graph, root_path, options)

    def format_for_consumption(self, bundle: ContextBundle, max_tokens: Optional[int] = None) -> str:
        """Render a bundle, compacting it first when ``max_tokens`` is given."""
        if max_tokens is not None:
            bundle = create_compact_context(bundle, max_tokens)
        return format_for_consumption(bundle)

    def find_by_name(self, graph: SymbolGraph, query: str) -> List[Symbol]:
        return find_symbols_by_name(graph, query)

    def find_references(self, graph: SymbolGraph, symbol_name: str) -> List[Edge]:
        return find_references(graph, symbol_name)

    async def find_similar(self, index: EmbeddingIndex, text: str, top_k: int = 10) -> List[SearchResult]:
        return await self.index_builder.search(index, text, top_k)

    async def close(self) -> None:
        await self.embedding_model.close()
