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

"""Embedding model providers (separate from the index store).

This module handles GENERATING embeddings (converting text to vectors).
The IndexStore handles persisting them and the EmbeddingIndexBuilder
handles searching.

Available models:
- sentence-transformers: local transformer, all-MiniLM-L6-v2 by default (384-dim)
- hashing: deterministic token hashing, no download; meant for offline
  runs and tests
"""

import asyncio
import hashlib
import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type

import numpy as np
from pydantic import BaseModel, Field

from repo_context.config import IndexConfig
from repo_context.errors import EmbeddingModelError

logger = logging.getLogger(__name__)


class EmbeddingModelConfig(BaseModel):
    """Configuration for embedding model."""

    model_type: str = Field(description="Model type (sentence-transformers, hashing)")
    model_name: str = Field(default="all-MiniLM-L6-v2", description="Specific model name")
    dimension: int = Field(default=384, description="Embedding dimension (auto-detected if possible)")
    cache_folder: Optional[str] = Field(default=None, description="Local cache for downloaded weights")
    batch_size: int = Field(default=32, description="Batch size for embedding generation")


class BaseEmbeddingModel(ABC):
    """Abstract base for embedding models.

    Handles converting text -> vectors.
    Does NOT handle storage/search (that's the index's job).
    """

    def __init__(self, config: EmbeddingModelConfig):
        self.config = config
        self._initialized = False

    @property
    def name(self) -> str:
        """Identifier recorded in index metadata."""
        return self.config.model_name

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the model (load weights, etc.).

        Raises:
            EmbeddingModelError: If the model cannot be loaded
        """
        pass

    @abstractmethod
    async def embed_text(self, text: str) -> List[float]:
        """Generate embedding for single text."""
        pass

    @abstractmethod
    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for multiple texts (batch optimized)."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of embeddings produced by this model."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Clean up resources."""
        pass


class SentenceTransformerModel(BaseEmbeddingModel):
    """Sentence-transformers embedding model (local, CPU/GPU).

    Vectors are L2-normalized, so cosine similarity equals the dot product.

    Pros:
    - Free
    - Runs locally
    - Many pre-trained models available

    Cons:
    - Requires downloading models on first use
    - CPU inference can be slow for large batches

    Good for: Development, privacy-sensitive code, offline use after download
    """

    def __init__(self, config: EmbeddingModelConfig):
        super().__init__(config)
        self._model = None

    async def initialize(self) -> None:
        """Load the model weights in a worker thread."""
        if self._initialized:
            return

        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as e:
            raise EmbeddingModelError(
                self.config.model_name,
                "sentence-transformers not installed. Install with: pip install sentence-transformers",
            ) from e

        logger.info(f"Loading sentence-transformer model: {self.config.model_name}")
        loop = asyncio.get_running_loop()
        try:
            self._model = await loop.run_in_executor(
                None,
                lambda: SentenceTransformer(self.config.model_name, cache_folder=self.config.cache_folder),
            )
        except Exception as e:
            raise EmbeddingModelError(self.config.model_name, str(e)) from e

        self._initialized = True
        logger.info(f"Model loaded: {self.config.model_name} (dimension {self.get_dimension()})")

    async def embed_text(self, text: str) -> List[float]:
        """Generate embedding for single text."""
        embeddings = await self.embed_batch([text])
        return embeddings[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for multiple texts (batch optimized)."""
        if not self._initialized:
            await self.initialize()

        loop = asyncio.get_running_loop()
        embeddings = await loop.run_in_executor(
            None,
            lambda: self._model.encode(
                texts,
                batch_size=self.config.batch_size,
                convert_to_numpy=True,
                normalize_embeddings=True,
                show_progress_bar=False,
            ),
        )
        return [emb.tolist() for emb in embeddings]

    def get_dimension(self) -> int:
        """Get embedding dimension."""
        if self._model is not None:
            return self._model.get_sentence_embedding_dimension() or self.config.dimension
        return self.config.dimension

    async def close(self) -> None:
        """Release the model."""
        self._model = None
        self._initialized = False


_TOKEN_RE = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")


class HashingEmbeddingModel(BaseEmbeddingModel):
    """Feature-hashing embedding model (deterministic, no weights).

    Each identifier-like token is hashed into one of ``dimension`` buckets
    with a hash-derived sign; the result is L2-normalized. Texts sharing
    tokens score higher, which is enough for lexical matching in tests and
    air-gapped environments.

    Good for: Tests, CI, machines without model downloads
    """

    async def initialize(self) -> None:
        if self.config.dimension <= 0:
            raise EmbeddingModelError(self.config.model_name, f"invalid dimension {self.config.dimension}")
        self._initialized = True

    def _embed(self, text: str) -> List[float]:
        dim = self.config.dimension
        vector = np.zeros(dim, dtype=np.float64)
        for token in _TOKEN_RE.findall(text.lower()):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            index = int.from_bytes(digest[:4], "big") % dim
            vector[index] += 1.0 if digest[4] % 2 == 0 else -1.0
        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector.tolist()

    async def embed_text(self, text: str) -> List[float]:
        if not self._initialized:
            await self.initialize()
        return self._embed(text)

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not self._initialized:
            await self.initialize()
        return [self._embed(text) for text in texts]

    def get_dimension(self) -> int:
        return self.config.dimension

    async def close(self) -> None:
        self._initialized = False


# Model Registry
_embedding_models: Dict[str, Type[BaseEmbeddingModel]] = {
    "sentence-transformers": SentenceTransformerModel,
    "hashing": HashingEmbeddingModel,
}


def create_embedding_model(config: EmbeddingModelConfig) -> BaseEmbeddingModel:
    """Factory function to create embedding model.

    Args:
        config: Model configuration

    Returns:
        Embedding model instance

    Raises:
        ValueError: If model type not recognized
    """
    model_class = _embedding_models.get(config.model_type)
    if not model_class:
        available = ", ".join(_embedding_models.keys())
        raise ValueError(f"Unknown embedding model type: {config.model_type}. Available: {available}")

    return model_class(config)


_default_models: Dict[tuple, BaseEmbeddingModel] = {}


def get_default_embedding_model(config: Optional[IndexConfig] = None) -> BaseEmbeddingModel:
    """Shared embedding model for an IndexConfig (defaults: MiniLM, 384-dim).

    One instance per (type, name, dimension) is created on first use and
    reused for the life of the process, so weights load once.
    """
    config = config or IndexConfig()
    key = (config.embedding_model_type, config.embedding_model_name, config.dimension)
    model = _default_models.get(key)
    if model is None:
        model = create_embedding_model(
            EmbeddingModelConfig(
                model_type=config.embedding_model_type,
                model_name=config.embedding_model_name,
                dimension=config.dimension,
                cache_folder=config.models_cache_dir,
            )
        )
        _default_models[key] = model
    return model
