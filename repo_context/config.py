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

"""Configuration for indexing, embedding and retrieval."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "REPO_CONTEXT_"


class IndexConfig(BaseSettings):
    """Top-level configuration shared by every stage of the pipeline.

    Defaults: a 384-dim MiniLM model, JSON index files under
    ``data/indexes`` and 5-line snippet windows. Every field can be set
    through a ``REPO_CONTEXT_<FIELD>`` environment variable, e.g.
    ``REPO_CONTEXT_INDEX_DIR``; keyword arguments win over the environment.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    index_dir: str = Field(
        default="data/indexes",
        description="Directory holding one JSON index document per repository",
    )

    # Embedding model
    embedding_model_type: str = Field(
        default="sentence-transformers",
        description="Embedding model type (sentence-transformers=local model, hashing=offline)",
    )
    embedding_model_name: str = Field(
        default="all-MiniLM-L6-v2",
        description="Embedding model name (all-MiniLM-L6-v2 = 384-dim)",
    )
    dimension: int = Field(default=384, description="Embedding dimension")
    models_cache_dir: Optional[str] = Field(
        default=None, description="Where sentence-transformers caches downloaded weights"
    )

    # Embedding text construction
    max_file_symbols: int = Field(
        default=10, description="Imports/exports/symbols listed in a file-level embedding text"
    )

    # Retrieval
    snippet_context_lines: int = Field(
        default=5, description="Lines of context before/after a matched symbol"
    )
    snippets_per_file: int = Field(default=5, description="Matched symbols snippeted per file")
    max_references_per_symbol: int = Field(
        default=5, description="Cross-references collected per matched symbol"
    )
    default_max_tokens: int = Field(
        default=10000, description="Token budget used by compaction when none is given"
    )

    @classmethod
    def from_env(cls, **overrides) -> "IndexConfig":
        """Build a config from ``REPO_CONTEXT_*`` environment variables.

        Explicit keyword overrides win over the environment.
        """
        return cls(**overrides)
