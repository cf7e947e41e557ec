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

"""JSON persistence for embedding indexes and symbol graphs.

One document per repository per artifact:

    <index_dir>/<repo_id>.json         EmbeddingIndex
    <index_dir>/<repo_id>.graph.json   SymbolGraph

Repo ids are sanitized to ``[A-Za-z0-9_-]``. Writes go to a temporary file
in the same directory and are renamed into place, so a crashed write never
leaves a truncated document behind. There is no cross-process lock.
"""

import asyncio
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from repo_context.codebase.models import EmbeddingIndex, SymbolGraph
from repo_context.errors import IndexCorruptedError, IndexStorageError

logger = logging.getLogger(__name__)

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_-]")

ModelT = TypeVar("ModelT", bound=BaseModel)


def sanitize_repo_id(repo_id: str) -> str:
    """Replace every character outside ``[A-Za-z0-9_-]`` with ``_``."""
    return _UNSAFE_ID_CHARS.sub("_", repo_id)


class IndexStore:
    """File-backed store for per-repository artifacts."""

    def __init__(self, index_dir: Union[str, Path] = "data/indexes"):
        self.index_dir = Path(index_dir)

    def index_path(self, repo_id: str) -> Path:
        return self.index_dir / f"{sanitize_repo_id(repo_id)}.json"

    def graph_path(self, repo_id: str) -> Path:
        return self.index_dir / f"{sanitize_repo_id(repo_id)}.graph.json"

    # ------------------------------------------------------------------
    # Embedding index
    # ------------------------------------------------------------------

    async def save_index(self, index: EmbeddingIndex) -> Path:
        """Persist an index, replacing any previous one for the repo.

        Raises:
            IndexStorageError: If the document cannot be written
        """
        path = self.index_path(index.repo_id)
        await self._run(self._write_document, path, index)
        logger.info(f"Index saved to {path} ({len(index.embeddings)} embeddings)")
        return path

    async def load_index(self, repo_id: str) -> Optional[EmbeddingIndex]:
        """Load a stored index.

        Returns:
            The index, or None when none exists for ``repo_id``

        Raises:
            IndexCorruptedError: If the stored document cannot be decoded
            IndexStorageError: If the document cannot be read
        """
        return await self._run(self._read_document, self.index_path(repo_id), EmbeddingIndex, repo_id)

    def index_exists(self, repo_id: str) -> bool:
        return self.index_path(repo_id).is_file()

    async def delete_index(self, repo_id: str) -> bool:
        """Delete the index and graph for ``repo_id``.

        Deleting something that does not exist is a success.

        Returns:
            True if a document was removed
        """
        removed = False
        for path in (self.index_path(repo_id), self.graph_path(repo_id)):
            removed = await self._run(self._remove, path) or removed
        if removed:
            logger.info(f"Deleted index for {repo_id}")
        else:
            logger.debug(f"No index to delete for {repo_id}")
        return removed

    # ------------------------------------------------------------------
    # Symbol graph
    # ------------------------------------------------------------------

    async def save_graph(self, repo_id: str, graph: SymbolGraph) -> Path:
        path = self.graph_path(repo_id)
        await self._run(self._write_document, path, graph)
        logger.info(f"Graph saved to {path} ({len(graph.symbols)} symbols)")
        return path

    async def load_graph(self, repo_id: str) -> Optional[SymbolGraph]:
        return await self._run(self._read_document, self.graph_path(repo_id), SymbolGraph, repo_id)

    # ------------------------------------------------------------------
    # Blocking helpers (run in the default executor)
    # ------------------------------------------------------------------

    @staticmethod
    async def _run(func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    def _write_document(self, path: Path, document: BaseModel) -> None:
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp", delete=False
            ) as handle:
                tmp_name = handle.name
                handle.write(document.model_dump_json())
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error(f"Failed to write {path}: {e}")
            raise IndexStorageError(path, str(e)) from e

    def _read_document(self, path: Path, model: Type[ModelT], repo_id: str) -> Optional[ModelT]:
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error(f"Failed to read {path}: {e}")
            raise IndexStorageError(path, str(e)) from e

        try:
            return model.model_validate_json(raw.decode("utf-8"))
        except UnicodeDecodeError as e:
            logger.error(f"Stored document for {repo_id} at {path} is not valid UTF-8")
            raise IndexCorruptedError(path, f"invalid UTF-8 at byte {e.start}", repo_id=repo_id) from e
        except ValidationError as e:
            logger.error(f"Stored document for {repo_id} at {path} is corrupted")
            raise IndexCorruptedError(path, f"{e.error_count()} validation error(s)", repo_id=repo_id) from e

    def _remove(self, path: Path) -> bool:
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise IndexStorageError(path, str(e)) from e
