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

"""Exceptions raised by the repository context engine.

Only fatal conditions are raised. Recoverable problems (unparsable files,
a symbol that fails to embed, a file that disappeared before snippet
extraction) are logged and the affected item is skipped.
"""

from pathlib import Path
from typing import Optional


class RepoContextError(Exception):
    """Base class for all repo_context errors."""


class EmbeddingModelError(RepoContextError):
    """The embedding function could not be loaded or initialized."""

    def __init__(self, model_name: str, reason: str):
        self.model_name = model_name
        self.reason = reason
        super().__init__(f"Embedding model '{model_name}' unavailable: {reason}")


class IndexStorageError(RepoContextError):
    """Reading or writing a stored artifact failed."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Index storage failure at {path}: {reason}")


class IndexCorruptedError(IndexStorageError):
    """A stored artifact exists but cannot be decoded.

    Kept distinct from "not found" so callers never silently rebuild over
    a corrupted index.
    """

    def __init__(self, path: Path, reason: str, repo_id: Optional[str] = None):
        self.repo_id = repo_id
        super().__init__(path, f"corrupted document ({reason})")
