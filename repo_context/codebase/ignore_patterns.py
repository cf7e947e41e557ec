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

"""Path filtering and source discovery for cross-reference context.

Naming repair looks at every code file in a checkout, not only the files
being analyzed, so importers outside the analyzed set still count. This
module decides which directories are skipped while collecting them.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Set

from repo_context.codebase.models import SourceFile
from repo_context.languages.tiers import CODE_EXTENSIONS

logger = logging.getLogger(__name__)

# Hidden directories (starting with '.') are excluded automatically by should_ignore_path()
DEFAULT_SKIP_DIRS: Set[str] = {
    # Python
    "__pycache__",
    "venv",
    "env",
    # Node.js
    "node_modules",
    # Build outputs
    "build",
    "dist",
    "target",
    "out",
    # Coverage
    "coverage",
    "htmlcov",
    # Third party / vendor
    "vendor",
    "third_party",
}


def is_hidden_path(path: Path) -> bool:
    """Check if any component of the path is a hidden directory.

    Excludes '.' and '..' which are special directory entries.
    """
    for part in path.parts:
        if part.startswith(".") and part not in (".", ".."):
            return True
    return False


def should_ignore_path(
    path: Path,
    skip_dirs: Optional[Set[str]] = None,
    extra_skip_dirs: Optional[Iterable[str]] = None,
) -> bool:
    """Check if a path should be ignored while scanning a checkout.

    Args:
        path: Path to check, relative to the scan root
        skip_dirs: Set of directory names to skip. Defaults to DEFAULT_SKIP_DIRS.
        extra_skip_dirs: Additional directory names to skip (merged with skip_dirs).

    Returns:
        True if the path should be ignored

    Example:
        >>> should_ignore_path(Path("src/main.js"))
        False
        >>> should_ignore_path(Path(".git/config"))
        True
        >>> should_ignore_path(Path("node_modules/lodash/index.js"))
        True
    """
    if is_hidden_path(path):
        return True

    effective_skip_dirs = skip_dirs if skip_dirs is not None else DEFAULT_SKIP_DIRS
    if extra_skip_dirs:
        effective_skip_dirs = effective_skip_dirs | set(extra_skip_dirs)

    return any(part in effective_skip_dirs for part in path.parts)


def collect_source_files(root: Path, extra_skip_dirs: Optional[Iterable[str]] = None) -> List[SourceFile]:
    """Read every code file under ``root`` into memory.

    Unreadable files and directories are skipped; paths are returned relative
    to ``root`` with forward slashes.
    """
    files: List[SourceFile] = []
    if not root.is_dir():
        return files

    for file_path in sorted(root.rglob("*")):
        relative = file_path.relative_to(root)
        if should_ignore_path(relative, extra_skip_dirs=extra_skip_dirs):
            continue
        if file_path.suffix.lower() not in CODE_EXTENSIONS or not file_path.is_file():
            continue
        try:
            content = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Skipping unreadable file {file_path}: {e}")
            continue
        files.append(SourceFile(path=relative.as_posix(), content=content))

    return files
