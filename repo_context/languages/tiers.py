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

"""Language tier configuration for symbol extraction.

Defines which extraction strategy is used per language:

Tier System:
    - AST: Full tree-sitter AST walk with repair-and-retry (JavaScript, TypeScript, TSX)
    - PATTERN: Line-oriented pattern extraction (Python)
    - GENERIC: Cross-language regex signatures (everything else)

Usage:
    from repo_context.languages.tiers import detect_language, get_tier, LanguageTier

    language = detect_language("src/app.tsx")  # "tsx"
    config = get_tier(language)
    if config.tier == LanguageTier.AST:
        parser = get_parser(config.tree_sitter_language)
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, Optional


class LanguageTier(Enum):
    """Extraction tiers, best first."""

    AST = 1  # tree-sitter AST walk
    PATTERN = 2  # line-anchored expressions
    GENERIC = 3  # first-match signature regexes


@dataclass(frozen=True)
class TierConfig:
    """Configuration for a language tier.

    Attributes:
        tier: The tier level
        tree_sitter_language: Grammar name for tree_sitter_manager (AST tier only)
        supports_repair: Whether syntax repair heuristics understand this language
        display_name: Language tag used in file records and embedding text
    """

    tier: LanguageTier
    tree_sitter_language: Optional[str]
    supports_repair: bool
    display_name: str


LANGUAGE_TIERS: Dict[str, TierConfig] = {
    # ==========================================================================
    # AST tier: tree-sitter grammars sharing module syntax and JSX
    # ==========================================================================
    "javascript": TierConfig(
        tier=LanguageTier.AST,
        tree_sitter_language="javascript",  # grammar includes JSX
        supports_repair=True,
        display_name="javascript",
    ),
    "typescript": TierConfig(
        tier=LanguageTier.AST,
        tree_sitter_language="typescript",
        supports_repair=True,
        display_name="typescript",
    ),
    "tsx": TierConfig(
        tier=LanguageTier.AST,
        tree_sitter_language="tsx",
        supports_repair=True,
        display_name="typescript",
    ),
    # ==========================================================================
    # Pattern tier
    # ==========================================================================
    "python": TierConfig(
        tier=LanguageTier.PATTERN,
        tree_sitter_language=None,
        supports_repair=False,
        display_name="python",
    ),
}

_GENERIC_LANGUAGES = (
    "java",
    "cpp",
    "c",
    "go",
    "rust",
    "ruby",
    "php",
    "csharp",
    "kotlin",
    "swift",
    "scala",
    "unknown",
)

for _name in _GENERIC_LANGUAGES:
    LANGUAGE_TIERS[_name] = TierConfig(
        tier=LanguageTier.GENERIC,
        tree_sitter_language=None,
        supports_repair=False,
        display_name=_name,
    )


EXTENSION_LANGUAGES: Dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".py": "python",
    ".java": "java",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".hpp": "cpp",
    ".c": "c",
    ".h": "c",
    ".go": "go",
    ".rs": "rust",
    ".rb": "ruby",
    ".php": "php",
    ".cs": "csharp",
    ".kt": "kotlin",
    ".swift": "swift",
    ".scala": "scala",
}

# Extensions considered source code when scanning a checkout for context
CODE_EXTENSIONS = frozenset(EXTENSION_LANGUAGES)


def detect_language(file_path: str) -> str:
    """Detect the language of a file from its extension.

    Args:
        file_path: Relative or absolute file path

    Returns:
        Language identifier, or "unknown" for unrecognized extensions
    """
    suffix = PurePosixPath(file_path.replace("\\", "/")).suffix.lower()
    return EXTENSION_LANGUAGES.get(suffix, "unknown")


def get_tier(language: str) -> TierConfig:
    """Get the tier configuration for a language.

    Unregistered languages fall back to the generic tier.
    """
    return LANGUAGE_TIERS.get(language.lower(), LANGUAGE_TIERS["unknown"])


def get_display_language(file_path: str) -> str:
    """Language tag stored on file records (tsx reports as typescript)."""
    return get_tier(detect_language(file_path)).display_name
