# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
# SPDX-License-Identifier: Apache-2.0

"""Language detection and extraction tiers."""

from repo_context.languages.tiers import (
    CODE_EXTENSIONS,
    EXTENSION_LANGUAGES,
    LANGUAGE_TIERS,
    LanguageTier,
    TierConfig,
    detect_language,
    get_display_language,
    get_tier,
)

__all__ = [
    "CODE_EXTENSIONS",
    "EXTENSION_LANGUAGES",
    "LANGUAGE_TIERS",
    "LanguageTier",
    "TierConfig",
    "detect_language",
    "get_display_language",
    "get_tier",
]
