# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
# SPDX-License-Identifier: Apache-2.0

"""Source repairs applied before symbol extraction."""

from repo_context.repair.base import RepairResult, RepairStep, is_material_change
from repo_context.repair.naming import (
    NamingRepairer,
    apply_naming_fixes,
    detect_export_name_typos,
    find_import_attempts,
    string_similarity,
)
from repo_context.repair.syntax import (
    SYNTAX_REPAIR_STEPS,
    SyntaxRepairer,
    create_error_report,
    detect_syntax_errors,
    validate_fix,
)

__all__ = [
    "NamingRepairer",
    "RepairResult",
    "RepairStep",
    "SYNTAX_REPAIR_STEPS",
    "SyntaxRepairer",
    "apply_naming_fixes",
    "create_error_report",
    "detect_export_name_typos",
    "detect_syntax_errors",
    "find_import_attempts",
    "is_material_change",
    "string_similarity",
    "validate_fix",
]
