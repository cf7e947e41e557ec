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

"""Export-name typo repair driven by how other files import a module.

When ``utils.js`` exports ``hlp`` but every importer asks for ``helper``,
the export is the typo. Candidates are scored by Levenshtein similarity and
graded by confidence; only high-confidence candidates are applied.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Set

from repo_context.codebase.models import FixDescriptor, SourceFile
from repo_context.repair.base import RepairResult, is_material_change

logger = logging.getLogger(__name__)

_IMPORT_RE = re.compile(
    r"""import\s+(?:\{([^}]+)\}|\*\s+as\s+(\w+)|(\w+))\s+from\s+['"](.*?)['"]"""
)
_EXPORT_RE = re.compile(r"export\s+(?:const|let|var|class|function|interface|type)\s+(\w+)")

CONFIDENCE_ORDER = {"high": 3, "medium": 2, "low": 1}


@dataclass
class ImportAttempt:
    """An import statement in another file that targets the file under repair."""

    file_path: str
    imported_names: List[str]
    statement: str


@dataclass
class NamingTypo:
    """A suspected export-name typo."""

    line: int
    original: str
    suggested: str
    reason: str
    confidence: str
    imported_in: str


def string_similarity(a: str, b: str) -> float:
    """Case-insensitive Levenshtein similarity in [0, 1].

    ``1 - distance / max(len)``; equal strings score 1.0.
    """
    s1, s2 = a.lower(), b.lower()
    if s1 == s2:
        return 1.0

    previous = list(range(len(s1) + 1))
    for j, c2 in enumerate(s2, start=1):
        current = [j] + [0] * len(s1)
        for i, c1 in enumerate(s1, start=1):
            cost = 0 if c1 == c2 else 1
            current[i] = min(current[i - 1] + 1, previous[i] + 1, previous[i - 1] + cost)
        previous = current

    return 1 - previous[len(s1)] / max(len(s1), len(s2))


def _file_stem(file_path: str) -> str:
    return PurePosixPath(file_path).stem


def _is_abbreviation(short: str, full: str) -> bool:
    """True when ``short`` is ``full`` with letters dropped (same first letter)."""
    short, full = short.lower(), full.lower()
    if not short or len(short) >= len(full) or short[0] != full[0]:
        return False
    remaining = iter(full)
    return all(char in remaining for char in short)


def find_import_attempts(target_path: str, all_files: Iterable[SourceFile]) -> List[ImportAttempt]:
    """Collect imports in other files whose specifier mentions ``target_path``.

    A specifier targets the file when it contains the file's stem or its
    basename; ``import { a as b }`` contributes the original name ``a``.
    """
    attempts: List[ImportAttempt] = []
    target = PurePosixPath(target_path)

    for source in all_files:
        if source.path == target_path:
            continue
        for match in _IMPORT_RE.finditer(source.content):
            names_text = match.group(1) or match.group(2) or match.group(3)
            specifier = match.group(4)
            if target.stem not in specifier and target.name not in specifier:
                continue

            names = []
            if names_text:
                for part in names_text.split(","):
                    name = part.strip().split(" as ")[0].strip()
                    if name:
                        names.append(name)
            attempts.append(ImportAttempt(file_path=source.path, imported_names=names, statement=match.group(0)))

    return attempts


def detect_export_name_typos(
    content: str, file_path: str, all_files: Iterable[SourceFile]
) -> List[NamingTypo]:
    """Find exports whose name disagrees with what importers ask for.

    Rules:
        high: export and import differ (similarity < 0.5) while the import
            resembles the file stem (> 0.7)
        high: the import is not exported here and the export is an
            abbreviation of it
        medium: a short lowercase export in a longer mixed-case file whose
            stem resembles the import; the stem is suggested

    Duplicates on ``(original, suggested)`` keep the highest confidence.
    """
    exports = []
    for match in _EXPORT_RE.finditer(content):
        line = content.count("\n", 0, match.start()) + 1
        exports.append((match.group(1), line))
    if not exports:
        return []

    exported_names: Set[str] = {name for name, _ in exports}
    stem = _file_stem(file_path)
    attempts = find_import_attempts(file_path, all_files)
    imported_names: Set[str] = {name for attempt in attempts for name in attempt.imported_names}

    typos: List[NamingTypo] = []
    for export_name, line in exports:
        # An export some importer already uses by name is correct as written
        if export_name in imported_names:
            continue

        for attempt in attempts:
            for imported in attempt.imported_names:
                if imported in exported_names:
                    continue

                similarity = string_similarity(export_name, imported)
                import_stem_similarity = string_similarity(imported, stem)
                logger.debug(
                    f"{file_path}: export '{export_name}' vs import '{imported}' "
                    f"from {attempt.file_path} = {similarity:.2f}, import vs stem '{stem}' = "
                    f"{import_stem_similarity:.2f}"
                )

                if similarity < 0.5 and import_stem_similarity > 0.7:
                    typos.append(
                        NamingTypo(
                            line=line,
                            original=export_name,
                            suggested=imported,
                            reason=(
                                f"Export name \"{export_name}\" doesn't match import \"{imported}\" "
                                f"which is closer to file name \"{stem}\""
                            ),
                            confidence="high",
                            imported_in=attempt.file_path,
                        )
                    )
                elif _is_abbreviation(export_name, imported):
                    typos.append(
                        NamingTypo(
                            line=line,
                            original=export_name,
                            suggested=imported,
                            reason=(
                                f"Export name \"{export_name}\" is missing letters of \"{imported}\" "
                                f"imported in {attempt.file_path}"
                            ),
                            confidence="high",
                            imported_in=attempt.file_path,
                        )
                    )

                if (
                    len(export_name) <= 5
                    and export_name == export_name.lower()
                    and len(stem) > 5
                    and stem != stem.lower()
                    and import_stem_similarity > 0.7
                    and stem not in exported_names
                ):
                    typos.append(
                        NamingTypo(
                            line=line,
                            original=export_name,
                            suggested=stem,
                            reason=(
                                f"Export name \"{export_name}\" appears to be a typo. File name is "
                                f"\"{stem}\" and imported as \"{imported}\""
                            ),
                            confidence="medium",
                            imported_in=attempt.file_path,
                        )
                    )

    deduped: Dict[tuple, NamingTypo] = {}
    for typo in typos:
        key = (typo.original, typo.suggested)
        existing = deduped.get(key)
        if existing is None or CONFIDENCE_ORDER[typo.confidence] > CONFIDENCE_ORDER[existing.confidence]:
            deduped[key] = typo
    return list(deduped.values())


def apply_naming_fixes(content: str, file_path: str, typos: List[NamingTypo]) -> RepairResult:
    """Rename high-confidence typo exports in place.

    Each original and each suggested name is used at most once, so two
    exports are never renamed onto the same identifier.
    """
    fixed_content = content
    fixes: List[FixDescriptor] = []
    renamed: Set[str] = set()
    taken: Set[str] = set()

    for typo in sorted(typos, key=lambda t: t.line, reverse=True):
        if typo.confidence != "high":
            logger.debug(f"Skipping {typo.confidence}-confidence naming fix in {file_path}: {typo.reason}")
            continue
        if typo.original in renamed or typo.suggested in taken:
            continue

        pattern = re.compile(
            r"(export\s+(?:const|let|var|class|function|interface|type)\s+)" + re.escape(typo.original) + r"\b"
        )
        updated = pattern.sub(lambda m: m.group(1) + typo.suggested, fixed_content)
        if updated == fixed_content:
            continue

        fixed_content = updated
        renamed.add(typo.original)
        taken.add(typo.suggested)
        fixes.append(
            FixDescriptor(
                type="export-name-typo",
                line=typo.line,
                original=typo.original,
                fixed=typo.suggested,
                reason=typo.reason,
            )
        )
        logger.info(f"Fixed export name in {file_path}: {typo.original} -> {typo.suggested}")

    if not fixes:
        return RepairResult.unchanged(content)
    return RepairResult(
        fixed=True,
        content=fixed_content,
        fixes=fixes,
        should_commit=is_material_change(content, fixed_content),
    )


class NamingRepairer:
    """Cross-file export-name repair."""

    def repair(self, content: str, file_path: str, all_files: Iterable[SourceFile]) -> RepairResult:
        """Detect and apply naming fixes; never raises."""
        try:
            typos = detect_export_name_typos(content, file_path, list(all_files))
            if not typos:
                return RepairResult.unchanged(content)
            logger.debug(f"Found {len(typos)} potential naming issue(s) in {file_path}")
            return apply_naming_fixes(content, file_path, typos)
        except Exception as e:
            logger.warning(f"Naming repair failed for {file_path}: {e}")
            return RepairResult.unchanged(content, errors=[str(e)])
