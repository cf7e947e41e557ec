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

"""Heuristic syntax repair for sources the parser rejects.

Fixes the malformed patterns that show up in half-edited code:

1. ``incomplete-object-declaration``: ``const x =`` followed by an async
   method with no opening brace
2. ``missing-semicolon``: keyword-led statements left unterminated
3. ``missing-comma``: adjacent object-literal members with no separator
4. ``incomplete-type``: ``const x:`` with no annotation (TypeScript)
5. ``balance-brackets``: unmatched ``{ ( [`` closed, stray closers dropped
6. ``trailing-separator``: ``,`` right before ``}`` or ``]``

Bracket balancing runs after terminator insertion and before the final
cleanup, since the earlier steps can add braces. The whole pipeline repeats
until nothing changes, so repairing repaired output is a no-op.

Usage:
    repairer = SyntaxRepairer()
    result = repairer.repair(content, "src/api.js")
    if result.fixed:
        content = result.content
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from repo_context.codebase.models import FixDescriptor
from repo_context.languages.tiers import detect_language
from repo_context.repair.base import RepairResult, RepairStep, StepOutput, is_material_change

logger = logging.getLogger(__name__)

JS_LANGUAGES = frozenset({"javascript", "typescript", "tsx"})
TS_LANGUAGES = frozenset({"typescript", "tsx"})

# Upper bound on pipeline passes; each pass only adds terminators/closers or
# removes separators, so real inputs settle in two.
MAX_PASSES = 5

OPENERS: Dict[str, str] = {"{": "}", "(": ")", "[": "]"}
CLOSERS: Dict[str, str] = {v: k for k, v in OPENERS.items()}
_CLOSER_FIX_TYPES = {
    "}": "missing-closing-brace",
    ")": "missing-closing-paren",
    "]": "missing-closing-bracket",
}


# ---------------------------------------------------------------------------
# Step 1: incomplete object declaration
# ---------------------------------------------------------------------------

_INCOMPLETE_OBJECT_RE = re.compile(
    r"(?P<decl>\b(?:const|let|var)[ \t]+[\w$]+[ \t]*=)[ \t]*\n"
    r"(?P<indent>[ \t]*)async[ \t]+(?!function\b)(?P<name>[\w$]+)[ \t]*\("
)


def _complete_object_declarations(content: str) -> StepOutput:
    fixed, count = _INCOMPLETE_OBJECT_RE.subn(
        lambda m: f"{m.group('decl')} {{\n{m.group('indent')}async {m.group('name')}(",
        content,
    )
    return fixed, [
        FixDescriptor(
            type="incomplete-object-declaration",
            description="Fixed incomplete object literal after declaration",
            count=count,
        )
    ]


# ---------------------------------------------------------------------------
# Step 2: statement terminators
# ---------------------------------------------------------------------------

_TERMINATED_KEYWORD_RE = re.compile(
    r"^(?:import|export|return|throw|break|continue|type|interface)\s+"
)
_COMPLETE_ASSIGNMENT_RE = re.compile(r"^(?:const|let|var)\s+[\w$]+\s*=\s*.*[^=,\s]$")

# A line ending in one of these is closed already or continues on the next line
_OPEN_ENDINGS = (
    ";", "{", "}", "[", "(", "=", ",", "+", "-", "*", "/", "%",
    "&", "|", "?", ":", ".", "<", ">", "`", "\\", "!",
)
_CONTINUATION_STARTS = (
    "async ", "function ", ".", "?", ":", "{", "+", "-", "*", "/",
    "&&", "||", "=", ")", "]", ",",
)


def _is_comment(trimmed: str) -> bool:
    return trimmed.startswith(("//", "/*", "*"))


def _needs_terminator(trimmed: str, next_trimmed: str) -> bool:
    if not trimmed or _is_comment(trimmed) or trimmed.endswith(_OPEN_ENDINGS):
        return False
    if next_trimmed.startswith(_CONTINUATION_STARTS):
        return False
    return bool(
        _TERMINATED_KEYWORD_RE.match(trimmed) or _COMPLETE_ASSIGNMENT_RE.match(trimmed)
    )


def _scan_terminators(content: str) -> List[int]:
    lines = content.split("\n")
    missing = []
    for index, line in enumerate(lines):
        next_trimmed = lines[index + 1].strip() if index + 1 < len(lines) else ""
        if _needs_terminator(line.strip(), next_trimmed):
            missing.append(index)
    return missing


def _insert_terminators(content: str) -> StepOutput:
    lines = content.split("\n")
    fixes: List[FixDescriptor] = []
    for index in _scan_terminators(content):
        before = lines[index]
        after = before.rstrip() + ";"
        lines[index] = after
        fixes.append(
            FixDescriptor(type="missing-semicolon", line=index + 1, before=before, after=after)
        )
    return "\n".join(lines), fixes


# ---------------------------------------------------------------------------
# Step 3: member separators
# ---------------------------------------------------------------------------

_MEMBER_AFTER_BLOCK_RE = re.compile(
    r"\}(?P<gap>[ \t]*)\n(?P<indent>[ \t]*)"
    r"(?=(?:[\w$]+[ \t]*:(?!:)"
    r"|(?:async[ \t]+)?(?:get[ \t]+|set[ \t]+|\*[ \t]*)?"
    r"(?!(?:if|for|while|switch|catch|function|return)\b)[\w$]+[ \t]*\())"
)
_MEMBER_AFTER_PROPERTY_RE = re.compile(
    r"^(?P<head>[ \t]*[\w$]+[ \t]*:[ \t]*(?:(?!//)[^\n])*?[^,\s{(\[;:])(?P<gap>[ \t]*)$"
    r"(?=\n[ \t]*[\w$]+[ \t]*:(?!:))",
    re.MULTILINE,
)
_RETURN_TAIL_RE = re.compile(r"\breturn$")


def _enclosing_open_brace(content: str, pos: int) -> Optional[int]:
    """Index of the unclosed ``{`` containing ``pos``, scanning backwards."""
    depth = 0
    for index in range(pos - 1, -1, -1):
        char = content[index]
        if char == "}":
            depth += 1
        elif char == "{":
            if depth == 0:
                return index
            depth -= 1
    return None


def _in_object_literal(content: str, pos: int) -> bool:
    """Whether ``pos`` sits directly inside an object literal body.

    The container is an object literal when the text before its ``{`` ends
    in an expression position (``=``, ``(``, ``,``, ``:``, ``[``, ``?`` or
    ``return``). Class bodies and blocks never get separators.
    """
    brace = _enclosing_open_brace(content, pos)
    if brace is None:
        return False
    tail = content[max(0, brace - 80) : brace].rstrip()
    if tail.endswith(("=>", "==")):
        return False
    return tail.endswith(("=", "(", ",", ":", "[", "?")) or bool(_RETURN_TAIL_RE.search(tail))


def _block_separator_positions(content: str) -> List[re.Match]:
    # +1 so the scan starts at the member's own closing brace
    return [
        m
        for m in _MEMBER_AFTER_BLOCK_RE.finditer(content)
        if _in_object_literal(content, m.start() + 1)
    ]


def _property_separator_positions(content: str) -> List[re.Match]:
    return [
        m
        for m in _MEMBER_AFTER_PROPERTY_RE.finditer(content)
        if _in_object_literal(content, m.start())
    ]


def _has_missing_separators(content: str) -> bool:
    return bool(_block_separator_positions(content) or _property_separator_positions(content))


def _insert_separators(content: str) -> StepOutput:
    inserts = [m.start() + 1 for m in _block_separator_positions(content)]
    inserts += [m.end("head") for m in _property_separator_positions(content)]
    if not inserts:
        return content, []

    pieces = []
    last = 0
    for position in sorted(set(inserts)):
        pieces.append(content[last:position])
        pieces.append(",")
        last = position
    pieces.append(content[last:])

    return "".join(pieces), [
        FixDescriptor(
            type="missing-comma",
            description="Added missing commas in object literals",
            count=len(set(inserts)),
        )
    ]


# ---------------------------------------------------------------------------
# Step 4: incomplete type annotations (TypeScript)
# ---------------------------------------------------------------------------

_INCOMPLETE_TYPE_RE = re.compile(
    r"^(?P<head>[ \t]*(?:export[ \t]+)?(?:const|let|var)[ \t]+[\w$]+[ \t]*:)[ \t]*$",
    re.MULTILINE,
)


def _complete_types(content: str) -> StepOutput:
    fixed, count = _INCOMPLETE_TYPE_RE.subn(lambda m: f"{m.group('head')} any", content)
    return fixed, [
        FixDescriptor(
            type="incomplete-type",
            description='Added default "any" type for incomplete annotations',
            count=count,
        )
    ]


# ---------------------------------------------------------------------------
# Step 5: bracket balance
# ---------------------------------------------------------------------------

_CLOSING_LINE_RE = re.compile(r"^\},?$")


def scan_brackets(content: str) -> Tuple[List[int], str]:
    """Find stray closers and the closers needed to finish the content.

    Each closer pops the nearest open bracket of its own type; closers with
    no such opener are stray.

    Returns:
        Tuple of (indices of stray closers, closing sequence in stack order)
    """
    stack: List[str] = []
    stray: List[int] = []
    for index, char in enumerate(content):
        if char in OPENERS:
            stack.append(char)
        elif char in CLOSERS:
            opener = CLOSERS[char]
            for depth in range(len(stack) - 1, -1, -1):
                if stack[depth] == opener:
                    del stack[depth]
                    break
            else:
                stray.append(index)
    return stray, "".join(OPENERS[char] for char in reversed(stack))


def _is_unbalanced(content: str) -> bool:
    stray, closing = scan_brackets(content)
    return bool(stray or closing)


def _balance_brackets(content: str) -> StepOutput:
    stray, closing = scan_brackets(content)
    fixes: List[FixDescriptor] = []

    if stray:
        stray_set = set(stray)
        content = "".join(char for index, char in enumerate(content) if index not in stray_set)
        fixes.append(
            FixDescriptor(
                type="extra-closing-bracket",
                description="Removed closing brackets with no matching opener",
                count=len(stray),
            )
        )

    if closing:
        body = content.rstrip()
        trailing_newline = "\n" if content.endswith("\n") else ""
        last_line = body.split("\n")[-1].strip() if body else ""
        # A trailing "}" or "}," is the end of an object member; close the
        # object literal itself as a statement
        terminator = ";" if closing.endswith("}") and _CLOSING_LINE_RE.match(last_line) else ""
        separator = "\n" if body else ""
        content = f"{body}{separator}{closing}{terminator}{trailing_newline}"
        for closer, fix_type in _CLOSER_FIX_TYPES.items():
            count = closing.count(closer)
            if count:
                fixes.append(FixDescriptor(type=fix_type, count=count))

    return content, fixes


# ---------------------------------------------------------------------------
# Step 6: trailing separators
# ---------------------------------------------------------------------------

_TRAILING_SEPARATOR_RE = re.compile(r",(?P<rest>\s*[}\]])")


def _strip_trailing_separators(content: str) -> StepOutput:
    fixed, count = _TRAILING_SEPARATOR_RE.subn(r"\g<rest>", content)
    return fixed, [
        FixDescriptor(
            type="trailing-separator",
            description="Removed separators before closing brackets",
            count=count,
        )
    ]


SYNTAX_REPAIR_STEPS: Tuple[RepairStep, ...] = (
    RepairStep(
        name="incomplete-object-declaration",
        precondition=lambda c: bool(_INCOMPLETE_OBJECT_RE.search(c)),
        transform=_complete_object_declarations,
        languages=JS_LANGUAGES,
    ),
    RepairStep(
        name="missing-semicolon",
        precondition=lambda c: bool(_scan_terminators(c)),
        transform=_insert_terminators,
        languages=JS_LANGUAGES,
    ),
    RepairStep(
        name="missing-comma",
        precondition=_has_missing_separators,
        transform=_insert_separators,
        languages=JS_LANGUAGES,
    ),
    RepairStep(
        name="incomplete-type",
        precondition=lambda c: bool(_INCOMPLETE_TYPE_RE.search(c)),
        transform=_complete_types,
        languages=TS_LANGUAGES,
    ),
    RepairStep(
        name="balance-brackets",
        precondition=_is_unbalanced,
        transform=_balance_brackets,
    ),
    RepairStep(
        name="trailing-separator",
        precondition=lambda c: bool(_TRAILING_SEPARATOR_RE.search(c)),
        transform=_strip_trailing_separators,
    ),
)


class SyntaxRepairer:
    """Runs the repair pipeline for a file.

    Attributes:
        steps: Ordered repair steps
        max_passes: Bound on pipeline repetitions
    """

    def __init__(self, steps: Tuple[RepairStep, ...] = SYNTAX_REPAIR_STEPS, max_passes: int = MAX_PASSES):
        self.steps = steps
        self.max_passes = max_passes

    def repair(self, content: str, file_path: str, language: Optional[str] = None) -> RepairResult:
        """Repair ``content``; never raises.

        Args:
            content: Source text
            file_path: Path used for language detection and logging
            language: Override the detected language

        Returns:
            RepairResult; ``fixed`` is False when nothing changed or the
            repairer failed internally (``content`` is then the original)
        """
        language = language or detect_language(file_path)
        try:
            current = content
            fixes: List[FixDescriptor] = []
            for _ in range(self.max_passes):
                changed = False
                for step in self.steps:
                    updated, step_fixes = step.run(current, language)
                    if updated != current:
                        current = updated
                        fixes.extend(step_fixes)
                        changed = True
                if not changed:
                    break
            else:
                logger.warning(f"Syntax repair did not settle for {file_path} after {self.max_passes} passes")
        except Exception as e:
            logger.warning(f"Failed to fix syntax in {file_path}: {e}")
            return RepairResult.unchanged(content, errors=[str(e)])

        if current == content:
            return RepairResult.unchanged(content)

        should_commit = is_material_change(content, current)
        logger.info(f"Applied {len(fixes)} syntax fix(es) to {file_path}")
        return RepairResult(fixed=True, content=current, fixes=fixes, should_commit=should_commit)

    def smart_fix(self, content: str, file_path: str, parse_error: Optional[str] = None) -> RepairResult:
        """Log what looks wrong, then repair.

        This is the entry point used by the extractor after a failed parse.
        """
        language = detect_language(file_path)
        if parse_error:
            logger.debug(f"Parse error in {file_path}: {parse_error}")

        detected = detect_syntax_errors(content, language)
        if detected:
            logger.info(f"Syntax issues in {file_path}:\n{create_error_report(detected)}")

        result = self.repair(content, file_path, language)
        if result.fixed:
            for fix in result.fixes:
                location = f"line {fix.line}" if fix.line else (fix.description or fix.count or "")
                logger.debug(f"  {fix.type}: {location}")
            if not validate_fix(content, result.content):
                logger.warning(f"Syntax repair of {file_path} changed the file substantially")
        return result


def detect_syntax_errors(content: str, language: str = "javascript") -> List[Dict[str, object]]:
    """Detect syntax problems without fixing them.

    Returns:
        List of issue dicts with ``type`` and ``count`` keys
    """
    errors: List[Dict[str, object]] = []

    balance = {opener: 0 for opener in OPENERS}
    for char in content:
        if char in OPENERS:
            balance[char] += 1
        elif char in CLOSERS:
            balance[CLOSERS[char]] -= 1

    names = {"{": "brace", "[": "bracket", "(": "paren"}
    for opener, count in balance.items():
        if count > 0:
            errors.append({"type": f"unclosed-{names[opener]}", "count": count})
        elif count < 0:
            errors.append({"type": f"extra-closing-{names[opener]}", "count": -count})

    if language in JS_LANGUAGES:
        missing = len(_scan_terminators(content))
        if missing:
            errors.append({"type": "missing-semicolons", "count": missing, "severity": "warning"})

    return errors


def create_error_report(errors: List[Dict[str, object]]) -> str:
    """Render detected issues as an indented report."""
    if not errors:
        return "No syntax errors detected"

    labels = {
        "unclosed-brace": "unclosed brace(s) {",
        "unclosed-bracket": "unclosed bracket(s) [",
        "unclosed-paren": "unclosed parenthesis(es) (",
        "extra-closing-brace": "extra closing brace(s) }",
        "extra-closing-bracket": "extra closing bracket(s) ]",
        "extra-closing-paren": "extra closing parenthesis(es) )",
        "missing-semicolons": "missing semicolon(s) (warning)",
    }
    report = [f"Found {len(errors)} syntax issue(s):"]
    for error in errors:
        label = labels.get(str(error["type"]), str(error["type"]))
        report.append(f"  - {error.get('count', '')} {label}")
    return "\n".join(report)


def validate_fix(original: str, fixed: str) -> bool:
    """Sanity check a repair: few added lines and bracket counts near the original."""
    original_lines = original.count("\n") + 1
    fixed_lines = fixed.count("\n") + 1
    if fixed_lines > original_lines * 1.1 + 1:
        return False

    for bracket in "{}[]()":
        if abs(fixed.count(bracket) - original.count(bracket)) > 3:
            return False
    return True
