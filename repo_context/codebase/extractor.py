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

"""Tiered symbol extraction.

Each file is routed by its language tier:

- AST: tree-sitter walk over top-level statements. A tree containing error
  nodes counts as a parse failure; the syntax repairer runs once and the
  repaired text is reparsed. If that still fails the file drops to the
  generic tier.
- PATTERN: line-anchored expressions (Python imports, ``def`` and ``class``).
- GENERIC: first-match signature expressions per line.

Extraction never raises; the worst outcome for a file is an empty list.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, List, Optional, Pattern, Tuple

from repo_context.codebase.models import Fix, SourceFile, Symbol, SymbolKind
from repo_context.codebase.tree_sitter_manager import get_parser, parse_source
from repo_context.languages.tiers import LanguageTier, detect_language, get_tier
from repo_context.repair.syntax import SyntaxRepairer

if TYPE_CHECKING:
    from tree_sitter import Node, Tree

logger = logging.getLogger(__name__)

DOCSTRING_LOOKBACK = 10
PYTHON_DOCSTRING_LINES = 20


@dataclass
class ExtractionResult:
    """Symbols found in one file plus the syntax fix that made it parseable."""

    symbols: List[Symbol] = field(default_factory=list)
    fix_applied: Optional[Fix] = None


# ---------------------------------------------------------------------------
# Documentation helpers
# ---------------------------------------------------------------------------

_COMMENT_PREFIX_RE = re.compile(r"^(//|\*|/\*\*?)\s*")


def extract_docstring(lines: List[str], line: int) -> Optional[str]:
    """Join the comment block directly above 1-based ``line``.

    Scans at most ten lines upward, skipping blank lines and bare ``/**`` /
    ``*/`` markers, and stops at the first line of code.
    """
    parts: List[str] = []
    for index in range(line - 2, max(line - DOCSTRING_LOOKBACK, 0) - 1, -1):
        if index >= len(lines):
            continue
        text = lines[index].strip()
        if text in ("", "/**", "*/"):
            continue
        if text.startswith(("//", "*", "/*")):
            parts.insert(0, _COMMENT_PREFIX_RE.sub("", text).rstrip("*/").strip())
        else:
            break
    doc = " ".join(p for p in parts if p).strip()
    return doc or None


def extract_python_docstring(lines: List[str], index: int) -> Optional[str]:
    """Docstring opening on the line after 0-based ``index``."""
    if index + 1 >= len(lines):
        return None
    first = lines[index + 1].strip()
    if not first.startswith(('"""', "'''")):
        return None

    quote = first[:3]
    doc = first[3:]
    if doc.endswith(quote):
        return doc[:-3].strip() or None

    for line in lines[index + 2 : index + PYTHON_DOCSTRING_LINES]:
        if quote in line:
            doc += " " + line[: line.index(quote)].strip()
            break
        doc += " " + line.strip()
    return doc.strip() or None


# ---------------------------------------------------------------------------
# AST tier
# ---------------------------------------------------------------------------

_FUNCTION_VALUE_TYPES = ("arrow_function", "function_expression", "function", "generator_function")


def _text(node: "Node") -> str:
    return node.text.decode("utf-8", errors="replace") if node.text else ""


def _strip_quotes(value: str) -> str:
    return value.strip("'\"`")


def _has_token(node: "Node", token: str) -> bool:
    return any(child.type == token for child in node.children)


def _param_name(node: "Node") -> str:
    kind = node.type
    if kind == "identifier":
        return _text(node)
    if kind in ("required_parameter", "optional_parameter"):
        pattern = node.child_by_field_name("pattern")
        return _param_name(pattern) if pattern is not None else "param"
    if kind == "assignment_pattern":
        left = node.child_by_field_name("left")
        return _param_name(left) if left is not None else "param"
    if kind == "rest_pattern":
        inner = node.named_children[0] if node.named_children else None
        return "..." + (_param_name(inner) if inner is not None else "param")
    return "param"


def _function_params(node: "Node") -> List[str]:
    parameters = node.child_by_field_name("parameters")
    if parameters is None:
        # Arrow functions with a single bare parameter
        single = node.child_by_field_name("parameter")
        return [_param_name(single)] if single is not None else []
    return [_param_name(p) for p in parameters.named_children if p.type != "comment"]


def _signature(name: str, params: List[str], is_async: bool) -> str:
    prefix = "async " if is_async else ""
    return f"{prefix}function {name}({', '.join(params)})"


class _AstSymbolCollector:
    """Walks the top-level statements of a parsed module."""

    def __init__(self, content: str, file_path: str):
        self.file_path = file_path
        self.lines = content.split("\n")
        self.symbols: List[Symbol] = []

    def collect(self, tree: "Tree") -> List[Symbol]:
        for statement in tree.root_node.named_children:
            self._visit(statement)
        return self._finalize()

    def _add(self, name: str, kind: SymbolKind, node: "Node", **fields) -> None:
        line = node.start_point[0] + 1
        fields.setdefault("documentation", extract_docstring(self.lines, line))
        self.symbols.append(Symbol.create(self.file_path, name, kind, line, **fields))

    def _finalize(self) -> List[Symbol]:
        """Order export markers ahead of the declarations they name.

        Symbols merge into the graph by ``file::name`` with the last write
        winning, so a declaration always survives its own export marker.
        """
        declared = {s.name for s in self.symbols if s.kind != SymbolKind.EXPORT}
        exported = {s.name for s in self.symbols if s.kind == SymbolKind.EXPORT}

        markers = [s for s in self.symbols if s.kind == SymbolKind.EXPORT and s.name in declared]
        rest = []
        for symbol in self.symbols:
            if symbol.kind == SymbolKind.EXPORT:
                if symbol.name not in declared:
                    rest.append(symbol)
            elif symbol.name in exported and not symbol.exported and symbol.kind != SymbolKind.IMPORT:
                rest.append(symbol.model_copy(update={"exported": True}))
            else:
                rest.append(symbol)
        return markers + rest

    def _visit(self, node: "Node", exported: bool = False, is_default: bool = False) -> None:
        kind = node.type
        if kind == "import_statement":
            self._import(node)
        elif kind == "export_statement":
            self._export(node)
        elif kind in ("function_declaration", "generator_function_declaration"):
            self._function(node, exported, is_default)
        elif kind in ("class_declaration", "abstract_class_declaration", "class"):
            self._class(node, exported, is_default)
        elif kind in ("lexical_declaration", "variable_declaration"):
            self._variables(node, exported)
        elif kind == "interface_declaration":
            self._named(node, SymbolKind.INTERFACE, exported)
        elif kind in ("type_alias_declaration", "enum_declaration"):
            self._named(node, SymbolKind.TYPE, exported)

    def _import(self, node: "Node") -> None:
        source_node = node.child_by_field_name("source")
        source = _strip_quotes(_text(source_node)) if source_node is not None else None

        # (local name, binds the module default export)
        names: List[Tuple[str, bool]] = []
        for clause in node.named_children:
            if clause.type != "import_clause":
                continue
            for part in clause.named_children:
                if part.type == "identifier":
                    names.append((_text(part), True))
                elif part.type == "namespace_import":
                    names.extend((_text(c), False) for c in part.named_children if c.type == "identifier")
                elif part.type == "named_imports":
                    for spec in part.named_children:
                        if spec.type != "import_specifier":
                            continue
                        imported = spec.child_by_field_name("name")
                        local = spec.child_by_field_name("alias") or imported
                        if local is not None:
                            binds_default = imported is not None and _text(imported) == "default"
                            names.append((_strip_quotes(_text(local)), binds_default))

        for name, is_default in names:
            self._add(name, SymbolKind.IMPORT, node, source=source, is_default=is_default)

    def _export(self, node: "Node") -> None:
        is_default = _has_token(node, "default")
        declaration = node.child_by_field_name("declaration")
        if declaration is not None:
            for name in self._declared_names(declaration):
                self._add(name, SymbolKind.EXPORT, node, exported=True, is_default=is_default)
            self._visit(declaration, exported=True, is_default=is_default)
            return

        if is_default:
            value = node.child_by_field_name("value")
            name = "default"
            if value is not None and value.type == "identifier":
                name = _text(value)
            elif value is not None and value.type in ("class", "function_expression", "function"):
                value_name = value.child_by_field_name("name")
                name = _text(value_name) if value_name is not None else "default"
            self._add(name, SymbolKind.EXPORT, node, exported=True, is_default=True)
            if value is not None and value.type == "class":
                self._class(value, exported=True, is_default=True)
            elif value is not None and value.type in ("function_expression", "function"):
                self._function(value, exported=True, is_default=True)
            return

        for clause in node.named_children:
            if clause.type != "export_clause":
                continue
            for spec in clause.named_children:
                if spec.type != "export_specifier":
                    continue
                exported_as = spec.child_by_field_name("alias") or spec.child_by_field_name("name")
                if exported_as is not None:
                    self._add(_strip_quotes(_text(exported_as)), SymbolKind.EXPORT, node, exported=True)

    def _declared_names(self, declaration: "Node") -> List[str]:
        name_node = declaration.child_by_field_name("name")
        if name_node is not None:
            return [_text(name_node)]
        names = []
        for declarator in declaration.named_children:
            if declarator.type == "variable_declarator":
                target = declarator.child_by_field_name("name")
                if target is not None and target.type == "identifier":
                    names.append(_text(target))
        return names

    def _function(self, node: "Node", exported: bool, is_default: bool = False) -> None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return
        name = _text(name_node)
        params = _function_params(node)
        is_async = _has_token(node, "async")
        self._add(
            name,
            SymbolKind.FUNCTION,
            node,
            params=params,
            is_async=is_async,
            signature=_signature(name, params, is_async),
            exported=exported,
            is_default=is_default,
        )

    def _class(self, node: "Node", exported: bool, is_default: bool = False) -> None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return
        class_name = _text(name_node)
        self._add(
            class_name,
            SymbolKind.CLASS,
            node,
            extends=self._base_class(node),
            exported=exported,
            is_default=is_default,
        )

        body = node.child_by_field_name("body")
        if body is None:
            return
        for member in body.named_children:
            if member.type == "method_definition":
                self._method(member, class_name)

    def _base_class(self, node: "Node") -> Optional[str]:
        for child in node.children:
            if child.type != "class_heritage":
                continue
            for clause in child.named_children:
                if clause.type == "implements_clause":
                    continue
                if clause.type == "extends_clause":
                    value = clause.child_by_field_name("value")
                    if value is None and clause.named_children:
                        value = clause.named_children[0]
                    return _text(value) if value is not None else None
                return _text(clause)
        return None

    def _method(self, member: "Node", owner: str) -> None:
        name_node = member.child_by_field_name("name")
        if name_node is None:
            return
        params = _function_params(member)
        self._add(
            f"{owner}.{_strip_quotes(_text(name_node))}",
            SymbolKind.METHOD,
            member,
            class_name=owner,
            params=params,
            is_async=_has_token(member, "async"),
            is_static=_has_token(member, "static"),
        )

    def _variables(self, node: "Node", exported: bool) -> None:
        declaration_kind = "var"
        kind_node = node.child_by_field_name("kind")
        if kind_node is not None:
            declaration_kind = _text(kind_node)

        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name")
            if name_node is None or name_node.type != "identifier":
                continue
            name = _text(name_node)
            value = declarator.child_by_field_name("value")

            if value is not None and value.type in _FUNCTION_VALUE_TYPES:
                params = _function_params(value)
                is_async = _has_token(value, "async")
                self._add(
                    name,
                    SymbolKind.FUNCTION,
                    node,
                    params=params,
                    is_async=is_async,
                    signature=_signature(name, params, is_async),
                    declaration_kind=declaration_kind,
                    exported=exported,
                )
                continue

            self._add(name, SymbolKind.VARIABLE, node, declaration_kind=declaration_kind, exported=exported)
            if value is not None and value.type == "object":
                self._object_members(name, value)

    def _object_members(self, owner: str, obj: "Node") -> None:
        for member in obj.named_children:
            if member.type == "method_definition":
                self._method(member, owner)
            elif member.type == "pair":
                key = member.child_by_field_name("key")
                value = member.child_by_field_name("value")
                if key is None or value is None or value.type not in _FUNCTION_VALUE_TYPES:
                    continue
                self._add(
                    f"{owner}.{_strip_quotes(_text(key))}",
                    SymbolKind.METHOD,
                    member,
                    class_name=owner,
                    params=_function_params(value),
                    is_async=_has_token(value, "async"),
                )

    def _named(self, node: "Node", kind: SymbolKind, exported: bool) -> None:
        name_node = node.child_by_field_name("name")
        if name_node is not None:
            self._add(_text(name_node), kind, node, exported=exported)


# ---------------------------------------------------------------------------
# Pattern tier (Python)
# ---------------------------------------------------------------------------

_PY_IMPORT_RE = re.compile(r"^(?:from\s+(\S+)\s+)?import\s+(.+)")
_PY_DEF_RE = re.compile(r"^(?:async\s+)?def\s+(\w+)\s*\((.*?)\)")
_PY_CLASS_RE = re.compile(r"^class\s+(\w+)(?:\(.*?\))?:")


def extract_python_symbols(content: str, file_path: str) -> List[Symbol]:
    """Top-level imports, functions and classes of a Python module."""
    symbols: List[Symbol] = []
    lines = content.split("\n")

    for index, line in enumerate(lines):
        line_number = index + 1

        match = _PY_IMPORT_RE.match(line)
        if match:
            for part in match.group(2).split(","):
                name = part.strip().strip("()").split(" as ")[0].strip()
                if name and name != "\\":
                    symbols.append(
                        Symbol.create(file_path, name, SymbolKind.IMPORT, line_number, source=match.group(1))
                    )

        match = _PY_DEF_RE.match(line)
        if match:
            params = [p.strip().split("=")[0].split(":")[0].strip() for p in match.group(2).split(",")]
            symbols.append(
                Symbol.create(
                    file_path,
                    match.group(1),
                    SymbolKind.FUNCTION,
                    line_number,
                    params=[p for p in params if p],
                    is_async=line.startswith("async"),
                    documentation=extract_python_docstring(lines, index),
                )
            )

        match = _PY_CLASS_RE.match(line)
        if match:
            symbols.append(
                Symbol.create(
                    file_path,
                    match.group(1),
                    SymbolKind.CLASS,
                    line_number,
                    documentation=extract_python_docstring(lines, index),
                )
            )

    return symbols


# ---------------------------------------------------------------------------
# Generic tier
# ---------------------------------------------------------------------------

GENERIC_FUNCTION_PATTERNS: Tuple[Tuple[Pattern[str], SymbolKind], ...] = (
    (re.compile(r"function\s+(\w+)\s*\("), SymbolKind.FUNCTION),
    (re.compile(r"def\s+(\w+)\s*\("), SymbolKind.FUNCTION),
    (re.compile(r"(\w+)\s*[:=]\s*function\s*\("), SymbolKind.FUNCTION),
    (re.compile(r"(\w+)\s*[:=]\s*\([^)]*\)\s*=>"), SymbolKind.FUNCTION),
    (re.compile(r"const\s+(\w+)\s*=\s*\([^)]*\)\s*=>"), SymbolKind.FUNCTION),
    # Method shorthand inside a class or object body
    (
        re.compile(
            r"^\s*(?:static\s+)?(?:async\s+)?"
            r"(?!(?:if|for|while|switch|catch|function|return|else)\b)([A-Za-z_$][\w$]*)\s*\([^)]*\)\s*\{"
        ),
        SymbolKind.METHOD,
    ),
)

GENERIC_CLASS_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"class\s+(\w+)"),
    re.compile(r"interface\s+(\w+)"),
    re.compile(r"type\s+(\w+)\s*="),
)


def _first_match(patterns: Iterable[Tuple[Pattern[str], SymbolKind]], line: str):
    for pattern, kind in patterns:
        match = pattern.search(line)
        if match:
            return match.group(1), kind
    return None


def extract_generic_symbols(content: str, file_path: str) -> List[Symbol]:
    """Signature-shaped lines in any language; at most one function and one class per line."""
    symbols: List[Symbol] = []
    for index, line in enumerate(content.split("\n")):
        found = _first_match(GENERIC_FUNCTION_PATTERNS, line)
        if found:
            name, kind = found
            symbols.append(Symbol.create(file_path, name, kind, index + 1))

        found = _first_match(((p, SymbolKind.CLASS) for p in GENERIC_CLASS_PATTERNS), line)
        if found:
            symbols.append(Symbol.create(file_path, found[0], SymbolKind.CLASS, index + 1))
    return symbols


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class SymbolExtractor:
    """Route files to an extraction tier and run repair-and-retry for the AST tier."""

    def __init__(self, repairer: Optional[SyntaxRepairer] = None):
        self.repairer = repairer or SyntaxRepairer()

    def extract(self, file: SourceFile) -> ExtractionResult:
        language = detect_language(file.path)
        config = get_tier(language)
        try:
            if config.tier == LanguageTier.AST and config.tree_sitter_language:
                return self._extract_ast(file, config.tree_sitter_language, config.supports_repair)
            if config.tier == LanguageTier.PATTERN:
                return ExtractionResult(symbols=extract_python_symbols(file.content, file.path))
            return ExtractionResult(symbols=extract_generic_symbols(file.content, file.path))
        except Exception as e:
            logger.warning(f"Symbol extraction failed for {file.path}: {e}")
            return ExtractionResult()

    def _extract_ast(self, file: SourceFile, grammar: str, repairable: bool = True) -> ExtractionResult:
        try:
            get_parser(grammar)
        except (ImportError, AttributeError, ValueError) as e:
            logger.warning(f"No {grammar} grammar for {file.path} ({e}); using pattern extraction")
            return ExtractionResult(symbols=extract_generic_symbols(file.content, file.path))

        tree = parse_source(file.content, grammar)
        if tree is not None:
            return ExtractionResult(symbols=_AstSymbolCollector(file.content, file.path).collect(tree))

        if not repairable:
            logger.warning(f"Failed to parse {file.path}; using pattern extraction")
            return ExtractionResult(symbols=extract_generic_symbols(file.content, file.path))

        logger.warning(f"Failed to parse {file.path}; attempting syntax repair")
        result = self.repairer.smart_fix(file.content, file.path, parse_error="syntax tree contains error nodes")
        if result.fixed:
            tree = parse_source(result.content, grammar)
            if tree is not None:
                logger.info(f"Parsed {file.path} after syntax repair")
                return ExtractionResult(
                    symbols=_AstSymbolCollector(result.content, file.path).collect(tree),
                    fix_applied=result.to_fix(file.path, file.content, "syntax"),
                )

        logger.warning(f"Syntax repair did not make {file.path} parseable; using pattern extraction")
        return ExtractionResult(symbols=extract_generic_symbols(file.content, file.path))
