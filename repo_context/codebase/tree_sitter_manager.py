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


from typing import TYPE_CHECKING, Dict, Optional, Tuple

from tree_sitter import Language, Parser

if TYPE_CHECKING:
    from tree_sitter import Tree


# Pre-compiled grammar packages for tree-sitter 0.25+
# Format: "language_name": ("module_name", "function_name")
LANGUAGE_MODULES: Dict[str, Tuple[str, str]] = {
    "javascript": ("tree_sitter_javascript", "language"),
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "tsx": ("tree_sitter_typescript", "language_tsx"),  # TypeScript + JSX
}

_language_cache: Dict[str, Language] = {}
_parser_cache: Dict[str, Parser] = {}


def get_language(language: str) -> Language:
    """
    Loads a tree-sitter Language object using pre-compiled language packages.

    Raises ValueError for grammars not listed in LANGUAGE_MODULES and
    ImportError when the grammar package is not installed.
    """
    if language in _language_cache:
        return _language_cache[language]

    module_info = LANGUAGE_MODULES.get(language)
    if not module_info:
        raise ValueError(f"Unsupported language for tree-sitter: {language}")

    module_name, func_name = module_info

    try:
        language_module = __import__(module_name)
        lang_func = getattr(language_module, func_name)
        lang_obj = lang_func()
        # Grammar packages return a PyCapsule; wrap via Language
        lang = Language(lang_obj) if not isinstance(lang_obj, Language) else lang_obj

        _language_cache[language] = lang
        return lang

    except ImportError:
        raise ImportError(
            f"Language package '{module_name}' not installed. "
            f"Install it with: pip install {module_name.replace('_', '-')}"
        )
    except AttributeError:
        raise AttributeError(
            f"Language module '{module_name}' does not have function '{func_name}'. "
            f"Check the tree-sitter package version and update LANGUAGE_MODULES."
        )


def get_parser(language: str) -> Parser:
    """
    Returns a tree-sitter Parser initialized with the specified language.

    Parsers are cached per grammar; parsing is synchronous and the pipeline is
    single-threaded, so sharing one parser instance is safe.
    """
    if language in _parser_cache:
        return _parser_cache[language]

    parser = Parser(get_language(language))

    _parser_cache[language] = parser
    return parser


def parse_source(content: str, language: str) -> Optional["Tree"]:
    """Parse source text and return the tree only when it is error-free.

    Tree-sitter never throws on malformed input; it produces ERROR and
    MISSING nodes instead. Those trees are reported as a parse failure
    (``None``) so callers can run repair-and-retry.
    """
    tree = get_parser(language).parse(content.encode("utf-8"))
    if tree.root_node.has_error:
        return None
    return tree
