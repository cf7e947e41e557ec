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

"""Data model for the symbol graph and the embedding index.

Everything here is a pydantic model so both artifacts round-trip through a
single JSON document per repository (``model_dump_json`` /
``model_validate_json``).

Ownership:
    - Symbol: created by the extractor, immutable, owned by SymbolGraph
    - FileRecord: derived from a file's symbols during assembly
    - Edge: directed, not deduplicated, target may be unresolved
    - EmbeddingRecord: one per symbol plus one ``file::<path>`` record per file
"""

from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def make_symbol_id(file_path: str, symbol_name: str) -> str:
    """Unified symbol id: ``<file>::<name>``."""
    return f"{file_path}::{symbol_name}"


def make_file_record_id(file_path: str) -> str:
    """Id of the synthetic file-level embedding record."""
    return f"file::{file_path}"


class SymbolKind(str, Enum):
    """Symbol types that we track."""

    FUNCTION = "function"
    CLASS = "class"
    METHOD = "method"
    VARIABLE = "variable"
    IMPORT = "import"
    EXPORT = "export"
    INTERFACE = "interface"
    TYPE = "type"


class SourceFile(BaseModel):
    """A ``{path, content}`` record handed over by the repository scanner."""

    path: str
    content: str


class Symbol(BaseModel):
    """A named code entity with location and metadata."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    kind: SymbolKind
    file: str
    line: int
    params: Optional[List[str]] = None
    is_async: Optional[bool] = None
    is_static: Optional[bool] = None
    class_name: Optional[str] = None  # enclosing class/object for methods
    documentation: Optional[str] = None
    signature: Optional[str] = None
    source: Optional[str] = None  # module specifier for imports
    extends: Optional[str] = None  # base class for classes
    declaration_kind: Optional[str] = None  # var / let / const
    exported: bool = False
    is_default: bool = False

    @classmethod
    def create(cls, file: str, name: str, kind: SymbolKind, line: int, **fields) -> "Symbol":
        """Build a symbol with its unified id."""
        return cls(id=make_symbol_id(file, name), name=name, kind=kind, file=file, line=line, **fields)


class FileRecord(BaseModel):
    """Metadata about one analyzed file."""

    path: str
    language: str
    symbol_count: int
    size: int
    imports: List[Symbol] = Field(default_factory=list)
    exports: List[Symbol] = Field(default_factory=list)


class ResolvedTarget(BaseModel):
    """Edge target that names a symbol present in the graph."""

    kind: Literal["resolved"] = "resolved"
    symbol_id: str

    @property
    def ref(self) -> str:
        return self.symbol_id


class UnresolvedTarget(BaseModel):
    """Edge target that could not be matched to a graph symbol.

    Usually an external package (``react::useState``) or a module the
    analysis did not include.
    """

    kind: Literal["unresolved"] = "unresolved"
    specifier: str

    @property
    def ref(self) -> str:
        return self.specifier


EdgeTarget = Annotated[Union[ResolvedTarget, UnresolvedTarget], Field(discriminator="kind")]


class EdgeType(str, Enum):
    IMPORTS = "imports"
    EXTENDS = "extends"


class Edge(BaseModel):
    """Directed relationship between a symbol and a target."""

    source: str  # symbol id
    target: EdgeTarget
    type: EdgeType

    @property
    def is_resolved(self) -> bool:
        return isinstance(self.target, ResolvedTarget)


class FixDescriptor(BaseModel):
    """One applied repair."""

    type: str
    description: Optional[str] = None
    line: Optional[int] = None
    count: Optional[int] = None
    before: Optional[str] = None
    after: Optional[str] = None
    original: Optional[str] = None  # naming fixes: old export name
    fixed: Optional[str] = None  # naming fixes: new export name
    reason: Optional[str] = None


class Fix(BaseModel):
    """Repaired file content the external workflow may commit."""

    file_path: str
    original_content: str
    fixed_content: str
    fixes: List[FixDescriptor] = Field(default_factory=list)
    should_commit: bool = False
    stage: Literal["syntax", "naming"] = "syntax"


class GraphMetadata(BaseModel):
    total_symbols: int = 0
    total_files: int = 0
    build_time: float = 0.0
    overwrites: int = 0  # symbol ids replaced by a later symbol with the same file::name


class SymbolGraph(BaseModel):
    """Repository-wide symbol table, file table and relationship edges.

    Built once per run by the GraphAssembler; read-only afterwards.
    """

    symbols: Dict[str, Symbol] = Field(default_factory=dict)
    files: Dict[str, FileRecord] = Field(default_factory=dict)
    edges: List[Edge] = Field(default_factory=list)
    syntax_fixes: List[Fix] = Field(default_factory=list)
    metadata: GraphMetadata = Field(default_factory=GraphMetadata)

    def symbols_in_file(self, file_path: str) -> List[Symbol]:
        return [s for s in self.symbols.values() if s.file == file_path]


class EmbeddingRecord(BaseModel):
    """Stored vector plus the metadata needed to present a match."""

    id: str
    symbol_name: str
    symbol_type: str  # a SymbolKind value, or "file"
    file: str
    line: int
    vector: List[float]
    text: str
    documentation: Optional[str] = None
    signature: Optional[str] = None
    language: Optional[str] = None  # file records only
    symbol_count: Optional[int] = None  # file records only


class SearchResult(BaseModel):
    """An EmbeddingRecord without its vector, scored against a query."""

    id: str
    symbol_name: str
    symbol_type: str
    file: str
    line: int
    text: str
    similarity: float
    documentation: Optional[str] = None
    signature: Optional[str] = None
    language: Optional[str] = None
    symbol_count: Optional[int] = None

    @classmethod
    def from_record(cls, record: EmbeddingRecord, similarity: float) -> "SearchResult":
        return cls(similarity=similarity, **record.model_dump(exclude={"vector"}))


class IndexMetadata(BaseModel):
    total_embeddings: int = 0
    build_time: float = 0.0
    model: str
    dimension: int


class EmbeddingIndex(BaseModel):
    """All vectors for one repository; every vector shares ``metadata.dimension``."""

    repo_id: str
    embeddings: List[EmbeddingRecord] = Field(default_factory=list)
    metadata: IndexMetadata
