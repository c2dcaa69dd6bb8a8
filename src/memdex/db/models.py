"""Domain models for the memdex database layer.

Each persisted record kind carries a ``kind`` tag and decodes itself from a
``sqlite3.Row`` via ``from_row()``. Decoders validate column shapes and raise
``CorruptState`` instead of handing malformed data to callers.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar


class CorruptState(ValueError):
    """A stored row does not have the shape its record kind requires."""


class RecordKind(str, Enum):
    INDEXED_FILE = "indexed_file"
    CHUNK = "chunk"
    TOOL = "tool"
    CURATED_DOC = "curated_doc"


class ToolType(str, Enum):
    INTEGRATION = "integration"
    WORKFLOW = "workflow"


# ------------------------------------------------------------------
# Column codecs
# ------------------------------------------------------------------


def encode_list(values: list[Any]) -> str:
    return json.dumps(list(values))


def _get(row: sqlite3.Row, col: str, kind: RecordKind) -> Any:
    try:
        return row[col]
    except (IndexError, KeyError) as exc:
        raise CorruptState(f"{kind.value}: missing column '{col}'") from exc


def _text(row: sqlite3.Row, col: str, kind: RecordKind, *, nullable: bool = False) -> str | None:
    value = _get(row, col, kind)
    if value is None and nullable:
        return None
    if not isinstance(value, str):
        raise CorruptState(f"{kind.value}.{col}: expected text, got {value!r}")
    return value


def _int(row: sqlite3.Row, col: str, kind: RecordKind) -> int:
    value = _get(row, col, kind)
    if not isinstance(value, int) or isinstance(value, bool):
        raise CorruptState(f"{kind.value}.{col}: expected integer, got {value!r}")
    return value


def _real(row: sqlite3.Row, col: str, kind: RecordKind) -> float:
    value = _get(row, col, kind)
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise CorruptState(f"{kind.value}.{col}: expected number, got {value!r}")
    return float(value)


def _json(row: sqlite3.Row, col: str, kind: RecordKind) -> Any:
    raw = _text(row, col, kind)
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CorruptState(f"{kind.value}.{col}: invalid JSON") from exc


def _json_list(row: sqlite3.Row, col: str, kind: RecordKind, *, strings: bool = True) -> list:
    value = _json(row, col, kind)
    if not isinstance(value, list):
        raise CorruptState(f"{kind.value}.{col}: expected JSON list, got {type(value).__name__}")
    if strings and not all(isinstance(v, str) for v in value):
        raise CorruptState(f"{kind.value}.{col}: expected list of strings")
    return value


# ------------------------------------------------------------------
# Records
# ------------------------------------------------------------------


@dataclass
class IndexedFile:
    """Registry row: the sole authority for "has this file changed"."""

    kind: ClassVar[RecordKind] = RecordKind.INDEXED_FILE

    file: str
    content_hash: str
    chunk_count: int
    file_type: str = "other"
    priority: float = 0.5
    indexed_at: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> IndexedFile:
        k = cls.kind
        return cls(
            file=_text(row, "file", k),
            content_hash=_text(row, "content_hash", k),
            chunk_count=_int(row, "chunk_count", k),
            file_type=_text(row, "file_type", k),
            priority=_real(row, "priority", k),
            indexed_at=_text(row, "indexed_at", k, nullable=True),
        )


@dataclass
class Chunk:
    kind: ClassVar[RecordKind] = RecordKind.CHUNK

    file: str
    line_start: int
    line_end: int
    content: str
    content_hash: str
    chunk_index: int
    section_header: str | None = None
    rowid: int | None = None  # set after insert; None for unsaved chunks

    @property
    def id(self) -> str:
        return f"{self.file}:{self.line_start}-{self.line_end}:{self.chunk_index}"

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Chunk:
        k = cls.kind
        chunk = cls(
            file=_text(row, "file", k),
            line_start=_int(row, "line_start", k),
            line_end=_int(row, "line_end", k),
            content=_text(row, "content", k),
            content_hash=_text(row, "content_hash", k),
            chunk_index=_int(row, "chunk_index", k),
            section_header=_text(row, "section_header", k, nullable=True),
            rowid=_int(row, "rowid", k),
        )
        if chunk.line_start < 1 or chunk.line_end < chunk.line_start:
            raise CorruptState(
                f"chunk: invalid line span {chunk.line_start}-{chunk.line_end} in {chunk.file}"
            )
        return chunk


@dataclass
class ToolRecord:
    """Normalized descriptor of an integration operation or workflow document."""

    kind: ClassVar[RecordKind] = RecordKind.TOOL

    id: str
    name: str
    type: ToolType
    source: str
    description: str = ""
    domain: str = "general"
    keywords: list[str] = field(default_factory=list)
    parameters: dict[str, Any] = field(default_factory=dict)
    examples: list[str] = field(default_factory=list)
    priority: float = 0.5
    use_count: int = 0
    last_used: str | None = None
    content_hash: str = ""

    def hash_payload(self) -> dict[str, Any]:
        """Externally observable fields; usage counters are excluded."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "source": self.source,
            "description": self.description,
            "domain": self.domain,
            "keywords": self.keywords,
            "parameters": self.parameters,
            "examples": self.examples,
            "priority": self.priority,
        }

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> ToolRecord:
        k = cls.kind
        raw_type = _text(row, "type", k)
        try:
            tool_type = ToolType(raw_type)
        except ValueError as exc:
            raise CorruptState(f"tool.type: unknown value {raw_type!r}") from exc
        parameters = _json(row, "parameters", k)
        if not isinstance(parameters, dict):
            raise CorruptState("tool.parameters: expected JSON object")
        return cls(
            id=_text(row, "id", k),
            name=_text(row, "name", k),
            type=tool_type,
            source=_text(row, "source", k),
            description=_text(row, "description", k),
            domain=_text(row, "domain", k),
            keywords=_json_list(row, "keywords", k),
            parameters=parameters,
            examples=_json_list(row, "examples", k),
            priority=_real(row, "priority", k),
            use_count=_int(row, "use_count", k),
            last_used=_text(row, "last_used", k, nullable=True),
            content_hash=_text(row, "content_hash", k),
        )


@dataclass
class CuratedDoc:
    """Hand-authored reference entry; read-only at query time."""

    kind: ClassVar[RecordKind] = RecordKind.CURATED_DOC

    id: str
    tool_name: str
    tool_type: str
    description: str = ""
    full_documentation: str = ""
    service: str | None = None
    category: str | None = None
    operations: list[str] = field(default_factory=list)
    # Plain strings, or {"wrong": ..., "correct": ...} pairs.
    examples: list[Any] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    priority: float = 0.5
    token_count: int = 0

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> CuratedDoc:
        k = cls.kind
        examples = _json_list(row, "examples", k, strings=False)
        if not all(isinstance(e, (str, dict)) for e in examples):
            raise CorruptState("curated_doc.examples: expected strings or objects")
        return cls(
            id=_text(row, "id", k),
            tool_name=_text(row, "tool_name", k),
            tool_type=_text(row, "tool_type", k),
            service=_text(row, "service", k, nullable=True),
            category=_text(row, "category", k, nullable=True),
            description=_text(row, "description", k),
            full_documentation=_text(row, "full_documentation", k),
            operations=_json_list(row, "operations", k),
            examples=examples,
            keywords=_json_list(row, "keywords", k),
            priority=_real(row, "priority", k),
            token_count=_int(row, "token_count", k),
        )
