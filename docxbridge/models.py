"""Data models for the docx-bridge canonical block representation.

These models represent a converted document independently of its source
format (HTML, HWPML or a decoded legacy paragraph stream), serving as the
bridge between normalization and OOXML serialization.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


MAX_LIST_LEVEL = 8


def round_half_up(value: float) -> int:
    """Round *value* to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


class Alignment(Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"
    JUSTIFY = "justify"


class ListKind(Enum):
    BULLET = "bullet"
    NUMBER = "number"


# ── Inline formatting ───────────────────────────────────────────────


@dataclass(frozen=True)
class Style:
    """Inline formatting where every field may be left unset (``None``).

    An unset field inherits from the enclosing scope when styles are merged
    (see :func:`docxbridge.styles.merge_style`).
    """
    bold: Optional[bool] = None
    italic: Optional[bool] = None
    underline: Optional[bool] = None
    font: Optional[str] = None
    size: Optional[float] = None  # points

    @property
    def half_points(self) -> Optional[int]:
        """Font size as serialized (half-points, minimum 1), or ``None``."""
        if self.size is None or not math.isfinite(self.size):
            return None
        return max(1, round_half_up(self.size * 2))

    def is_plain(self) -> bool:
        return (
            self.bold is None
            and self.italic is None
            and self.underline is None
            and self.font is None
            and self.size is None
        )


@dataclass
class TextRun:
    """A styled text fragment or a hard line break, never both."""
    text: Optional[str] = None
    is_break: bool = False
    style: Style = field(default_factory=Style)

    def __post_init__(self) -> None:
        if self.is_break and self.text:
            raise ValueError("A run cannot carry both text and a line break")

    @classmethod
    def of(cls, text: str, style: Style | None = None) -> TextRun:
        return cls(text=text, style=style or Style())

    @classmethod
    def line_break(cls, style: Style | None = None) -> TextRun:
        return cls(is_break=True, style=style or Style())


# ── Block-level elements ────────────────────────────────────────────


@dataclass(frozen=True)
class ListInfo:
    """List membership of a paragraph."""
    kind: ListKind = ListKind.BULLET
    level: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.level <= MAX_LIST_LEVEL:
            raise ValueError(
                f"List level must be between 0 and {MAX_LIST_LEVEL}: {self.level}"
            )


@dataclass
class Paragraph:
    """A paragraph composed of styled runs."""
    runs: list[TextRun] = field(default_factory=list)
    align: Optional[Alignment] = None
    list_info: Optional[ListInfo] = None

    @property
    def text(self) -> str:
        return "".join("\n" if r.is_break else (r.text or "") for r in self.runs)

    @classmethod
    def empty(cls) -> Paragraph:
        return cls(runs=[TextRun.of("")])


@dataclass
class Cell:
    """A table cell.

    ``row_span == 0`` marks a vertical-merge continuation placeholder: the
    cell is merged with the cell directly above and carries no content.
    ``column`` is only meaningful on raw (not yet normalized) cells.
    """
    blocks: list[Block] = field(default_factory=list)
    col_span: Optional[int] = None
    row_span: Optional[int] = None
    width_twips: Optional[int] = None
    column: Optional[int] = None

    @property
    def is_continuation(self) -> bool:
        return self.row_span == 0


@dataclass
class Row:
    cells: list[Cell] = field(default_factory=list)


@dataclass
class Table:
    """A table of rows; after normalization the rows form a merged grid."""
    rows: list[Row] = field(default_factory=list)
    column_widths: Optional[list[int]] = None  # twips
    has_borders: bool = False

    @property
    def column_count(self) -> int:
        return max(
            (sum(c.col_span or 1 for c in row.cells) for row in self.rows),
            default=0,
        )


# ── Content type union ──────────────────────────────────────────────

Block = Paragraph | Table


# ── Document structure ──────────────────────────────────────────────


@dataclass
class Metadata:
    """Document-level metadata attached to the output package."""
    version: Optional[str] = None
    title: Optional[str] = None
    author: Optional[str] = None
    pages: Optional[int] = None

    def is_empty(self) -> bool:
        return (
            self.version is None
            and self.title is None
            and self.author is None
            and self.pages is None
        )

    def merged_with(self, other: Metadata) -> Metadata:
        """Return a copy whose unset fields are filled from *other*."""
        return Metadata(
            version=self.version if self.version is not None else other.version,
            title=self.title if self.title is not None else other.title,
            author=self.author if self.author is not None else other.author,
            pages=self.pages if self.pages is not None else other.pages,
        )


@dataclass
class Document:
    """The complete block representation of a converted document."""
    blocks: list[Block] = field(default_factory=list)

    def summary(self) -> dict:
        """Return a summary of the document structure."""
        stats: dict = {
            "paragraphs": 0,
            "list_items": 0,
            "tables": 0,
            "rows": 0,
            "merged_cells": 0,
        }

        def visit(blocks: list[Block]) -> None:
            for block in blocks:
                match block:
                    case Paragraph():
                        stats["paragraphs"] += 1
                        if block.list_info is not None:
                            stats["list_items"] += 1
                    case Table():
                        stats["tables"] += 1
                        stats["rows"] += len(block.rows)
                        for row in block.rows:
                            for cell in row.cells:
                                if cell.is_continuation:
                                    stats["merged_cells"] += 1
                                visit(cell.blocks)

        visit(self.blocks)
        return stats
