"""Native document adapter for decoded legacy word-processor files.

The binary content stream of a legacy file is decoded elsewhere; the decoder
fills the small abstraction defined here (sections of paragraphs, each a
sequence of characters or control codes plus attached control objects such
as tables and headers).  :class:`NativeConverter` turns that abstraction into
the canonical :class:`Document`, sharing the table span normalization with
the markup path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional

from docxbridge.errors import EmptyContentError, EncryptedDocumentError
from docxbridge.models import (
    Alignment,
    Block,
    Cell,
    Document,
    Metadata,
    Paragraph,
    Row,
    Style,
    Table,
    TextRun,
    round_half_up,
)
from docxbridge.propset import extract_container_metadata
from docxbridge.styles import merge_style
from docxbridge.tables import normalize_table_rows

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────

DEFAULT_VERSION = "5.0.0.0"

# Character codes that end a line inside a paragraph.
_LINE_BREAK_CODES = frozenset({10, 13})

# Layout units per twip (1 twip = 5 HWP units; 7200 units per inch).
_UNITS_PER_TWIP = 5

# Combining enclosing square, rendered as a plain white square.
_TEXT_REPLACEMENTS = {"\u20de": "\u25a1"}


def make_ctrl_id(first: str, second: str, third: str, fourth: str) -> int:
    """Pack four ASCII characters into a big-endian control identifier."""
    return (ord(first) << 24) | (ord(second) << 16) | (ord(third) << 8) | ord(fourth)


TABLE_CTRL_ID = make_ctrl_id("t", "b", "l", " ")
HEADER_CTRL_ID = make_ctrl_id("h", "e", "a", "d")
FOOTER_CTRL_ID = make_ctrl_id("f", "o", "o", "t")
FOOTNOTE_CTRL_ID = make_ctrl_id("f", "n", " ", " ")
ENDNOTE_CTRL_ID = make_ctrl_id("e", "n", " ", " ")

_TEXT_CTRL_IDS = frozenset(
    {HEADER_CTRL_ID, FOOTER_CTRL_ID, FOOTNOTE_CTRL_ID, ENDNOTE_CTRL_ID}
)


# ── Native abstraction ─────────────────────────────────────────────────


@dataclass
class NativeChar:
    """A decoded character: text (``str``) or a control code (``int``)."""
    value: str | int
    style: Optional[Style] = None


@dataclass
class NativeParagraph:
    chars: list[NativeChar] = field(default_factory=list)
    controls: list[NativeControl] = field(default_factory=list)
    style: Style = field(default_factory=Style)
    align: Optional[Alignment] = None


@dataclass
class NativeCellAttributes:
    """Per-cell attribute map of a table control."""
    col_span: Optional[int] = None
    row_span: Optional[int] = None
    column: Optional[int] = None
    row: Optional[int] = None
    width: Optional[float] = None  # HWP units


@dataclass
class NativeCell:
    paragraphs: list[NativeParagraph] = field(default_factory=list)
    attributes: NativeCellAttributes = field(default_factory=NativeCellAttributes)


@dataclass
class NativeControl:
    """A control object attached to a paragraph.

    Table controls use ``rows`` and ``column_count``; header, footer and note
    controls carry their text in ``paragraphs``.
    """
    ctrl_id: int
    rows: list[list[NativeCell]] = field(default_factory=list)
    column_count: Optional[int] = None
    paragraphs: list[NativeParagraph] = field(default_factory=list)


@dataclass
class NativeSection:
    paragraphs: list[NativeParagraph] = field(default_factory=list)


@dataclass
class NativeDocument:
    sections: list[NativeSection] = field(default_factory=list)
    version: Optional[str] = None
    encrypted: bool = False


# ── Helpers ────────────────────────────────────────────────────────────


def _normalize_text(value: str) -> str:
    for old, new in _TEXT_REPLACEMENTS.items():
        value = value.replace(old, new)
    return value


def _to_twips(value: Optional[float]) -> Optional[int]:
    """Convert a layout width to twips, ignoring unset or non-positive values."""
    if value is None or value <= 0:
        return None
    return max(1, round_half_up(value / _UNITS_PER_TWIP))


def _declared_span(value: Optional[int]) -> Optional[int]:
    return value if value is not None and value > 1 else None


def collect_paragraphs(paragraphs: list[NativeParagraph]) -> list[NativeParagraph]:
    """Return *paragraphs* plus, depth first, those of their text controls."""
    collected: list[NativeParagraph] = []
    for paragraph in paragraphs:
        collected.append(paragraph)
        for control in paragraph.controls:
            if control.ctrl_id in _TEXT_CTRL_IDS:
                collected.extend(collect_paragraphs(control.paragraphs))
    return collected


def paragraph_text(paragraph: NativeParagraph) -> str:
    """Plain text of *paragraph*; line-break codes become ``\\n``."""
    parts: list[str] = []
    for char in paragraph.chars:
        if isinstance(char.value, str):
            parts.append(_normalize_text(char.value))
        elif char.value in _LINE_BREAK_CODES:
            parts.append("\n")
    return "".join(parts)


def _table_text(control: NativeControl) -> str:
    lines = []
    for row in control.rows:
        cells = [
            "\n".join(paragraph_text(p) for p in cell.paragraphs).strip()
            for cell in row
        ]
        lines.append("\t".join(cells))
    return "\n".join(lines)


# ── Converter ──────────────────────────────────────────────────────────


class NativeConverter:
    """Convert a :class:`NativeDocument` into a :class:`Document`.

    Parameters
    ----------
    legacy_codec : str
        Single-byte code page used when decoding container metadata strings
        that are not valid UTF-8.
    """

    def __init__(self, legacy_codec: str = "cp949") -> None:
        self._legacy_codec = legacy_codec

    # ── Public API ─────────────────────────────────────────────────

    def to_document(
        self,
        native: NativeDocument,
        container: Optional[bytes] = None,
    ) -> tuple[Document, Metadata]:
        """Build the document and its metadata.

        Parameters
        ----------
        native : NativeDocument
            The decoded paragraph/control stream.
        container : bytes or None, optional
            The raw structured-storage file, used only for metadata.

        Raises
        ------
        EncryptedDocumentError
            If the source document is encrypted.
        EmptyContentError
            If no block could be produced.
        """
        if native.encrypted:
            raise EncryptedDocumentError("Encrypted documents are not supported")

        blocks: list[Block] = []
        for section in native.sections:
            for paragraph in section.paragraphs:
                blocks.append(self.build_paragraph(paragraph))
                for control in paragraph.controls:
                    if control.ctrl_id == TABLE_CTRL_ID:
                        blocks.append(self.build_table(control))
                    elif control.ctrl_id in _TEXT_CTRL_IDS:
                        blocks.extend(
                            self.build_paragraph(p)
                            for p in collect_paragraphs(control.paragraphs)
                        )
                    else:
                        logger.debug("Skipping control 0x%08x", control.ctrl_id)

        if not blocks:
            raise EmptyContentError("No content extracted from document - empty document")

        metadata = Metadata(version=native.version or DEFAULT_VERSION)
        if container is not None:
            metadata = metadata.merged_with(
                extract_container_metadata(container, self._legacy_codec)
            )

        logger.info(
            "Converted native document: %d section(s), %d block(s)",
            len(native.sections),
            len(blocks),
        )
        return Document(blocks=blocks), metadata

    # ── Paragraphs ─────────────────────────────────────────────────

    def build_paragraph(self, paragraph: NativeParagraph) -> Paragraph:
        """Split the character stream into runs.

        A run ends at every line-break code and whenever the effective
        character style changes.
        """
        runs: list[TextRun] = []
        buffer: list[str] = []
        buffer_style: Optional[Style] = None

        def flush() -> None:
            nonlocal buffer, buffer_style
            if buffer:
                runs.append(TextRun.of("".join(buffer), buffer_style))
            buffer = []
            buffer_style = None

        for char in paragraph.chars:
            style = (
                merge_style(paragraph.style, char.style)
                if char.style is not None
                else paragraph.style
            )
            if isinstance(char.value, str):
                if buffer and style != buffer_style:
                    flush()
                buffer.append(_normalize_text(char.value))
                buffer_style = style
            elif char.value in _LINE_BREAK_CODES:
                flush()
                runs.append(TextRun.line_break(style))

        flush()
        return Paragraph(runs=runs or [TextRun.of("")], align=paragraph.align)

    # ── Tables ─────────────────────────────────────────────────────

    def build_table(self, control: NativeControl) -> Table:
        """Build a bordered table, deriving column widths from cell widths."""
        column_count = control.column_count if control.column_count and control.column_count > 0 else 0
        column_widths = [0] * column_count
        rows: list[Row] = []

        for native_row in control.rows:
            cells: list[Cell] = []
            column_index = 0
            for native_cell in native_row:
                attrs = native_cell.attributes
                col_span = _declared_span(attrs.col_span)
                row_span = _declared_span(attrs.row_span)
                width_twips = _to_twips(attrs.width)
                explicit_column = (
                    attrs.column if attrs.column is not None and attrs.column >= 0 else None
                )
                effective_column = explicit_column if explicit_column is not None else column_index

                if width_twips and column_widths:
                    span = col_span or 1
                    per_column = max(1, round_half_up(width_twips / span))
                    for target in range(effective_column, effective_column + span):
                        if 0 <= target < len(column_widths):
                            column_widths[target] = max(column_widths[target], per_column)

                blocks: list[Block] = [self.build_paragraph(p) for p in native_cell.paragraphs]
                cells.append(
                    Cell(
                        blocks=blocks or [Paragraph.empty()],
                        col_span=col_span,
                        row_span=row_span,
                        width_twips=width_twips,
                        column=explicit_column,
                    )
                )
                column_index = effective_column + (col_span or 1)
            rows.append(Row(cells=cells))

        has_widths = any(w > 0 for w in column_widths)
        if has_widths:
            widest = max(column_widths)
            column_widths = [w if w > 0 else widest for w in column_widths]

        return Table(
            rows=normalize_table_rows(rows),
            column_widths=column_widths if has_widths else None,
            has_borders=True,
        )


# ── Plain-text extraction ──────────────────────────────────────────────


def _section_parts(section: NativeSection) -> Iterator[str]:
    for paragraph in section.paragraphs:
        text = paragraph_text(paragraph).rstrip()
        if text:
            yield text
        for control in paragraph.controls:
            if control.ctrl_id == TABLE_CTRL_ID:
                table_text = _table_text(control)
                if table_text:
                    yield table_text
            elif control.ctrl_id in _TEXT_CTRL_IDS:
                control_text = "\n".join(
                    t for t in (paragraph_text(p) for p in collect_paragraphs(control.paragraphs))
                    if t
                )
                if control_text:
                    yield control_text


def iter_section_text(native: NativeDocument) -> Iterator[str]:
    """Yield the plain text of each non-empty section in order.

    Raises
    ------
    EncryptedDocumentError
        If the source document is encrypted.
    """
    if native.encrypted:
        raise EncryptedDocumentError("Encrypted documents are not supported")
    for section in native.sections:
        text = "\n".join(_section_parts(section))
        if text:
            yield text


def extract_text(native: NativeDocument) -> str:
    """Return the whole document as plain text, tables tab-separated."""
    return "\n".join(iter_section_text(native))
