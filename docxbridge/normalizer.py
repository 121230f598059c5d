"""Markup-to-block normalization.

Walks a generic markup tree (see :mod:`docxbridge.markup`) and produces the
canonical block sequence of a :class:`Document`: paragraphs of styled runs,
list paragraphs tagged with kind and level, and tables normalized through
:func:`docxbridge.tables.normalize_table_rows`.

Usage::

    normalizer = MarkupNormalizer()
    document = normalizer.html_to_document("<p><b>Hello</b> world</p>")
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from docxbridge.errors import EmptyContentError
from docxbridge.markup import MarkupElement, MarkupNode, MarkupText, parse_html
from docxbridge.models import (
    MAX_LIST_LEVEL,
    Block,
    Cell,
    Document,
    ListInfo,
    ListKind,
    Paragraph,
    Row,
    Style,
    Table,
    TextRun,
)
from docxbridge.styles import merge_style, parse_alignment, parse_inline_style
from docxbridge.tables import normalize_table_rows

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────

_NEWLINE_RE = re.compile(r"\r?\n")

_PARAGRAPH_TAGS = frozenset({"p", "div"})
_LIST_TAGS = frozenset({"ul", "ol"})
_ROW_GROUP_TAGS = frozenset({"thead", "tbody", "tfoot"})
_CELL_TAGS = frozenset({"td", "th"})

# Inline tags that switch a single boolean flag on for their subtree.
_EMPHASIS: dict[str, Style] = {
    "strong": Style(bold=True),
    "b": Style(bold=True),
    "em": Style(italic=True),
    "i": Style(italic=True),
    "u": Style(underline=True),
}


# ── Helpers ────────────────────────────────────────────────────────────


def _list_kind(tag: str) -> ListKind:
    return ListKind.NUMBER if tag == "ol" else ListKind.BULLET


def _positive_span(value: Optional[str]) -> Optional[int]:
    """Return a declared span when it is an integer greater than one."""
    if value is None:
        return None
    try:
        span = int(value.strip())
    except ValueError:
        return None
    return span if span > 1 else None


def _scoped_style(style: Style, node: MarkupElement) -> Style:
    """Merge the element's own ``style`` attribute into the ambient *style*."""
    declared = node.get("style")
    if not declared:
        return style
    return merge_style(style, parse_inline_style(declared))


def _text_runs(content: str, style: Style) -> list[TextRun]:
    """Split *content* on newlines into text runs separated by break runs."""
    runs: list[TextRun] = []
    for index, part in enumerate(_NEWLINE_RE.split(content)):
        if index > 0:
            runs.append(TextRun.line_break(style))
        if part:
            runs.append(TextRun.of(part, style))
    return runs


# ── Main normalizer ────────────────────────────────────────────────────


class MarkupNormalizer:
    """Turn markup nodes into a :class:`Document`."""

    # ── Public API ─────────────────────────────────────────────────

    def html_to_document(self, html: str) -> Document:
        """Parse *html* and normalize it into a :class:`Document`.

        Raises
        ------
        EmptyContentError
            If the markup yields no block at all.
        """
        return self.to_document(parse_html(html))

    def to_document(self, nodes: list[MarkupNode], style: Style | None = None) -> Document:
        blocks = self.normalize(nodes, style or Style())
        if not blocks:
            raise EmptyContentError(
                "No content extracted from markup - empty document"
            )
        logger.info("Normalized markup into %d block(s)", len(blocks))
        return Document(blocks=blocks)

    def normalize(self, nodes: list[MarkupNode], style: Style) -> list[Block]:
        """Return the block sequence for *nodes* under the ambient *style*."""
        blocks: list[Block] = []

        for node in nodes:
            match node:
                case MarkupText(content=content):
                    text = content.strip()
                    if text:
                        blocks.append(Paragraph(runs=_text_runs(text, style)))
                case MarkupElement(tag=tag) if tag in _PARAGRAPH_TAGS:
                    blocks.append(self._build_paragraph(node.children, node, style))
                case MarkupElement(tag="table"):
                    blocks.append(self._build_table(node, style))
                case MarkupElement(tag=tag) if tag in _LIST_TAGS:
                    blocks.extend(self._build_list(node, _list_kind(tag), 0, style))
                case MarkupElement(tag="br"):
                    blocks.append(Paragraph(runs=[TextRun.line_break(style)]))
                case MarkupElement(tag=tag) if tag in _EMPHASIS:
                    blocks.extend(
                        self.normalize(node.children, merge_style(style, _EMPHASIS[tag]))
                    )
                case MarkupElement(tag="span"):
                    blocks.extend(self.normalize(node.children, _scoped_style(style, node)))
                case MarkupElement():
                    blocks.extend(self.normalize(node.children, style))

        return blocks

    # ── Runs ───────────────────────────────────────────────────────

    def collect_runs(self, nodes: list[MarkupNode], style: Style) -> list[TextRun]:
        """Flatten inline content into runs, resolving style once per run."""
        runs: list[TextRun] = []

        for node in nodes:
            match node:
                case MarkupText(content=content):
                    runs.extend(_text_runs(content, style))
                case MarkupElement(tag="br"):
                    runs.append(TextRun.line_break(style))
                case MarkupElement(tag=tag) if tag in _EMPHASIS:
                    runs.extend(
                        self.collect_runs(node.children, merge_style(style, _EMPHASIS[tag]))
                    )
                case MarkupElement(tag=tag) if tag == "span" or tag in _PARAGRAPH_TAGS:
                    runs.extend(self.collect_runs(node.children, _scoped_style(style, node)))
                case MarkupElement():
                    runs.extend(self.collect_runs(node.children, style))

        return runs

    # ── Paragraphs and lists ───────────────────────────────────────

    def _build_paragraph(
        self,
        children: list[MarkupNode],
        node: MarkupElement,
        style: Style,
        list_info: Optional[ListInfo] = None,
    ) -> Paragraph:
        runs = self.collect_runs(children, _scoped_style(style, node))
        return Paragraph(
            runs=runs or [TextRun.of("")],
            align=parse_alignment(node.get("style"), node.get("align")),
            list_info=list_info,
        )

    def _build_list(
        self,
        node: MarkupElement,
        kind: ListKind,
        level: int,
        style: Style,
    ) -> list[Block]:
        """Emit one paragraph per ``li``; nested lists go one level deeper."""
        blocks: list[Block] = []
        items = [
            child for child in node.children
            if isinstance(child, MarkupElement) and child.tag == "li"
        ]
        for item in items:
            inline: list[MarkupNode] = []
            nested: list[MarkupElement] = []
            for child in item.children:
                if isinstance(child, MarkupElement) and child.tag in _LIST_TAGS:
                    nested.append(child)
                else:
                    inline.append(child)

            blocks.append(
                self._build_paragraph(inline, item, style, ListInfo(kind=kind, level=level))
            )
            for sub in nested:
                blocks.extend(
                    self._build_list(
                        sub,
                        _list_kind(sub.tag),
                        min(level + 1, MAX_LIST_LEVEL),
                        style,
                    )
                )
        return blocks

    # ── Tables ─────────────────────────────────────────────────────

    def _build_table(self, node: MarkupElement, style: Style) -> Table:
        """Collect raw rows and cells, then normalize their spans."""
        tr_nodes: list[MarkupElement] = []
        for child in node.children:
            if not isinstance(child, MarkupElement):
                continue
            if child.tag == "tr":
                tr_nodes.append(child)
            elif child.tag in _ROW_GROUP_TAGS:
                tr_nodes.extend(
                    c for c in child.children
                    if isinstance(c, MarkupElement) and c.tag == "tr"
                )

        rows: list[Row] = []
        for tr in tr_nodes:
            cells: list[Cell] = []
            for cell_node in tr.children:
                if not isinstance(cell_node, MarkupElement) or cell_node.tag not in _CELL_TAGS:
                    continue
                blocks = self.normalize(cell_node.children, style)
                cells.append(
                    Cell(
                        blocks=blocks or [Paragraph.empty()],
                        col_span=_positive_span(cell_node.get("colspan")),
                        row_span=_positive_span(cell_node.get("rowspan")),
                    )
                )
            rows.append(Row(cells=cells))

        logger.debug("Built table with %d raw row(s)", len(rows))
        return Table(rows=normalize_table_rows(rows))
