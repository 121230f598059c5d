"""Table span normalization.

Converts row-major cells with arbitrary ``col_span``/``row_span`` values into
a merged grid where vertically merged regions are spelled out with explicit
continuation cells (``row_span == 0``).  Both the markup and the native table
builders go through :func:`normalize_table_rows`, so span resolution lives in
exactly one place.

Example::

    rows = [Row(cells=[Cell(blocks=[...], col_span=2, row_span=2), Cell(...)]),
            Row(cells=[Cell(...)])]
    normalized = normalize_table_rows(rows)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from docxbridge.models import Cell, Paragraph, Row


# ── Grid slots ─────────────────────────────────────────────────────────


@dataclass
class OriginSlot:
    """The top-left slot of a merged region; carries the real cell."""
    cell: Cell
    col_span: int
    row_span: int


@dataclass
class MergeSlot:
    """A slot merged upward with the cell directly above.

    ``offset`` is the slot's distance from the first column of the merged
    region, so a region two columns wide yields offsets 0 and 1.
    """
    col_span: int
    offset: int = 0


@dataclass
class SkipSlot:
    """A slot covered by a multi-column cell to its left."""


GridSlot = Union[OriginSlot, MergeSlot, SkipSlot]


def _span(value: Optional[int]) -> int:
    if value is None or value < 1:
        return 1
    return value


def _ensure_row(grid: list[list[Optional[GridSlot]]], index: int) -> list[Optional[GridSlot]]:
    while len(grid) <= index:
        grid.append([])
    return grid[index]


def _place(row: list[Optional[GridSlot]], col: int, slot: GridSlot) -> None:
    if len(row) <= col:
        row.extend([None] * (col + 1 - len(row)))
    row[col] = slot


def _occupied(row: list[Optional[GridSlot]], col: int) -> bool:
    return col < len(row) and row[col] is not None


# ── Grid construction ──────────────────────────────────────────────────


def build_grid(rows: list[Row]) -> list[list[Optional[GridSlot]]]:
    """Lay *rows* out on an occupancy grid indexed by ``(row, col)``.

    Each cell is placed at the first free column at or after the cursor (or
    its declared ``column`` when that lies further right).  The grid grows
    whenever a span reaches past the rows or columns seen so far.
    """
    grid: list[list[Optional[GridSlot]]] = []

    for row_index, row in enumerate(rows):
        slots = _ensure_row(grid, row_index)
        col = 0
        for cell in row.cells:
            if cell.column is not None and cell.column > col:
                col = cell.column
            while _occupied(slots, col):
                col += 1

            col_span = _span(cell.col_span)
            row_span = _span(cell.row_span)

            _place(slots, col, OriginSlot(cell=cell, col_span=col_span, row_span=row_span))
            for offset in range(1, col_span):
                _place(slots, col + offset, SkipSlot())

            for down in range(1, row_span):
                below = _ensure_row(grid, row_index + down)
                for offset in range(col_span):
                    _place(below, col + offset, MergeSlot(col_span=col_span, offset=offset))

            col += col_span

    return grid


def normalize_table_rows(rows: list[Row]) -> list[Row]:
    """Return *rows* as a normalized merged grid.

    Origin slots become real cells (spans kept only when greater than one).
    Every merge slot becomes its own empty ``row_span=0`` cell, one grid
    column wide, so a region two columns wide continues with two cells.
    Skip slots emit nothing.  Interior holes left by a declared column jump
    are filled with an empty paragraph cell so later columns keep their grid
    position.
    """
    normalized: list[Row] = []
    for slots in build_grid(rows):
        cells: list[Cell] = []
        for slot in slots:
            match slot:
                case None:
                    cells.append(Cell(blocks=[Paragraph.empty()]))
                case SkipSlot():
                    continue
                case MergeSlot():
                    cells.append(Cell(blocks=[], row_span=0))
                case OriginSlot():
                    cells.append(
                        Cell(
                            blocks=slot.cell.blocks,
                            col_span=slot.col_span if slot.col_span > 1 else None,
                            row_span=slot.row_span if slot.row_span > 1 else None,
                            width_twips=slot.cell.width_twips,
                        )
                    )
        normalized.append(Row(cells=cells))
    return normalized


# ── Inspection helpers ─────────────────────────────────────────────────


def table_column_count(rows: list[Row]) -> int:
    """Return the widest row of *rows* counted in grid columns."""
    return max(
        (sum(_span(c.col_span) for c in row.cells) for row in rows),
        default=0,
    )


def grid_is_rectangular(rows: list[Row]) -> bool:
    """Return *True* when every row of *rows* covers the same number of columns."""
    widths = {sum(_span(c.col_span) for c in row.cells) for row in rows}
    return len(widths) <= 1


def coalesce_continuations(rows: list[Row]) -> list[list[tuple[Cell, int]]]:
    """Pair every cell of normalized *rows* with the grid width it renders at.

    Adjacent continuation cells that continue the same origin cell are
    folded into one entry whose width is the number of columns they cover,
    so a continued region renders as wide as its origin.

    Returns
    -------
    list[list[tuple[Cell, int]]]
        One list per row of ``(cell, grid_span)`` pairs.
    """
    owners: dict[int, tuple[int, int]] = {}
    result: list[list[tuple[Cell, int]]] = []

    for row_index, row in enumerate(rows):
        entries: list[tuple[Cell, int]] = []
        entry_owners: list[Optional[tuple[int, int]]] = []
        row_owners: dict[int, tuple[int, int]] = {}
        col = 0
        for cell in row.cells:
            span = _span(cell.col_span)
            if cell.is_continuation:
                owner = owners.get(col)
                if (
                    owner is not None
                    and entries
                    and entries[-1][0].is_continuation
                    and entry_owners[-1] == owner
                ):
                    entries[-1] = (entries[-1][0], entries[-1][1] + span)
                else:
                    entries.append((cell, span))
                    entry_owners.append(owner)
                if owner is not None:
                    for offset in range(span):
                        row_owners[col + offset] = owner
            else:
                entries.append((cell, span))
                entry_owners.append((row_index, col))
                for offset in range(span):
                    row_owners[col + offset] = (row_index, col)
            col += span
        owners = row_owners
        result.append(entries)

    return result
