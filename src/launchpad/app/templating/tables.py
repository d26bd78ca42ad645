"""Table insertion at a document placeholder, as an explicit phase machine.

Document indexes shift after every structural edit, so a table is built in
three batches, each computed from a fresh read of the document:

  EMPTY -> INSERTED       delete the placeholder, insertTable at its index
  INSERTED -> TEXT_WRITTEN  locate the new table, write cell text
                            (highest index first so earlier indexes hold)
  TEXT_WRITTEN -> STYLED  re-locate the table, style cells and text

Each ``plan_*`` function is pure: it takes the current ``TableInsertion``
and the freshly fetched document and returns the next state plus the
``batchUpdate`` requests that realize it.  The addressing produced by one
phase (``TableAnchor``, ``TableLayout``) is carried into the next.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from ..errors import RemoteRejected
from ..models import Platform
from .placeholders import TableSpec

HEADER_BACKGROUND = MappingProxyType({"red": 0.2, "green": 0.2, "blue": 0.3})
HEADER_TEXT_COLOR = MappingProxyType({"red": 1, "green": 1, "blue": 1})
DATA_TEXT_COLOR = MappingProxyType({"red": 0, "green": 0, "blue": 0})
CELL_PADDING = MappingProxyType({"magnitude": 5, "unit": "PT"})

_PADDING_FIELDS = "paddingTop,paddingBottom,paddingLeft,paddingRight"


class TablePhase(enum.Enum):
    EMPTY = "empty"
    INSERTED = "inserted"
    TEXT_WRITTEN = "text_written"
    STYLED = "styled"


ALLOWED_TRANSITIONS = MappingProxyType(
    {
        TablePhase.EMPTY: TablePhase.INSERTED,
        TablePhase.INSERTED: TablePhase.TEXT_WRITTEN,
        TablePhase.TEXT_WRITTEN: TablePhase.STYLED,
    }
)


class InvalidTablePhase(ValueError):
    """Raised when a phase is planned out of order."""

    def __init__(self, from_phase: TablePhase, to_phase: TablePhase) -> None:
        self.from_phase = from_phase
        self.to_phase = to_phase
        super().__init__(
            f"invalid table phase transition: {from_phase.value!r} -> {to_phase.value!r}"
        )


@dataclass(frozen=True, slots=True)
class TableAnchor:
    """Where the table was inserted and its expected dimensions."""

    index: int
    rows: int
    columns: int


@dataclass(frozen=True, slots=True)
class TableLayout:
    """Start index of the located table and per-cell insertion indexes."""

    start_index: int
    cell_indexes: tuple[tuple[int | None, ...], ...]


@dataclass(frozen=True, slots=True)
class TableInsertion:
    spec: TableSpec
    phase: TablePhase = TablePhase.EMPTY
    anchor: TableAnchor | None = None
    layout: TableLayout | None = None


def _check(insertion: TableInsertion, to_phase: TablePhase) -> None:
    if ALLOWED_TRANSITIONS.get(insertion.phase) is not to_phase:
        raise InvalidTablePhase(insertion.phase, to_phase)


# ── Document traversal ───────────────────────────────────────────────


def _paragraph_runs(content: list[dict[str, Any]]) -> Iterator[dict[str, Any]]:
    for element in content or []:
        paragraph = element.get("paragraph")
        if paragraph:
            yield from paragraph.get("elements") or []
        table = element.get("table")
        if table:
            for row in table.get("tableRows") or []:
                for cell in row.get("tableCells") or []:
                    yield from _paragraph_runs(cell.get("content") or [])


def find_placeholder_index(document: Mapping[str, Any], placeholder: str) -> int | None:
    """Absolute start index of the first occurrence of ``placeholder``."""
    content = (document.get("body") or {}).get("content") or []
    for run in _paragraph_runs(content):
        text = (run.get("textRun") or {}).get("content") or ""
        position = text.find(placeholder)
        if position >= 0:
            return run.get("startIndex", 0) + position
    return None


def _dimensions(table_element: Mapping[str, Any]) -> tuple[int, int]:
    rows = table_element["table"].get("tableRows") or []
    columns = len(rows[0].get("tableCells") or []) if rows else 0
    return len(rows), columns


def find_table_near(
    document: Mapping[str, Any],
    index: int,
    rows: int | None = None,
    columns: int | None = None,
) -> dict[str, Any] | None:
    """Table closest to ``index``, preferring matching dimensions."""
    content = (document.get("body") or {}).get("content") or []
    tables = [element for element in content if element.get("table")]
    if not tables:
        return None

    def distance(element: Mapping[str, Any]) -> int:
        return abs(element.get("startIndex", 0) - index)

    if rows is not None and columns is not None:
        matching = [t for t in tables if _dimensions(t) == (rows, columns)]
        if matching:
            return min(matching, key=distance)
    return min(tables, key=distance)


def cell_insert_index(cell: Mapping[str, Any] | None) -> int | None:
    """Start index of the first paragraph element in a cell."""
    for element in (cell or {}).get("content") or []:
        elements = (element.get("paragraph") or {}).get("elements") or []
        if elements:
            return elements[0].get("startIndex")
    return None


def _cell(table_element: Mapping[str, Any], row: int, column: int) -> dict[str, Any] | None:
    table_rows = table_element["table"].get("tableRows") or []
    if row >= len(table_rows):
        return None
    cells = table_rows[row].get("tableCells") or []
    return cells[column] if column < len(cells) else None


# ── Phase planning ───────────────────────────────────────────────────


def plan_insert(
    insertion: TableInsertion, document: Mapping[str, Any],
) -> tuple[TableInsertion, list[dict[str, Any]]] | None:
    """EMPTY -> INSERTED.  Returns None when the placeholder is absent."""
    _check(insertion, TablePhase.INSERTED)
    index = find_placeholder_index(document, insertion.spec.placeholder)
    if index is None:
        return None

    rows, columns = insertion.spec.dimensions
    requests = [
        {
            "deleteContentRange": {
                "range": {
                    "startIndex": index,
                    "endIndex": index + len(insertion.spec.placeholder),
                },
            },
        },
        {
            "insertTable": {
                "rows": rows,
                "columns": columns,
                "location": {"index": index},
            },
        },
    ]
    anchor = TableAnchor(index=index, rows=rows, columns=columns)
    return replace(insertion, phase=TablePhase.INSERTED, anchor=anchor), requests


def plan_text(
    insertion: TableInsertion, document: Mapping[str, Any],
) -> tuple[TableInsertion, list[dict[str, Any]]]:
    """INSERTED -> TEXT_WRITTEN: header and data text, reverse index order."""
    _check(insertion, TablePhase.TEXT_WRITTEN)
    anchor = insertion.anchor
    table = find_table_near(document, anchor.index, anchor.rows, anchor.columns)
    if table is None:
        raise RemoteRejected(Platform.DOCUMENTS.value, 0, "inserted table not found")

    spec = insertion.spec
    grid = (spec.headers,) + spec.rows
    cell_indexes = tuple(
        tuple(cell_insert_index(_cell(table, r, c)) for c in range(anchor.columns))
        for r in range(anchor.rows)
    )

    inserts: list[tuple[int, str]] = []
    for r, values in enumerate(grid):
        for c, value in enumerate(values):
            cell_index = cell_indexes[r][c]
            if cell_index is not None and value:
                inserts.append((cell_index, value))
    inserts.sort(key=lambda item: item[0], reverse=True)

    requests = [
        {"insertText": {"location": {"index": cell_index}, "text": text}}
        for cell_index, text in inserts
    ]
    layout = TableLayout(start_index=table.get("startIndex", 0), cell_indexes=cell_indexes)
    return replace(insertion, phase=TablePhase.TEXT_WRITTEN, layout=layout), requests


def _cell_style_request(start_index: int, row: int, column: int, header: bool) -> dict[str, Any]:
    style: dict[str, Any] = {
        "paddingTop": dict(CELL_PADDING),
        "paddingBottom": dict(CELL_PADDING),
        "paddingLeft": dict(CELL_PADDING),
        "paddingRight": dict(CELL_PADDING),
    }
    fields = _PADDING_FIELDS
    if header:
        style["backgroundColor"] = {"color": {"rgbColor": dict(HEADER_BACKGROUND)}}
        fields = "backgroundColor," + fields
    return {
        "updateTableCellStyle": {
            "tableRange": {
                "tableCellLocation": {
                    "tableStartLocation": {"index": start_index},
                    "rowIndex": row,
                    "columnIndex": column,
                },
                "rowSpan": 1,
                "columnSpan": 1,
            },
            "tableCellStyle": style,
            "fields": fields,
        },
    }


def _text_style_request(run: Mapping[str, Any], header: bool) -> dict[str, Any]:
    color = HEADER_TEXT_COLOR if header else DATA_TEXT_COLOR
    return {
        "updateTextStyle": {
            "range": {
                "startIndex": run["startIndex"],
                # Exclude the cell's trailing newline.
                "endIndex": run["endIndex"] - 1,
            },
            "textStyle": {
                "bold": header,
                "foregroundColor": {"color": {"rgbColor": dict(color)}},
            },
            "fields": "bold,foregroundColor",
        },
    }


def plan_styles(
    insertion: TableInsertion, document: Mapping[str, Any],
) -> tuple[TableInsertion, list[dict[str, Any]]]:
    """TEXT_WRITTEN -> STYLED: cell styles plus header/data text styles.

    If the table can no longer be located the phase still advances with
    no requests; styling is cosmetic.
    """
    _check(insertion, TablePhase.STYLED)
    anchor = insertion.anchor
    styled = replace(insertion, phase=TablePhase.STYLED)
    table = find_table_near(document, anchor.index, anchor.rows, anchor.columns)
    if table is None:
        return styled, []

    start_index = table.get("startIndex", insertion.layout.start_index)
    requests: list[dict[str, Any]] = []
    for r in range(anchor.rows):
        for c in range(anchor.columns):
            requests.append(_cell_style_request(start_index, r, c, header=r == 0))

    for r in range(anchor.rows):
        for c in range(anchor.columns):
            cell = _cell(table, r, c)
            elements = (
                ((cell or {}).get("content") or [{}])[0].get("paragraph") or {}
            ).get("elements") or []
            if not elements:
                continue
            run = elements[0]
            text = (run.get("textRun") or {}).get("content") or ""
            if text.strip() and "startIndex" in run and "endIndex" in run:
                requests.append(_text_style_request(run, header=r == 0))
    return styled, requests
