from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

"""Tabular store capability.

The engine only needs a black-box key-range read/write API over a sheet of
text cells. Rows and columns are 1-based, matching spreadsheet addressing; row
1 is the header row.
"""

__all__ = [
    "CellUpdate",
    "TabularStore",
    "column_letter",
    "pad_row",
]


@dataclass(frozen=True)
class CellUpdate:
    """A single cell write (1-based row and column)."""
    row: int
    column: int
    value: str


@runtime_checkable
class TabularStore(Protocol):
    def title(self) -> str:
        """Human readable name of the store (spreadsheet title, file name...)."""
        ...

    def read_all(self) -> list[list[str]]:
        """Return every row, header first. Empty list when the store has no rows."""
        ...

    def read_rows(self, row_numbers: Sequence[int]) -> dict[int, list[str]]:
        """Return the cells of each requested row that exists.

        Rows that do not exist (or are entirely blank) are absent from the result.
        """
        ...

    def write_cells(self, updates: Sequence[CellUpdate]) -> int:
        """Apply all updates as one batch and return the number of cells applied."""
        ...


def column_letter(column: int) -> str:
    """Convert a 1-based column index to A1 notation letters (1 -> A, 27 -> AA)."""
    if column < 1:
        raise ValueError(f"column must be >= 1, got {column}")
    letters = ""
    while column:
        column, rem = divmod(column - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def pad_row(cells: Sequence[object], width: int) -> list[str]:
    """Stringify cells and pad with empty strings up to ``width``."""
    row = ["" if c is None else str(c) for c in cells]
    if len(row) < width:
        row.extend([""] * (width - len(row)))
    return row
