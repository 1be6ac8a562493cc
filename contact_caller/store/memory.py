from __future__ import annotations

import copy
from collections.abc import Sequence

from .base import CellUpdate, pad_row
from .errors import NotFoundError

"""In-process tabular store.

Holds rows as lists of strings. Used as the test double for the engine and by
the ``memory`` backend for dry runs. Writes validate every target row before
changing anything, so a batch is applied completely or not at all.
"""

__all__ = [
    "MemoryStore",
]


class MemoryStore:
    def __init__(self, rows: Sequence[Sequence[object]] | None = None, title: str = "memory") -> None:
        self._title = title
        self._rows: list[list[str]] = [["" if c is None else str(c) for c in r] for r in (rows or [])]
        self.reads = 0
        self.writes = 0

    def title(self) -> str:
        return self._title

    def read_all(self) -> list[list[str]]:
        self.reads += 1
        return copy.deepcopy(self._rows)

    def read_rows(self, row_numbers: Sequence[int]) -> dict[int, list[str]]:
        self.reads += 1
        found: dict[int, list[str]] = {}
        for n in row_numbers:
            if 1 <= n <= len(self._rows) and any(c.strip() for c in self._rows[n - 1]):
                found[n] = list(self._rows[n - 1])
        return found

    def write_cells(self, updates: Sequence[CellUpdate]) -> int:
        for u in updates:
            if not 1 <= u.row <= len(self._rows):
                raise NotFoundError(f"row {u.row} does not exist")
        self.writes += 1
        for u in updates:
            row = self._rows[u.row - 1]
            if len(row) < u.column:
                self._rows[u.row - 1] = row = pad_row(row, u.column)
            row[u.column - 1] = u.value
        return len(updates)

    # helpers for tests / demos
    def append_row(self, cells: Sequence[object]) -> int:
        self._rows.append(["" if c is None else str(c) for c in cells])
        return len(self._rows)

    def cell(self, row: int, column: int) -> str:
        cells = self._rows[row - 1]
        return cells[column - 1] if column <= len(cells) else ""
