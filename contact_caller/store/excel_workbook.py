from __future__ import annotations

import logging
import os
import tempfile
import zipfile
from collections.abc import Sequence
from pathlib import Path

import openpyxl
import pandas as pd

from .base import CellUpdate
from .errors import NotFoundError, StorePermissionError, TransientStoreError

"""Excel workbook store.

Reads a worksheet with pandas (openpyxl engine) as raw text: no header
inference, no NA conversion, so the sheet's first row stays the header row and
``"NA"`` stays a string. Writes go through openpyxl into a temporary file that
replaces the workbook in one rename, so a batch lands completely or not at all.
"""

__all__ = [
    "ExcelWorkbookStore",
]

logger = logging.getLogger(__name__)


def _trim_trailing_blank(rows: list[list[str]]) -> list[list[str]]:
    while rows and not any(c.strip() for c in rows[-1]):
        rows.pop()
    return rows


class ExcelWorkbookStore:
    def __init__(self, path: Path | str, sheet_name: str = "Sheet1") -> None:
        self.path = Path(path)
        self.sheet_name = sheet_name

    def title(self) -> str:
        if not self.path.exists():
            raise NotFoundError(f"workbook not found: {self.path}")
        return self.path.stem

    def read_all(self) -> list[list[str]]:
        try:
            xls = pd.ExcelFile(self.path, engine="openpyxl")
            if self.sheet_name not in xls.sheet_names:
                raise NotFoundError(f"worksheet {self.sheet_name!r} not found in {self.path.name}")
            df = xls.parse(self.sheet_name, header=None, dtype=str, keep_default_na=False)
        except FileNotFoundError as e:
            raise NotFoundError(f"workbook not found: {self.path}") from e
        except PermissionError as e:
            raise StorePermissionError(f"cannot read {self.path}: {e}") from e
        except (OSError, zipfile.BadZipFile, ValueError) as e:
            raise TransientStoreError(f"failed reading {self.path}: {e}") from e
        rows = [["" if pd.isna(v) else str(v) for v in raw] for raw in df.itertuples(index=False, name=None)]
        logger.debug("read workbook=%s sheet=%s rows=%d", self.path.name, self.sheet_name, len(rows))
        return _trim_trailing_blank(rows)

    def read_rows(self, row_numbers: Sequence[int]) -> dict[int, list[str]]:
        rows = self.read_all()
        return {n: rows[n - 1] for n in row_numbers if 1 <= n <= len(rows) and any(c.strip() for c in rows[n - 1])}

    def write_cells(self, updates: Sequence[CellUpdate]) -> int:
        if not updates:
            return 0
        try:
            wb = openpyxl.load_workbook(self.path)
        except FileNotFoundError as e:
            raise NotFoundError(f"workbook not found: {self.path}") from e
        except PermissionError as e:
            raise StorePermissionError(f"cannot open {self.path}: {e}") from e
        except (OSError, zipfile.BadZipFile) as e:
            raise TransientStoreError(f"failed opening {self.path}: {e}") from e

        if self.sheet_name not in wb.sheetnames:
            raise NotFoundError(f"worksheet {self.sheet_name!r} not found in {self.path.name}")
        ws = wb[self.sheet_name]
        for u in updates:
            if u.row > ws.max_row:
                raise NotFoundError(f"row {u.row} does not exist")
        for u in updates:
            ws.cell(row=u.row, column=u.column, value=u.value)

        fd, tmp_name = tempfile.mkstemp(suffix=".xlsx", dir=self.path.parent)
        os.close(fd)
        try:
            wb.save(tmp_name)
            os.replace(tmp_name, self.path)
        except PermissionError as e:
            raise StorePermissionError(f"cannot write {self.path}: {e}") from e
        except OSError as e:
            raise TransientStoreError(f"failed writing {self.path}: {e}") from e
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
        return len(updates)
