from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

import psycopg2
import psycopg2.errors
from psycopg2 import sql

from ..models.config_models import DatabaseConfig
from .base import CellUpdate
from .errors import NotFoundError, StorePermissionError, TransientStoreError

"""PostgreSQL-backed sheet store.

The sheet lives in one table, one row per sheet row, cells as a text array:

    CREATE TABLE contact_rows (
        sheet      text    NOT NULL,
        row_number integer NOT NULL,   -- 1 = header row
        cells      text[]  NOT NULL,
        PRIMARY KEY (sheet, row_number)
    );

A completion is one transaction of array-element UPDATEs; it commits only when
every target row exists, otherwise it rolls back and nothing is applied.
"""

__all__ = [
    "CREATE_TABLE_SQL",
    "PostgresSheetStore",
    "resolve_dsn",
]

logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS {table} (
    sheet      text    NOT NULL,
    row_number integer NOT NULL,
    cells      text[]  NOT NULL,
    PRIMARY KEY (sheet, row_number)
)
"""


def resolve_dsn(db_cfg: DatabaseConfig, env: dict[str, str] | None = None) -> str:
    """Resolve connection parameters.

    Priority:
        1. DATABASE_URL / PGDSN environment variables (whole DSN)
        2. config ``store.database.dsn``
        3. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE, falling back to
           the individual config values
    """
    env = dict(os.environ) if env is None else env
    dsn = env.get("DATABASE_URL") or env.get("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = env.get("PGHOST", db_cfg.host or "localhost")
    port = env.get("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = env.get("PGUSER", db_cfg.user or "postgres")
    password = env.get("PGPASSWORD", db_cfg.password or "")
    database = env.get("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _classified(action: str) -> Iterator[None]:
    try:
        yield
    except psycopg2.errors.InsufficientPrivilege as e:
        raise StorePermissionError(f"{action}: permission denied: {e}") from e
    except psycopg2.errors.UndefinedTable as e:
        raise NotFoundError(f"{action}: table not found: {e}") from e
    except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
        raise TransientStoreError(
            f"{action}: connection problem ({e}); the change may or may not have applied, re-read before retrying"
        ) from e
    except psycopg2.Error as e:
        raise TransientStoreError(f"{action}: database error: {e}") from e


def _as_text(cells: Sequence[Any] | None) -> list[str]:
    return ["" if c is None else str(c) for c in (cells or [])]


class PostgresSheetStore:
    """Sheet rows stored in PostgreSQL.

    Args:
        conn: psycopg2 connection (autocommit off; this store commits/rolls back)
        table: Table holding the rows
        sheet_name: Value of the ``sheet`` column selecting this sheet
    """

    def __init__(self, conn: Any, table: str = "contact_rows", sheet_name: str = "Sheet1") -> None:
        self.conn = conn
        self.table = table
        self.sheet_name = sheet_name

    @classmethod
    def connect(cls, dsn: str, table: str = "contact_rows", sheet_name: str = "Sheet1") -> PostgresSheetStore:
        with _classified("connect"):
            conn = psycopg2.connect(dsn)
        conn.autocommit = False
        return cls(conn, table=table, sheet_name=sheet_name)

    def close(self) -> None:
        if self.conn is not None and not getattr(self.conn, "closed", False):
            self.conn.close()

    def _table(self) -> sql.Identifier:
        return sql.Identifier(self.table)

    def create_table(self) -> None:
        with _classified("create table"), self.conn.cursor() as cur:
            cur.execute(sql.SQL(CREATE_TABLE_SQL).format(table=self._table()))
        self.conn.commit()

    def title(self) -> str:
        with _classified("probe"), self.conn.cursor() as cur:
            cur.execute("SELECT to_regclass(%s)", (self.table,))
            row = cur.fetchone()
        self.conn.rollback()
        if not row or row[0] is None:
            raise NotFoundError(f"table not found: {self.table}")
        return f"{self.table}/{self.sheet_name}"

    def read_all(self) -> list[list[str]]:
        query = sql.SQL("SELECT row_number, cells FROM {table} WHERE sheet = %s ORDER BY row_number").format(
            table=self._table()
        )
        with _classified("read"), self.conn.cursor() as cur:
            cur.execute(query, (self.sheet_name,))
            fetched = cur.fetchall()
        self.conn.rollback()  # read-only; end the implicit transaction
        if not fetched:
            return []
        last = max(n for n, _ in fetched)
        rows: list[list[str]] = [[] for _ in range(last)]
        for n, cells in fetched:
            if n >= 1:
                rows[n - 1] = _as_text(cells)
        return rows

    def read_rows(self, row_numbers: Sequence[int]) -> dict[int, list[str]]:
        numbers = list(row_numbers)
        if not numbers:
            return {}
        query = sql.SQL(
            "SELECT row_number, cells FROM {table} WHERE sheet = %s AND row_number = ANY(%s)"
        ).format(table=self._table())
        with _classified("read rows"), self.conn.cursor() as cur:
            cur.execute(query, (self.sheet_name, numbers))
            fetched = cur.fetchall()
        self.conn.rollback()
        found = {n: _as_text(cells) for n, cells in fetched}
        return {n: cells for n, cells in found.items() if any(c.strip() for c in cells)}

    def write_cells(self, updates: Sequence[CellUpdate]) -> int:
        if not updates:
            return 0
        query = sql.SQL(
            "UPDATE {table} SET cells[%s] = %s WHERE sheet = %s AND row_number = %s"
        ).format(table=self._table())
        applied = 0
        try:
            with _classified("write"), self.conn.cursor() as cur:
                for u in updates:
                    cur.execute(query, (u.column, u.value, self.sheet_name, u.row))
                    if cur.rowcount != 1:
                        raise NotFoundError(f"row {u.row} does not exist")
                    applied += 1
                self.conn.commit()
        except BaseException:
            try:
                self.conn.rollback()
            except psycopg2.Error:  # pragma: no cover
                logger.debug("rollback failed", exc_info=True)
            raise
        return applied
