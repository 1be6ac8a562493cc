from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping
from contextlib import contextmanager

from ..config.loader import ConfigError
from ..models.config_models import StoreConfig
from .base import TabularStore

"""Store factory: StoreConfig -> TabularStore capability.

Backends are imported lazily so that, for example, an Excel-only setup does not
need the Google client libraries to import cleanly at startup.
"""

__all__ = [
    "open_store",
    "credentials_configured",
]

logger = logging.getLogger(__name__)


def credentials_configured(cfg: StoreConfig, env: Mapping[str, str] | None = None) -> bool:
    """Whether the backend has what it needs to authenticate (no network access)."""
    env = os.environ if env is None else env
    if cfg.backend == "google_sheets":
        return bool(
            env.get("GOOGLE_CREDENTIALS") or env.get("GOOGLE_APPLICATION_CREDENTIALS") or cfg.credentials_file
        )
    if cfg.backend == "postgres":
        db = cfg.database
        return bool(env.get("DATABASE_URL") or env.get("PGDSN") or db.dsn or env.get("PGHOST") or db.host)
    return True


@contextmanager
def open_store(cfg: StoreConfig, env: Mapping[str, str] | None = None) -> Iterator[TabularStore]:
    """Open the configured store for the duration of the ``with`` block.

    Raises:
        ConfigError: unknown backend or missing credentials
        StoreError subclasses: the backend could not be reached
    """
    if cfg.backend == "google_sheets":
        from .google_sheets import GoogleSheetsStore

        if not cfg.spreadsheet_id:
            raise ConfigError("store.spreadsheet_id is required for google_sheets")
        yield GoogleSheetsStore.from_credentials(
            cfg.spreadsheet_id,
            sheet_name=cfg.sheet_name,
            env=env,
            credentials_file=cfg.credentials_file,
        )
    elif cfg.backend == "excel":
        from .excel_workbook import ExcelWorkbookStore

        if not cfg.path:
            raise ConfigError("store.path is required for excel")
        yield ExcelWorkbookStore(cfg.path, sheet_name=cfg.sheet_name)
    elif cfg.backend == "postgres":
        from .postgres import PostgresSheetStore, resolve_dsn

        store = PostgresSheetStore.connect(
            resolve_dsn(cfg.database, dict(env) if env is not None else None),
            table=cfg.table,
            sheet_name=cfg.sheet_name,
        )
        try:
            yield store
        finally:
            store.close()
    elif cfg.backend == "memory":
        from .memory import MemoryStore

        logger.warning("memory backend: nothing is persisted")
        yield MemoryStore(title="memory")
    else:
        raise ConfigError(f"unknown store backend: {cfg.backend}")
