from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the contact caller.

These are the typed form of config/caller.yml after schema validation in
contact_caller.config.loader. Environment variables (loaded from .env) take
precedence over connection values given here.
"""

DEFAULT_SHEET_NAME = "Sheet1"
DEFAULT_BATCH_SIZE = 12
DEFAULT_TIMEZONE = "Asia/Kolkata"
DEFAULT_ERROR_LOG_DIR = "./logs"


@dataclass(frozen=True)
class DatabaseConfig:
    """PostgreSQL connection fallback for the postgres backend.

    Used when DATABASE_URL / PGDSN / PG* environment variables are not set.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class StoreConfig:
    """Which backing store holds the contact sheet and how to reach it."""
    backend: str  # google_sheets | excel | postgres | memory
    sheet_name: str = DEFAULT_SHEET_NAME
    spreadsheet_id: str | None = None  # google_sheets
    credentials_file: str | None = None  # google_sheets, fallback for GOOGLE_APPLICATION_CREDENTIALS
    path: str | None = None  # excel
    table: str = "contact_rows"  # postgres
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    @property
    def reference(self) -> str:
        """Short label identifying the store in logs and error records."""
        if self.backend == "google_sheets":
            return f"gsheet:{self.spreadsheet_id}"
        if self.backend == "excel":
            return f"xlsx:{self.path}"
        if self.backend == "postgres":
            return f"pg:{self.table}"
        return self.backend


@dataclass(frozen=True)
class SessionConfig:
    """Batch allocation policy for calling sessions."""
    batch_size: int = DEFAULT_BATCH_SIZE
    policy: str = "session_shuffle"  # session_shuffle | always_all


@dataclass(frozen=True)
class CallerConfig:
    """Root configuration object."""
    store: StoreConfig
    session: SessionConfig = field(default_factory=SessionConfig)
    timezone: str = DEFAULT_TIMEZONE  # civil zone for completion timestamps
    aliases: dict[str, list[str]] = field(default_factory=dict)  # canonical -> extra header labels
    error_log_dir: str = DEFAULT_ERROR_LOG_DIR
