from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord
from ..sheets.normalizer import SchemaError
from ..store.errors import NotFoundError, StoreError, StorePermissionError, TransientStoreError

"""Error log buffering.

- JSON Lines with a fixed key set (see ErrorRecord)
- One ``errors-YYYYMMDD-HHMMSS.log`` (UTC) per run, created on first flush
- Records are buffered and written on flush()
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "error_type_for",
]

DEFAULT_LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


def error_type_for(exc: BaseException) -> str:
    """UPPER_SNAKE classification used in error records."""
    if isinstance(exc, NotFoundError):
        return "NOT_FOUND"
    if isinstance(exc, StorePermissionError):
        return "PERMISSION_DENIED"
    if isinstance(exc, TransientStoreError):
        return "TRANSIENT_STORE_ERROR"
    if isinstance(exc, StoreError):
        return "STORE_ERROR"
    if isinstance(exc, SchemaError):
        return "SCHEMA_ERROR"
    return "UNEXPECTED_ERROR"


class ErrorLogBuffer:
    """In-memory buffer for error records. flush() appends JSON Lines.

    Single-threaded use; the file path is fixed on first access.
    """

    def __init__(self, logs_dir: Path | str | None = None) -> None:
        self._logs_dir = Path(logs_dir) if logs_dir is not None else DEFAULT_LOGS_DIR
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def record_failure(self, store: str, sheet: str, row: int, exc: BaseException) -> ErrorRecord:
        """Build an ErrorRecord from a classified exception and buffer it."""
        record = ErrorRecord.create(
            store=store,
            sheet=sheet,
            row=row,
            error_type=error_type_for(exc),
            message=str(exc),
        )
        self.append(record)
        return record

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns the log path, or None when nothing was buffered."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
