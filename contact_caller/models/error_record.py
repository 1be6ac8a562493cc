from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for error logging.

ErrorRecord is one JSON Lines entry describing a classified store failure seen
while listing or completing contacts. row=-1 marks store-level failures where no
specific row applies (probe, full reads).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        store: Store reference (e.g. ``gsheet:<id>``, ``xlsx:<path>``)
        sheet: Sheet / worksheet name within the store
        row: Row address (1-based). -1 for store-level errors
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Message reported by the store or the engine
    """
    timestamp: str  # ISO8601 UTC
    store: str
    sheet: str
    row: int
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(store: str, sheet: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            store=store,
            sheet=sheet,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize to one JSON line (fixed key set)."""
        return json.dumps(asdict(self), ensure_ascii=False)
