from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from ..models.config_models import DEFAULT_TIMEZONE
from ..sheets.normalizer import (
    DEFAULT_ALIASES,
    HEADER_ROW,
    AliasTable,
    ColumnLayout,
    SchemaError,
    resolve_layout,
)
from ..sheets.timestamps import format_completed_at, resolve_timezone
from ..store.base import CellUpdate, TabularStore
from ..store.errors import NotFoundError, TransientStoreError

"""Completion writer.

Writes status=Completed, completedBy and completedAt to the exact row named by
a row address, as one batched write request.

- No compare-and-swap: completing the same row twice overwrites the first
  completion (last write wins).
- The writer owns the timestamp format; callers only supply a clock.
- Store failures arrive already classified (NotFoundError,
  StorePermissionError, TransientStoreError) and are propagated unchanged.
"""

__all__ = [
    "COMPLETED_STATUS_TEXT",
    "CompletionRejectedError",
    "CompletionResult",
    "CompletionWriter",
]

logger = logging.getLogger(__name__)

COMPLETED_STATUS_TEXT = "Completed"

Clock = Callable[[], datetime]


class CompletionRejectedError(ValueError):
    """Raised before touching the store when a completion request is invalid."""


@dataclass(frozen=True)
class CompletionResult:
    row_address: int
    completed_by: str
    completed_at: datetime  # aware, in the writer's civil zone
    completed_at_text: str  # exactly what was written to the store
    cells_written: int = 0


def _utc_now() -> datetime:
    return datetime.now(UTC)


class CompletionWriter:
    """Apply completion mutations to a tabular store.

    Args:
        store: Store capability to write through
        timezone: Civil zone name for completion timestamps
        clock: "now" source returning an aware datetime
        aliases: Alias table used when the header must be re-resolved
    """

    def __init__(
        self,
        store: TabularStore,
        *,
        timezone: str = DEFAULT_TIMEZONE,
        clock: Clock | None = None,
        aliases: AliasTable = DEFAULT_ALIASES,
    ) -> None:
        self.store = store
        self.tz: ZoneInfo = resolve_timezone(timezone)
        self.clock = clock or _utc_now
        self.aliases = aliases

    def write(self, row_address: int, completed_by: str, layout: ColumnLayout | None = None) -> CompletionResult:
        """Mark ``row_address`` completed by ``completed_by``.

        Args:
            row_address: 1-based data row (>= 2)
            completed_by: Caller identity; must be non-blank after trimming
            layout: Column layout from the caller's last read. When omitted the
                header is read together with the target row.

        Raises:
            CompletionRejectedError: blank identity or non-data row address
            SchemaError: header missing, or with neither a status nor a completed-by column
            NotFoundError: the row does not exist at write time
            StorePermissionError: the store denied the write
            TransientStoreError: any other store failure, including a partial write
        """
        identity = (completed_by or "").strip()
        if not identity:
            raise CompletionRejectedError("completedBy must not be empty")
        if isinstance(row_address, bool) or not isinstance(row_address, int) or row_address <= HEADER_ROW:
            raise CompletionRejectedError(f"invalid row address: {row_address!r}")

        layout = self._checked_layout(row_address, layout)
        status_idx = layout.index_of("status")
        by_idx = layout.index_of("completedby")
        if status_idx is None and by_idx is None:
            raise SchemaError(f"no status or completed-by column in header {list(layout.header)}")

        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        moment = now.astimezone(self.tz)
        stamp = format_completed_at(now, self.tz)

        updates: list[CellUpdate] = []
        if status_idx is not None:
            updates.append(CellUpdate(row=row_address, column=status_idx + 1, value=COMPLETED_STATUS_TEXT))
        if by_idx is not None:
            updates.append(CellUpdate(row=row_address, column=by_idx + 1, value=identity))
        at_idx = layout.index_of("completedat")
        if at_idx is not None:
            updates.append(CellUpdate(row=row_address, column=at_idx + 1, value=stamp))
        updates.sort(key=lambda u: u.column)

        logger.info("completing row=%d by=%s", row_address, identity)
        applied = self.store.write_cells(updates)
        if applied < len(updates):
            raise TransientStoreError(
                f"partial write on row {row_address}: {applied}/{len(updates)} cells applied; "
                "re-read the pending set before retrying"
            )
        return CompletionResult(
            row_address=row_address,
            completed_by=identity,
            completed_at=moment.replace(microsecond=0),
            completed_at_text=stamp,
            cells_written=applied,
        )

    def _checked_layout(self, row_address: int, layout: ColumnLayout | None) -> ColumnLayout:
        wanted = [row_address] if layout is not None else [HEADER_ROW, row_address]
        rows = self.store.read_rows(wanted)
        if layout is None:
            header = rows.get(HEADER_ROW)
            if not header:
                raise SchemaError("store has no header row")
            layout = resolve_layout(header, self.aliases)
        if row_address not in rows:
            raise NotFoundError(f"row {row_address} does not exist")
        return layout
