from __future__ import annotations

import logging
import random
from datetime import UTC, datetime
from enum import Enum

from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import DEFAULT_BATCH_SIZE, DEFAULT_TIMEZONE
from ..models.contact import Batch, ContactRecord
from ..models.session_stats import SessionStats
from ..sheets.normalizer import DEFAULT_ALIASES, AliasTable, ColumnLayout, SchemaError
from ..store.base import TabularStore
from ..store.errors import StoreError
from .allocator import AllocationPolicy, make_allocator
from .completion import Clock, CompletionRejectedError, CompletionResult, CompletionWriter
from .contacts import read_snapshot
from .pending import StoreCondition

"""Calling session orchestrator.

State machine for one caller:

    IDLE --load_first_batch--> BATCH_LOADED | SESSION_COMPLETE
    BATCH_LOADED --complete_one (view emptied)--> BATCH_EXHAUSTED
    BATCH_EXHAUSTED --load_next_batch--> BATCH_LOADED | SESSION_COMPLETE

Completed records are removed from the local batch view only after the store
acknowledged the write; a failed write leaves the view as it was so the caller
can retry the same action. Every batch after the first is allocated from a
fresh store read, so completions made by other sessions are respected, and a
row this session completed is never issued again even if the store read lags.

No locks or leases are taken against the store: two sessions completing the
same row both succeed and the last write wins.
"""

__all__ = [
    "SessionState",
    "SessionStateError",
    "CallingSession",
]

logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    BATCH_LOADED = "batch_loaded"
    BATCH_EXHAUSTED = "batch_exhausted"
    SESSION_COMPLETE = "session_complete"


class SessionStateError(Exception):
    """Raised for an operation that is not valid in the session's current state."""


class CallingSession:
    """One caller working through batches of pending contacts.

    Args:
        store: Store capability shared with other sessions
        policy: SESSION_SHUFFLE (bounded batches) or ALWAYS_ALL (single screen)
        batch_size: Batch bound for SESSION_SHUFFLE
        rng: Random source for shuffling
        timezone: Civil zone for completion timestamps
        clock: "now" source (aware datetimes)
        aliases: Header alias table
        error_log: Buffer receiving classified store failures
        store_ref: Store label written into error records
        sheet_name: Sheet label written into error records
    """

    def __init__(
        self,
        store: TabularStore,
        *,
        policy: AllocationPolicy | str = AllocationPolicy.SESSION_SHUFFLE,
        batch_size: int = DEFAULT_BATCH_SIZE,
        rng: random.Random | None = None,
        timezone: str = DEFAULT_TIMEZONE,
        clock: Clock | None = None,
        aliases: AliasTable = DEFAULT_ALIASES,
        error_log: ErrorLogBuffer | None = None,
        store_ref: str = "",
        sheet_name: str = "",
    ) -> None:
        self.store = store
        self.timezone = timezone
        self.aliases = aliases
        self.clock = clock or (lambda: datetime.now(UTC))
        self.writer = CompletionWriter(store, timezone=timezone, clock=self.clock, aliases=aliases)
        self.allocator = make_allocator(policy, batch_size=batch_size, rng=rng)
        self.error_log = error_log if error_log is not None else ErrorLogBuffer()
        self.store_ref = store_ref or store.__class__.__name__
        self.sheet_name = sheet_name

        self.state = SessionState.IDLE
        self.caller: str | None = None
        self.condition: StoreCondition | None = None
        self._layout: ColumnLayout | None = None
        self._view: list[ContactRecord] = []
        self._batch_number = 0
        self._completed: set[int] = set()
        self._total = 0
        self._failed_writes = 0
        self._started_at: datetime | None = None

    # ------------------------------------------------------------------ views
    @property
    def batch(self) -> Batch:
        """Current batch view (a snapshot; later changes do not alter it)."""
        return Batch(records=tuple(self._view), number=max(self._batch_number, 1))

    @property
    def completed_addresses(self) -> frozenset[int]:
        return frozenset(self._completed)

    @property
    def stats(self) -> SessionStats:
        return SessionStats(
            caller=self.caller or "",
            total=self._total,
            completed=len(self._completed),
            assigned=len(self._view),
            batch_number=self._batch_number,
            started_at=self._started_at,
            failed_writes=self._failed_writes,
        )

    # ------------------------------------------------------------ transitions
    def load_first_batch(self, caller_identity: str) -> Batch:
        """IDLE -> BATCH_LOADED, or SESSION_COMPLETE when nothing is pending."""
        self._require(SessionState.IDLE, "load_first_batch")
        identity = (caller_identity or "").strip()
        if not identity:
            raise CompletionRejectedError("caller identity must not be empty")
        batch = self._allocate(first=True)
        self.caller = identity
        self._started_at = self.clock()
        logger.info(
            "session started caller=%s pending=%d batch=%d size=%d",
            identity,
            self._total,
            batch.number,
            len(batch),
        )
        return batch

    def complete_one(self, record: ContactRecord) -> CompletionResult:
        """Write the completion through the store, then drop the record from the view."""
        self._require(SessionState.BATCH_LOADED, "complete_one")
        address = record.row_address
        if address in self._completed:
            raise SessionStateError(f"row {address} was already completed in this session")
        if all(r.row_address != address for r in self._view):
            raise SessionStateError(f"row {address} is not in the current batch")

        try:
            result = self.writer.write(address, self.caller or "", layout=self._layout)
        except (StoreError, SchemaError) as e:
            self._failed_writes += 1
            self.error_log.record_failure(self.store_ref, self.sheet_name, address, e)
            logger.error("completion failed row=%d: %s", address, e)
            raise

        self._completed.add(address)
        self._view = [r for r in self._view if r.row_address != address]
        if not self._view:
            self.state = SessionState.BATCH_EXHAUSTED
            logger.info("batch %d exhausted", self._batch_number)
        return result

    def load_next_batch(self) -> Batch:
        """BATCH_EXHAUSTED -> BATCH_LOADED from a fresh read, or SESSION_COMPLETE."""
        self._require(SessionState.BATCH_EXHAUSTED, "load_next_batch")
        batch = self._allocate(first=False)
        if batch.is_empty:
            logger.info("all contacts completed caller=%s completed=%d", self.caller, len(self._completed))
        else:
            logger.info("batch %d loaded size=%d", batch.number, len(batch))
        return batch

    # --------------------------------------------------------------- helpers
    def _require(self, expected: SessionState, action: str) -> None:
        if self.state is not expected:
            raise SessionStateError(f"{action} not allowed in state {self.state.value}")

    def _allocate(self, first: bool) -> Batch:
        try:
            snap = read_snapshot(self.store, aliases=self.aliases, timezone=self.timezone)
        except (StoreError, SchemaError) as e:
            self.error_log.record_failure(self.store_ref, self.sheet_name, -1, e)
            raise
        self.condition = snap.condition
        if snap.layout is not None:
            self._layout = snap.layout
        if first:
            self._total = len(snap.pending)
        batch = self.allocator.next_batch(snap.pending, exclude=self._completed)
        self._view = list(batch.records)
        if batch.is_empty:
            self.state = SessionState.SESSION_COMPLETE
            if first:
                logger.info("nothing to call: %s", snap.condition.message)
        else:
            self._batch_number = batch.number
            self.state = SessionState.BATCH_LOADED
        return batch
