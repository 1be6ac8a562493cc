from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from ..models.config_models import DEFAULT_TIMEZONE
from ..models.contact import Batch, ContactRecord
from ..sheets.normalizer import DEFAULT_ALIASES, AliasTable, ColumnLayout, normalize_table, resolve_layout
from ..sheets.timestamps import resolve_timezone
from ..store.base import TabularStore
from .allocator import allocate_batch
from .completion import Clock, CompletionResult, CompletionWriter
from .pending import StoreCondition, classify_snapshot, filter_pending

"""External operations of the sync engine.

These three functions are what a transport layer (HTTP handler, CLI command)
calls. Each takes a store capability instead of reaching for global
credentials, so tests can hand in a MemoryStore.

- list_pending: fresh randomized batch + the distinct store condition
- complete_contact: one completion write
- probe_store: read-only title/header check
"""

__all__ = [
    "PendingResult",
    "ProbeResult",
    "Snapshot",
    "read_snapshot",
    "list_pending",
    "complete_contact",
    "probe_store",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """One normalized read of the store."""
    condition: StoreCondition
    layout: ColumnLayout | None
    total_rows: int  # data rows, header excluded
    pending: tuple[ContactRecord, ...]  # store order


@dataclass(frozen=True)
class PendingResult:
    condition: StoreCondition
    batch: Batch
    total_rows: int
    pending_count: int
    layout: ColumnLayout | None = None

    @property
    def message(self) -> str:
        return self.condition.message


@dataclass(frozen=True)
class ProbeResult:
    title: str
    headers: list[str]


def read_snapshot(store: TabularStore, aliases: AliasTable = DEFAULT_ALIASES, timezone: str = DEFAULT_TIMEZONE) -> Snapshot:
    """Read the whole store once and derive the pending set.

    An empty store is reported as EMPTY_STORE rather than raised, so callers can
    tell it apart from a header-only store.
    """
    values = store.read_all()
    if not values:
        return Snapshot(condition=StoreCondition.EMPTY_STORE, layout=None, total_rows=0, pending=())
    layout, records = normalize_table(values, aliases=aliases, tz=resolve_timezone(timezone))
    pending = filter_pending(records)
    condition = classify_snapshot(values, pending)
    logger.debug("snapshot rows=%d pending=%d condition=%s", len(records), len(pending), condition.value)
    return Snapshot(condition=condition, layout=layout, total_rows=len(records), pending=tuple(pending))


def list_pending(
    store: TabularStore,
    *,
    batch_size: int | None = None,
    rng: random.Random | None = None,
    aliases: AliasTable = DEFAULT_ALIASES,
    timezone: str = DEFAULT_TIMEZONE,
) -> PendingResult:
    """Return a fresh randomized batch of eligible contacts.

    Args:
        store: Store capability
        batch_size: Bound on the batch; None returns every pending contact
        rng: Random source (seed it for reproducible batches)
        aliases: Header alias table
        timezone: Civil zone for interpreting stored completion times
    """
    snap = read_snapshot(store, aliases=aliases, timezone=timezone)
    batch = allocate_batch(snap.pending, batch_size=batch_size, rng=rng)
    logger.info(
        "pending rows=%d pending=%d returned=%d (%s)",
        snap.total_rows,
        len(snap.pending),
        len(batch),
        snap.condition.message,
    )
    return PendingResult(
        condition=snap.condition,
        batch=batch,
        total_rows=snap.total_rows,
        pending_count=len(snap.pending),
        layout=snap.layout,
    )


def complete_contact(
    store: TabularStore,
    row_address: int,
    completed_by: str,
    *,
    timezone: str = DEFAULT_TIMEZONE,
    clock: Clock | None = None,
    aliases: AliasTable = DEFAULT_ALIASES,
) -> CompletionResult:
    """Mark one row completed. Blank ``completed_by`` is rejected before any store access."""
    writer = CompletionWriter(store, timezone=timezone, clock=clock, aliases=aliases)
    return writer.write(row_address, completed_by)


def probe_store(store: TabularStore, aliases: AliasTable = DEFAULT_ALIASES) -> ProbeResult:
    """Read-only connectivity and schema check."""
    title = store.title()
    header = store.read_rows([1]).get(1, [])
    headers = [h.strip() for h in header]
    layout = resolve_layout(headers, aliases)
    if headers and not layout.has("contact"):
        logger.warning("probe: header %s has no contact column", headers)
    return ProbeResult(title=title, headers=headers)
