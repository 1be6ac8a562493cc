from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import Enum

from ..models.contact import ContactRecord

"""Pending-set filter.

Pure and order preserving: randomization belongs to the batch allocator.
"""

__all__ = [
    "StoreCondition",
    "filter_pending",
    "classify_snapshot",
]


class StoreCondition(Enum):
    """What a store read produced, reported distinctly to the caller."""
    EMPTY_STORE = "empty_store"  # zero rows, not even a header
    HEADERS_ONLY = "headers_only"  # header row, no data rows
    NOTHING_PENDING = "nothing_pending"  # data rows, none eligible
    AVAILABLE = "available"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    StoreCondition.EMPTY_STORE: "store is empty (no header row)",
    StoreCondition.HEADERS_ONLY: "store has only a header row",
    StoreCondition.NOTHING_PENDING: "no pending contacts",
    StoreCondition.AVAILABLE: "pending contacts available",
}


def filter_pending(records: Iterable[ContactRecord]) -> list[ContactRecord]:
    """Return records with a non-empty identifier and PENDING status, in input order."""
    return [r for r in records if r.is_pending]


def classify_snapshot(values: Sequence[Sequence[object]], pending: Sequence[ContactRecord]) -> StoreCondition:
    """Classify a raw store read together with its pending subset."""
    if not values:
        return StoreCondition.EMPTY_STORE
    if len(values) == 1:
        return StoreCondition.HEADERS_ONLY
    if not pending:
        return StoreCondition.NOTHING_PENDING
    return StoreCondition.AVAILABLE
