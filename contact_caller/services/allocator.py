from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Sequence
from enum import Enum

from ..models.config_models import DEFAULT_BATCH_SIZE
from ..models.contact import Batch, ContactRecord

"""Batch allocator.

Randomized, bounded batches drawn from the pending set. Every shuffle here is a
uniform Fisher-Yates shuffle (random.Random.shuffle): each permutation is
equally likely. Sorting with a random comparator is not uniform and is not used.

Two policies:
- SESSION_SHUFFLE: shuffle once per session, then serve sequential
  non-overlapping slices of ``batch_size``; no contact repeats in a session.
- ALWAYS_ALL: every allocation is the whole pending set, shuffled.
"""

__all__ = [
    "AllocationPolicy",
    "shuffle_records",
    "allocate_batch",
    "SessionShuffle",
    "AlwaysAll",
    "make_allocator",
]

logger = logging.getLogger(__name__)


class AllocationPolicy(Enum):
    SESSION_SHUFFLE = "session_shuffle"
    ALWAYS_ALL = "always_all"


def shuffle_records(records: Iterable[ContactRecord], rng: random.Random | None = None) -> list[ContactRecord]:
    """Return a uniformly shuffled copy of ``records``."""
    shuffled = list(records)
    (rng or random.Random()).shuffle(shuffled)
    return shuffled


def allocate_batch(
    pending: Sequence[ContactRecord],
    batch_size: int | None = DEFAULT_BATCH_SIZE,
    rng: random.Random | None = None,
    number: int = 1,
) -> Batch:
    """Shuffle the full pending sequence and take a stable slice of ``batch_size``.

    ``batch_size=None`` disables the bound. Fewer than ``batch_size`` pending
    records yields a shorter batch, down to an empty one.
    """
    if batch_size is not None and batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    shuffled = shuffle_records(pending, rng)
    chosen = shuffled if batch_size is None else shuffled[:batch_size]
    return Batch(records=tuple(chosen), number=number)


class SessionShuffle:
    """Shuffle-once allocator for one calling session.

    The session order is fixed at the first allocation. Later allocations take
    the fresh pending set (so completions by other sessions are respected),
    skip addresses this session already served, append newly appearing rows in
    shuffled order, and serve the next slice.
    """

    policy = AllocationPolicy.SESSION_SHUFFLE

    def __init__(self, batch_size: int = DEFAULT_BATCH_SIZE, rng: random.Random | None = None) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.batch_size = batch_size
        self._rng = rng or random.Random()
        self._order: list[int] = []
        self._issued: set[int] = set()
        self._batches = 0

    @property
    def issued(self) -> frozenset[int]:
        return frozenset(self._issued)

    def next_batch(self, pending: Sequence[ContactRecord], exclude: Iterable[int] = ()) -> Batch:
        by_address = {r.row_address: r for r in pending}
        known = set(self._order)
        newcomers = [r for r in pending if r.row_address not in known]
        if newcomers:
            self._order.extend(r.row_address for r in shuffle_records(newcomers, self._rng))
        skip = self._issued | set(exclude)
        chosen: list[ContactRecord] = []
        for address in self._order:
            if len(chosen) >= self.batch_size:
                break
            if address in skip or address not in by_address:
                continue
            chosen.append(by_address[address])
        self._issued.update(r.row_address for r in chosen)
        if chosen:
            self._batches += 1
        logger.debug(
            "session-shuffle batch=%d size=%d order=%d issued=%d",
            self._batches,
            len(chosen),
            len(self._order),
            len(self._issued),
        )
        return Batch(records=tuple(chosen), number=max(self._batches, 1))


class AlwaysAll:
    """Single-screen allocator: the whole pending set, reshuffled on every call."""

    policy = AllocationPolicy.ALWAYS_ALL

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self._batches = 0

    def next_batch(self, pending: Sequence[ContactRecord], exclude: Iterable[int] = ()) -> Batch:
        skip = set(exclude)
        eligible = [r for r in pending if r.row_address not in skip]
        if eligible:
            self._batches += 1
        return allocate_batch(eligible, batch_size=None, rng=self._rng, number=max(self._batches, 1))


def make_allocator(
    policy: AllocationPolicy | str,
    batch_size: int = DEFAULT_BATCH_SIZE,
    rng: random.Random | None = None,
) -> SessionShuffle | AlwaysAll:
    policy = AllocationPolicy(policy)
    if policy is AllocationPolicy.ALWAYS_ALL:
        return AlwaysAll(rng=rng)
    return SessionShuffle(batch_size=batch_size, rng=rng)
