from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

"""Contact domain models.

ContactRecord is the canonical, post-normalization view of one data row of the
backing store. Records are materialized fresh on every store read and are never
cached across sessions; a newer read snapshot supersedes them.

Batch is a value snapshot of records handed to one calling session. Writing to
the store afterwards never changes a batch that was already issued.
"""

__all__ = [
    "ContactStatus",
    "ContactRecord",
    "Batch",
]


class ContactStatus(Enum):
    """Completion state of a contact.

    There is no transition from COMPLETED back to PENDING.
    """
    PENDING = "Pending"
    COMPLETED = "Completed"


@dataclass(frozen=True)
class ContactRecord:
    """One contact row after header normalization.

    Attributes:
        identifier: Phone number / handle, trimmed. Empty means the row is not
            assignable.
        status: PENDING or COMPLETED (explicit column, or inferred from completed_by)
        completed_by: Caller who completed the contact, if any
        completed_at: Completion time in the configured civil time zone, if parseable
        row_address: 1-based row number in the backing store at read time
        extra: Non-canonical columns, original header label -> raw value
    """
    identifier: str
    status: ContactStatus
    row_address: int
    completed_by: str | None = None
    completed_at: datetime | None = None
    extra: dict[str, str] = field(default_factory=dict, compare=True, hash=False)

    @property
    def is_pending(self) -> bool:
        return bool(self.identifier) and self.status is ContactStatus.PENDING


@dataclass(frozen=True)
class Batch:
    """Ordered snapshot of contacts assigned to a calling session."""
    records: tuple[ContactRecord, ...]
    number: int = 1  # 1-based position within the session

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records

    @property
    def row_addresses(self) -> list[int]:
        return [r.row_address for r in self.records]
