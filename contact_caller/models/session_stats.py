from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

"""Session statistics for a calling session.

Mirrors the counters a caller sees while working: how many contacts were
pending when the session started, how many the caller completed, how many are
in the current batch view, and which batch number is on screen.
"""


@dataclass(frozen=True)
class SessionStats:
    """Snapshot of a calling session's progress."""
    caller: str
    total: int  # pending contacts at session start
    completed: int  # completed by this session
    assigned: int  # records left in the current batch view
    batch_number: int
    started_at: datetime | None
    failed_writes: int = 0

    def elapsed_seconds(self, now: datetime | None = None) -> float:
        if self.started_at is None:
            return 0.0
        now = now or datetime.now(UTC)
        return max((now - self.started_at).total_seconds(), 0.0)

    def completion_rate(self) -> int:
        """Percentage of the starting pending set completed by this session."""
        if self.total == 0:
            return 0
        return round(self.completed / self.total * 100)

    def contacts_per_hour(self, now: datetime | None = None) -> int:
        elapsed = self.elapsed_seconds(now)
        if self.completed == 0 or elapsed <= 0:
            return 0
        return round(self.completed / (elapsed / 3600))

    def duration_label(self, now: datetime | None = None) -> str:
        """Whole-minute duration, e.g. ``42m`` or ``1h 5m``."""
        minutes = int(self.elapsed_seconds(now) // 60)
        hours, minutes = divmod(minutes, 60)
        if hours > 0:
            return f"{hours}h {minutes}m"
        return f"{minutes}m"
