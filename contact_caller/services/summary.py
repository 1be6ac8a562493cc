from __future__ import annotations

from datetime import datetime

from ..models.session_stats import SessionStats

"""Summary line rendering for calling sessions."""

__all__ = ["SUMMARY_PREFIX", "render_session_summary", "session_summary_fields"]

SUMMARY_PREFIX = "SUMMARY"


def session_summary_fields(stats: SessionStats, now: datetime | None = None) -> str:
    """Render the key=value body of the SUMMARY line, without the label.

    Used where the SUMMARY logging level supplies the label itself.
    """
    return (
        f"caller={stats.caller or '-'} "
        f"completed={stats.completed}/{stats.total} "
        f"batches={stats.batch_number} "
        f"remaining_in_batch={stats.assigned} "
        f"failed_writes={stats.failed_writes} "
        f"rate_pct={stats.completion_rate()} "
        f"per_hour={stats.contacts_per_hour(now)} "
        f"duration={stats.duration_label(now)}"
    )


def render_session_summary(stats: SessionStats, now: datetime | None = None) -> str:
    """Render the SUMMARY line for a session.

    Format:
    SUMMARY caller={caller} completed={completed}/{total} batches={n} remaining_in_batch={assigned}
    failed_writes={failed} rate_pct={rate} per_hour={per_hour} duration={duration}

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> stats = SessionStats(
        ...     caller="Asha", total=24, completed=12, assigned=0,
        ...     batch_number=1, started_at=start,
        ... )
        >>> render_session_summary(stats, now=datetime(2024, 1, 1, 11, 0, 0, tzinfo=timezone.utc))
        'SUMMARY caller=Asha completed=12/24 batches=1 remaining_in_batch=0 failed_writes=0 rate_pct=50 per_hour=12 duration=1h 0m'
    """
    return f"{SUMMARY_PREFIX} {session_summary_fields(stats, now)}"
