from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm

"""Session progress display with tqdm (TTY only).

One bar per calling session counting completed contacts against the pending
total at session start. In non-TTY environments (CI, piped output) the bar is
disabled so no ANSI control sequences end up in logs.
"""

__all__ = [
    "SessionProgress",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class SessionProgress:
    """Progress bar for a calling session."""

    def __init__(self, total: int, *, caller: str, description: str = "Calling") -> None:
        self.total = total
        self.description = f"{description} ({caller})"
        self.enabled = is_tty_enabled()
        self.pbar: Any | None
        if self.enabled:
            self.pbar = tqdm(
                total=total,
                desc=self.description,
                unit="contact",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def start_batch(self, number: int, size: int) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.set_description(f"{self.description} batch {number}")
            self.pbar.set_postfix(assigned=size)

    def contact_done(self, remaining_in_batch: int) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_postfix(assigned=remaining_in_batch)

    def write(self, message: str) -> None:
        """Print a line without breaking the bar."""
        if self.enabled and self.pbar is not None:
            self.pbar.write(message)
        else:
            print(message)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> SessionProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
