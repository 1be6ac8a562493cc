from __future__ import annotations

"""Classified backing-store errors.

Every store adapter translates its client library's exceptions into one of
these classes before they leave the adapter, so callers branch on type and
never on message text.

- NotFoundError: row address or store reference no longer valid (re-sync)
- StorePermissionError: access denied (operator must reconfigure)
- TransientStoreError: network / rate limit / backend fault (retry with backoff)
"""

__all__ = [
    "StoreError",
    "NotFoundError",
    "StorePermissionError",
    "TransientStoreError",
]


class StoreError(Exception):
    """Base class for classified backing-store failures."""

    retryable = False


class NotFoundError(StoreError):
    pass


class StorePermissionError(StoreError):
    pass


class TransientStoreError(StoreError):
    retryable = True
