"""Domain models for the contact caller.

This package contains the dataclasses shared across the normalizer, the
allocation / completion services and the CLI.
"""

from .config_models import CallerConfig, DatabaseConfig, SessionConfig, StoreConfig
from .contact import Batch, ContactRecord, ContactStatus
from .error_record import ErrorRecord
from .session_stats import SessionStats

__all__ = [
    # Configuration models
    "CallerConfig",
    "DatabaseConfig",
    "SessionConfig",
    "StoreConfig",
    # Contact models
    "Batch",
    "ContactRecord",
    "ContactStatus",
    # Logging / reporting
    "ErrorRecord",
    "SessionStats",
]
