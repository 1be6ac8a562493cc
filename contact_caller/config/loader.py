from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_ERROR_LOG_DIR,
    DEFAULT_SHEET_NAME,
    DEFAULT_TIMEZONE,
    CallerConfig,
    DatabaseConfig,
    SessionConfig,
    StoreConfig,
)
from ..sheets.timestamps import resolve_timezone

"""Config loader.

Responsibilities:
- Load the YAML config (default config/caller.yml)
- Validate it against config_schema.json (unknown keys are rejected)
- Apply defaults (sheet Sheet1, batch size 12, timezone Asia/Kolkata)
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "config_from_dict",
]

DEFAULT_CONFIG_PATH = Path("config/caller.yml")
SCHEMA_PATH = Path(__file__).with_name("config_schema.json")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails validation (missing keys, wrong types, unknown keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def config_from_dict(data: dict[str, Any]) -> CallerConfig:
    """Validate a config mapping and build the typed CallerConfig."""
    if not isinstance(data, dict):
        raise ConfigError("config validation failed: top level must be a mapping")
    _validate_config_schema(data)

    store_raw = data["store"]
    db_raw = store_raw.get("database", {})
    store = StoreConfig(
        backend=store_raw["backend"],
        sheet_name=store_raw.get("sheet_name", DEFAULT_SHEET_NAME),
        spreadsheet_id=store_raw.get("spreadsheet_id"),
        credentials_file=store_raw.get("credentials_file"),
        path=store_raw.get("path"),
        table=store_raw.get("table", "contact_rows"),
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
        ),
    )
    session_raw = data.get("session", {})
    session = SessionConfig(
        batch_size=session_raw.get("batch_size", DEFAULT_BATCH_SIZE),
        policy=session_raw.get("policy", "session_shuffle"),
    )
    timezone = data.get("timezone", DEFAULT_TIMEZONE)
    try:
        resolve_timezone(timezone)
    except ValueError as e:
        raise ConfigError(f"config validation failed: {e}") from e
    return CallerConfig(
        store=store,
        session=session,
        timezone=timezone,
        aliases={k: list(v) for k, v in data.get("aliases", {}).items()},
        error_log_dir=data.get("error_log_dir", DEFAULT_ERROR_LOG_DIR),
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> CallerConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    return config_from_dict(data)
