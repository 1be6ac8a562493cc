from __future__ import annotations

import json

import jsonschema
import pytest
import yaml
from jsonschema.exceptions import ValidationError

from contact_caller.config.loader import SCHEMA_PATH

"""Config schema contract test."""


@pytest.fixture()
def schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def test_schema_file_is_valid_draft7(schema):
    jsonschema.Draft7Validator.check_schema(schema)


def test_full_example_is_valid(schema):
    config = {
        "store": {
            "backend": "google_sheets",
            "spreadsheet_id": "1AbC",
            "sheet_name": "Sheet1",
            "credentials_file": "./sa.json",
        },
        "session": {"batch_size": 12, "policy": "session_shuffle"},
        "timezone": "Asia/Kolkata",
        "aliases": {"contact": ["WhatsApp"], "completedby": ["Agent"]},
        "error_log_dir": "./logs",
    }
    jsonschema.validate(config, schema)


def test_sample_config_file_is_valid(schema, sample_config_yaml):
    jsonschema.validate(yaml.safe_load(sample_config_yaml), schema)


@pytest.mark.parametrize(
    "config",
    [
        {},
        {"store": {}},
        {"store": {"backend": "google_sheets"}},
        {"store": {"backend": "excel"}},
        {"store": {"backend": "memory"}, "session": {"batch_size": 0}},
        {"store": {"backend": "memory"}, "session": {"policy": "round_robin"}},
        {"store": {"backend": "memory"}, "aliases": {"email": ["Mail"]}},
        {"store": {"backend": "postgres", "table": "drop table;"}},
        {"store": {"backend": "memory"}, "extra": True},
    ],
)
def test_invalid_configs_rejected(schema, config):
    with pytest.raises(ValidationError):
        jsonschema.validate(config, schema)
