# Shared pytest fixtures
from __future__ import annotations

import tempfile
from datetime import UTC, datetime
from pathlib import Path

import pandas as pd
import pytest

from contact_caller.logging.init import reset_logging
from contact_caller.store.memory import MemoryStore

HEADER = ["Contact", "Status", "CompletedBy", "CompletedAt"]

SAMPLE_ROWS = [
    HEADER,
    ["+91111", "Pending", "", ""],
    ["+91222", "Completed", "Ravi", "01/01/2024, 10:00:00"],
    ["+91333", "", "", ""],
    ["", "Pending", "", ""],
    ["+91555", "pending", "", ""],
]


def write_xlsx(path: Path, rows: list[list[str]], sheet_name: str = "Sheet1") -> Path:
    """Write ``rows`` verbatim (first row is the header row) to an xlsx file."""
    df = pd.DataFrame(rows)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return path


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.setenv("CONTACT_CALLER_ENV_FILE", str(p / ".env"))
        yield p


@pytest.fixture()
def sample_rows() -> list[list[str]]:
    return [list(r) for r in SAMPLE_ROWS]


@pytest.fixture()
def memory_store(sample_rows) -> MemoryStore:
    return MemoryStore(sample_rows, title="Contacts")


@pytest.fixture()
def fixed_clock():
    """Clock frozen at 2024-03-05 04:30:15 UTC (10:00:15 in Asia/Kolkata)."""
    moment = datetime(2024, 3, 5, 4, 30, 15, tzinfo=UTC)
    return lambda: moment


@pytest.fixture()
def make_xlsx():
    return write_xlsx


@pytest.fixture()
def contacts_xlsx(temp_workdir: Path, sample_rows) -> Path:
    return write_xlsx(temp_workdir / "data" / "contacts.xlsx", sample_rows)


@pytest.fixture()
def sample_config_yaml() -> str:
    return """store:
  backend: excel
  path: ./data/contacts.xlsx
  sheet_name: Sheet1
session:
  batch_size: 2
  policy: session_shuffle
timezone: Asia/Kolkata
error_log_dir: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "caller.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg
