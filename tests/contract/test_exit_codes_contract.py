from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

from contact_caller.cli.__main__ import EXIT_FATAL, EXIT_RETRYABLE, EXIT_SUCCESS
from contact_caller.cli.__main__ import main as cli_main
from contact_caller.store.errors import StorePermissionError, TransientStoreError

"""Exit code contract: 0 success, 1 fatal, 2 retryable store failure."""


def test_exit_code_values():
    assert (EXIT_SUCCESS, EXIT_FATAL, EXIT_RETRYABLE) == (0, 1, 2)


def test_exit_code_missing_config(temp_workdir: Path, capsys):
    code = cli_main(["pending"])
    assert code == 1
    assert "ERROR config:" in capsys.readouterr().out


def test_exit_code_invalid_config(temp_workdir: Path, capsys):
    (temp_workdir / "config" / "caller.yml").write_text("store:\n  backend: carrier_pigeon\n", encoding="utf-8")
    code = cli_main(["pending"])
    assert code == 1
    assert "config validation failed" in capsys.readouterr().out


def test_exit_code_success(write_config, contacts_xlsx):
    assert cli_main(["pending"]) == 0


def test_exit_code_not_found(write_config, contacts_xlsx, temp_workdir: Path, capsys):
    code = cli_main(["complete", "--row", "77", "--by", "Asha"])
    assert code == 1
    assert "ERROR store:" in capsys.readouterr().out
    logs = list((temp_workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    record = json.loads(logs[0].read_text(encoding="utf-8").splitlines()[0])
    assert record["error_type"] == "NOT_FOUND"
    assert record["row"] == 77
    assert record["store"] == "xlsx:./data/contacts.xlsx"


def test_exit_code_schema_error(write_config, temp_workdir: Path, make_xlsx, capsys):
    make_xlsx(temp_workdir / "data" / "contacts.xlsx", [["Contact", "Status"], ["+91111", "Pending"]])
    code = cli_main(["complete", "--row", "2", "--by", "Asha"])
    assert code == 1
    assert "ERROR schema:" in capsys.readouterr().out


def test_exit_code_permission_denied(write_config, contacts_xlsx, capsys):
    with patch(
        "contact_caller.store.excel_workbook.ExcelWorkbookStore.write_cells",
        side_effect=StorePermissionError("read-only workbook"),
    ):
        code = cli_main(["complete", "--row", "2", "--by", "Asha"])
    assert code == 1


def test_exit_code_transient(write_config, contacts_xlsx, temp_workdir: Path, capsys):
    with patch(
        "contact_caller.store.excel_workbook.ExcelWorkbookStore.write_cells",
        side_effect=TransientStoreError("timeout"),
    ):
        code = cli_main(["complete", "--row", "2", "--by", "Asha"])
    assert code == 2
    assert "ERROR store (retryable): timeout" in capsys.readouterr().out
    assert list((temp_workdir / "logs").glob("errors-*.log"))


def test_exit_code_transient_in_session(write_config, contacts_xlsx, monkeypatch, capsys):
    answers = iter(["1", "q"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))
    with patch(
        "contact_caller.store.excel_workbook.ExcelWorkbookStore.write_cells",
        side_effect=TransientStoreError("timeout"),
    ):
        code = cli_main(["session", "--by", "Asha"])
    out = capsys.readouterr().out
    assert code == 2
    assert "not saved, try again: timeout" in out
    assert "failed_writes=1" in out
