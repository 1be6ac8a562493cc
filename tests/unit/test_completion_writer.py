from __future__ import annotations

from datetime import datetime
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest

from contact_caller.services.completion import (
    COMPLETED_STATUS_TEXT,
    CompletionRejectedError,
    CompletionWriter,
)
from contact_caller.sheets.normalizer import SchemaError, resolve_layout
from contact_caller.store.base import CellUpdate
from contact_caller.store.errors import NotFoundError, StorePermissionError, TransientStoreError
from contact_caller.store.memory import MemoryStore


class TestCompletionWriter:
    def test_writes_status_by_and_timestamp(self, memory_store, fixed_clock):
        writer = CompletionWriter(memory_store, clock=fixed_clock)
        result = writer.write(2, "Asha")
        assert memory_store.cell(2, 2) == COMPLETED_STATUS_TEXT
        assert memory_store.cell(2, 3) == "Asha"
        assert memory_store.cell(2, 4) == "05/03/2024, 10:00:15"
        assert result.completed_at_text == "05/03/2024, 10:00:15"
        assert result.cells_written == 3
        assert memory_store.writes == 1

    def test_identity_is_trimmed(self, memory_store, fixed_clock):
        result = CompletionWriter(memory_store, clock=fixed_clock).write(4, "  Asha ")
        assert result.completed_by == "Asha"
        assert memory_store.cell(4, 3) == "Asha"

    @pytest.mark.parametrize("who", ["", "   ", None])
    def test_blank_identity_rejected_before_store_access(self, memory_store, who):
        with pytest.raises(CompletionRejectedError):
            CompletionWriter(memory_store).write(2, who)
        assert memory_store.reads == 0
        assert memory_store.writes == 0

    @pytest.mark.parametrize("row", [1, 0, -3, True, "2"])
    def test_invalid_row_address_rejected(self, memory_store, row):
        with pytest.raises(CompletionRejectedError):
            CompletionWriter(memory_store).write(row, "Asha")
        assert memory_store.reads == 0

    def test_missing_row_is_not_found(self, memory_store):
        with pytest.raises(NotFoundError):
            CompletionWriter(memory_store).write(99, "Asha")
        assert memory_store.writes == 0

    def test_blank_row_is_not_found(self):
        store = MemoryStore([["Contact", "CompletedBy"], ["", ""], ["+91", ""]])
        with pytest.raises(NotFoundError):
            CompletionWriter(store).write(2, "Asha")

    def test_missing_header_is_schema_error(self):
        with pytest.raises(SchemaError):
            CompletionWriter(MemoryStore([])).write(2, "Asha")

    def test_status_only_layout_writes_status(self, fixed_clock):
        store = MemoryStore([["Contact", "Status"], ["+91111", "Pending"]])
        result = CompletionWriter(store, clock=fixed_clock).write(2, "Asha")
        assert store.cell(2, 2) == COMPLETED_STATUS_TEXT
        assert store.cell(2, 1) == "+91111"
        assert result.cells_written == 1
        assert store.writes == 1

    def test_neither_status_nor_completed_by_is_schema_error(self):
        store = MemoryStore([["Contact", "Notes"], ["+91111", ""]])
        with pytest.raises(SchemaError):
            CompletionWriter(store).write(2, "Asha")
        assert store.writes == 0

    def test_old_layout_without_status_column(self, fixed_clock):
        store = MemoryStore([["Contact", "CompletedBy"], ["+91111", ""]])
        result = CompletionWriter(store, clock=fixed_clock).write(2, "Asha")
        assert store.cell(2, 2) == "Asha"
        assert result.cells_written == 1

    def test_short_row_is_padded_on_write(self, fixed_clock):
        store = MemoryStore([["Contact", "Status", "CompletedBy", "CompletedAt"], ["+91111"]])
        CompletionWriter(store, clock=fixed_clock).write(2, "Asha")
        assert store.cell(2, 4) == "05/03/2024, 10:00:15"

    def test_second_completion_overwrites_first(self, memory_store, fixed_clock):
        writer = CompletionWriter(memory_store, clock=fixed_clock)
        writer.write(2, "Asha")
        writer.write(2, "Ravi")
        assert memory_store.cell(2, 3) == "Ravi"

    def test_cached_layout_reads_only_target_row(self, fixed_clock):
        store = MagicMock()
        store.read_rows.return_value = {2: ["+91111", "", "", ""]}
        store.write_cells.return_value = 3
        layout = resolve_layout(["Contact", "Status", "CompletedBy", "CompletedAt"])
        CompletionWriter(store, clock=fixed_clock).write(2, "Asha", layout=layout)
        store.read_rows.assert_called_once_with([2])
        updates = store.write_cells.call_args[0][0]
        assert updates == [
            CellUpdate(row=2, column=2, value="Completed"),
            CellUpdate(row=2, column=3, value="Asha"),
            CellUpdate(row=2, column=4, value="05/03/2024, 10:00:15"),
        ]

    def test_partial_write_is_transient(self, fixed_clock):
        store = MagicMock()
        store.read_rows.return_value = {1: ["Contact", "Status", "CompletedBy"], 2: ["+91111", "", ""]}
        store.write_cells.return_value = 1
        with pytest.raises(TransientStoreError, match="partial write"):
            CompletionWriter(store, clock=fixed_clock).write(2, "Asha")

    @pytest.mark.parametrize("exc", [StorePermissionError("denied"), TransientStoreError("timeout")])
    def test_store_errors_propagate_unchanged(self, exc, fixed_clock):
        store = MagicMock()
        store.read_rows.return_value = {1: ["Contact", "CompletedBy"], 2: ["+91111", ""]}
        store.write_cells.side_effect = exc
        with pytest.raises(type(exc)):
            CompletionWriter(store, clock=fixed_clock).write(2, "Asha")

    def test_other_timezone(self, memory_store, fixed_clock):
        result = CompletionWriter(memory_store, timezone="UTC", clock=fixed_clock).write(2, "Asha")
        assert result.completed_at_text == "05/03/2024, 04:30:15"

    def test_naive_clock_is_taken_as_utc(self, memory_store):
        writer = CompletionWriter(memory_store, clock=lambda: datetime(2024, 3, 5, 4, 30, 15))
        result = writer.write(2, "Asha")
        assert result.completed_at_text == "05/03/2024, 10:00:15"
        assert result.completed_at == datetime(2024, 3, 5, 10, 0, 15, tzinfo=ZoneInfo("Asia/Kolkata"))

    def test_timestamp_data_column_left_untouched(self, fixed_clock):
        store = MemoryStore([["Timestamp", "Phone", "CompletedBy"], ["2024-01-01 09:00:00", "+91111", ""]])
        result = CompletionWriter(store, clock=fixed_clock).write(2, "Asha")
        assert store.cell(2, 1) == "2024-01-01 09:00:00"
        assert store.cell(2, 3) == "Asha"
        assert result.cells_written == 1
