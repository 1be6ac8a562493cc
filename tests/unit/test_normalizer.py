from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from contact_caller.models.contact import ContactStatus
from contact_caller.sheets.normalizer import (
    DEFAULT_ALIASES,
    AliasTable,
    SchemaError,
    normalize_header,
    normalize_rows,
    normalize_table,
    resolve_layout,
)

IST = ZoneInfo("Asia/Kolkata")


class TestNormalizeHeader:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Contact", "contact"),
            ("  CompletedBy ", "completedby"),
            ("Phone_Number", "phone number"),
            ("completed-at", "completed at"),
            (None, ""),
        ],
    )
    def test_normalizes(self, raw, expected):
        assert normalize_header(raw) == expected


class TestAliasTable:
    @pytest.mark.parametrize(
        "label,canonical",
        [
            ("Contact", "contact"),
            ("CONTACTS", "contact"),
            ("Phone Number", "contact"),
            ("Status", "status"),
            ("Completed By", "completedby"),
            ("completedby", "completedby"),
            ("Completed At", "completedat"),
            ("Notes", None),
        ],
    )
    def test_default_aliases(self, label, canonical):
        assert DEFAULT_ALIASES.canonical_for(label) == canonical

    def test_extended_adds_labels(self):
        table = DEFAULT_ALIASES.extended({"contact": ["WhatsApp"]})
        assert table.canonical_for("whatsapp") == "contact"
        # original table untouched
        assert DEFAULT_ALIASES.canonical_for("whatsapp") is None

    def test_extended_rejects_unknown_field(self):
        with pytest.raises(ValueError):
            DEFAULT_ALIASES.extended({"email": ["Mail"]})

    def test_build_rejects_unknown_field(self):
        with pytest.raises(ValueError):
            AliasTable.build({"nickname": ["nick"]})


class TestResolveLayout:
    def test_first_match_wins_and_duplicates_kept_as_extra(self):
        layout = resolve_layout(["Contact", "Phone", "Notes"])
        assert layout.index_of("contact") == 0
        assert layout.extra_columns == (1, 2)

    def test_state_and_timestamp_are_data_columns(self):
        layout = resolve_layout(["Timestamp", "Phone", "State", "CompletedBy"])
        assert not layout.has("status")
        assert not layout.has("completedat")
        assert layout.extra_columns == (0, 2)
        records = normalize_rows(
            ["Timestamp", "Phone", "State"],
            [["2024-01-01 09:00:00", "+91111", "Kerala"], ["2024-01-01 09:05:00", "+91222", "Goa"]],
        )
        assert all(r.is_pending for r in records)
        assert records[0].extra == {"Timestamp": "2024-01-01 09:00:00", "State": "Kerala"}

    def test_state_alias_can_be_added_by_config(self):
        table = DEFAULT_ALIASES.extended({"status": ["State"]})
        assert resolve_layout(["Phone", "State"], table).index_of("status") == 1

    def test_missing_columns(self):
        layout = resolve_layout(["Contact", "CompletedBy"])
        assert layout.has("contact")
        assert layout.has("completedby")
        assert not layout.has("status")
        assert layout.index_of("completedat") is None


class TestNormalizeRows:
    def test_header_variants_give_same_records(self):
        rows = [["+91111", "Pending", "", ""], ["+91222", "Completed", "Ravi", ""]]
        a = normalize_rows(["Contact", "Status", "CompletedBy", "CompletedAt"], rows)
        b = normalize_rows([" contact ", "STATUS", "completed by", "Completed At"], rows)
        assert a == b

    def test_short_rows_are_padded(self):
        records = normalize_rows(["Contact", "Status", "CompletedBy"], [["+91111"]])
        assert len(records) == 1
        assert records[0].identifier == "+91111"
        assert records[0].status is ContactStatus.PENDING
        assert records[0].completed_by is None

    def test_row_addresses_are_positional(self):
        records = normalize_rows(["Contact"], [["a"], [""], ["c"]])
        assert [r.row_address for r in records] == [2, 3, 4]
        assert records[1].identifier == ""

    def test_status_inferred_from_completed_by_without_status_column(self):
        records = normalize_rows(["Contact", "CompletedBy"], [["+91111", ""], ["+91222", "Asha"]])
        assert records[0].status is ContactStatus.PENDING
        assert records[1].status is ContactStatus.COMPLETED

    def test_pending_status_with_completed_by_is_completed(self):
        records = normalize_rows(["Contact", "Status", "CompletedBy"], [["+91111", "Pending", "Asha"]])
        assert records[0].status is ContactStatus.COMPLETED

    @pytest.mark.parametrize("status", ["Completed", "done", "Wrong number"])
    def test_non_pending_status_is_not_assignable(self, status):
        records = normalize_rows(["Contact", "Status"], [["+91111", status]])
        assert records[0].status is ContactStatus.COMPLETED

    def test_values_are_trimmed(self):
        records = normalize_rows(["Contact", "Status"], [["  +91111  ", " pending "]])
        assert records[0].identifier == "+91111"
        assert records[0].status is ContactStatus.PENDING

    def test_completed_at_parsed_in_zone(self):
        records = normalize_rows(
            ["Contact", "Status", "CompletedBy", "CompletedAt"],
            [["+91111", "Completed", "Asha", "05/03/2024, 10:00:15"]],
            tz=IST,
        )
        assert records[0].completed_at == datetime(2024, 3, 5, 10, 0, 15, tzinfo=IST)

    def test_extra_columns_preserved(self):
        records = normalize_rows(["Contact", "Name"], [["+91111", "Meera"]])
        assert records[0].extra == {"Name": "Meera"}

    def test_no_contact_column_yields_unassignable_records(self):
        records = normalize_rows(["Name", "Status"], [["Meera", "Pending"]])
        assert records[0].identifier == ""
        assert not records[0].is_pending

    def test_idempotent_on_own_output(self):
        header = ["Contact", "Status", "CompletedBy", "CompletedAt"]
        rows = [["+91111", "Pending", "", ""], ["+91222", "Completed", "Ravi", "01/01/2024, 10:00:00"]]
        first = normalize_rows(header, rows, tz=IST)
        rendered = [
            [
                r.identifier,
                r.status.value,
                r.completed_by or "",
                r.completed_at.strftime("%d/%m/%Y, %H:%M:%S") if r.completed_at else "",
            ]
            for r in first
        ]
        assert normalize_rows(header, rendered, tz=IST) == first


class TestNormalizeTable:
    def test_empty_values_raise_schema_error(self):
        with pytest.raises(SchemaError):
            normalize_table([])

    def test_header_only(self):
        layout, records = normalize_table([["Contact", "Status"]])
        assert records == []
        assert layout.has("contact")

    def test_old_layout_contact_and_completed_by(self):
        values = [["Contact", "CompletedBy"], ["+91111", ""], ["+91222", "Raj"]]
        _, records = normalize_table(values)
        pending = [r for r in records if r.is_pending]
        assert [(r.identifier, r.row_address) for r in pending] == [("+91111", 2)]
