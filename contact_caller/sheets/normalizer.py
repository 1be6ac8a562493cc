from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo

from ..models.contact import ContactRecord, ContactStatus
from .timestamps import parse_completed_at

"""Schema normalizer: raw sheet rows -> canonical ContactRecords.

- Row 1 of the store is the header row; data rows start at row 2.
- Header labels are matched case-insensitively after trimming, through an
  explicit alias table (canonical field -> accepted labels).
- Short rows are padded with empty strings, never rejected.
- Only a store without a header row raises SchemaError. A header with no data
  rows, or with no contact column, is a valid result with nothing assignable.
"""

__all__ = [
    "SchemaError",
    "CANONICAL_FIELDS",
    "DEFAULT_ALIASES",
    "AliasTable",
    "ColumnLayout",
    "normalize_header",
    "resolve_layout",
    "normalize_rows",
    "normalize_table",
]

logger = logging.getLogger(__name__)

HEADER_ROW = 1
FIRST_DATA_ROW = 2

CANONICAL_FIELDS = ("contact", "status", "completedby", "completedat")

_COMPLETED_TOKENS = frozenset({"completed", "complete", "done", "called"})
_PENDING_TOKENS = frozenset({"", "pending"})
_SEPARATORS = re.compile(r"[\s_\-]+")


class SchemaError(Exception):
    """Raised when the header row is missing or lacks a column a write needs."""


def normalize_header(label: object) -> str:
    """Trim, lower-case and collapse separator runs (``" Phone_Number "`` -> ``"phone number"``)."""
    text = "" if label is None else str(label)
    return _SEPARATORS.sub(" ", text.strip().lower())


@dataclass(frozen=True)
class AliasTable:
    """Canonical field -> set of normalized header labels that resolve to it."""
    labels: Mapping[str, frozenset[str]]

    @classmethod
    def build(cls, raw: Mapping[str, Iterable[str]]) -> AliasTable:
        labels: dict[str, frozenset[str]] = {}
        for canonical in CANONICAL_FIELDS:
            variants = {normalize_header(canonical)}
            variants.update(normalize_header(v) for v in raw.get(canonical, ()))
            labels[canonical] = frozenset(variants)
        unknown = set(raw) - set(CANONICAL_FIELDS)
        if unknown:
            raise ValueError(f"unknown canonical fields in alias table: {sorted(unknown)}")
        return cls(labels=labels)

    def extended(self, extra: Mapping[str, Iterable[str]] | None) -> AliasTable:
        """Return a new table with ``extra`` labels added (never removed)."""
        if not extra:
            return self
        merged = {k: set(v) for k, v in self.labels.items()}
        for canonical, variants in extra.items():
            if canonical not in merged:
                raise ValueError(f"unknown canonical field in aliases: {canonical!r}")
            merged[canonical].update(normalize_header(v) for v in variants)
        return AliasTable(labels={k: frozenset(v) for k, v in merged.items()})

    def canonical_for(self, label: object) -> str | None:
        key = normalize_header(label)
        for canonical in CANONICAL_FIELDS:
            if key in self.labels[canonical]:
                return canonical
        return None


DEFAULT_ALIASES = AliasTable.build(
    {
        "contact": [
            "contacts",
            "phone",
            "phone number",
            "phonenumber",
            "number",
            "mobile",
            "mobile number",
            "contact number",
        ],
        "status": ["call status"],
        "completedby": ["completed by", "caller", "called by"],
        "completedat": ["completed at", "completed on", "completion time"],
    }
)


@dataclass(frozen=True)
class ColumnLayout:
    """0-based column positions of the canonical fields in one header row.

    The first column matching a field wins; later duplicates are kept as extra
    columns so nothing in the sheet is silently dropped.
    """
    header: tuple[str, ...]
    positions: Mapping[str, int]
    extra_columns: tuple[int, ...] = field(default_factory=tuple)

    @property
    def width(self) -> int:
        return len(self.header)

    def index_of(self, canonical: str) -> int | None:
        return self.positions.get(canonical)

    def has(self, canonical: str) -> bool:
        return canonical in self.positions


def resolve_layout(header: Sequence[object], aliases: AliasTable = DEFAULT_ALIASES) -> ColumnLayout:
    labels = tuple("" if h is None else str(h).strip() for h in header)
    positions: dict[str, int] = {}
    extra: list[int] = []
    for idx, label in enumerate(labels):
        canonical = aliases.canonical_for(label)
        if canonical is not None and canonical not in positions:
            positions[canonical] = idx
        elif label:
            extra.append(idx)
    return ColumnLayout(header=labels, positions=positions, extra_columns=tuple(extra))


def _cell(cells: Sequence[str], idx: int | None) -> str:
    if idx is None or idx >= len(cells):
        return ""
    value = cells[idx]
    return "" if value is None else str(value).strip()


def _status_from(status_text: str, completed_by: str) -> ContactStatus:
    token = status_text.lower()
    if token in _COMPLETED_TOKENS:
        return ContactStatus.COMPLETED
    if token not in _PENDING_TOKENS:
        # any other explicit status (skipped, wrong number...) is not assignable
        return ContactStatus.COMPLETED
    if completed_by:
        return ContactStatus.COMPLETED
    return ContactStatus.PENDING


def normalize_rows(
    header: Sequence[object],
    rows: Iterable[Sequence[object]],
    aliases: AliasTable = DEFAULT_ALIASES,
    tz: ZoneInfo | None = None,
) -> list[ContactRecord]:
    """Normalize data rows against ``header``.

    Args:
        header: HeaderRow cells (row 1 of the store)
        rows: Data rows in store order, the first one being row 2
        aliases: Alias table used to resolve canonical columns
        tz: Civil zone used to interpret stored completion times

    Returns:
        One ContactRecord per data row, including rows with an empty identifier
        (those are dropped by the pending filter, not here, so row addresses
        stay positional).
    """
    layout = resolve_layout(header, aliases)
    if not layout.has("contact"):
        logger.warning("no contact column in header %s; no row is assignable", list(layout.header))
    zone = tz or ZoneInfo("UTC")

    c_idx = layout.index_of("contact")
    s_idx = layout.index_of("status")
    by_idx = layout.index_of("completedby")
    at_idx = layout.index_of("completedat")

    records: list[ContactRecord] = []
    for offset, raw in enumerate(rows):
        cells = ["" if v is None else str(v) for v in raw]
        completed_by = _cell(cells, by_idx)
        completed_at_text = _cell(cells, at_idx)
        status = _status_from(_cell(cells, s_idx), completed_by)
        extra = {layout.header[i]: _cell(cells, i) for i in layout.extra_columns}
        records.append(
            ContactRecord(
                identifier=_cell(cells, c_idx),
                status=status,
                row_address=FIRST_DATA_ROW + offset,
                completed_by=completed_by or None,
                completed_at=parse_completed_at(completed_at_text, zone),
                extra=extra,
            )
        )
    return records


def normalize_table(
    values: Sequence[Sequence[object]],
    aliases: AliasTable = DEFAULT_ALIASES,
    tz: ZoneInfo | None = None,
) -> tuple[ColumnLayout, list[ContactRecord]]:
    """Normalize a full store read (header row followed by data rows).

    Raises:
        SchemaError: if ``values`` is empty (no header row at all)
    """
    if not values:
        raise SchemaError("store has no header row")
    header = values[0]
    layout = resolve_layout(header, aliases)
    records = normalize_rows(header, values[1:], aliases=aliases, tz=tz)
    logger.debug(
        "normalized rows=%d columns=%s extra=%d",
        len(records),
        sorted(layout.positions),
        len(layout.extra_columns),
    )
    return layout, records
