from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Sequence, Type

from .schema import (
    DEFAULT_COLUMN_MAPS,
    CertificateRow,
    CycleRow,
    PrimaryRow,
    merge_column_mappings,
)


RECORD_TYPES: Dict[str, Type[Any]] = {
    "primary": PrimaryRow,
    "certificates": CertificateRow,
    "cycles": CycleRow,
}


def normalize_code(code: Any) -> str:
    """
    Canonical join key for a qualification code.

    Missing values become "" (treated as absent); everything else is trimmed
    and lower-cased so " QP1 " and "qp1" compare equal.
    """

    if code is None:
        return ""
    return str(code).strip().lower()


def clean_header_name(name: str) -> str:
    """Strip surrounding whitespace and a leading UTF-8 BOM from a CSV header."""

    if not name:
        return name
    return str(name).lstrip("\ufeff").strip()


def cell_text(row: Mapping[str, Any], column: str) -> str:
    """Read a column as text; missing or null cells become ""."""

    value = row.get(column)
    if value is None:
        return ""
    return str(value)


def first_non_blank(row: Mapping[str, Any], columns: Sequence[str]) -> str:
    """Return the first value among `columns` that is not blank, as written."""

    for column in columns:
        value = cell_text(row, column)
        if value.strip():
            return value
    return ""


def decode_rows(
    rows: Iterable[Mapping[str, Any]],
    source: str,
    mapping: Mapping[str, str] | None = None,
) -> List[Any]:
    """
    Decode raw row mappings of one source into its typed record class.

    `mapping` is canonical->raw for that source; missing columns decode to "".
    """

    record_type = RECORD_TYPES[source]
    columns = dict(mapping or DEFAULT_COLUMN_MAPS[source])
    return [
        record_type(**{canon: cell_text(row, raw) for canon, raw in columns.items()})
        for row in rows
    ]


def decode_sources(
    primary_rows: Iterable[Mapping[str, Any]],
    certificate_rows: Iterable[Mapping[str, Any]],
    cycle_rows: Iterable[Mapping[str, Any]],
    column_mappings: Mapping[str, Mapping[str, str]] | None = None,
) -> tuple[List[PrimaryRow], List[CertificateRow], List[CycleRow]]:
    """Decode all three raw row sequences using merged column maps."""

    mapping = merge_column_mappings(column_mappings, base=DEFAULT_COLUMN_MAPS)
    return (
        decode_rows(primary_rows, "primary", mapping["primary"]),
        decode_rows(certificate_rows, "certificates", mapping["certificates"]),
        decode_rows(cycle_rows, "cycles", mapping["cycles"]),
    )
