"""
Three-way join of the qualification sources.

The primary source drives a left join; the certificate and cycle sources are
pre-aggregated by normalized code (duplicates concatenated with " | ") and
then scanned again to recover qualifications that never appear in the primary
source. Everything here is pure: no I/O, no logging, no shared state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Sequence, Tuple

from .normalize import decode_sources, first_non_blank, normalize_code
from .schema import (
    AGGREGATE_SEPARATOR,
    CertificateRow,
    CycleRow,
    JoinedRecord,
    PrimaryRow,
)


@dataclass
class MergeReport:
    input_rows: Dict[str, int] = field(default_factory=dict)
    skipped_blank_codes: Dict[str, int] = field(default_factory=dict)
    primary_records: int = 0
    certificate_orphans: int = 0
    cycle_orphans: int = 0
    total_records: int = 0
    family_count: int = 0


@dataclass
class MergeResult:
    records: List[JoinedRecord]
    families: List[str]
    report: MergeReport

    def __iter__(self) -> Iterator[Any]:
        # Allows `records, families = merge_records(...)`.
        return iter((self.records, self.families))


def build_aggregate(pairs: Iterable[Tuple[Any, str]]) -> Dict[str, str]:
    """
    Aggregate (raw_code, display_text) pairs by normalized code.

    Blank codes are skipped. The first pair for a key sets its value; later
    pairs append " | " + display_text in input order, blank text included.
    """

    aggregate: Dict[str, str] = {}
    for raw_code, text in pairs:
        key = normalize_code(raw_code)
        if not key:
            continue
        if key in aggregate:
            aggregate[key] = f"{aggregate[key]}{AGGREGATE_SEPARATOR}{text}"
        else:
            aggregate[key] = text
    return aggregate


def aggregate_rows(
    rows: Iterable[Mapping[str, Any]],
    key_columns: Sequence[str],
    display_columns: Sequence[str],
) -> Dict[str, str]:
    """Aggregate raw rows using prioritized key and display column lists."""

    return build_aggregate(
        (first_non_blank(row, key_columns), first_non_blank(row, display_columns)) for row in rows
    )


def aggregate_records(records: Iterable[CertificateRow | CycleRow]) -> Dict[str, str]:
    """Aggregate typed secondary records by their code and display text."""

    return build_aggregate((record.code, record.display_text) for record in records)


def extract_families(records: Iterable[JoinedRecord]) -> List[str]:
    """Distinct non-blank family names, sorted ascending."""

    return sorted({record.family for record in records if record.family.strip()})


def filter_by_family(records: Iterable[JoinedRecord], family: str | None) -> List[JoinedRecord]:
    """
    Records whose family equals `family` exactly (case-sensitive).

    An empty selection returns an empty list rather than every record.
    """

    if not family:
        return []
    return [record for record in records if record.family == family]


def _recover_orphans(
    combined: Dict[str, JoinedRecord],
    rows: Sequence[CertificateRow | CycleRow],
    certificates: Mapping[str, str],
    cycles: Mapping[str, str],
) -> int:
    """
    Add a record for each row whose code is not yet in `combined`.

    Certificate and cycle fields come from the aggregates, not from the row
    itself, so duplicate orphan rows keep every contributing value.
    """

    created = 0
    for row in rows:
        key = normalize_code(row.code)
        if not key or key in combined:
            continue
        combined[key] = JoinedRecord(
            family=row.family,
            code=row.code,
            name=row.name,
            level=row.level,
            forecast="",
            certificates=certificates.get(key, ""),
            cycles=cycles.get(key, ""),
        )
        created += 1
    return created


def merge_records(
    primary: Sequence[PrimaryRow],
    certificates: Sequence[CertificateRow],
    cycles: Sequence[CycleRow],
) -> MergeResult:
    """
    Join decoded records from the three sources by normalized code.

    Output order: primary records (first-seen position, last row's fields),
    then certificate-only qualifications, then cycle-only qualifications.
    A code missing from the primary source but present in both secondary
    sources is created by the certificate pass.
    """

    certificate_aggregate = aggregate_records(certificates)
    cycle_aggregate = aggregate_records(cycles)

    report = MergeReport(
        input_rows={"primary": len(primary), "certificates": len(certificates), "cycles": len(cycles)},
        skipped_blank_codes={
            "primary": sum(1 for row in primary if not normalize_code(row.code)),
            "certificates": sum(1 for row in certificates if not normalize_code(row.code)),
            "cycles": sum(1 for row in cycles if not normalize_code(row.code)),
        },
    )

    combined: Dict[str, JoinedRecord] = {}
    for row in primary:
        key = normalize_code(row.code)
        if not key:
            continue
        combined[key] = JoinedRecord(
            family=row.family,
            code=row.code,
            name=row.name,
            level=row.level,
            forecast=row.forecast,
            certificates=certificate_aggregate.get(key, ""),
            cycles=cycle_aggregate.get(key, ""),
        )
    report.primary_records = len(combined)

    report.certificate_orphans = _recover_orphans(
        combined, certificates, certificate_aggregate, cycle_aggregate
    )
    report.cycle_orphans = _recover_orphans(combined, cycles, certificate_aggregate, cycle_aggregate)

    records = list(combined.values())
    families = extract_families(records)
    report.total_records = len(records)
    report.family_count = len(families)
    return MergeResult(records=records, families=families, report=report)


def merge_qualifications(
    primary_rows: Iterable[Mapping[str, Any]],
    certificate_rows: Iterable[Mapping[str, Any]],
    cycle_rows: Iterable[Mapping[str, Any]],
    column_mappings: Mapping[str, Mapping[str, str]] | None = None,
) -> MergeResult:
    """Decode raw row mappings (header -> value) and merge them."""

    primary, certificates, cycles = decode_sources(
        primary_rows, certificate_rows, cycle_rows, column_mappings
    )
    return merge_records(primary, certificates, cycles)
