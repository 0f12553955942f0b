"""
Shared schema, key normalization and merge engine used by both the CLI and the
Streamlit browser.
"""

from .schema import (  # noqa: F401
    AGGREGATE_SEPARATOR,
    DEFAULT_COLUMN_MAPS,
    DISPLAY_COLUMNS,
    FAMILY_COLUMN,
    RECORD_LABELS,
    SOURCE_NAMES,
    CertificateRow,
    CycleRow,
    JoinedRecord,
    PrimaryRow,
    merge_column_mappings,
)

from .normalize import (  # noqa: F401
    clean_header_name,
    decode_rows,
    decode_sources,
    first_non_blank,
    normalize_code,
)

from .merge import (  # noqa: F401
    MergeReport,
    MergeResult,
    aggregate_records,
    aggregate_rows,
    build_aggregate,
    extract_families,
    filter_by_family,
    merge_qualifications,
    merge_records,
)

__all__ = [
    "AGGREGATE_SEPARATOR",
    "DEFAULT_COLUMN_MAPS",
    "DISPLAY_COLUMNS",
    "FAMILY_COLUMN",
    "RECORD_LABELS",
    "SOURCE_NAMES",
    "CertificateRow",
    "CycleRow",
    "JoinedRecord",
    "PrimaryRow",
    "merge_column_mappings",
    "clean_header_name",
    "decode_rows",
    "decode_sources",
    "first_non_blank",
    "normalize_code",
    "MergeReport",
    "MergeResult",
    "aggregate_records",
    "aggregate_rows",
    "build_aggregate",
    "extract_families",
    "filter_by_family",
    "merge_qualifications",
    "merge_records",
]
