"""
Data loading helpers for the qualifications browser and CLI.

The three CSV sources (qualifications, certificates, training cycles) are
fetched concurrently from local paths or HTTP(S) URLs, parsed with Polars as
all-string frames, decoded into typed records and merged by
`qp_common.merge.merge_records`. Loading is all-or-nothing: if any source
fails to fetch or parse, a `SourceLoadError` is raised and nothing is merged.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping

import polars as pl
import requests

from qp_common.config import AppConfig, is_url
from qp_common.merge import MergeResult, merge_records
from qp_common.normalize import clean_header_name, decode_rows
from qp_common.schema import (
    DISPLAY_COLUMNS,
    RECORD_LABELS,
    SOURCE_NAMES,
    JoinedRecord,
)

try:
    import streamlit as st
except ImportError:  # Streamlit is required for the app but keep imports lazy for library usage.
    st = None

LOGGER = logging.getLogger(__name__)


class SourceLoadError(RuntimeError):
    """A source could not be fetched or parsed; the whole load is aborted."""

    def __init__(self, source: str, location: str, stage: str, reason: str) -> None:
        super().__init__(f"Failed to {stage} {source} source at {location}: {reason}")
        self.source = source
        self.location = location
        self.stage = stage


def _cache_data(func):
    """Wrap a function in st.cache_data when Streamlit is available."""

    if st is None:
        return func

    # AppConfig holds dicts and paths; its repr covers every field that affects loading.
    hash_funcs = {AppConfig: lambda cfg: repr(cfg)}
    return st.cache_data(show_spinner=False, hash_funcs=hash_funcs)(func)


def fetch_source_bytes(location: str, timeout: float = 30.0) -> bytes:
    """Read raw bytes from a local path or an HTTP(S) URL."""

    if is_url(location):
        response = requests.get(location, timeout=timeout)
        response.raise_for_status()
        return response.content
    return Path(location).expanduser().read_bytes()


def parse_csv_bytes(data: bytes, *, separator: str = ",", encoding: str = "utf8") -> pl.DataFrame:
    """
    Parse CSV bytes (header row required) into an all-string Polars frame.

    Headers are trimmed and stripped of a BOM; rows where every cell is empty
    are dropped.
    """

    df = pl.read_csv(
        BytesIO(data),
        separator=separator,
        encoding=encoding,
        infer_schema_length=0,
        truncate_ragged_lines=True,
    )
    df = df.rename({c: clean_header_name(c) for c in df.columns})
    if df.width == 0:
        return df
    return df.filter(~pl.all_horizontal(pl.all().is_null()))


def frame_to_rows(df: pl.DataFrame) -> List[Dict[str, Any]]:
    """Convert a frame into a list of header -> value row mappings."""

    return list(df.iter_rows(named=True))


def _load_one(source: str, location: str, config: AppConfig) -> pl.DataFrame:
    try:
        data = fetch_source_bytes(location, timeout=config.fetch.timeout)
    except (OSError, requests.RequestException) as exc:
        raise SourceLoadError(source, location, "fetch", str(exc)) from exc

    try:
        df = parse_csv_bytes(data, separator=config.csv.separator, encoding=config.csv.encoding)
    except (pl.exceptions.PolarsError, UnicodeDecodeError, LookupError) as exc:
        raise SourceLoadError(source, location, "parse", str(exc)) from exc

    LOGGER.info("Loaded %d rows from %s", df.height, location)
    return df


def load_sources(config: AppConfig) -> Dict[str, pl.DataFrame]:
    """
    Fetch and parse all three sources concurrently.

    Returns frames keyed by source name. The first failure is re-raised after
    pending work is cancelled.
    """

    frames: Dict[str, pl.DataFrame] = {}
    locations = {source: config.source_location(source) for source in SOURCE_NAMES}
    with ThreadPoolExecutor(max_workers=max(1, config.fetch.workers)) as ex:
        futs = {
            ex.submit(_load_one, source, location, config): source
            for source, location in locations.items()
        }
        try:
            for f in as_completed(futs):
                frames[futs[f]] = f.result()
        except SourceLoadError as exc:
            LOGGER.error("%s", exc)
            for pending in futs:
                pending.cancel()
            raise
    return frames


def merge_frames(
    frames: Mapping[str, pl.DataFrame],
    column_mappings: Mapping[str, Mapping[str, str]],
) -> MergeResult:
    """Decode the parsed source frames and run the three-way merge."""

    primary = decode_rows(frame_to_rows(frames["primary"]), "primary", column_mappings["primary"])
    certificates = decode_rows(
        frame_to_rows(frames["certificates"]), "certificates", column_mappings["certificates"]
    )
    cycles = decode_rows(frame_to_rows(frames["cycles"]), "cycles", column_mappings["cycles"])

    for source, frame in frames.items():
        missing = [raw for raw in column_mappings[source].values() if raw not in frame.columns]
        if missing:
            LOGGER.debug("Source %s has no columns: %s", source, ", ".join(missing))

    result = merge_records(primary, certificates, cycles)
    report = result.report
    LOGGER.debug(
        "Orphans recovered: %d from certificates, %d from cycles; blank codes skipped: %s",
        report.certificate_orphans,
        report.cycle_orphans,
        report.skipped_blank_codes,
    )
    LOGGER.info(
        "Merged %d records with %d professional families",
        report.total_records,
        report.family_count,
    )
    return result


@_cache_data
def load_qualifications(config: AppConfig) -> MergeResult:
    """Load the three configured sources and merge them."""

    frames = load_sources(config)
    return merge_frames(frames, config.column_mappings)


def records_to_frame(records: Iterable[JoinedRecord]) -> pl.DataFrame:
    """Build a labelled all-string frame (family first, then the display columns)."""

    rows = list(records)
    columns = {label: [getattr(record, name) for record in rows] for name, label in RECORD_LABELS.items()}
    return pl.DataFrame(columns, schema={label: pl.Utf8 for label in RECORD_LABELS.values()})


def display_frame(records: Iterable[JoinedRecord]) -> pl.DataFrame:
    """Only the six columns shown to users."""

    return records_to_frame(records).select(DISPLAY_COLUMNS)


def polars_to_csv_bytes(df: pl.DataFrame) -> bytes:
    """Serialize a Polars frame to UTF-8 CSV bytes for download."""

    return df.write_csv().encode("utf-8")


__all__ = [
    "SourceLoadError",
    "fetch_source_bytes",
    "parse_csv_bytes",
    "frame_to_rows",
    "load_sources",
    "merge_frames",
    "load_qualifications",
    "records_to_frame",
    "display_frame",
    "polars_to_csv_bytes",
]
