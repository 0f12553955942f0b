from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import List, Sequence

import streamlit as st

from qp_browser.qp_data import (
    SourceLoadError,
    display_frame,
    load_qualifications,
    polars_to_csv_bytes,
)
from qp_common.config import AppConfig, ConfigError, default_config_path, load_config
from qp_common.merge import MergeResult, filter_by_family
from qp_common.schema import SOURCE_NAMES

NO_SELECTION_LABEL = "Select a professional family"
NO_MATCHES_MESSAGE = "No data available for this selection."
SOURCE_LABELS = {
    "primary": "Qualifications CSV (UNO)",
    "certificates": "Certificates CSV (DOS)",
    "cycles": "Training cycles CSV (TRES)",
}


def load_config_sidebar() -> AppConfig:
    """Resolve the YAML config and let the user override each source location."""

    st.sidebar.header("Data Source")
    config_path = st.sidebar.text_input(
        "Config file", value=str(default_config_path()), key="config_path"
    )
    path_obj = Path(config_path).expanduser()

    try:
        config = load_config(path_obj if path_obj.exists() else None)
    except ConfigError as exc:
        st.error(f"Config error: {exc}")
        st.stop()

    sources = dict(config.sources)
    for source in SOURCE_NAMES:
        sources[source] = st.sidebar.text_input(
            SOURCE_LABELS[source],
            value=config.source_location(source),
            key=f"{source}_location",
            help="Local path or http(s) URL.",
        ).strip() or config.sources[source]

    if st.sidebar.button("Reload data", use_container_width=True):
        load_qualifications.clear()
    return replace(config, sources=sources)


def family_options(families: Sequence[str]) -> List[str]:
    """Select box options: an empty placeholder followed by the families."""

    return [""] + list(families)


def render_results(result: MergeResult, family: str) -> None:
    """Render nothing, a placeholder, or the filtered table for `family`."""

    if not family:
        return

    matches = filter_by_family(result.records, family)
    st.markdown(f"### {family} ({len(matches)} qualifications)")
    if not matches:
        st.info(NO_MATCHES_MESSAGE)
        return

    df = display_frame(matches)
    st.download_button(
        label="Download CSV",
        data=polars_to_csv_bytes(df),
        file_name="qualifications_filtered.csv",
        mime="text/csv",
    )
    st.dataframe(df.to_pandas(), use_container_width=True, hide_index=True)


def render_summary(result: MergeResult) -> None:
    report = result.report
    summary = {
        "Qualifications": report.total_records,
        "From primary": report.primary_records,
        "Certificate-only": report.certificate_orphans,
        "Cycle-only": report.cycle_orphans,
        "Families": report.family_count,
    }
    cols = st.columns(len(summary))
    for col, (label, count) in zip(cols, summary.items()):
        col.metric(label, f"{count}")


def main() -> None:
    st.set_page_config(page_title="Professional Qualifications Viewer", layout="wide")
    st.title("Professional Qualifications Viewer")
    st.caption(
        "Qualifications joined with their professional certificates and training cycles, "
        "filtered by professional family."
    )

    config = load_config_sidebar()

    try:
        with st.spinner("Loading qualification data..."):
            result = load_qualifications(config)
    except SourceLoadError as exc:
        st.error(f"Error loading data: {exc}")
        st.stop()

    render_summary(result)

    options = family_options(result.families)
    # The first family is pre-selected once data is available.
    default_index = 1 if len(options) > 1 else 0
    family = st.selectbox(
        "Professional family",
        options=options,
        index=default_index,
        format_func=lambda v: NO_SELECTION_LABEL if not v else v,
        key="family_select",
    )
    render_results(result, family)


if __name__ == "__main__":
    main()
