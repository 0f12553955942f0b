#!/usr/bin/env python3
"""Professional qualifications viewer (Polars + Streamlit).

Joins three CSV sources by qualification code and lists the result by
professional family:

- ``UNO.csv``: base qualifications (code, family, name, level, forecast)
- ``DOS.csv``: professional certificates per qualification
- ``TRES.csv``: training cycles per qualification

Run ``streamlit run qp_browser/qp_streamlit_app.py`` for the browser, or use
this script from the command line:

```
python qp_view.py families --config config.yaml
python qp_view.py show --family "Informática y comunicaciones"
python qp_view.py export --output reports/qualifications.csv
```

Sample ``config.yaml``
----------------------
```yaml
# Relative paths resolve from the config file location.
data_base_path: ./data
sources:
  primary: UNO.csv
  certificates: DOS.csv
  cycles: https://example.org/data/TRES.csv
csv:
  separator: ","
  encoding: utf8
columns:
  primary:
    forecast: "Previsión 2026"
fetch:
  workers: 3
  timeout: 30
logging:
  level: INFO
```
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

import polars as pl

from qp_browser.qp_data import (
    SourceLoadError,
    display_frame,
    load_qualifications,
    records_to_frame,
)
from qp_common.config import AppConfig, ConfigError, default_config_path, load_config
from qp_common.merge import filter_by_family

LOGGER = logging.getLogger(__name__)
NO_MATCHES_MESSAGE = "No data available for this selection."


def _config_from_args(args: argparse.Namespace) -> AppConfig:
    path: Optional[Path] = args.config
    if path is None:
        candidate = default_config_path()
        path = candidate if candidate.exists() else None
    config = load_config(path)
    if not args.verbose:
        logging.getLogger().setLevel(config.log_level)
    return config


def write_csv(frame: pl.DataFrame, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.write_csv(path, include_header=True)
    LOGGER.info("Wrote CSV: %s", path)


def cmd_families(args: argparse.Namespace) -> None:
    result = load_qualifications(_config_from_args(args))
    for family in result.families:
        print(family)


def cmd_show(args: argparse.Namespace) -> None:
    result = load_qualifications(_config_from_args(args))
    matches = filter_by_family(result.records, args.family)
    frame = display_frame(matches)

    if args.output:
        write_csv(frame, args.output)
        return
    if not matches:
        print(NO_MATCHES_MESSAGE)
        return
    print(frame.to_pandas().to_string(index=False))


def cmd_export(args: argparse.Namespace) -> None:
    result = load_qualifications(_config_from_args(args))
    write_csv(records_to_frame(result.records), args.output)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Professional qualifications viewer (UNO/DOS/TRES CSV join)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command")

    config_help = "Path to YAML config (default: $QP_CONFIG or config.yaml when present)"

    families = subparsers.add_parser("families", help="List professional families.")
    families.add_argument("--config", type=Path, help=config_help)
    families.set_defaults(func=cmd_families)

    show = subparsers.add_parser("show", help="Show qualifications of one professional family.")
    show.add_argument("--config", type=Path, help=config_help)
    show.add_argument("--family", required=True, help="Exact professional family name.")
    show.add_argument("--output", type=Path, help="Optional CSV path for the filtered table.")
    show.set_defaults(func=cmd_show)

    export = subparsers.add_parser("export", help="Write every joined qualification to CSV.")
    export.add_argument("--config", type=Path, help=config_help)
    export.add_argument("--output", type=Path, required=True, help="CSV path to write.")
    export.set_defaults(func=cmd_export)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return 0

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    try:
        args.func(args)
    except (ConfigError, SourceLoadError) as exc:
        LOGGER.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
