from __future__ import annotations

import codecs
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml
from dotenv import load_dotenv

from .schema import DEFAULT_COLUMN_MAPS, SOURCE_NAMES, merge_column_mappings

load_dotenv()

CONFIG_ENV_KEY = "QP_CONFIG"
# Decoded natively by polars; anything else must be a Python codec.
POLARS_ENCODINGS = ("utf8", "utf8-lossy")
DEFAULT_CONFIG_PATH = Path("config.yaml")
DEFAULT_SOURCE_FILES: Dict[str, str] = {
    "primary": "UNO.csv",
    "certificates": "DOS.csv",
    "cycles": "TRES.csv",
}


class ConfigError(ValueError):
    """Raised when the YAML configuration is invalid."""


def _parse_int(value: str | None, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _parse_float(value: str | None, default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


def is_url(location: str) -> bool:
    return location.lower().startswith(("http://", "https://"))


@dataclass
class CsvSettings:
    separator: str = ","
    encoding: str = "utf8"


@dataclass
class FetchSettings:
    workers: int = 3
    timeout: float = 30.0


@dataclass
class AppConfig:
    path: Path | None
    data_dir: Path
    sources: Dict[str, str]
    column_mappings: Dict[str, Dict[str, str]]
    csv: CsvSettings = field(default_factory=CsvSettings)
    fetch: FetchSettings = field(default_factory=FetchSettings)
    log_level: str = "INFO"

    def source_location(self, source: str) -> str:
        """Resolve a configured source to a URL or an absolute file path."""

        location = self.sources[source]
        if is_url(location):
            return location
        return str((self.data_dir / location).expanduser().resolve())


def _resolve_path(base: Path, value: str) -> Path:
    return (base / value).expanduser().resolve()


def _section(raw: Mapping[str, Any], name: str) -> Dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"`{name}` must be a mapping in the configuration file")
    return value


def default_config_path() -> Path:
    return Path(os.getenv(CONFIG_ENV_KEY, str(DEFAULT_CONFIG_PATH)))


def load_config(path: Path | str | None = None) -> AppConfig:
    """
    Load the YAML configuration; a missing file yields the defaults.

    Relative paths resolve from the config file location (or the working
    directory when no file is used). Environment variables QP_DATA_DIR,
    QP_FETCH_WORKERS, QP_FETCH_TIMEOUT and QP_LOG_LEVEL override the file.
    """

    raw: Dict[str, Any] = {}
    config_path = Path(path) if path is not None else None
    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")
        try:
            with config_path.open("r", encoding="utf-8") as handle:
                raw = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a YAML mapping")

    base_dir = config_path.parent if config_path is not None else Path.cwd()
    data_dir_value = os.getenv("QP_DATA_DIR") or str(raw.get("data_base_path", "./data"))
    data_dir = _resolve_path(base_dir, data_dir_value)

    sources_cfg = _section(raw, "sources")
    unknown = [name for name in sources_cfg if name not in SOURCE_NAMES]
    if unknown:
        raise ConfigError(f"Unknown sources in config: {', '.join(map(str, unknown))}")
    sources = {name: str(sources_cfg.get(name) or DEFAULT_SOURCE_FILES[name]) for name in SOURCE_NAMES}

    try:
        column_mappings = merge_column_mappings(_section(raw, "columns"), base=DEFAULT_COLUMN_MAPS)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    csv_cfg = _section(raw, "csv")
    csv_settings = CsvSettings(
        separator=str(csv_cfg.get("separator", ",")),
        encoding=str(csv_cfg.get("encoding", "utf8")),
    )
    if len(csv_settings.separator) != 1:
        raise ConfigError("csv.separator must be a single character")
    if csv_settings.encoding not in POLARS_ENCODINGS:
        try:
            codecs.lookup(csv_settings.encoding)
        except LookupError as exc:
            raise ConfigError(f"Unknown csv.encoding: {csv_settings.encoding}") from exc

    fetch_cfg = _section(raw, "fetch")
    try:
        fetch = FetchSettings(
            workers=_parse_int(os.getenv("QP_FETCH_WORKERS"), int(fetch_cfg.get("workers", 3))),
            timeout=_parse_float(os.getenv("QP_FETCH_TIMEOUT"), float(fetch_cfg.get("timeout", 30))),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid fetch settings: {exc}") from exc
    if fetch.workers < 1:
        raise ConfigError("fetch.workers must be at least 1")

    log_level = (os.getenv("QP_LOG_LEVEL") or str(_section(raw, "logging").get("level", "INFO"))).upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigError(f"Unknown logging level: {log_level}")

    return AppConfig(
        path=config_path,
        data_dir=data_dir,
        sources=sources,
        column_mappings=column_mappings,
        csv=csv_settings,
        fetch=fetch,
        log_level=log_level,
    )
