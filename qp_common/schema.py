from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence

SOURCE_NAMES: Sequence[str] = ("primary", "certificates", "cycles")

AGGREGATE_SEPARATOR = " | "
CYCLE_LABEL_SEPARATOR = " - "


@dataclass(frozen=True)
class SourceSchema:
    """Canonical column layout for one of the three input sources."""

    name: str
    columns: Mapping[str, str]  # canonical -> raw column name


PRIMARY_COLS: Mapping[str, str] = {
    "code": "Código QP",
    "family": "Familia profesional",
    "name": "Cualificación profesional",
    "level": "Nivel",
    "forecast": "Previsión 2025",
}

CERTIFICATE_COLS: Mapping[str, str] = {
    "code": "Código QP",
    "family": "Familia profesional",
    "name": "Cualificación Profesional",
    "level": "Nivel",
    "certificate": "Código y certificado",
    "certificate_alt": "Certificado Profesional",
}

CYCLE_COLS: Mapping[str, str] = {
    "code": "Código QP",
    "family": "Familia profesional",
    "name": "Nombre cualificación",
    "level": "Nivel",
    "tier": "Básico/Medio/Superior",
    "cycle": "Ciclo Formativo",
}

SOURCE_SCHEMAS: Dict[str, SourceSchema] = {
    "primary": SourceSchema("primary", PRIMARY_COLS),
    "certificates": SourceSchema("certificates", CERTIFICATE_COLS),
    "cycles": SourceSchema("cycles", CYCLE_COLS),
}


@dataclass(frozen=True)
class PrimaryRow:
    code: str = ""
    family: str = ""
    name: str = ""
    level: str = ""
    forecast: str = ""


@dataclass(frozen=True)
class CertificateRow:
    code: str = ""
    family: str = ""
    name: str = ""
    level: str = ""
    certificate: str = ""
    certificate_alt: str = ""

    @property
    def display_text(self) -> str:
        """Certificate label, preferring the combined code/name column."""

        for value in (self.certificate, self.certificate_alt):
            if value.strip():
                return value
        return ""


@dataclass(frozen=True)
class CycleRow:
    code: str = ""
    family: str = ""
    name: str = ""
    level: str = ""
    tier: str = ""
    cycle: str = ""

    @property
    def display_text(self) -> str:
        # Always "<tier> - <cycle>", even when both parts are blank.
        return f"{self.tier}{CYCLE_LABEL_SEPARATOR}{self.cycle}"


@dataclass(frozen=True)
class JoinedRecord:
    """One qualification after joining the three sources."""

    family: str = ""
    code: str = ""
    name: str = ""
    level: str = ""
    forecast: str = ""
    certificates: str = ""
    cycles: str = ""

    @property
    def key(self) -> str:
        from .normalize import normalize_code

        return normalize_code(self.code)


# Field -> column label used by tables and CSV exports.
RECORD_LABELS: Mapping[str, str] = {
    "family": "Familia profesional",
    "code": "Código cualificación",
    "name": "Cualificación profesional (Resolución febrero 2025)",
    "level": "Nivel",
    "forecast": "Previsión 2025",
    "certificates": "Certificado profesional - Grado C (Código y denominación)",
    "cycles": "Ciclo formativo - Grado D/Grado básico, medio o superior",
}

DISPLAY_FIELDS: Sequence[str] = ("code", "name", "level", "forecast", "certificates", "cycles")
DISPLAY_COLUMNS: List[str] = [RECORD_LABELS[field] for field in DISPLAY_FIELDS]
FAMILY_COLUMN: str = RECORD_LABELS["family"]


def merge_column_mappings(
    overrides: Mapping[str, Mapping[str, str]] | None,
    base: Mapping[str, Mapping[str, str]] | None = None,
) -> Dict[str, Dict[str, str]]:
    """
    Merge overrides into the default source column maps.

    Overrides are canonical->raw per source. Missing entries fall back to
    defaults so callers only need to specify the deltas.
    """

    mapping: Dict[str, Dict[str, str]] = {k: dict(v) for k, v in (base or {}).items()}
    if not mapping:
        mapping = {name: dict(schema.columns) for name, schema in SOURCE_SCHEMAS.items()}

    if overrides:
        for source, cols in overrides.items():
            if source not in SOURCE_SCHEMAS:
                raise ValueError(
                    f"Unknown source '{source}' in column mapping; expected one of: {', '.join(SOURCE_NAMES)}"
                )
            if not isinstance(cols, Mapping):
                raise ValueError(f"Mapping for source '{source}' must be an object of canonical->raw pairs.")
            target = mapping.setdefault(source, {})
            for k, v in cols.items():
                if str(k) not in SOURCE_SCHEMAS[source].columns:
                    raise ValueError(f"Unknown column '{k}' for source '{source}'")
                target[str(k)] = str(v)
    return mapping


DEFAULT_COLUMN_MAPS: Dict[str, Dict[str, str]] = merge_column_mappings(None)
