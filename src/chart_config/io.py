from __future__ import annotations

from pathlib import Path
from typing import Any

import pandas as pd
import yaml

from .errors import ConfigFileError, InvalidMutationError, ParquetUnavailableError
from .references import MAPPING_FIELDS
from .state import (
    ConfigSnapshot,
    FiltersPayload,
    MappingPayload,
    PreviewPayload,
    QueryPayload,
)


def _suffix(path: Path) -> str:
    return path.suffix.lower().lstrip(".")


def read_table(path: Path, *, nrows: int | None = None) -> pd.DataFrame:
    suffix = _suffix(path)
    if suffix == "csv":
        return pd.read_csv(path, nrows=nrows)
    if suffix == "parquet":
        try:
            df = pd.read_parquet(path)
        except ImportError as e:  # pragma: no cover
            raise ParquetUnavailableError(
                "Reading Parquet previews requires pyarrow. Install with: pip install -e \".[parquet]\""
            ) from e
        if nrows is not None:
            return df.head(nrows)
        return df
    raise ValueError(f"Unsupported input format: {path}")


def snapshot_to_dict(snapshot: ConfigSnapshot) -> dict[str, Any]:
    return {
        "filters": {
            "selected": list(snapshot.filters.selected),
            "sample_values": {k: list(v) for k, v in snapshot.filters.sample_values.items()},
            "last_validated": snapshot.filters.last_validated,
        },
        "query": {
            "statement": snapshot.query.statement,
            # Informational only; recomputed from the statement on load.
            "referenced_filter_ids": list(snapshot.query.referenced_filter_ids),
            "last_validated": snapshot.query.last_validated,
        },
        "preview": {
            "columns": list(snapshot.preview.columns),
            "rows": [dict(row) for row in snapshot.preview.rows],
            "last_validated": snapshot.preview.last_validated,
        },
        "mapping": {
            **{name: getattr(snapshot.mapping, name) for name in MAPPING_FIELDS},
            "last_validated": snapshot.mapping.last_validated,
        },
    }


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    body = raw.get(name)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ConfigFileError(f"config.{name} must be a mapping if provided")
    return body


def snapshot_from_dict(raw: Any) -> ConfigSnapshot:
    if not isinstance(raw, dict):
        raise ConfigFileError("Config YAML must be a mapping at top level")

    filters = _section(raw, "filters")
    query = _section(raw, "query")
    preview = _section(raw, "preview")
    mapping = _section(raw, "mapping")

    try:
        return ConfigSnapshot(
            filters=FiltersPayload(
                selected=filters.get("selected") or (),
                sample_values={
                    k: (v if v is not None else ())
                    for k, v in (filters.get("sample_values") or {}).items()
                },
                last_validated=filters.get("last_validated", 0),
            ),
            query=QueryPayload(
                statement=query.get("statement") or "",
                last_validated=query.get("last_validated", 0),
            ),
            preview=PreviewPayload(
                rows=preview.get("rows") or (),
                columns=preview.get("columns") or (),
                last_validated=preview.get("last_validated", 0),
            ),
            mapping=MappingPayload(
                **{name: mapping.get(name) or "" for name in MAPPING_FIELDS},
                last_validated=mapping.get("last_validated", 0),
            ),
        )
    except (InvalidMutationError, TypeError, AttributeError) as e:
        raise ConfigFileError(f"Invalid config: {e}") from e


def load_snapshot(path: Path) -> ConfigSnapshot:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except Exception as e:
        raise ConfigFileError(f"Failed to read config YAML: {path}") from e
    return snapshot_from_dict(raw)


def write_snapshot(snapshot: ConfigSnapshot, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.safe_dump(snapshot_to_dict(snapshot), sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )
