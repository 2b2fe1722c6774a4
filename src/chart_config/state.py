"""Immutable configuration snapshot and per-step payloads.

Each payload carries its own ``last_validated`` stamp (epoch milliseconds).
Payload invariants are checked on construction, so a snapshot that exists is
always well formed; building a broken one raises ``InvalidMutationError``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping, Sequence

import pandas as pd

from .errors import InvalidMutationError
from .references import MAPPING_FIELDS, extract_filter_references
from .steps import FILTERS, MAPPING, PREVIEW, QUERY, check_step


def _string_tuple(values: Any, what: str) -> tuple[str, ...]:
    if isinstance(values, str) or not isinstance(values, Sequence):
        raise InvalidMutationError(f"{what} must be a sequence of strings")
    out = tuple(values)
    for value in out:
        if not isinstance(value, str):
            raise InvalidMutationError(f"{what} must contain only strings, got {value!r}")
    return out


def _unique(values: tuple[str, ...], what: str) -> tuple[str, ...]:
    if len(set(values)) != len(values):
        raise InvalidMutationError(f"{what} must not contain duplicates: {list(values)}")
    return values


def _stamp(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidMutationError(f"{what}.last_validated must be an integer timestamp")
    return value


@dataclass(frozen=True)
class FiltersPayload:
    selected: tuple[str, ...] = ()
    sample_values: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    last_validated: int = 0

    def __post_init__(self) -> None:
        selected = _unique(_string_tuple(self.selected, "filters.selected"), "filters.selected")
        if not isinstance(self.sample_values, Mapping):
            raise InvalidMutationError("filters.sample_values must be a mapping")
        samples: dict[str, tuple[str, ...]] = {}
        for filter_id, values in self.sample_values.items():
            if filter_id not in selected:
                raise InvalidMutationError(
                    f"filters.sample_values has an entry for unselected filter {filter_id!r}"
                )
            samples[filter_id] = _string_tuple(values, f"filters.sample_values[{filter_id}]")
        object.__setattr__(self, "selected", selected)
        object.__setattr__(self, "sample_values", MappingProxyType(samples))
        _stamp(self.last_validated, "filters")

    def is_selected(self, filter_id: str) -> bool:
        return filter_id in self.selected


@dataclass(frozen=True)
class QueryPayload:
    """Query text plus the filter ids it references.

    ``referenced_filter_ids`` is a cache over ``statement``: it is recomputed
    whenever a payload is built and cannot be passed in.
    """

    statement: str = ""
    last_validated: int = 0
    referenced_filter_ids: tuple[str, ...] = field(init=False, default=())

    def __post_init__(self) -> None:
        if not isinstance(self.statement, str):
            raise InvalidMutationError("query.statement must be a string")
        _stamp(self.last_validated, "query")
        object.__setattr__(
            self, "referenced_filter_ids", extract_filter_references(self.statement)
        )


@dataclass(frozen=True)
class PreviewPayload:
    rows: tuple[Mapping[str, Any], ...] = ()
    columns: tuple[str, ...] = ()
    last_validated: int = 0

    def __post_init__(self) -> None:
        columns = _unique(_string_tuple(self.columns, "preview.columns"), "preview.columns")
        if isinstance(self.rows, (str, Mapping)) or not isinstance(self.rows, Sequence):
            raise InvalidMutationError("preview.rows must be a sequence of records")
        rows: list[Mapping[str, Any]] = []
        allowed = set(columns)
        for i, row in enumerate(self.rows):
            if not isinstance(row, Mapping):
                raise InvalidMutationError(f"preview.rows[{i}] must be a mapping")
            extra = [key for key in row if key not in allowed]
            if extra:
                raise InvalidMutationError(
                    f"preview.rows[{i}] has keys outside preview.columns: {extra}"
                )
            rows.append(MappingProxyType(dict(row)))
        object.__setattr__(self, "columns", columns)
        object.__setattr__(self, "rows", tuple(rows))
        _stamp(self.last_validated, "preview")

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, *, last_validated: int) -> "PreviewPayload":
        columns = [str(c) for c in df.columns]
        records = df.astype(object).where(pd.notna(df), None).to_dict(orient="records")
        rows = [{str(k): v for k, v in record.items()} for record in records]
        return cls(rows=tuple(rows), columns=tuple(columns), last_validated=last_validated)

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame([dict(row) for row in self.rows], columns=list(self.columns))


@dataclass(frozen=True)
class MappingPayload:
    value_column: str = ""
    previous_value_column: str = ""
    percent_change_column: str = ""
    last_validated: int = 0

    def __post_init__(self) -> None:
        for name in MAPPING_FIELDS:
            value = getattr(self, name)
            if value is None:
                object.__setattr__(self, name, "")
            elif not isinstance(value, str):
                raise InvalidMutationError(f"mapping.{name} must be a string")
        _stamp(self.last_validated, "mapping")


@dataclass(frozen=True)
class ConfigSnapshot:
    filters: FiltersPayload = field(default_factory=FiltersPayload)
    query: QueryPayload = field(default_factory=QueryPayload)
    preview: PreviewPayload = field(default_factory=PreviewPayload)
    mapping: MappingPayload = field(default_factory=MappingPayload)

    def payload(self, step: str) -> Any:
        return getattr(self, check_step(step))

    def last_validated(self, step: str) -> int:
        return self.payload(step).last_validated

    def latest_stamp(self) -> int:
        return max(self.last_validated(step) for step in _PAYLOAD_TYPES)

    def replace_step(self, step: str, payload: Any) -> "ConfigSnapshot":
        expected = _PAYLOAD_TYPES[check_step(step)]
        if not isinstance(payload, expected):
            raise InvalidMutationError(
                f"{step} payload must be {expected.__name__}, got {type(payload).__name__}"
            )
        return replace(self, **{step: payload})


_PAYLOAD_TYPES: dict[str, type] = {
    FILTERS: FiltersPayload,
    QUERY: QueryPayload,
    PREVIEW: PreviewPayload,
    MAPPING: MappingPayload,
}


def restamp(previous: int, now: int) -> int:
    """Return the new ``last_validated`` value; never earlier than ``previous``."""
    return max(previous, now)


class MonotonicClock:
    """Epoch-millisecond clock whose readings strictly increase.

    Two mutations in the same millisecond still get distinct stamps, so the
    later one always reads as newer. ``after`` seeds the last reading, e.g.
    with the newest stamp of a snapshot loaded from disk.
    """

    def __init__(self, source=None, *, after: int | None = None) -> None:
        self._source = source or (lambda: int(time.time() * 1000))
        self._last: int | None = after

    def advance_past(self, stamp: int) -> None:
        """Make every later reading strictly greater than ``stamp``."""
        if self._last is None or stamp > self._last:
            self._last = stamp

    def __call__(self) -> int:
        now = int(self._source())
        if self._last is not None and now <= self._last:
            now = self._last + 1
        self._last = now
        return now


DEMO_STATEMENT = """SELECT
  sum(case when report_date = '{report_date}' then total_amount else 0 end) as current_gmv,
  sum(case when report_date = date_sub(toDate('{report_date}'), interval 1 day) then total_amount else 0 end) as previous_gmv
FROM billing_transactions
WHERE platform IN ({filter_shop})
  AND payment_method = '{filter_method}'
  AND gds_code = '{gds_code}'"""


def initial_snapshot(now: int) -> ConfigSnapshot:
    """Return the demo configuration with every step stamped at ``now``."""
    return ConfigSnapshot(
        filters=FiltersPayload(
            selected=("filter_shop", "filter_method"),
            sample_values={
                "filter_shop": ("ios", "android"),
                "filter_method": ("credit_card",),
            },
            last_validated=now,
        ),
        query=QueryPayload(statement=DEMO_STATEMENT, last_validated=now),
        preview=PreviewPayload(
            rows=(
                {
                    "current_gmv": 40125600,
                    "previous_gmv": 80330000,
                    "compare_value": "50.1%",
                    "data_status": 0,
                    "last_update": "12:00",
                },
            ),
            columns=("current_gmv", "previous_gmv", "compare_value", "data_status", "last_update"),
            last_validated=now,
        ),
        mapping=MappingPayload(
            value_column="current_gmv",
            previous_value_column="previous_gmv",
            percent_change_column="compare_value",
            last_validated=now,
        ),
    )
