from __future__ import annotations

import pytest

from chart_config.state import (
    ConfigSnapshot,
    FiltersPayload,
    MappingPayload,
    PreviewPayload,
    QueryPayload,
)


class FakeClock:
    """Clock that advances by ``step`` milliseconds on every reading."""

    def __init__(self, start: int = 10_000, step: int = 10) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> int:
        self.now += self.step
        return self.now


def make_snapshot(
    *,
    selected=("filter_shop", "filter_method"),
    statement="SELECT * FROM t WHERE shop IN ({filter_shop}) AND country = '{filter_country}'",
    columns=("a", "b", "c"),
    rows=({"a": 1, "b": 2, "c": "3%"},),
    mapping=("a", "b", "c"),
    stamps=(100, 200, 300, 400),
) -> ConfigSnapshot:
    filters_ts, query_ts, preview_ts, mapping_ts = stamps
    return ConfigSnapshot(
        filters=FiltersPayload(
            selected=tuple(selected),
            sample_values={f: () for f in selected},
            last_validated=filters_ts,
        ),
        query=QueryPayload(statement=statement, last_validated=query_ts),
        preview=PreviewPayload(rows=tuple(rows), columns=tuple(columns), last_validated=preview_ts),
        mapping=MappingPayload(*mapping, last_validated=mapping_ts),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def dangling_snapshot() -> ConfigSnapshot:
    """Filters [shop, method]; query references [shop, country]."""
    return make_snapshot()


@pytest.fixture
def clean_snapshot() -> ConfigSnapshot:
    return make_snapshot(
        statement="SELECT * FROM t WHERE shop IN ({filter_shop}) AND method = '{filter_method}'"
    )
