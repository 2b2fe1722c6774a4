from __future__ import annotations

import logging

import pandas as pd
import pytest

from chart_config.assist import REMOVE_REFERENCE_FROM_QUERY, RESTORE_FILTER
from chart_config.errors import ConfigNotReadyError, InvalidMutationError
from chart_config.steps import FILTERS, MAPPING, NEEDS_UPDATE, OUTDATED, PREVIEW, QUERY, VALID
from chart_config.state import initial_snapshot
from chart_config.store import ConfigurationStore
from conftest import FakeClock, make_snapshot


@pytest.fixture
def store(clock: FakeClock) -> ConfigurationStore:
    return ConfigurationStore(clock=clock)


def test_new_store_starts_valid(store: ConfigurationStore) -> None:
    assert store.is_ready()
    assert store.issues() == []
    assert store.active_step == FILTERS


def test_removing_used_filter_cascades(store: ConfigurationStore) -> None:
    store.toggle_filter("filter_method")

    assert "filter_method" not in store.snapshot.filters.selected
    assert "filter_method" not in store.snapshot.filters.sample_values
    assert store.status(QUERY).status == NEEDS_UPDATE
    assert store.status(PREVIEW).status == OUTDATED
    assert store.status(MAPPING).status == OUTDATED
    assert store.steps_needing_attention() == [QUERY, PREVIEW, MAPPING]
    assert [i.subject for i in store.issues()] == ["filter_method"]


def test_adding_filter_gets_empty_samples_and_marks_query_stale(store: ConfigurationStore) -> None:
    store.toggle_filter("filter_country")
    assert store.snapshot.filters.selected[-1] == "filter_country"
    assert store.snapshot.filters.sample_values["filter_country"] == ()
    result = store.status(QUERY)
    assert result.status == NEEDS_UPDATE
    assert result.reason == "upstream filters changed"


def test_reselecting_same_filters_still_invalidates(store: ConfigurationStore) -> None:
    store.toggle_filter("filter_country")
    store.toggle_filter("filter_country")
    assert store.snapshot.filters.selected == ("filter_shop", "filter_method")
    assert store.status(QUERY).status == NEEDS_UPDATE


def test_unknown_filter_rejected(store: ConfigurationStore) -> None:
    with pytest.raises(InvalidMutationError, match="Unknown filter id"):
        store.toggle_filter("filter_planet")


def test_sample_values_require_selection(store: ConfigurationStore) -> None:
    store.set_sample_values("filter_shop", ["web"])
    assert store.snapshot.filters.sample_values["filter_shop"] == ("web",)
    with pytest.raises(InvalidMutationError, match="not selected"):
        store.set_sample_values("filter_country", ["de"])


def test_edit_query_recomputes_references(store: ConfigurationStore) -> None:
    store.edit_query("SELECT 1 WHERE x = {filter_shop}")
    assert store.snapshot.query.referenced_filter_ids == ("filter_shop",)
    assert store.status(QUERY).status == VALID
    assert store.status(PREVIEW).status == NEEDS_UPDATE


def test_edit_query_rejects_non_string(store: ConfigurationStore) -> None:
    with pytest.raises(InvalidMutationError):
        store.edit_query(None)  # type: ignore[arg-type]


def test_insert_filter_reference(store: ConfigurationStore) -> None:
    store.edit_query("SELECT 1 WHERE a = ")
    store.insert_filter_reference("filter_method")
    assert store.snapshot.query.statement.endswith("{filter_method}")
    assert store.snapshot.query.referenced_filter_ids == ("filter_method",)
    with pytest.raises(InvalidMutationError, match="not selected"):
        store.insert_filter_reference("filter_country")


def test_run_query_default_keeps_rows_and_restores_preview(store: ConfigurationStore) -> None:
    rows = store.snapshot.preview.rows
    store.edit_query(store.snapshot.query.statement + "\nLIMIT 10")
    assert store.status(PREVIEW).status == NEEDS_UPDATE
    store.run_query()
    assert store.snapshot.preview.rows == rows
    assert store.status(PREVIEW).status == VALID
    assert store.status(MAPPING).reason == "preview changed"


def test_run_query_with_executor(store: ConfigurationStore) -> None:
    seen = {}

    def executor(statement, filters):
        seen["statement"] = statement
        seen["selected"] = filters.selected
        return pd.DataFrame({"gmv": [1.5], "prev": [1.0]})

    store.run_query(executor)
    assert seen["selected"] == ("filter_shop", "filter_method")
    assert store.snapshot.preview.columns == ("gmv", "prev")
    result = store.status(MAPPING)
    assert result.status == NEEDS_UPDATE
    assert result.reason.startswith("invalid columns:")


def test_run_query_executor_must_return_dataframe(store: ConfigurationStore) -> None:
    before = store.snapshot
    with pytest.raises(InvalidMutationError, match="DataFrame"):
        store.run_query(lambda statement, filters: [{"a": 1}])
    assert store.snapshot is before


def test_refresh_preview_infers_columns(store: ConfigurationStore) -> None:
    store.refresh_preview([{"a": 1}, {"a": 2, "b": 3}])
    assert store.snapshot.preview.columns == ("a", "b")


def test_mapping_column_fix_flow(store: ConfigurationStore) -> None:
    store.refresh_preview([{"a": 1, "b": 2, "c": 3}], columns=["a", "b", "c"])
    store.select_mapping("value_column", "d")
    store.select_mapping("previous_value_column", "b")
    store.select_mapping("percent_change_column", None)
    result = store.status(MAPPING)
    assert result.status == NEEDS_UPDATE
    assert result.reason == "invalid columns: d"

    store.select_mapping("value_column", "a")
    assert store.status(MAPPING).status == VALID
    assert store.snapshot.mapping.percent_change_column == ""


def test_unknown_mapping_field(store: ConfigurationStore) -> None:
    with pytest.raises(InvalidMutationError, match="Unknown mapping field"):
        store.select_mapping("color", "a")


def test_remove_action_round_trip(store: ConfigurationStore) -> None:
    store.toggle_filter("filter_method")
    store.apply_action(REMOVE_REFERENCE_FROM_QUERY, "filter_method")
    assert store.snapshot.query.referenced_filter_ids == ("filter_shop",)
    assert store.issues() == []
    assert store.status(QUERY).status == VALID


def test_restore_action_round_trip(store: ConfigurationStore) -> None:
    store.toggle_filter("filter_method")
    store.apply_action(RESTORE_FILTER, "filter_method")
    assert store.snapshot.filters.selected == ("filter_shop", "filter_method")
    assert store.issues() == []
    assert store.status(QUERY).status == VALID


def test_full_recovery_after_fix(store: ConfigurationStore) -> None:
    store.toggle_filter("filter_method")
    store.apply_action(REMOVE_REFERENCE_FROM_QUERY, "filter_method")
    store.run_query()
    store.select_mapping("value_column", "current_gmv")
    assert store.is_ready()


def test_stamps_are_monotonic_per_step(store: ConfigurationStore) -> None:
    stamps = []
    for _ in range(3):
        store.toggle_filter("filter_date")
        stamps.append(store.snapshot.filters.last_validated)
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == 3


def test_history_records_each_mutation(store: ConfigurationStore) -> None:
    store.toggle_filter("filter_date")
    store.edit_query("SELECT 1")
    store.run_query()
    assert [(r.step, r.operation) for r in store.history] == [
        (FILTERS, "toggle_filter"),
        (QUERY, "edit_query"),
        (PREVIEW, "run_query"),
    ]
    assert store.history[0].timestamp == store.snapshot.filters.last_validated


def test_navigation_clamps_at_ends(store: ConfigurationStore) -> None:
    assert store.previous_step() == FILTERS
    assert store.next_step() == QUERY
    assert store.go_to(MAPPING) == MAPPING
    assert store.next_step() == MAPPING
    with pytest.raises(InvalidMutationError):
        store.go_to("nowhere")


def test_save_requires_valid_steps(store: ConfigurationStore) -> None:
    saved = []
    store.save(saved.append)
    assert saved == [store.snapshot]

    store.toggle_filter("filter_shop")
    with pytest.raises(ConfigNotReadyError, match="3 step"):
        store.save(saved.append)
    assert len(saved) == 1


def test_remediation_is_logged(store: ConfigurationStore, caplog) -> None:
    store.toggle_filter("filter_method")
    with caplog.at_level(logging.INFO, logger="chart_config.store"):
        store.apply_action(RESTORE_FILTER, "filter_method")
    assert "restore_filter(filter_method)" in caplog.text


def test_clock_behind_snapshot_still_marks_query_stale() -> None:
    store = ConfigurationStore(initial_snapshot(now=10_000), clock=lambda: 5_000)
    store.toggle_filter("filter_date")
    assert store.snapshot.filters.last_validated > store.snapshot.query.last_validated
    assert store.status(QUERY).status == NEEDS_UPDATE


def test_restored_off_catalog_filter_can_be_deselected(clock: FakeClock) -> None:
    snapshot = make_snapshot(statement="SELECT * FROM t WHERE region = {filter_region}")
    store = ConfigurationStore(snapshot, clock=clock)
    store.apply_action(RESTORE_FILTER, "filter_region")
    assert store.snapshot.filters.is_selected("filter_region")

    store.toggle_filter("filter_region")
    assert not store.snapshot.filters.is_selected("filter_region")
    assert "filter_region" not in store.snapshot.filters.sample_values
    with pytest.raises(InvalidMutationError, match="Unknown filter id"):
        store.toggle_filter("filter_region")


def test_restore_records_both_restamped_steps(store: ConfigurationStore) -> None:
    store.toggle_filter("filter_method")
    store.apply_action(RESTORE_FILTER, "filter_method")
    assert [(r.step, r.operation) for r in store.history] == [
        (FILTERS, "toggle_filter"),
        (FILTERS, RESTORE_FILTER),
        (QUERY, RESTORE_FILTER),
    ]
    assert store.history[-1].timestamp == store.snapshot.query.last_validated


def test_snapshot_mappings_are_read_only(store: ConfigurationStore) -> None:
    with pytest.raises(TypeError):
        store.snapshot.filters.sample_values["filter_country"] = ("de",)  # type: ignore[index]
    with pytest.raises(TypeError):
        store.snapshot.preview.rows[0]["current_gmv"] = 0  # type: ignore[index]
