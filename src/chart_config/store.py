"""Session-scoped configuration store.

The store owns the current ``ConfigSnapshot``. Every named mutation builds a
complete new snapshot (content and ``last_validated`` together) and swaps it
in one assignment, so readers never observe a half-applied change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Mapping, Sequence

import pandas as pd

from .assist import Issue, detect_issues
from .catalog import DEFAULT_FILTER_CATALOG, FilterCatalog
from .errors import ConfigNotReadyError, InvalidMutationError
from .references import MAPPING_FIELDS, render_placeholder
from .remediation import apply_action
from .state import (
    ConfigSnapshot,
    FiltersPayload,
    MonotonicClock,
    PreviewPayload,
    QueryPayload,
    initial_snapshot,
    restamp,
)
from .steps import (
    FILTERS,
    MAPPING,
    PREVIEW,
    QUERY,
    STEP_ORDER,
    ValidityResult,
    check_step,
    downstream_of,
    upstream_of,
)
from .validity import compute_all_statuses, compute_status, steps_needing_attention

logger = logging.getLogger("chart_config.store")

QueryExecutor = Callable[[str, FiltersPayload], pd.DataFrame]
Persist = Callable[[ConfigSnapshot], Any]


@dataclass(frozen=True)
class ChangeRecord:
    step: str
    operation: str
    timestamp: int


class ConfigurationStore:
    """Holds one editing session's configuration and applies mutations.

    Args:
        snapshot: Starting state. Defaults to the demo configuration.
        catalog: Filters that may be selected.
        clock: Callable returning epoch milliseconds. Wrapped so readings
            strictly increase and land after every stamp in ``snapshot``.
    """

    def __init__(
        self,
        snapshot: ConfigSnapshot | None = None,
        *,
        catalog: FilterCatalog = DEFAULT_FILTER_CATALOG,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._clock = clock if isinstance(clock, MonotonicClock) else MonotonicClock(clock)
        self.catalog = catalog
        self._snapshot = snapshot if snapshot is not None else initial_snapshot(self._clock())
        self._clock.advance_past(self._snapshot.latest_stamp())
        self._history: list[ChangeRecord] = []
        self._active_step = STEP_ORDER[0]

    @property
    def snapshot(self) -> ConfigSnapshot:
        return self._snapshot

    @property
    def history(self) -> tuple[ChangeRecord, ...]:
        return tuple(self._history)

    # -- reads --

    def status(self, step: str) -> ValidityResult:
        return compute_status(step, self._snapshot)

    def statuses(self) -> dict[str, ValidityResult]:
        return compute_all_statuses(self._snapshot)

    def issues(self) -> list[Issue]:
        return detect_issues(self._snapshot)

    def steps_needing_attention(self) -> list[str]:
        return steps_needing_attention(self.statuses())

    def is_ready(self) -> bool:
        return not self.steps_needing_attention()

    # -- navigation --

    @property
    def active_step(self) -> str:
        return self._active_step

    def go_to(self, step: str) -> str:
        self._active_step = check_step(step)
        return self._active_step

    def next_step(self) -> str:
        self._active_step = downstream_of(self._active_step) or self._active_step
        return self._active_step

    def previous_step(self) -> str:
        self._active_step = upstream_of(self._active_step) or self._active_step
        return self._active_step

    # -- mutations --

    def _commit(self, snapshot: ConfigSnapshot, step: str, operation: str) -> ConfigSnapshot:
        self._snapshot = snapshot
        self._history.append(
            ChangeRecord(step=step, operation=operation, timestamp=snapshot.last_validated(step))
        )
        logger.debug("%s.%s committed at %d", step, operation, snapshot.last_validated(step))
        return snapshot

    def _stamp(self, step: str) -> int:
        return restamp(self._snapshot.last_validated(step), self._clock())

    def toggle_filter(self, filter_id: str) -> ConfigSnapshot:
        """Select ``filter_id`` if unselected, otherwise deselect it.

        Deselecting drops the filter's sample values with it. Only selecting
        is checked against the catalog, so a restored off-catalog filter can
        still be removed.
        """
        filters = self._snapshot.filters
        if filter_id not in self.catalog and not filters.is_selected(filter_id):
            raise InvalidMutationError(f"Unknown filter id: {filter_id!r}")
        samples = dict(filters.sample_values)
        if filters.is_selected(filter_id):
            selected = tuple(f for f in filters.selected if f != filter_id)
            samples.pop(filter_id, None)
        else:
            selected = filters.selected + (filter_id,)
            samples.setdefault(filter_id, ())
        payload = FiltersPayload(
            selected=selected, sample_values=samples, last_validated=self._stamp(FILTERS)
        )
        return self._commit(replace(self._snapshot, filters=payload), FILTERS, "toggle_filter")

    def set_sample_values(self, filter_id: str, values: Sequence[str]) -> ConfigSnapshot:
        filters = self._snapshot.filters
        if not filters.is_selected(filter_id):
            raise InvalidMutationError(f"Filter {filter_id!r} is not selected")
        samples = dict(filters.sample_values)
        samples[filter_id] = values
        payload = FiltersPayload(
            selected=filters.selected, sample_values=samples, last_validated=self._stamp(FILTERS)
        )
        return self._commit(replace(self._snapshot, filters=payload), FILTERS, "set_sample_values")

    def edit_query(self, statement: str) -> ConfigSnapshot:
        if not isinstance(statement, str):
            raise InvalidMutationError("Query statement must be a string")
        payload = QueryPayload(statement=statement, last_validated=self._stamp(QUERY))
        return self._commit(replace(self._snapshot, query=payload), QUERY, "edit_query")

    def insert_filter_reference(self, filter_id: str) -> ConfigSnapshot:
        """Append the placeholder for a selected filter to the query text."""
        if not self._snapshot.filters.is_selected(filter_id):
            raise InvalidMutationError(f"Filter {filter_id!r} is not selected")
        statement = self._snapshot.query.statement + render_placeholder(filter_id)
        payload = QueryPayload(statement=statement, last_validated=self._stamp(QUERY))
        return self._commit(
            replace(self._snapshot, query=payload), QUERY, "insert_filter_reference"
        )

    def run_query(self, executor: QueryExecutor | None = None) -> ConfigSnapshot:
        """Re-run the query and stamp the preview.

        Without an ``executor`` the current rows are kept and only the stamp
        moves. An executor receives the statement and filters and returns a
        DataFrame that replaces the preview.
        """
        stamp = self._stamp(PREVIEW)
        if executor is None:
            preview = replace(self._snapshot.preview, last_validated=stamp)
        else:
            df = executor(self._snapshot.query.statement, self._snapshot.filters)
            if not isinstance(df, pd.DataFrame):
                raise InvalidMutationError("Query executor must return a pandas DataFrame")
            preview = PreviewPayload.from_dataframe(df, last_validated=stamp)
        logger.debug("Query run produced %d row(s)", len(preview.rows))
        return self._commit(replace(self._snapshot, preview=preview), PREVIEW, "run_query")

    def refresh_preview(
        self, rows: Iterable[Mapping[str, Any]], columns: Sequence[str] | None = None
    ) -> ConfigSnapshot:
        rows = tuple(rows)
        if columns is None:
            names: list[str] = []
            for row in rows:
                for key in row:
                    if key not in names:
                        names.append(key)
            columns = names
        preview = PreviewPayload(
            rows=rows, columns=tuple(columns), last_validated=self._stamp(PREVIEW)
        )
        return self._commit(replace(self._snapshot, preview=preview), PREVIEW, "refresh_preview")

    def select_mapping(self, field: str, column: str | None) -> ConfigSnapshot:
        if field not in MAPPING_FIELDS:
            raise InvalidMutationError(
                f"Unknown mapping field: {field!r} (expected one of {', '.join(MAPPING_FIELDS)})"
            )
        mapping = replace(
            self._snapshot.mapping, **{field: column or ""}, last_validated=self._stamp(MAPPING)
        )
        return self._commit(replace(self._snapshot, mapping=mapping), MAPPING, "select_mapping")

    def apply_action(self, kind: str, payload: str) -> ConfigSnapshot:
        """Apply a smart-assist action; every re-stamped step gets a history record."""
        before = self._snapshot
        snapshot = apply_action(kind, payload, before, now=self._clock())
        logger.info("Applied %s(%s)", kind, payload)
        for step in STEP_ORDER:
            if snapshot.payload(step) is not before.payload(step):
                self._commit(snapshot, step, kind)
        return snapshot

    def save(self, persist: Persist) -> Any:
        """Hand the snapshot to ``persist`` once every step is valid."""
        pending = self.steps_needing_attention()
        if pending:
            raise ConfigNotReadyError(
                f"{len(pending)} step(s) need attention: {', '.join(pending)}"
            )
        logger.info("Saving configuration")
        return persist(self._snapshot)
