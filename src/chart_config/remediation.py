"""Apply smart-assist actions as single snapshot transitions."""

from __future__ import annotations

from dataclasses import replace
from typing import Callable

from .assist import REMOVE_REFERENCE_FROM_QUERY, RESTORE_FILTER
from .errors import InvalidMutationError, UnknownActionError
from .references import IDENTIFIER_PATTERN, removed_marker, render_placeholder
from .state import ConfigSnapshot, FiltersPayload, QueryPayload, restamp


def _remove_reference_from_query(
    identifier: str, snapshot: ConfigSnapshot, now: int
) -> ConfigSnapshot:
    query = snapshot.query
    statement = query.statement.replace(
        render_placeholder(identifier), removed_marker(identifier)
    )
    return replace(
        snapshot,
        query=QueryPayload(
            statement=statement,
            last_validated=restamp(query.last_validated, now),
        ),
    )


def _restore_filter(identifier: str, snapshot: ConfigSnapshot, now: int) -> ConfigSnapshot:
    filters = snapshot.filters
    selected = filters.selected
    samples = dict(filters.sample_values)
    if identifier not in selected:
        selected = selected + (identifier,)
        samples[identifier] = ()
    stamp = restamp(filters.last_validated, now)
    # Query is re-confirmed against the restored filters with the same stamp.
    return replace(
        snapshot,
        filters=FiltersPayload(
            selected=selected,
            sample_values=samples,
            last_validated=stamp,
        ),
        query=QueryPayload(
            statement=snapshot.query.statement,
            last_validated=restamp(snapshot.query.last_validated, stamp),
        ),
    )


ActionHandler = Callable[[str, ConfigSnapshot, int], ConfigSnapshot]

ACTION_HANDLERS: dict[str, ActionHandler] = {
    REMOVE_REFERENCE_FROM_QUERY: _remove_reference_from_query,
    RESTORE_FILTER: _restore_filter,
}


def apply_action(kind: str, payload: str, snapshot: ConfigSnapshot, *, now: int) -> ConfigSnapshot:
    """Return a new snapshot with action ``kind`` applied to ``payload``.

    The affected step is re-stamped with ``now`` in the same transition, so
    no reader ever sees rewritten content with an old stamp.

    Raises:
        UnknownActionError: ``kind`` is not a registered action.
        InvalidMutationError: ``payload`` is not a filter identifier.
    """
    handler = ACTION_HANDLERS.get(kind)
    if handler is None:
        raise UnknownActionError(f"Unknown remediation action: {kind!r}")
    if not isinstance(payload, str) or not IDENTIFIER_PATTERN.fullmatch(payload):
        raise InvalidMutationError(f"Action payload must be a filter identifier, got {payload!r}")
    return handler(payload, snapshot, now)
