"""Per-step validity derived from the current snapshot.

Statuses are never stored. Each step combines cross-reference consistency
with timestamp staleness against its upstream step, and a step whose
upstream cannot be evaluated is reported before its own checks run.
"""

from __future__ import annotations

from typing import Callable, Iterable

from .references import extract_column_references
from .state import ConfigSnapshot
from .steps import (
    FILTERS,
    MAPPING,
    NEEDS_UPDATE,
    OUTDATED,
    PREVIEW,
    QUERY,
    STEP_ORDER,
    VALID,
    ValidityResult,
    most_severe,
    upstream_of,
)

StatusCache = dict[str, ValidityResult]

_VALID = ValidityResult(status=VALID)


def _filters_status(snapshot: ConfigSnapshot, upstream: ValidityResult | None) -> ValidityResult:
    return _VALID


def _query_status(snapshot: ConfigSnapshot, upstream: ValidityResult | None) -> ValidityResult:
    selected = set(snapshot.filters.selected)
    missing = [f for f in snapshot.query.referenced_filter_ids if f not in selected]
    if missing:
        return ValidityResult(NEEDS_UPDATE, f"uses removed filters: {', '.join(missing)}")
    if snapshot.query.last_validated < snapshot.filters.last_validated:
        return ValidityResult(NEEDS_UPDATE, "upstream filters changed")
    return _VALID


def _preview_status(snapshot: ConfigSnapshot, upstream: ValidityResult | None) -> ValidityResult:
    if upstream is not None and not upstream.is_valid:
        return ValidityResult(OUTDATED, "upstream step requires attention")
    if snapshot.preview.last_validated < snapshot.query.last_validated:
        return ValidityResult(NEEDS_UPDATE, "query changed since last run")
    return _VALID


def _mapping_status(snapshot: ConfigSnapshot, upstream: ValidityResult | None) -> ValidityResult:
    if upstream is not None and upstream.status == OUTDATED:
        return ValidityResult(OUTDATED, "preview is outdated")
    if upstream is not None and upstream.status == NEEDS_UPDATE:
        return ValidityResult(NEEDS_UPDATE, "preview needs refresh")
    columns = set(snapshot.preview.columns)
    invalid = [c for c in extract_column_references(snapshot.mapping) if c not in columns]
    if invalid:
        return ValidityResult(NEEDS_UPDATE, f"invalid columns: {', '.join(invalid)}")
    if snapshot.mapping.last_validated < snapshot.preview.last_validated:
        return ValidityResult(NEEDS_UPDATE, "preview changed")
    return _VALID


RULES: dict[str, Callable[[ConfigSnapshot, ValidityResult | None], ValidityResult]] = {
    FILTERS: _filters_status,
    QUERY: _query_status,
    PREVIEW: _preview_status,
    MAPPING: _mapping_status,
}


def compute_status(
    step: str, snapshot: ConfigSnapshot, *, cache: StatusCache | None = None
) -> ValidityResult:
    """Return the ValidityResult for ``step`` in ``snapshot``.

    Upstream steps are evaluated first through ``upstream_of``. Pass the same
    ``cache`` dict to reuse results across calls on one snapshot.
    """
    if cache is not None and step in cache:
        return cache[step]
    parent = upstream_of(step)
    upstream = compute_status(parent, snapshot, cache=cache) if parent else None
    result = RULES[step](snapshot, upstream)
    if cache is not None:
        cache[step] = result
    return result


def compute_all_statuses(snapshot: ConfigSnapshot) -> dict[str, ValidityResult]:
    cache: StatusCache = {}
    return {step: compute_status(step, snapshot, cache=cache) for step in STEP_ORDER}


def steps_needing_attention(statuses: dict[str, ValidityResult]) -> list[str]:
    return [step for step, result in statuses.items() if not result.is_valid]


def overall_status(statuses: Iterable[ValidityResult]) -> str:
    return most_severe(result.status for result in statuses)
