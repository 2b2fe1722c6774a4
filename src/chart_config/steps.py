"""Step graph and status vocabulary for the configuration pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .errors import InvalidMutationError

FILTERS = "filters"
QUERY = "query"
PREVIEW = "preview"
MAPPING = "mapping"

STEP_ORDER: tuple[str, ...] = (FILTERS, QUERY, PREVIEW, MAPPING)

STEP_LABELS: dict[str, str] = {
    FILTERS: "Filters",
    QUERY: "Query",
    PREVIEW: "Preview",
    MAPPING: "Mapping",
}

# Each step may only depend on a step earlier in STEP_ORDER.
UPSTREAM: dict[str, str | None] = {
    FILTERS: None,
    QUERY: FILTERS,
    PREVIEW: QUERY,
    MAPPING: PREVIEW,
}

VALID = "valid"
NEEDS_UPDATE = "needs_update"
OUTDATED = "outdated"

STATUS_SEVERITY: dict[str, int] = {VALID: 0, NEEDS_UPDATE: 1, OUTDATED: 2}


@dataclass(frozen=True)
class ValidityResult:
    status: str
    reason: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.status == VALID

    def to_dict(self) -> dict[str, str | None]:
        return {"status": self.status, "reason": self.reason}


def check_step(step: str) -> str:
    if step not in UPSTREAM:
        raise InvalidMutationError(f"Unknown step: {step!r}")
    return step


def step_index(step: str) -> int:
    return STEP_ORDER.index(check_step(step))


def upstream_of(step: str) -> str | None:
    """Return the step ``step`` depends on, or None for the root."""
    return UPSTREAM[check_step(step)]


def downstream_of(step: str) -> str | None:
    """Return the step that depends on ``step``, or None for the last one."""
    check_step(step)
    for candidate, parent in UPSTREAM.items():
        if parent == step:
            return candidate
    return None


def most_severe(statuses: Iterable[str]) -> str:
    """Return the worst status, ordered outdated > needs_update > valid."""
    worst = VALID
    for status in statuses:
        if STATUS_SEVERITY[status] > STATUS_SEVERITY[worst]:
            worst = status
    return worst
