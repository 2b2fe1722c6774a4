"""Smart assist: named inconsistency patterns and the fixes they offer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from .state import ConfigSnapshot
from .steps import QUERY

ERROR = "error"
WARNING = "warning"

REMOVE_REFERENCE_FROM_QUERY = "remove_reference_from_query"
RESTORE_FILTER = "restore_filter"


@dataclass(frozen=True)
class IssueAction:
    label: str
    kind: str
    payload: str

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "kind": self.kind, "payload": self.payload}


@dataclass(frozen=True)
class Issue:
    severity: str  # error/warning
    message: str
    actions: tuple[IssueAction, ...] = ()
    step: str | None = None
    subject: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity,
            "message": self.message,
            "step": self.step,
            "subject": self.subject,
            "actions": [a.to_dict() for a in self.actions],
        }


def _dangling_filter_references(snapshot: ConfigSnapshot) -> list[Issue]:
    selected = set(snapshot.filters.selected)
    issues: list[Issue] = []
    for filter_id in snapshot.query.referenced_filter_ids:
        if filter_id in selected:
            continue
        issues.append(
            Issue(
                severity=ERROR,
                message=(
                    f'Filter "{filter_id}" is used in query but no longer exists '
                    "in selected filters."
                ),
                actions=(
                    IssueAction("Remove from query", REMOVE_REFERENCE_FROM_QUERY, filter_id),
                    IssueAction("Restore filter", RESTORE_FILTER, filter_id),
                ),
                step=QUERY,
                subject=filter_id,
            )
        )
    return issues


IssueRule = Callable[[ConfigSnapshot], list[Issue]]

ISSUE_RULES: tuple[IssueRule, ...] = (_dangling_filter_references,)


def detect_issues(snapshot: ConfigSnapshot) -> list[Issue]:
    """Run every issue rule against ``snapshot``; never mutates it."""
    issues: list[Issue] = []
    for rule in ISSUE_RULES:
        issues.extend(rule(snapshot))
    return issues
