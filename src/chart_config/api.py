"""
Library API entrypoints for chart-config.

Presentation layers hand in a snapshot and get back everything derived
from it: per-step validity, smart-assist issues and readiness to save.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .assist import Issue, detect_issues
from .state import ConfigSnapshot
from .steps import STEP_LABELS, ValidityResult
from .validity import compute_all_statuses, overall_status, steps_needing_attention


@dataclass
class ConfigReport:
    """Derived view of one snapshot."""

    statuses: dict[str, ValidityResult]
    """Validity per step, in pipeline order."""

    issues: list[Issue]
    """Smart-assist issues with their remediation actions."""

    needs_attention: list[str]
    """Steps whose status is not valid."""

    @property
    def is_ready(self) -> bool:
        """True when every step is valid and the config can be saved."""
        return not self.needs_attention

    @property
    def overall_status(self) -> str:
        return overall_status(self.statuses.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall_status": self.overall_status,
            "is_ready": self.is_ready,
            "needs_attention": list(self.needs_attention),
            "steps": [
                {"step": step, "label": STEP_LABELS[step], **result.to_dict()}
                for step, result in self.statuses.items()
            ],
            "issues": [issue.to_dict() for issue in self.issues],
        }


def evaluate(snapshot: ConfigSnapshot) -> ConfigReport:
    """
    Derive statuses and issues for ``snapshot``.

    Example:
        >>> from chart_config import evaluate, initial_snapshot
        >>> report = evaluate(initial_snapshot(now=0))
        >>> report.is_ready
        True
    """
    statuses = compute_all_statuses(snapshot)
    return ConfigReport(
        statuses=statuses,
        issues=detect_issues(snapshot),
        needs_attention=steps_needing_attention(statuses),
    )
