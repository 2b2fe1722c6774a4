"""Prompt helpers for the interactive smart-assist command.

Prompts take an input function so tests can feed answers from a list.
"""
from __future__ import annotations

from typing import Callable

from .assist import Issue, IssueAction

__all__ = [
    "PromptFunc",
    "prompt_menu",
    "prompt_bool",
    "prompt_issue_action",
]

PromptFunc = Callable[[str], str]

SKIP = "skip"


def _render_menu(header: str, options: list[tuple[str, str]], default: str | None) -> str:
    lines = [header] + [f"\t[{n}] {label}" for n, (_, label) in enumerate(options, start=1)]
    hint = f"> (default: {default}): " if default else "> "
    return "\n".join(lines) + "\n" + hint


def _choice_lookup(options: list[tuple[str, str]]) -> dict[str, str]:
    # number, name and label all select the same option
    lookup: dict[str, str] = {}
    for n, (name, label) in enumerate(options, start=1):
        lookup[str(n)] = name
        lookup.setdefault(name.lower(), name)
        lookup.setdefault(label.lower(), name)
    return lookup


def prompt_menu(
    prompt: PromptFunc,
    header: str,
    options: list[tuple[str, str]],
    *,
    default: str | None = None,
) -> str:
    """Show a numbered menu until the answer names an option; return its name.

    An answer may be the option number, its name or its label (any case).
    Empty input returns ``default`` when one is given.

    Example, as ``chart-config assist`` shows a dangling filter::

        [ERROR] Filter "filter_country" is used in query but no longer exists in selected filters.
            [1] Remove from query
            [2] Restore filter
            [3] Skip
        > (default: skip): 2

    returns ``"restore_filter"``.
    """
    menu = _render_menu(header, options, default)
    lookup = _choice_lookup(options)
    while True:
        answer = prompt(menu).strip().lower()
        if not answer and default:
            return default
        if answer in lookup:
            return lookup[answer]
        print(f"Invalid choice. Options: {', '.join(name for name, _ in options)}\n")


def prompt_bool(
    prompt: PromptFunc, text: str, *, default: bool | None = None
) -> bool | None:
    """Prompt for a yes/no response; empty input returns ``default``."""
    while True:
        value = prompt(text).strip().lower()
        if value == "":
            return default
        if value in {"y", "yes"}:
            return True
        if value in {"n", "no"}:
            return False
        print("Invalid choice. Enter y or n.\n")


def prompt_issue_action(prompt: PromptFunc, issue: Issue) -> IssueAction | None:
    """Offer an issue's actions plus 'skip'; return the chosen action or None."""
    options = [(action.kind, action.label) for action in issue.actions]
    options.append((SKIP, "Skip"))
    header = f"[{issue.severity.upper()}] {issue.message}"
    choice = prompt_menu(prompt, header, options, default=SKIP)
    for action in issue.actions:
        if action.kind == choice:
            return action
    return None
