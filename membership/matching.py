"""
Ordered match rules for process-group targets and taint keys.

A rule list is scanned for an exact value first and for the "*" wildcard second,
so a specific entry always wins over a catch-all regardless of declaration order.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

from membership.policy import WILDCARD


T = TypeVar("T")


def first_match(rules: Sequence[T], value: str, key: Callable[[T], str]) -> T | None:
    """Return the first rule whose key equals `value`, else the first wildcard rule."""
    wildcard: T | None = None
    for rule in rules:
        pattern = key(rule)
        if pattern == value:
            return rule
        if pattern == WILDCARD and wildcard is None:
            wildcard = rule
    return wildcard


def matches_target(targets: Iterable[str], process_group_id: str) -> bool:
    """True if `process_group_id` is listed explicitly or covered by "*"."""
    return first_match(tuple(targets), process_group_id, key=str) is not None


__all__ = ["first_match", "matches_target"]
