from __future__ import annotations

import os
from copy import deepcopy
from typing import Any, Iterable, Mapping


def levenshtein(left: str, right: str) -> int:
    if left == right:
        return 0
    if not left:
        return len(right)
    if not right:
        return len(left)
    if len(left) < len(right):
        left, right = right, left

    previous = list(range(len(right) + 1))
    for i, left_char in enumerate(left, 1):
        current = [i]
        for j, right_char in enumerate(right, 1):
            substitution = previous[j - 1] + (left_char != right_char)
            current.append(min(substitution, previous[j] + 1, current[j - 1] + 1))
        previous = current
    return previous[-1]


def similarity(left: str, right: str) -> float:
    """Normalized edit-distance ratio in ``[0, 1]``; two empty strings score 1."""
    longest = max(len(left), len(right))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(left, right) / longest


def rank_candidates(query: str, candidates: Iterable[str]) -> list[tuple[str, float]]:
    """Score every candidate against *query*, best first (ties by name).

    Matching is case-insensitive.
    """
    needle = query.lower()
    scored = [(name, similarity(needle, name.lower())) for name in set(candidates)]
    scored.sort(key=lambda item: (-item[1], item[0]))
    return scored


def env_default(key: str, fallback: str) -> str:
    value = os.environ.get(key)
    return value if value else fallback


def string_keyed(value: Any) -> Any:
    """Deep copy of *value* with every mapping key turned into ``str``.

    YAML reads ``1:`` as an int and ``on:`` as a bool; keys are compared as
    strings everywhere else.
    """
    if isinstance(value, Mapping):
        return {str(key): string_keyed(item) for key, item in value.items()}
    if isinstance(value, list):
        return [string_keyed(item) for item in value]
    return deepcopy(value)
