"""Text normalization and edit distance for reasoning trace segments."""

from __future__ import annotations

import re
from typing import Iterable

from rapidfuzz.distance import Levenshtein

_WHITESPACE = re.compile(r"\s+")


def normalize_delta(delta: str) -> str:
    """Case-fold, collapse whitespace runs to one space and trim."""
    return _WHITESPACE.sub(" ", delta.lower()).strip()


def distance(left: str, right: str) -> int:
    """Character-level Levenshtein distance."""
    return Levenshtein.distance(left, right)


def min_distance(target: str, candidates: Iterable[str]) -> int | None:
    """Smallest distance from ``target`` to any candidate, None if there are none."""
    best: int | None = None
    for candidate in candidates:
        value = Levenshtein.distance(target, candidate, score_cutoff=best)
        if best is None or value < best:
            best = value
            if best == 0:
                break
    return best
