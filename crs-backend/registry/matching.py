"""Approximate name matching for registry searches.

Names are compared after normalisation (case folded, everything but letters
and digits dropped). A normalised query contained in a candidate scores
SUBSTRING_SCORE, an identical one 1.0; otherwise the score is the
``difflib.SequenceMatcher`` ratio. Candidates below MIN_SCORE are dropped.
"""
from __future__ import annotations

import re
from difflib import SequenceMatcher
from typing import Iterable, List, Sequence, Tuple, TypeVar

T = TypeVar("T")

MIN_SCORE = 0.75
SUBSTRING_SCORE = 0.95

_NON_ALNUM = re.compile(r"[^0-9a-z]+")


def normalize_name(name: str) -> str:
    return _NON_ALNUM.sub("", name.lower())


def score(query: str, candidate: str) -> float:
    q = normalize_name(query)
    c = normalize_name(candidate)
    if not q or not c:
        return 0.0
    if q == c:
        return 1.0
    if q in c:
        return SUBSTRING_SCORE
    return SequenceMatcher(None, q, c).ratio()


def rank(query: str, candidates: Iterable[Tuple[T, Sequence[str]]], limit: int = 0) -> List[Tuple[T, float]]:
    """Score each item by its best-matching name; best first, ties in input order."""
    scored = []
    for item, names in candidates:
        best = max((score(query, n) for n in names), default=0.0)
        if best >= MIN_SCORE:
            scored.append((item, best))
    # sort is stable, so equal scores keep discovery order
    scored.sort(key=lambda pair: -pair[1])
    if limit:
        scored = scored[:limit]
    return scored


__all__ = ["MIN_SCORE", "SUBSTRING_SCORE", "normalize_name", "score", "rank"]
