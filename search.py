"""
search.py
Member name lookup and a quick dues estimate for the public page.
"""

from __future__ import annotations

from datetime import date
from difflib import SequenceMatcher

import utils

SIMILARITY_CUTOFF = 0.5


def _similarity(query: str, name: str) -> float:
    q = query.lower()
    n = name.lower()
    whole = SequenceMatcher(None, q, n).ratio()
    # Best match against any single word catches first names and nicknames
    words = max((SequenceMatcher(None, q, w).ratio() for w in n.split()), default=0.0)
    return max(whole, words)


def suggest_similar_names(query: str, names: list[str], limit: int = 5) -> list[str]:
    """
    Up to ``limit`` names matching ``query``.

    Plain substring matches are returned as-is when there are few enough of
    them; otherwise names are ranked by similarity, tolerating typos.
    """
    q = query.strip().lower()
    if not q:
        return []

    direct = [n for n in names if q in n.lower()]
    if 0 < len(direct) <= limit:
        return direct

    if direct:
        scored = [(_similarity(q, n), n) for n in direct]
    else:
        scored = [(_similarity(q, n), n) for n in names]
        scored = [s for s in scored if s[0] >= SIMILARITY_CUTOFF]
    ranked = sorted(scored, key=lambda s: (-s[0], s[1]))
    return [n for _, n in ranked[:limit]]


def estimate_dues(start_date: str, weekly_rate: int, current_date: str | None = None) -> int:
    """Weeks touched between the two dates times the weekly rate."""
    start = utils.parse_iso(utils.day_key(start_date))
    end = utils.parse_iso(utils.day_key(current_date)) if current_date else date.today()
    return len(utils.iter_weeks(start, end)) * weekly_rate
