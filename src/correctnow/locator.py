from __future__ import annotations
from typing import Iterable, List

from .models import Occurrence, Suggestion


def find_all(text: str, needle: str) -> List[int]:
    """Start index of every literal match, scanning left to right."""
    if not needle:
        return []
    starts: List[int] = []
    step = max(1, len(needle))
    idx = 0
    while idx <= len(text):
        at = text.find(needle, idx)
        if at == -1:
            break
        starts.append(at)
        idx = at + step
    return starts


def locate(text: str, suggestions: Iterable[Suggestion]) -> List[Occurrence]:
    """
    Non-overlapping occurrences of every pending suggestion in `text`.

    Candidates are sorted by (start, length); a left-to-right sweep keeps a
    candidate only when it starts at or after the end of the last kept one,
    so the earliest start wins and, on equal starts, the shortest match wins.
    """
    found: List[Occurrence] = []
    seen: set[tuple[int, int, int]] = set()

    for s in suggestions:
        if not s.is_pending or not s.original:
            continue
        n = len(s.original)
        for at in find_all(text, s.original):
            key = (at, n, id(s))
            if key in seen:
                continue
            seen.add(key)
            found.append(Occurrence(start=at, length=n, suggestion=s))

    # sort is stable: equal (start, length) keep suggestion list order
    found.sort(key=lambda o: (o.start, o.length))

    out: List[Occurrence] = []
    last_end = -1
    for o in found:
        if o.start < last_end:
            continue
        out.append(o)
        last_end = o.end
    return out


def occurrence_at(occurrences: Iterable[Occurrence], pos: int) -> "Occurrence | None":
    for o in occurrences:
        if o.contains(pos):
            return o
    return None


def occurrence_for_selection(occurrences: Iterable[Occurrence], start: int, end: int) -> "Occurrence | None":
    for o in occurrences:
        if o.start == start and o.end == end:
            return o
    return None
