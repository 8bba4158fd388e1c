from __future__ import annotations

import logging
from typing import Iterable

from .models import Status, Suggestion

log = logging.getLogger(__name__)


def apply_at_index(text: str, suggestion: Suggestion, start: int) -> str:
    """
    Splice `corrected` over the recorded span, but only if the span still
    holds `original`. Any drift leaves `text` untouched.
    """
    original = suggestion.original
    if not original:
        return text
    if start < 0 or start + len(original) > len(text):
        return text
    if text[start:start + len(original)] != original:
        log.debug("stale span at %d for %r; skipping", start, original)
        return text
    return text[:start] + suggestion.corrected + text[start + len(original):]


def apply_first_occurrence(text: str, suggestion: Suggestion) -> str:
    if not suggestion.original:
        return text
    return text.replace(suggestion.original, suggestion.corrected, 1)


def apply_sequence(text: str, suggestions: Iterable[Suggestion]) -> str:
    """
    Fold each suggestion over the text in list order, replacing the first
    occurrence in the result of the previous step.
    """
    for s in suggestions:
        text = apply_first_occurrence(text, s)
    return text


def apply_accepted(text: str, suggestions: Iterable[Suggestion]) -> str:
    return apply_sequence(text, (s for s in suggestions if s.status is Status.ACCEPTED))
