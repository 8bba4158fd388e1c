# src/correctnow/store.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Iterator, List, Optional

from .models import Status, Suggestion
from .normalize import group_key, is_noop

log = logging.getLogger(__name__)


def validate_changes(changes: Any) -> List[dict]:
    """
    Keep only well-formed change entries from a correction-service response.

    A well-formed entry is a mapping with non-empty string `original` and
    `corrected`; `explanation` is optional and coerced to "" when it is not a
    string. Anything else is discarded, never raised.
    """
    if not isinstance(changes, list):
        if changes is not None:
            log.debug("changes is %s, not a list; ignoring", type(changes).__name__)
        return []

    out: List[dict] = []
    for raw in changes:
        if not isinstance(raw, Mapping):
            continue
        original = raw.get("original")
        corrected = raw.get("corrected")
        if not isinstance(original, str) or not original:
            continue
        if not isinstance(corrected, str) or not corrected:
            continue
        explanation = raw.get("explanation")
        out.append({
            "original": original,
            "corrected": corrected,
            "explanation": explanation if isinstance(explanation, str) else "",
        })
    return out


class SuggestionStore:
    """
    Holds the suggestions of one host surface and their statuses.

    Resolved suggestions stay in the store (for audit and so that a second
    accept/ignore is a harmless no-op); only pending ones are "active".
    """

    def __init__(self) -> None:
        self._items: List[Suggestion] = []

    # ------------- ingestion -------------

    def ingest(self, text: str, changes: Any) -> List[Suggestion]:
        """
        Replace the store's contents with suggestions built from `changes`.
        Filters, in order:
          1) empty / whitespace-only original
          2) original not present verbatim in `text`
          3) exact (original, corrected) repeats
          4) no-op edits (equal after trim + NFC)
        """
        seen: set[tuple[str, str]] = set()
        items: List[Suggestion] = []
        entries = validate_changes(changes)

        for c in entries:
            original, corrected = c["original"], c["corrected"]
            if not original.strip():
                continue
            if original not in text:
                log.debug("dropping unlocatable suggestion %r", original)
                continue
            key = (original, corrected)
            if key in seen:
                continue
            seen.add(key)
            if is_noop(original, corrected):
                log.debug("dropping no-op suggestion %r", original)
                continue
            items.append(Suggestion(
                original=original,
                corrected=corrected,
                explanation=c["explanation"],
                id=len(items),
            ))

        self._items = items
        log.info("ingested %d of %d suggestions", len(items), len(entries))
        return list(items)

    def clear(self) -> None:
        self._items = []

    # ------------- status -------------

    def set_status(self, suggestion: Suggestion, status: Status) -> None:
        if suggestion not in self._items:
            raise ValueError("suggestion does not belong to this store")
        suggestion.status = Status(status)

    def resolve(self, ref: "Suggestion | int") -> Suggestion:
        """Accept either a Suggestion of this store or its index."""
        if isinstance(ref, Suggestion):
            if ref not in self._items:
                raise ValueError("suggestion does not belong to this store")
            return ref
        return self._items[ref]

    # ------------- views -------------

    @property
    def active(self) -> List[Suggestion]:
        return [s for s in self._items if s.is_pending]

    @property
    def accepted(self) -> List[Suggestion]:
        return [s for s in self._items if s.status is Status.ACCEPTED]

    def siblings(self, suggestion: Suggestion) -> List[Suggestion]:
        """Other pending suggestions sharing the exact same original."""
        return [
            s for s in self._items
            if s is not suggestion and s.is_pending and s.original == suggestion.original
        ]

    def group(self, suggestion: Suggestion) -> List[Suggestion]:
        """Pending suggestions whose originals match case/punctuation-insensitively."""
        key = group_key(suggestion.original)
        return [s for s in self._items if s.is_pending and group_key(s.original) == key]

    def find(self, original: str, corrected: Optional[str] = None) -> Optional[Suggestion]:
        for s in self._items:
            if s.original == original and (corrected is None or s.corrected == corrected):
                return s
        return None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Suggestion]:
        return iter(self._items)

    def __getitem__(self, i: int) -> Suggestion:
        return self._items[i]

