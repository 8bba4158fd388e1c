# src/correctnow/models.py
"""
Data models for the suggestion engine.

This module defines small, focused data containers:

- Suggestion: one proposed edit (original -> corrected) plus its status.
- Occurrence: a concrete location of a suggestion's original text inside
  one text snapshot. Derived, never stored.
- Rect / Hitbox: screen geometry used by the interaction layer.
- ProofreadResult: the already-parsed answer of the correction service.
- DocItem: one entry of the accepted-text history.

These classes do not contain business logic; they only structure the data so
that ingestion, locating, rendering and patching remain simple and predictable.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List


class Status(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    IGNORED = "ignored"


@dataclass(eq=False, slots=True)
class Suggestion:
    """
    One edit proposed by the correction service.

    Attributes
    ----------
    original : str
        Text to be replaced. Non-empty, and present verbatim in the text
        the suggestion was ingested against.
    corrected : str
        Replacement text.
    explanation : str
        Optional human-readable reason ("" when the service gave none).
    status : Status
        The only mutable field. PENDING until the user accepts or ignores.
    id : int
        Position in ingestion order; stable for the lifetime of the store.

    Equality and hashing are by identity: two suggestions with identical text
    are still distinct entries of the store.
    """
    original: str
    corrected: str
    explanation: str = ""
    status: Status = Status.PENDING
    id: int = 0

    def __setattr__(self, name: str, value: Any) -> None:
        if name in ("original", "corrected") and hasattr(self, name):
            raise AttributeError(f"Suggestion.{name} is read-only")
        object.__setattr__(self, name, value)

    @property
    def is_pending(self) -> bool:
        return self.status is Status.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "original": self.original,
            "corrected": self.corrected,
            "explanation": self.explanation,
            "status": self.status.value,
        }


@dataclass(frozen=True, slots=True)
class Occurrence:
    """
    Where one suggestion's original text sits in a given snapshot.

    Occurrences of one snapshot are sorted by start and never overlap.
    """
    start: int
    length: int
    suggestion: Suggestion

    @property
    def end(self) -> int:
        return self.start + self.length

    def contains(self, pos: int) -> bool:
        # caret right after the last char still counts as "inside"
        return self.start <= pos <= self.end

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start, "length": self.length, "suggestion": self.suggestion.id}


@dataclass(frozen=True, slots=True)
class Rect:
    left: float
    top: float
    right: float
    bottom: float

    @classmethod
    def from_xywh(cls, x: float, y: float, w: float, h: float) -> "Rect":
        return cls(x, y, x + w, y + h)

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom


@dataclass(frozen=True, slots=True)
class Hitbox:
    occurrence: Occurrence
    rect: Rect


@dataclass(frozen=True, slots=True)
class ProofreadResult:
    """Parsed correction-service answer. Only `changes` feeds the store."""
    corrected_text: str
    changes: List[Any] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class DocItem:
    id: str
    title: str
    preview: str
    text: str
    updated_at: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "title": self.title,
            "preview": self.preview,
            "text": self.text,
            "updated_at": self.updated_at,
        }
