"""
CorrectNow Suggestion Engine

This package turns the edit suggestions of an external proofreading service
into live, clickable decorations on an editable text surface, and applies the
accepted edits back to the text.

The module is designed with a clean separation of concerns:
- Suggestion store: ingestion filtering and per-suggestion status
- Span locator: non-overlapping occurrences of each suggestion
- Decoration renderer: mirror layer for plain controls, in-place marks for rich ones
- Interaction layer: hover / caret / click resolution and popovers
- Patch applier: index-checked, first-occurrence and bulk substitution

Main entry point:
    EditorSession(get_text, surface=...): one per focused editable surface

Example Usage:
    from correctnow import EditorSession

    text = "I has a apple."
    session = EditorSession(lambda: text)
    session.ingest(text, [
        {"original": "has", "corrected": "have"},
        {"original": "a apple", "corrected": "an apple"},
    ])
    text = session.accept_all()     # "I have an apple."
"""

# src/correctnow/__init__.py
from .engine import EditorSession, accuracy_score, can_check  # re-export
from .locator import locate
from .models import Occurrence, Status, Suggestion
from .store import SuggestionStore

__version__ = "1.0.0"
__all__ = [
    "EditorSession",
    "SuggestionStore",
    "Suggestion",
    "Occurrence",
    "Status",
    "locate",
    "can_check",
    "accuracy_score",
]
