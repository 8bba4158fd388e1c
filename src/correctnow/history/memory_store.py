# correctnow/history/memory_store.py
from __future__ import annotations
from typing import List, Optional
from .api import DocStore, make_doc
from ..models import DocItem


class MemoryDocStore(DocStore):
    """Simple in-memory history (useful for tests or ephemeral runs). Newest first."""
    def __init__(self, limit: int) -> None:
        self._limit = limit
        self._docs: List[DocItem] = []

    # C / U
    def upsert(self, text: str, doc_id: Optional[str] = None) -> DocItem:
        doc = make_doc(text, doc_id)
        rest = [d for d in self._docs if d.id != doc.id]
        self._docs = [doc, *rest][:self._limit]
        return doc

    # R
    def read(self, doc_id: str) -> DocItem:
        for d in self._docs:
            if d.id == doc_id:
                return d
        raise KeyError(doc_id)

    def recent(self) -> List[DocItem]:
        return list(self._docs)

    def count(self) -> int:
        return len(self._docs)

    # D
    def delete(self, doc_id: str) -> None:
        self._docs = [d for d in self._docs if d.id != doc_id]

    def close(self) -> None:
        self._docs.clear()
