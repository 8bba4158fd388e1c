# correctnow/history/api.py
from __future__ import annotations
import time
import uuid
from datetime import datetime, timezone
from typing import Protocol, List, Optional

from .. import config as CFG
from ..models import DocItem


class DocStore(Protocol):
    # Create / Update
    def upsert(self, text: str, doc_id: Optional[str] = None) -> DocItem: ...
    # Read
    def read(self, doc_id: str) -> DocItem: ...
    def recent(self) -> List[DocItem]: ...
    def count(self) -> int: ...
    # Delete
    def delete(self, doc_id: str) -> None: ...
    # lifecycle
    def close(self) -> None: ...


def make_doc(text: str, doc_id: Optional[str] = None) -> DocItem:
    """Build a history entry: title from the first line, short preview, UTC stamp."""
    content = text.strip()
    title = content.split("\n")[0][:CFG.TITLE_CHARS] or "Untitled"
    return DocItem(
        id=doc_id or f"doc-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}",
        title=title,
        preview=content[:CFG.PREVIEW_CHARS],
        text=content,
        updated_at=datetime.now(timezone.utc).isoformat(),
    )


def make_store(dsn: str, *, limit: int = CFG.DOC_LIMIT) -> DocStore:
    """
    Factory:
      - sqlite:///path -> SQLiteDocStore (file created on first use)
      - memory://      -> MemoryDocStore
    """
    if dsn.startswith("sqlite:///"):
        from .sqlite_store import SQLiteDocStore
        return SQLiteDocStore(dsn.removeprefix("sqlite:///"), limit=limit)

    if dsn.startswith("memory://"):
        from .memory_store import MemoryDocStore
        return MemoryDocStore(limit=limit)

    raise ValueError(f"Unsupported store DSN: {dsn}")
