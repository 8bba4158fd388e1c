# correctnow/history/sqlite_store.py
from __future__ import annotations
import os
import sqlite3
import threading
from typing import List, Optional
from .api import DocStore, make_doc
from ..models import DocItem

_SCHEMA = """
CREATE TABLE IF NOT EXISTS docs (
  seq INTEGER PRIMARY KEY AUTOINCREMENT,
  id TEXT NOT NULL UNIQUE,
  title TEXT NOT NULL,
  preview TEXT NOT NULL,
  text TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
"""

_COLS = "id, title, preview, text, updated_at"


class SQLiteDocStore(DocStore):
    """
    History persisted in one SQLite file; keeps only the newest `limit` docs.
    One connection shared by every thread (web requests run on worker threads),
    serialized by a lock.
    """
    def __init__(self, db_path: str, limit: int) -> None:
        self.db_path = os.path.abspath(db_path)
        os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
        self._limit = limit
        self._lock = threading.Lock()
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.executescript(_SCHEMA)

    # ---- Create / Update ----
    def upsert(self, text: str, doc_id: Optional[str] = None) -> DocItem:
        doc = make_doc(text, doc_id)
        with self._lock:
            # delete + insert moves the doc to the newest seq
            self.conn.execute("DELETE FROM docs WHERE id=?", (doc.id,))
            self.conn.execute(
                f"INSERT INTO docs({_COLS}) VALUES (?,?,?,?,?)",
                (doc.id, doc.title, doc.preview, doc.text, doc.updated_at),
            )
            self.conn.execute(
                "DELETE FROM docs WHERE seq NOT IN (SELECT seq FROM docs ORDER BY seq DESC LIMIT ?)",
                (self._limit,),
            )
            self.conn.commit()
        return doc

    # ---- Read ----
    def read(self, doc_id: str) -> DocItem:
        with self._lock:
            row = self.conn.execute(f"SELECT {_COLS} FROM docs WHERE id=?", (doc_id,)).fetchone()
        if row is None:
            raise KeyError(doc_id)
        return DocItem(*row)

    def recent(self) -> List[DocItem]:
        with self._lock:
            rows = self.conn.execute(f"SELECT {_COLS} FROM docs ORDER BY seq DESC").fetchall()
        return [DocItem(*r) for r in rows]

    def count(self) -> int:
        with self._lock:
            return self.conn.execute("SELECT COUNT(*) FROM docs").fetchone()[0]

    # ---- Delete ----
    def delete(self, doc_id: str) -> None:
        with self._lock:
            self.conn.execute("DELETE FROM docs WHERE id=?", (doc_id,))
            self.conn.commit()

    # ---- lifecycle ----
    def close(self) -> None:
        with self._lock:
            self.conn.close()
