"""Accepted-text history: `make_store("memory://")` or `make_store("sqlite:///path")`."""
from .api import DocStore, make_doc, make_store

__all__ = ["DocStore", "make_doc", "make_store"]
