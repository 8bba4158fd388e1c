"""Flask API + tiny web UI on top of the CorrectNow suggestion engine."""
from __future__ import annotations
from .web import app, build_prompt, main

__all__ = ["app", "build_prompt", "main"]
