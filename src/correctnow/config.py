from __future__ import annotations
import os

# interaction timers (milliseconds)
HOVER_INTENT_MS: int = 300          # pointer must rest this long before a tooltip opens
CARET_DEBOUNCE_MS: int = 50         # coalesce keyup/click/selection bursts
TOOLTIP_CLOSE_GRACE_MS: int = 300   # lets the pointer travel from underline into tooltip
AUTO_CHECK_DEBOUNCE_MS: int = 800   # typing pause before an automatic check

# check gating
MIN_CHECK_CHARS: int = 3
WORD_LIMIT: int = 2000

# accepted-text history
DOC_LIMIT: int = 50
TITLE_CHARS: int = 60
PREVIEW_CHARS: int = 180

# correction service (client side)
DEFAULT_API_BASE_URL: str = "https://correctnow.app"
DEFAULT_LANGUAGE: str = "auto"
API_KEY_HEADER: str = "X-CorrectNow-Api-Key"
REQUEST_TIMEOUT: float = 30.0

# upstream model (server side)
GEMINI_API_URL: str = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_MODEL: str = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_TEMPERATURE: float = 0.2

# web server
HOST: str = "127.0.0.1"
PORT: int = int(os.environ.get("PORT", "8787"))
MAX_BODY_BYTES: int = 1 * 1024 * 1024

# server-side editor sessions: idle ones expire, the oldest go past the cap
SESSION_IDLE_SECONDS: float = 30 * 60
MAX_SESSIONS: int = 200

# history backend for the web service ("memory://" or "sqlite:///path")
HISTORY_DSN: str = os.environ.get("CORRECTNOW_HISTORY", "memory://")
