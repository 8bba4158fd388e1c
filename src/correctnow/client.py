from __future__ import annotations

import logging
import re
from typing import Any, Optional
from urllib.parse import urlsplit, urlunsplit

import requests

from . import config as CFG
from .models import ProofreadResult

log = logging.getLogger(__name__)

_HAS_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")
_LOCAL_PREFIXES = ("localhost", "127.0.0.1", "0.0.0.0", "[::1]", "::1")


class ProofreadError(Exception):
    """The correction service could not be reached or answered badly."""


def resolve_proofread_url(api_base_url: str) -> str:
    """
    Accept a bare host, a base URL or the full endpoint and return the
    proofread endpoint. Local hosts default to http, everything else to https.
    """
    raw = str(api_base_url or "").strip()
    if not raw:
        raise ProofreadError("Missing API Base URL")

    if not _HAS_SCHEME.match(raw) or raw.startswith("localhost:"):
        scheme = "http" if raw.startswith(_LOCAL_PREFIXES) else "https"
        raw = f"{scheme}://{raw}"

    parts = urlsplit(raw)
    return urlunsplit((parts.scheme, parts.netloc, "/api/proofread", "", ""))


def parse_result(data: Any) -> ProofreadResult:
    if not isinstance(data, dict):
        raise ProofreadError("Invalid API response shape")
    corrected = data.get("corrected_text")
    changes = data.get("changes")
    if not isinstance(corrected, str) or not isinstance(changes, list):
        raise ProofreadError("Invalid API response shape")
    return ProofreadResult(corrected_text=corrected, changes=changes)


def _error_message(resp: requests.Response) -> str:
    raw = resp.text or ""
    try:
        parsed = resp.json()
    except ValueError:
        parsed = None
    if isinstance(parsed, dict) and isinstance(parsed.get("message"), str):
        return parsed["message"]

    lower = raw.lower()
    if "<!doctype html" in lower or "<html" in lower:
        return (
            "API URL is pointing to a website (HTML), not the CorrectNow API. "
            'Set "API Base URL" to http://localhost:8787 (dev) or your deployed API host.'
        )
    return raw or f"Proofread request failed ({resp.status_code})"


def proofread(
    api_base_url: str,
    text: str,
    language: str = CFG.DEFAULT_LANGUAGE,
    api_key: Optional[str] = None,
    *,
    session: Optional[requests.Session] = None,
    timeout: float = CFG.REQUEST_TIMEOUT,
) -> ProofreadResult:
    url = resolve_proofread_url(api_base_url)
    headers = {"Content-Type": "application/json"}
    key = (api_key or "").strip()
    if key:
        headers[CFG.API_KEY_HEADER] = key

    http = session or requests
    log.info("POST %s (%d chars, language=%s)", url, len(text), language)
    try:
        resp = http.post(url, json={"text": text, "language": language},
                         headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise ProofreadError(f"Proofread request failed: {exc}") from exc

    if not resp.ok:
        raise ProofreadError(_error_message(resp))

    try:
        data = resp.json()
    except ValueError as exc:
        raise ProofreadError("Invalid API response shape") from exc
    return parse_result(data)
