from __future__ import annotations
import argparse
import json
import logging
import os
import threading
import time
import uuid
from typing import Any, Dict, Optional, Tuple

import requests
from dotenv import load_dotenv
from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from correctnow import config as CFG
from correctnow.engine import EditorSession
from correctnow.history import DocStore, make_store
from correctnow.models import Occurrence
from correctnow.normalize import count_words
from correctnow.render import mirror_html

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = CFG.MAX_BODY_BYTES
CORS(app)

_history: DocStore | None = None
_history_lock = threading.Lock()


def _clock() -> float:
    return time.monotonic()


# ---------- engine sessions ----------

class _Surface:
    """Server-side stand-in for the client's editable surface."""
    def __init__(self, text: str) -> None:
        self.text = text
        self.touched = _clock()

    def get(self) -> str:
        return self.text


_sessions: Dict[str, Tuple[EditorSession, _Surface]] = {}
_lock = threading.Lock()
_ACTIONS = ("accept", "accept-all", "ignore", "ignore-all")


def _evict_sessions() -> None:
    """Drop idle sessions, then the least recently used ones over the cap. Call under _lock."""
    now = _clock()
    for sid in [s for s, (_, surf) in _sessions.items() if now - surf.touched > CFG.SESSION_IDLE_SECONDS]:
        _sessions.pop(sid)[0].destroy()
    while _sessions and len(_sessions) >= CFG.MAX_SESSIONS:
        oldest = min(_sessions, key=lambda s: _sessions[s][1].touched)
        _sessions.pop(oldest)[0].destroy()
        app.logger.info("evicted session %s", oldest)


def _lookup(sid: str) -> Optional[Tuple[EditorSession, _Surface]]:
    """Live session by id, refreshing its idle timer. Call under _lock."""
    found = _sessions.get(sid)
    if found is None:
        return None
    if _clock() - found[1].touched > CFG.SESSION_IDLE_SECONDS:
        _sessions.pop(sid)[0].destroy()
        return None
    found[1].touched = _clock()
    return found


def _state(sid: str, session: EditorSession, surface: _Surface) -> dict:
    return {
        "session_id": sid,
        "text": surface.text,
        "suggestions": [s.to_dict() for s in session.suggestions],
        "occurrences": [o.to_dict() for o in session.occurrences],
        "mirror_html": mirror_html(surface.text, session.occurrences),
        "pending": session.pending_count,
    }


def _error(message: str, status: int, **extra: Any):
    return jsonify({"message": message, **extra}), status


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _sync_text(surface: _Surface, body: dict) -> Optional[str]:
    text = body.get("text", surface.text)
    if not isinstance(text, str):
        return "text must be a string"
    surface.text = text
    return None


def _index(body: dict) -> Optional[int]:
    idx = body.get("index")
    return idx if isinstance(idx, int) and not isinstance(idx, bool) else None


@app.post("/api/sessions")
def create_session():
    body = _body()
    text = body.get("text")
    if not isinstance(text, str):
        return _error("Text is required", 400)
    surface_kind = body.get("surface", "textarea")
    if surface_kind not in ("input", "textarea"):
        return _error("surface must be 'input' or 'textarea'", 400)

    surface = _Surface(text)
    session = EditorSession(surface.get, surface=surface_kind)
    session.ingest(text, body.get("changes"))
    sid = uuid.uuid4().hex
    with _lock:
        _evict_sessions()
        _sessions[sid] = (session, surface)
        return jsonify(_state(sid, session, surface)), 201


@app.get("/api/sessions/<sid>")
def get_session(sid: str):
    with _lock:
        found = _lookup(sid)
        if found is None:
            return _error("Unknown session", 404)
        return jsonify(_state(sid, *found))


@app.delete("/api/sessions/<sid>")
def delete_session(sid: str):
    with _lock:
        found = _sessions.pop(sid, None)
    if found is None:
        return _error("Unknown session", 404)
    found[0].destroy()
    return Response(status=204)


@app.post("/api/sessions/<sid>/<action>")
def session_action(sid: str, action: str):
    body = _body()
    if action not in _ACTIONS:
        return _error(f"Unknown action {action!r}", 404)
    with _lock:
        found = _lookup(sid)
        if found is None:
            return _error("Unknown session", 404)
        session, surface = found

        problem = _sync_text(surface, body)
        if problem:
            return _error(problem, 400)

        if action in ("accept", "ignore"):
            idx = _index(body)
            if idx is None or not 0 <= idx < len(session.suggestions):
                return _error("index must be a valid suggestion number", 400)

        if action == "accept":
            suggestion = session.suggestions[idx]
            start = body.get("occurrence_start")
            at = None
            if isinstance(start, int) and not isinstance(start, bool):
                at = Occurrence(start, len(suggestion.original), suggestion)
            surface.text = session.accept(suggestion, at=at)
        elif action == "accept-all":
            surface.text = session.accept_all()
        elif action == "ignore":
            if body.get("group"):
                session.ignore_group(idx)
            else:
                session.ignore(idx)
        else:
            session.ignore_all()

        # the client may have typed since the last call
        session.refresh(surface.text)
        return jsonify(_state(sid, session, surface))


# ---------- correction service proxy ----------

def build_prompt(text: str, language: Optional[str]) -> str:
    if language and language != "auto":
        language_instruction = f"Language: {language}."
    else:
        language_instruction = "Auto-detect language."
    return f'''You are a professional proofreading assistant.
{language_instruction}
Task: Correct spelling mistakes and light grammar issues only.
Rules:
- Preserve meaning and tone. Do NOT rewrite or paraphrase.
- Keep formatting, punctuation, and line breaks.
- Support all languages.
Return ONLY valid JSON in this format:
{{
  "corrected_text": "...",
  "changes": [
    {{ "original": "...", "corrected": "...", "explanation": "..." }}
  ]
}}
Text:
"""
{text}
"""'''


def _api_key() -> Optional[str]:
    return os.environ.get("GEMINI_API_KEY") or None


@app.get("/api/models")
def api_models():
    key = _api_key()
    if not key:
        return _error("Missing GEMINI_API_KEY", 500)
    try:
        resp = requests.get(f"{CFG.GEMINI_API_URL}/models", params={"key": key},
                            timeout=CFG.REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        app.logger.error("ListModels request failed: %s", exc)
        return _error("Server error", 500)
    if not resp.ok:
        app.logger.error("ListModels error: %s", resp.text)
        return _error("ListModels error", 500, details=resp.text)
    try:
        models = resp.json().get("models")
    except (ValueError, AttributeError):
        app.logger.error("ListModels returned non-JSON: %s", resp.text[:200])
        return _error("ListModels error", 500)
    return jsonify({"models": [m.get("name") for m in models] if isinstance(models, list) else []})


@app.post("/api/proofread")
def api_proofread():
    body = _body()
    text = body.get("text")
    language = body.get("language")
    if not text or not isinstance(text, str):
        return _error("Text is required", 400)
    if count_words(text) > CFG.WORD_LIMIT:
        return _error(f"Text exceeds {CFG.WORD_LIMIT} words", 400)

    key = _api_key()
    if not key:
        return _error("Missing GEMINI_API_KEY", 500)

    endpoint = f"{CFG.GEMINI_API_URL}/models/{CFG.GEMINI_MODEL}:generateContent"
    payload = {
        "contents": [{"role": "user", "parts": [{"text": build_prompt(text, language)}]}],
        "generationConfig": {
            "temperature": CFG.GEMINI_TEMPERATURE,
            "responseMimeType": "application/json",
        },
    }
    try:
        resp = requests.post(endpoint, params={"key": key}, json=payload, timeout=CFG.REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        app.logger.error("Gemini request failed: %s", exc)
        return _error("Server error", 500)

    if not resp.ok:
        app.logger.error("Gemini API error: %s", resp.text)
        return _error("Gemini API error", 500, details=resp.text)

    try:
        raw = resp.json()["candidates"][0]["content"]["parts"][0]["text"]
    except (ValueError, KeyError, IndexError, TypeError):
        raw = None
    if not raw:
        app.logger.error("Gemini response missing content: %s", resp.text)
        return _error("Invalid Gemini response", 500)

    try:
        parsed = json.loads(raw)
    except ValueError:
        app.logger.error("Failed to parse Gemini response: %s", raw)
        return _error("Failed to parse Gemini response", 500)
    if not isinstance(parsed, dict):
        return _error("Failed to parse Gemini response", 500)

    changes = parsed.get("changes")
    return jsonify({
        "corrected_text": parsed.get("corrected_text") or "",
        "changes": changes if isinstance(changes, list) else [],
    })


# ---------- history ----------

def _history_store() -> DocStore:
    global _history
    with _history_lock:
        if _history is None:
            _history = make_store(CFG.HISTORY_DSN)
        return _history


@app.get("/api/history")
def history_list():
    return jsonify([d.to_dict() for d in _history_store().recent()])


@app.post("/api/history")
def history_save():
    body = _body()
    text = body.get("text")
    if not isinstance(text, str) or not text.strip():
        return _error("Text is required", 400)
    doc_id = body.get("id") if isinstance(body.get("id"), str) else None
    return jsonify(_history_store().upsert(text, doc_id).to_dict()), 201


@app.get("/api/health")
def health():
    return jsonify({"ok": True, "model": CFG.GEMINI_MODEL})


# ---------- UI ----------
@app.get("/")
def home():
    # A tiny page: textarea + mirror underline layer, no external deps.
    html = r"""
<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8" />
<meta name="viewport" content="width=device-width,initial-scale=1" />
<title>CorrectNow</title>
<style>
:root{ --bg:#0b0f14; --panel:#0f141b; --ink:#cfd8e3; --muted:#8a94a6; --accent:#22d3ee; --border:#1c2530; --bad:#ff5d5d; }
*{box-sizing:border-box}
body{ margin:0; background:var(--bg); color:var(--ink); font:16px/1.45 system-ui,-apple-system,Segoe UI,Roboto,Arial; }
.container{ max-width:980px; margin:24px auto; padding:0 16px; }
.card{ background:var(--panel); border:1px solid var(--border); border-radius:16px; padding:18px; }
.editor{ position:relative; }
.editor textarea, .mirror{
  width:100%; min-height:200px; padding:12px 14px; border:1px solid var(--border); border-radius:12px;
  font:16px/1.5 ui-monospace,Menlo,Consolas,monospace; white-space:pre-wrap; word-break:break-word;
}
.editor textarea{ position:relative; background:transparent; color:var(--ink); resize:vertical; z-index:1; }
.mirror{ position:absolute; inset:0; color:transparent; overflow:hidden; pointer-events:none; background:#0b1117; }
.cn-mark{ text-decoration:underline 2px var(--bad); text-underline-offset:2px; }
.controls{ display:flex; gap:12px; margin:12px 0; }
.btn{ padding:8px 12px; border-radius:10px; border:1px solid var(--border); background:#0b1117; color:var(--ink); cursor:pointer; }
.item{ border-top:1px solid var(--border); padding:10px 0; }
.muted{ color:var(--muted); font-size:13px; }
.err{ color:var(--bad); }
</style>
</head>
<body>
<div class="container"><div class="card">
  <h1>CorrectNow</h1>
  <div class="editor">
    <div id="mirror" class="mirror"></div>
    <textarea id="t" placeholder="Paste or type your text here..."></textarea>
  </div>
  <div class="controls">
    <button id="check" class="btn">Check Text</button>
    <button id="all" class="btn">Accept All</button>
    <span id="stats" class="muted">Ready.</span>
  </div>
  <div id="list"></div>
</div></div>
<script>
const $ = (s) => document.querySelector(s);
const t = $("#t"), mirror = $("#mirror"), list = $("#list"), stats = $("#stats");
let sid = null;

function esc(s){ return s.replace(/&/g,"&amp;").replace(/</g,"&lt;").replace(/>/g,"&gt;"); }
function paint(state){
  t.value = state.text;
  mirror.innerHTML = state.mirror_html;
  mirror.scrollTop = t.scrollTop;
  stats.textContent = `Pending: ${state.pending}`;
  list.innerHTML = state.suggestions.map(s => `
    <div class="item">
      <div class="muted">${esc(s.original)} &rarr; <b>${esc(s.corrected)}</b> (${s.status})</div>
      <div class="muted">${esc(s.explanation || "")}</div>
      ${s.status === "pending" ? `<button class="btn" data-a="accept" data-i="${s.id}">Accept</button>
      <button class="btn" data-a="ignore" data-i="${s.id}">Ignore</button>` : ""}
    </div>`).join("");
}
async function call(url, body, method="POST"){
  const r = await fetch(url, {method, headers:{"Content-Type":"application/json"}, body: JSON.stringify(body)});
  const data = await r.json().catch(() => ({}));
  if(!r.ok) throw new Error(data.message || `HTTP ${r.status}`);
  return data;
}
$("#check").addEventListener("click", async () => {
  try{
    stats.textContent = "Checking...";
    const res = await call("/api/proofread", {text: t.value, language: "auto"});
    if(sid) fetch(`/api/sessions/${sid}`, {method: "DELETE"});
    const state = await call("/api/sessions", {text: t.value, changes: res.changes});
    sid = state.session_id; paint(state);
  }catch(e){ stats.innerHTML = `<span class="err">Check failed: ${esc(e.message)}</span>`; }
});
$("#all").addEventListener("click", async () => {
  if(sid) paint(await call(`/api/sessions/${sid}/accept-all`, {text: t.value}));
});
list.addEventListener("click", async (ev) => {
  const b = ev.target.closest("button[data-a]");
  if(!b || !sid) return;
  paint(await call(`/api/sessions/${sid}/${b.dataset.a}`, {text: t.value, index: Number(b.dataset.i)}));
});
t.addEventListener("scroll", () => { mirror.scrollTop = t.scrollTop; });
t.addEventListener("input", () => { mirror.textContent = t.value; });
</script>
</body>
</html>
"""
    return Response(html, mimetype="text/html")


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Run the CorrectNow API and web UI")
    ap.add_argument("--host", default=CFG.HOST)
    ap.add_argument("--port", type=int, default=CFG.PORT)
    ap.add_argument("--history", default=None, help='e.g. "sqlite:///docs.sqlite"')
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args(argv)

    load_dotenv()
    CFG.GEMINI_MODEL = os.environ.get("GEMINI_MODEL", CFG.GEMINI_MODEL)
    if args.verbose:
        logging.basicConfig(level=logging.INFO)
    if args.history:
        CFG.HISTORY_DSN = args.history
    _history_store()

    try:
        app.run(host=args.host, port=args.port, debug=args.verbose)
    finally:
        if _history is not None:
            _history.close()
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
