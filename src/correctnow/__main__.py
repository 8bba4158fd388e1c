from __future__ import annotations
import argparse, json, logging, os, sys
from typing import Any, List

from .client import ProofreadError, proofread
from .engine import EditorSession, accuracy_score, can_check
from .history import make_store
from .models import Occurrence, Status, Suggestion
from .normalize import count_words
from .settings import DEFAULT_PATH, load_settings

def _supports_color() -> bool:
    return sys.stdout.isatty() and os.environ.get("NO_COLOR", "") == ""

CSI = "\033["
def _c(text: str, code: str) -> str:
    if not _supports_color(): return text
    return f"{CSI}{code}m{text}{CSI}0m"

_STATUS_COLOR = {Status.PENDING: "1;33", Status.ACCEPTED: "1;32", Status.IGNORED: "2;37"}


class _Buffer:
    """The CLI is the host: it owns the text and hands the session a reader."""
    def __init__(self, text: str) -> None:
        self.text = text

    def get(self) -> str:
        return self.text


def _marked(text: str, occurrences: List[Occurrence]) -> str:
    if not _supports_color():
        out, pos = [], 0
        for o in occurrences:
            out.append(text[pos:o.start]); out.append(f"[{text[o.start:o.end]}]")
            pos = o.end
        out.append(text[pos:])
        return "".join(out)
    out, pos = [], 0
    for o in occurrences:
        out.append(text[pos:o.start]); out.append(_c(text[o.start:o.end], "4;31"))
        pos = o.end
    out.append(text[pos:])
    return "".join(out)

def _print_table(items: List[Suggestion]) -> None:
    if not items:
        print(_c("(no suggestions)", "2;37")); return
    print(_c("#   Status    Original                 Suggestion               Explanation", "1;37"))
    for i, s in enumerate(items):
        status = _c(f"{s.status.value:<9}", _STATUS_COLOR[s.status])
        print(f"{i:<3} {status} {s.original[:24]:<24} {s.corrected[:24]:<24} {s.explanation}")

def _read_text(args: argparse.Namespace) -> str:
    if args.text is not None:
        return args.text
    if args.file:
        with open(args.file, "r", encoding="utf-8") as f:
            return f.read()
    return sys.stdin.read()

def _load_changes(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    # either a full service response or a bare list of changes
    return data.get("changes") if isinstance(data, dict) else data

def _show(session: EditorSession, buf: _Buffer) -> None:
    print(_marked(buf.text, session.occurrences))
    words = count_words(buf.text)
    print(_c(f"words: {words}  pending: {session.pending_count}  "
             f"accuracy: {accuracy_score(words, len(session.suggestions))}%", "2;37"))

def _repl(session: EditorSession, buf: _Buffer) -> None:
    print("Commands: :accept N, :ignore N, :ignore-group N, :all, :ignore-all, :show, :text  (empty line to finish)")
    while True:
        try:
            raw = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print(); break
        if not raw:
            break
        cmd, _, arg = raw.partition(" ")
        try:
            if cmd == ":accept":
                buf.text = session.accept(int(arg))
            elif cmd == ":ignore":
                session.ignore(int(arg))
            elif cmd == ":ignore-group":
                session.ignore_group(int(arg))
            elif cmd == ":all":
                buf.text = session.accept_all()
            elif cmd == ":ignore-all":
                session.ignore_all()
            elif cmd == ":text":
                print(buf.text); continue
            elif cmd != ":show":
                print(_c(f"unknown command {cmd!r}", "1;31")); continue
        except (ValueError, IndexError):
            print(_c(f"bad suggestion number {arg!r}", "1;31")); continue
        _print_table(session.suggestions)
        _show(session, buf)

def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CorrectNow proofreading CLI")
    src = parser.add_mutually_exclusive_group()
    src.add_argument("--text", default=None, help="Text to check (default: stdin)")
    src.add_argument("--file", default=None, help="Read text from a file")
    parser.add_argument("--changes", default=None, help="JSON file with a saved service response")
    parser.add_argument("--api", default=None, help="API base URL (default: from settings)")
    parser.add_argument("--language", default=None)
    parser.add_argument("--settings", default=str(DEFAULT_PATH))
    parser.add_argument("--accept-all", action="store_true", help="Accept every suggestion")
    parser.add_argument("--repl", action="store_true", help="Review suggestions interactively")
    parser.add_argument("--history", default=None, help='Save final text, e.g. "sqlite:///docs.sqlite"')
    parser.add_argument("--json", action="store_true", help="Emit final state as JSON")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.INFO)

    buf = _Buffer(_read_text(args))

    if args.changes:
        try:
            changes = _load_changes(args.changes)
        except (OSError, ValueError) as exc:
            print(f"Check failed: {exc}", file=sys.stderr); return 1
    else:
        settings = load_settings(args.settings)
        if not settings.enabled:
            print("CorrectNow is disabled in settings.", file=sys.stderr); return 2
        if not can_check(buf.text):
            print("Type at least 3 characters (and at most 2000 words).", file=sys.stderr); return 2
        try:
            result = proofread(args.api or settings.api_base_url, buf.text,
                               args.language or settings.language, settings.api_key)
        except ProofreadError as exc:
            print(f"Check failed: {exc}", file=sys.stderr); return 1
        changes = result.changes

    session = EditorSession(buf.get)
    try:
        session.ingest(buf.text, changes)
        if not args.json:
            _print_table(session.suggestions)
            _show(session, buf)

        if args.accept_all:
            buf.text = session.accept_all()
        if args.repl:
            _repl(session, buf)

        if args.history:
            store = make_store(args.history)
            try:
                doc = store.upsert(buf.text)
            finally:
                store.close()
            if not args.json:
                print(_c(f"(saved as {doc.id})", "2;36"))

        if args.json:
            print(json.dumps({
                "text": buf.text,
                "suggestions": [s.to_dict() for s in session.suggestions],
            }, ensure_ascii=False, indent=2))
        else:
            print(buf.text)
        return 0
    finally:
        session.destroy()

if __name__ == "__main__":
    sys.exit(main())
