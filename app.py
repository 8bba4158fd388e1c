# app.py
# CustomTkinter desktop editor for CorrectNow (dark theme).
# - Check runs on a background thread (keeps UI responsive).
# - Suggestions are underlined with text tags; click one to review it.
# - Typing pauses trigger an automatic check when enabled in settings.

from __future__ import annotations
import threading
from typing import Any, Callable, Optional

import tkinter.messagebox as mb
import customtkinter as ctk

from correctnow import config as CFG
from correctnow.client import ProofreadError, proofread
from correctnow.engine import EditorSession, accuracy_score, can_check
from correctnow.history import make_store
from correctnow.interaction import Debouncer, Popover
from correctnow.models import Rect
from correctnow.normalize import count_words
from correctnow.render import RichDocument
from correctnow.settings import load_settings, save_settings


MARK_TAG = "cn-mark"


class TkScheduler:
    """Debounce timers on the Tk event loop."""
    def __init__(self, widget: ctk.CTk) -> None:
        self.widget = widget

    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> Any:
        return self.widget.after(delay_ms, callback)

    def cancel(self, handle: Any) -> None:
        try:
            self.widget.after_cancel(handle)
        except Exception:
            pass


class CorrectNowApp(ctk.CTk):
    """Dark-themed proofreading editor driven by an EditorSession."""

    def __init__(self) -> None:
        super().__init__()

        ctk.set_appearance_mode("dark")
        ctk.set_default_color_theme("blue")

        self.title("CorrectNow")
        self.geometry("980x680")
        self.minsize(820, 560)

        # State
        self.settings = load_settings()
        self.scheduler = TkScheduler(self)
        self.document = RichDocument()
        self.session: Optional[EditorSession] = None
        self._check_thread: Optional[threading.Thread] = None
        self._auto_check = Debouncer(self.scheduler, CFG.AUTO_CHECK_DEBOUNCE_MS, "auto-check")
        self._history = make_store(CFG.HISTORY_DSN)

        self.font_title = ctk.CTkFont(size=18, weight="bold")
        self.font_label = ctk.CTkFont(size=13)
        self.font_text = ctk.CTkFont(family="Cascadia Mono, Menlo, Consolas, Courier New", size=14)

        self.grid_columnconfigure(0, weight=3)
        self.grid_columnconfigure(1, weight=2)
        self.grid_rowconfigure(1, weight=1)

        self._build_header()
        self._build_editor()
        self._build_popover()

        self._new_session()
        self._set_status("Ready")
        self.bind_all("<Button-1>", self._on_pointer_down, add="+")
        self.protocol("WM_DELETE_WINDOW", self._on_close)

    # --------- UI sections ---------

    def _build_header(self) -> None:
        bar = ctk.CTkFrame(self, corner_radius=10)
        bar.grid(row=0, column=0, columnspan=2, sticky="ew", padx=12, pady=(12, 6))
        bar.grid_columnconfigure(5, weight=1)

        ctk.CTkLabel(bar, text="CorrectNow", font=self.font_title).grid(row=0, column=0, padx=12, pady=10)
        ctk.CTkButton(bar, text="Check Text", command=self._start_check).grid(row=0, column=1, padx=6)
        ctk.CTkButton(bar, text="Accept All", command=self._accept_all).grid(row=0, column=2, padx=6)
        ctk.CTkButton(bar, text="Ignore All", command=self._ignore_all).grid(row=0, column=3, padx=6)

        self.var_auto = ctk.BooleanVar(value=self.settings.auto_check)
        ctk.CTkSwitch(bar, text="Auto-check", variable=self.var_auto,
                      command=self._toggle_auto).grid(row=0, column=4, padx=6)

        self.lbl_status = ctk.CTkLabel(bar, text="Status: —", anchor="e")
        self.lbl_status.grid(row=0, column=5, sticky="e", padx=12)

    def _build_editor(self) -> None:
        frame = ctk.CTkFrame(self, corner_radius=10)
        frame.grid(row=1, column=0, sticky="nsew", padx=(12, 6), pady=(6, 12))
        frame.grid_columnconfigure(0, weight=1)
        frame.grid_rowconfigure(0, weight=1)

        self.txt = ctk.CTkTextbox(frame, wrap="word", font=self.font_text, undo=True)
        self.txt.grid(row=0, column=0, sticky="nsew", padx=8, pady=8)
        self.txt.tag_config(MARK_TAG, underline=True, foreground="#ff8a8a")
        self.txt.tag_bind(MARK_TAG, "<Button-1>", self._on_mark_click)
        self.txt.bind("<KeyRelease>", self._on_text_changed)

    def _build_popover(self) -> None:
        self.pop = ctk.CTkScrollableFrame(self, corner_radius=10, label_text="Suggestion")
        self.pop.grid(row=1, column=1, sticky="nsew", padx=(6, 12), pady=(6, 12))
        self.pop.grid_columnconfigure(0, weight=1)
        self._render_popover(None)

    # --------- session wiring ---------

    def _new_session(self) -> None:
        if self.session is not None:
            self.session.destroy()
        self.document.set_text(self._get_text())
        self.session = EditorSession.for_document(
            self.document, scheduler=self.scheduler, on_popover=self._render_popover
        )
        self.session.own(self.txt, self.pop)

    def _get_text(self) -> str:
        # Tk always appends a trailing newline
        return self.txt.get("1.0", "end-1c")

    def _write_text(self, text: str) -> None:
        """Write back a patched text, keeping caret and scroll where feasible."""
        caret = self.txt.index("insert")
        yview = self.txt.yview()[0]
        self.txt.delete("1.0", "end")
        self.txt.insert("1.0", text)
        self.txt.mark_set("insert", caret)
        self.txt.yview("moveto", yview)

    def _paint(self) -> None:
        self.txt.tag_remove(MARK_TAG, "1.0", "end")
        if self.session is None:
            return
        for d in self.session.decorations:
            self.txt.tag_add(MARK_TAG, f"1.0+{d.start}c", f"1.0+{d.end}c")
        words = count_words(self.document.text)
        score = accuracy_score(words, len(self.session.suggestions))
        self._set_status(f"{self.session.pending_count} pending · accuracy {score}%")

    def _refresh(self) -> None:
        assert self.session is not None
        self.document.set_text(self._get_text())
        self.session.refresh()
        self._paint()

    # --------- check pipeline (threaded) ---------

    def _start_check(self) -> None:
        if self._check_thread and self._check_thread.is_alive():
            return
        text = self._get_text()
        if not self.settings.enabled:
            self._set_status("CorrectNow is disabled in settings.")
            return
        if not can_check(text):
            self._set_status("Type at least 3 characters, then click Check.")
            return
        self._set_status("Checking…")
        self._check_thread = threading.Thread(target=self._check_worker, args=(text,), daemon=True)
        self._check_thread.start()

    def _check_worker(self, text: str) -> None:
        try:
            result = proofread(self.settings.api_base_url, text,
                               self.settings.language, self.settings.api_key)
        except ProofreadError as exc:
            self.after(0, lambda: self._on_check_error(exc))
            return
        self.after(0, lambda: self._on_check_ok(text, result.changes))

    def _on_check_ok(self, text: str, changes: list) -> None:
        assert self.session is not None
        current = self._get_text()
        self.document.set_text(current)
        # the user may have typed while the request was in flight
        self.session.ingest(text, changes)
        self.session.refresh(current)
        self._paint()

    def _on_check_error(self, exc: Exception) -> None:
        self._set_status("Check failed.")
        mb.showerror("Check failed", str(exc))

    # --------- events ---------

    def _on_text_changed(self, _ev=None) -> None:
        self._refresh()
        if self.var_auto.get():
            self._auto_check.trigger(self._start_check)

    def _on_mark_click(self, ev) -> None:
        assert self.session is not None
        offset = len(self.txt.get("1.0", f"@{ev.x},{ev.y}"))
        for d in self.session.decorations:
            if d.start <= offset < d.end:
                bbox = self.txt.bbox(f"1.0+{d.start}c")
                anchor = Rect.from_xywh(*bbox) if bbox else None
                self.session.on_click_mark(d.index, anchor)
                return

    def _on_pointer_down(self, ev) -> None:
        if self.session is None:
            return
        path = []
        w = ev.widget
        while w is not None:
            path.append(w)
            w = getattr(w, "master", None)
        self.session.on_pointer_down(ev.widget, path)

    def _toggle_auto(self) -> None:
        self.settings.auto_check = bool(self.var_auto.get())
        save_settings(self.settings)
        if not self.settings.auto_check:
            self._auto_check.cancel()

    # --------- actions ---------

    def _accept(self, index: int) -> None:
        assert self.session is not None
        popover = self.session.popover
        suggestion = self.session.suggestions[index]
        at = popover.occurrence if popover and popover.occurrence.suggestion is suggestion else None
        new_text = self.session.accept(suggestion, at=at)
        self._write_text(new_text)
        self._paint()

    def _accept_all(self) -> None:
        if self.session is None:
            return
        self._write_text(self.session.accept_all())
        self._history.upsert(self._get_text())
        self._paint()

    def _ignore(self, index: int, group: bool = False) -> None:
        assert self.session is not None
        if group:
            self.session.ignore_group(index)
        else:
            self.session.ignore(index)
        self._paint()

    def _ignore_all(self) -> None:
        if self.session is not None:
            self.session.ignore_all()
            self._paint()

    # --------- popover ---------

    def _render_popover(self, popover: Optional[Popover]) -> None:
        for child in self.pop.winfo_children():
            child.destroy()
        if popover is None:
            ctk.CTkLabel(self.pop, text="Click an underlined word.", font=self.font_label).grid(
                row=0, column=0, sticky="w", padx=8, pady=8)
            return

        row = 0
        for s in popover.suggestions:
            ctk.CTkLabel(self.pop, text=f"{s.original}  →  {s.corrected}",
                         font=self.font_label, anchor="w").grid(row=row, column=0, sticky="ew", padx=8)
            row += 1
            if s.explanation:
                ctk.CTkLabel(self.pop, text=s.explanation, wraplength=300, justify="left",
                             anchor="w").grid(row=row, column=0, sticky="ew", padx=8)
                row += 1
            actions = ctk.CTkFrame(self.pop, fg_color="transparent")
            actions.grid(row=row, column=0, sticky="w", padx=8, pady=(4, 10))
            ctk.CTkButton(actions, text="Accept", width=80,
                          command=lambda i=s.id: self._accept(i)).grid(row=0, column=0, padx=(0, 6))
            ctk.CTkButton(actions, text="Ignore", width=80, fg_color="gray30",
                          command=lambda i=s.id: self._ignore(i)).grid(row=0, column=1)
            row += 1

        if len(popover.suggestions) > 1:
            first = popover.suggestions[0].id
            ctk.CTkButton(self.pop, text="Ignore all of these", fg_color="gray30",
                          command=lambda: self._ignore(first, group=True)).grid(row=row, column=0, padx=8, pady=6)

    # --------- misc ---------

    def _set_status(self, text: str) -> None:
        self.lbl_status.configure(text=f"Status: {text}")

    def _on_close(self) -> None:
        self._auto_check.cancel()
        if self.session is not None:
            self.session.destroy()
        self._history.close()
        self.destroy()


if __name__ == "__main__":
    app = CorrectNowApp()
    app.mainloop()
