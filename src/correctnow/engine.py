# src/correctnow/engine.py
from __future__ import annotations

import logging
from typing import Any, Callable, Hashable, Iterable, List, Mapping, Optional

from . import config as CFG
from .interaction import InteractionLayer, Popover, PopoverListener, Scheduler, ImmediateScheduler
from .locator import locate
from .models import Hitbox, Occurrence, Rect, Status, Suggestion
from .normalize import count_words
from .patch import apply_at_index, apply_first_occurrence, apply_sequence
from .render import Decoration, Measure, MirrorLayer, RichDocument, RichRenderer
from .store import SuggestionStore

log = logging.getLogger(__name__)

SURFACES = ("input", "textarea", "rich")


def can_check(text: str) -> bool:
    """Long enough to be worth a round trip, short enough for the service."""
    return len(text.strip()) >= CFG.MIN_CHECK_CHARS and count_words(text) <= CFG.WORD_LIMIT


def accuracy_score(word_count: int, change_count: int) -> int:
    if not word_count:
        return 0
    return max(0, min(100, round((1 - change_count / word_count) * 100)))


class EditorSession:
    """
    Per-surface state object gluing together:
      - the suggestion store (statuses),
      - the span locator (occurrences of the current snapshot),
      - a decoration renderer (mirror layer or in-place wrapping),
      - the interaction layer (hover / caret / click popovers),
      - the patch applier.

    The host owns the text. It hands the session a `get_text` accessor and
    writes back whatever `accept`, `accept_all` return.

    Lifecycle: create when a surface gains focus, `destroy()` on blur/unmount.
    Sessions share no state, so any number can live side by side.
    """

    # ------------- lifecycle -------------

    def __init__(
        self,
        get_text: Callable[[], str],
        *,
        surface: str = "textarea",
        document: Optional[RichDocument] = None,
        scheduler: Optional[Scheduler] = None,
        on_popover: Optional[PopoverListener] = None,
    ) -> None:
        if surface not in SURFACES:
            raise ValueError(f"unknown surface {surface!r}; expected one of {SURFACES}")
        if surface == "rich" and document is None:
            raise ValueError("rich surfaces need a RichDocument")

        self.surface = surface
        self._get_text = get_text
        self.store = SuggestionStore()
        self.occurrences: List[Occurrence] = []
        self._snapshot: Optional[str] = None   # text the occurrences were computed from
        self.control_rect: Optional[Rect] = None

        self.mirror: Optional[MirrorLayer] = None
        self.rich: Optional[RichRenderer] = None
        if surface == "rich":
            self.rich = RichRenderer(document)  # type: ignore[arg-type]
        else:
            self.mirror = MirrorLayer(multiline=(surface == "textarea"))

        self.interaction = InteractionLayer(
            scheduler=scheduler or ImmediateScheduler(),
            group_of=self.store.group,
            on_popover=on_popover,
        )
        self._alive = True

    @classmethod
    def for_document(cls, document: RichDocument, **kw: Any) -> "EditorSession":
        return cls(lambda: document.text, surface="rich", document=document, **kw)

    def destroy(self) -> None:
        if not self._alive:
            return
        try:
            self.interaction.reset()
            if self.mirror is not None:
                self.mirror.clear()
            if self.rich is not None:
                self.rich.clear()
        finally:
            self.store.clear()
            self.occurrences = []
            self._snapshot = None
            self._alive = False
            log.debug("session destroyed (%s)", self.surface)

    @property
    def alive(self) -> bool:
        return self._alive

    def _check(self) -> None:
        if not self._alive:
            raise RuntimeError("session destroyed")

    # ------------- pipeline -------------

    def ingest(self, text: str, changes: Any) -> List[Suggestion]:
        self._check()
        self.interaction.reset()
        out = self.store.ingest(text, changes)
        self.refresh(text)
        return out

    def recompute(self, text: Optional[str] = None) -> List[Occurrence]:
        self._check()
        text = self._get_text() if text is None else text
        self.occurrences = locate(text, self.store.active)
        self._snapshot = text
        return self.occurrences

    def render(self) -> List[Decoration]:
        self._check()
        if self.rich is not None:
            return self.rich.render(self.occurrences)
        assert self.mirror is not None
        return self.mirror.render(self._snapshot or "", self.occurrences)

    def refresh(self, text: Optional[str] = None) -> List[Decoration]:
        """Locate then render; call after every text edit or status change."""
        self.recompute(text)
        return self.render()

    # ------------- patching -------------

    def accept(self, ref: "Suggestion | int", at: Optional[Occurrence] = None) -> str:
        """
        Accept one suggestion and return the new text.

        With `at` (an occurrence from the current snapshot) only that span is
        replaced, and only if it still holds the original; otherwise the first
        literal occurrence is replaced. A suggestion that no longer applies
        leaves the text and its status unchanged.
        """
        self._check()
        suggestion = self.store.resolve(ref)
        text = self._get_text()
        if not suggestion.is_pending:
            return text

        if at is not None:
            new_text = apply_at_index(text, suggestion, at.start)
        else:
            new_text = apply_first_occurrence(text, suggestion)

        if new_text == text:
            log.debug("accept of %r was a no-op", suggestion.original)
            return text

        self.store.set_status(suggestion, Status.ACCEPTED)
        # one rewrite of a span supersedes alternatives proposed for it
        for other in self.store.siblings(suggestion):
            self.store.set_status(other, Status.IGNORED)

        log.info("accepted %r -> %r", suggestion.original, suggestion.corrected)
        self._after_patch(new_text)
        return new_text

    def accept_occurrence(self, occurrence: Occurrence) -> str:
        return self.accept(occurrence.suggestion, at=occurrence)

    def accept_all(self) -> str:
        self._check()
        text = self._get_text()
        batch = self.store.active
        for s in batch:
            self.store.set_status(s, Status.ACCEPTED)
        new_text = apply_sequence(text, batch)
        log.info("accepted %d suggestions", len(batch))
        self._after_patch(new_text)
        return new_text

    def ignore(self, ref: "Suggestion | int") -> None:
        self._check()
        suggestion = self.store.resolve(ref)
        if suggestion.is_pending:
            self.store.set_status(suggestion, Status.IGNORED)
        self._after_status_change()

    def ignore_group(self, ref: "Suggestion | int") -> None:
        self._check()
        suggestion = self.store.resolve(ref)
        for s in self.store.group(suggestion):
            self.store.set_status(s, Status.IGNORED)
        self._after_status_change()

    def ignore_all(self) -> None:
        self._check()
        for s in self.store.active:
            self.store.set_status(s, Status.IGNORED)
        self._after_status_change()

    def _after_patch(self, new_text: str) -> None:
        self.interaction.reset()
        if self.rich is not None:
            self.rich.document.set_text(new_text)
        self.refresh(new_text)

    def _after_status_change(self) -> None:
        popover = self.interaction.popover
        if popover is not None and not any(s.is_pending for s in popover.suggestions):
            self.interaction.close()
        self.refresh(self._snapshot)

    # ------------- host handlers -------------

    def measure(self, measure: Measure) -> List[Hitbox]:
        """Rebuild hover hitboxes once the host has laid out the mirror."""
        self._check()
        if self.mirror is None:
            return []
        return self.mirror.collect_hitboxes(measure)

    def on_style(self, computed: Mapping[str, str]) -> None:
        if self.mirror is not None:
            self.mirror.sync_style(computed)

    def on_scroll(self, scroll_left: float, scroll_top: float = 0) -> None:
        if self.mirror is not None:
            self.mirror.sync_scroll(scroll_left, scroll_top)

    def on_pointer_move(self, x: float, y: float) -> Optional[Hitbox]:
        self._check()
        if self.mirror is None:
            return None
        return self.interaction.pointer_move(x, y, self.mirror.hitboxes, self.control_rect)

    def on_caret(self, sel_start: int, sel_end: Optional[int] = None) -> None:
        self._check()
        if self.mirror is None:
            return
        self.interaction.caret_moved(
            self._get_text(), self.occurrences, sel_start, sel_end, anchor=self.control_rect
        )

    def on_click_mark(self, index: int, anchor: Optional[Rect] = None) -> Optional[Popover]:
        self._check()
        if not 0 <= index < len(self.occurrences):
            return None
        return self.interaction.click(self.occurrences[index], anchor)

    def on_pointer_down(self, target: Hashable, path: Iterable[Hashable] = ()) -> bool:
        return self.interaction.pointer_down(target, path)

    def own(self, *nodes: Hashable) -> None:
        """Register host UI nodes (control, tooltip, trigger) that must not dismiss."""
        self.interaction.owned.update(nodes)

    # ------------- views -------------

    @property
    def suggestions(self) -> List[Suggestion]:
        return list(self.store)

    @property
    def pending_count(self) -> int:
        return len(self.store.active)

    @property
    def popover(self) -> Optional[Popover]:
        return self.interaction.popover

    @property
    def decorations(self) -> List[Decoration]:
        if self.rich is not None:
            return self.rich.decorations
        return self.mirror.decorations if self.mirror is not None else []
