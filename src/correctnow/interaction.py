# src/correctnow/interaction.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable, Iterable, List, Optional, Protocol, Sequence

from . import config as CFG
from .locator import occurrence_at, occurrence_for_selection
from .models import Hitbox, Occurrence, Rect, Suggestion

log = logging.getLogger(__name__)


class Scheduler(Protocol):
    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> Any: ...
    def cancel(self, handle: Any) -> None: ...


class ImmediateScheduler:
    """Runs callbacks synchronously. For hosts without an event loop (CLI, web)."""

    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> Any:
        callback()
        return None

    def cancel(self, handle: Any) -> None:
        pass


class Debouncer:
    """
    One cancelable single-shot timer per debounce site.
    A new trigger always cancels the pending one, so only the newest survives.
    """

    def __init__(self, scheduler: Scheduler, delay_ms: int, name: str = "") -> None:
        self._scheduler = scheduler
        self.delay_ms = delay_ms
        self.name = name
        self._handle: Any = None
        self._pending = False

    @property
    def pending(self) -> bool:
        return self._pending

    def trigger(self, callback: Callable[[], None]) -> None:
        self.cancel()

        def fire() -> None:
            self._pending = False
            self._handle = None
            callback()

        self._pending = True
        self._handle = self._scheduler.schedule(self.delay_ms, fire)

    def cancel(self) -> None:
        if self._pending:
            log.debug("debounce %s superseded", self.name or "timer")
            self._scheduler.cancel(self._handle)
        self._handle = None
        self._pending = False


# ---------------------------------------------------------------------------
# pure resolution helpers
# ---------------------------------------------------------------------------

def hit_test(hitboxes: Iterable[Hitbox], x: float, y: float,
             control_rect: Optional[Rect] = None) -> Optional[Hitbox]:
    """First hitbox under (x, y); nothing when the point is outside the control."""
    if control_rect is not None and not control_rect.contains(x, y):
        return None
    for hb in hitboxes:
        if hb.rect.contains(x, y):
            return hb
    return None


def resolve_caret(occurrences: Sequence[Occurrence], text: str,
                  sel_start: int, sel_end: Optional[int] = None) -> Optional[Occurrence]:
    if not text:
        return None
    if sel_end is None:
        sel_end = sel_start
    if sel_end > sel_start:
        return occurrence_for_selection(occurrences, sel_start, sel_end)
    return occurrence_at(occurrences, sel_start)


def is_owned(target: Hashable, path: Iterable[Hashable], owned: Iterable[Hashable]) -> bool:
    """
    True when the event belongs to UI owned by the host instance.

    `path` is the retargeted event path (innermost first). Checking it, and not
    only `target`, keeps encapsulated UI (whose events surface with the
    encapsulation root as target) from dismissing itself.
    """
    owned = set(owned)
    if target in owned:
        return True
    return any(node in owned for node in path)


# ---------------------------------------------------------------------------
# stateful layer (one per host instance)
# ---------------------------------------------------------------------------

@dataclass
class Popover:
    occurrence: Occurrence
    suggestions: List[Suggestion]
    anchor: Optional[Rect] = None
    source: str = "click"           # "hover" | "caret" | "click"


PopoverListener = Callable[[Optional[Popover]], None]


@dataclass
class InteractionLayer:
    scheduler: Scheduler = field(default_factory=ImmediateScheduler)
    group_of: Callable[[Suggestion], List[Suggestion]] = lambda s: [s]
    on_popover: Optional[PopoverListener] = None

    def __post_init__(self) -> None:
        self.hover = Debouncer(self.scheduler, CFG.HOVER_INTENT_MS, "hover")
        self.caret = Debouncer(self.scheduler, CFG.CARET_DEBOUNCE_MS, "caret")
        self.close_grace = Debouncer(self.scheduler, CFG.TOOLTIP_CLOSE_GRACE_MS, "close")
        self.popover: Optional[Popover] = None
        self.hovered: Optional[Occurrence] = None
        self.owned: set = set()

    # ---- popover lifecycle ----

    def open(self, occurrence: Occurrence, *, anchor: Optional[Rect] = None,
             source: str = "click", group: bool = False) -> Popover:
        self.close_grace.cancel()
        suggestions = self.group_of(occurrence.suggestion) if group else [occurrence.suggestion]
        self.popover = Popover(occurrence, suggestions, anchor, source)
        self._notify()
        return self.popover

    def close(self) -> None:
        self.close_grace.cancel()
        if self.popover is not None:
            self.popover = None
            self._notify()

    def _notify(self) -> None:
        if self.on_popover is not None:
            self.on_popover(self.popover)

    # ---- pointer (mirrored surfaces) ----

    def pointer_move(self, x: float, y: float, hitboxes: Sequence[Hitbox],
                     control_rect: Optional[Rect] = None) -> Optional[Hitbox]:
        hit = hit_test(hitboxes, x, y, control_rect)
        if hit is None:
            self.hovered = None
            self.hover.cancel()
            if self.popover is not None and self.popover.source == "hover":
                self.close_grace.trigger(self.close)
            return None

        self.close_grace.cancel()
        if self.hovered is hit.occurrence and (self.hover.pending or self._showing(hit.occurrence)):
            return hit
        self.hovered = hit.occurrence
        occ, rect = hit.occurrence, hit.rect
        self.hover.trigger(lambda: self.open(occ, anchor=rect, source="hover"))
        return hit

    def pointer_enter_popover(self) -> None:
        self.close_grace.cancel()

    def pointer_leave_popover(self) -> None:
        if self.popover is not None:
            self.close_grace.trigger(self.close)

    # ---- caret / selection (mirrored surfaces) ----

    def caret_moved(self, text: str, occurrences: Sequence[Occurrence], sel_start: int,
                    sel_end: Optional[int] = None, anchor: Optional[Rect] = None) -> None:
        def resolve() -> None:
            match = resolve_caret(occurrences, text, sel_start, sel_end)
            if match is None:
                self.close()
            else:
                self.open(match, anchor=anchor, source="caret")

        self.caret.trigger(resolve)

    # ---- click (rich surfaces) ----

    def click(self, occurrence: Occurrence, anchor: Optional[Rect] = None) -> Popover:
        self.hover.cancel()
        return self.open(occurrence, anchor=anchor, source="click", group=True)

    # ---- dismissal ----

    def pointer_down(self, target: Hashable, path: Iterable[Hashable] = ()) -> bool:
        """Returns True when the event dismissed the transient UI."""
        if is_owned(target, path, self.owned):
            return False
        self.reset()
        return True

    def reset(self) -> None:
        self.hover.cancel()
        self.caret.cancel()
        self.hovered = None
        self.close()

    def _showing(self, occurrence: Occurrence) -> bool:
        return self.popover is not None and self.popover.occurrence is occurrence
