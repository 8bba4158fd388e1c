# src/e2e/test_interaction.py

import pytest

from correctnow.interaction import Debouncer, ImmediateScheduler, InteractionLayer, is_owned
from correctnow.models import Hitbox, Occurrence, Rect, Suggestion


class FakeScheduler:
    """
    Manual clock for debounce tests:
      - schedule() queues a task due at now + delay
      - advance(ms) runs due tasks in order, moving the clock
    """
    def __init__(self):
        self.now = 0
        self._tasks = []    # [due, seq, callback, alive]
        self._seq = 0

    def schedule(self, delay_ms, callback):
        task = [self.now + delay_ms, self._seq, callback, True]
        self._seq += 1
        self._tasks.append(task)
        return task

    def cancel(self, handle):
        handle[3] = False

    def advance(self, ms):
        target = self.now + ms
        while True:
            due = [t for t in self._tasks if t[3] and t[0] <= target]
            if not due:
                break
            task = min(due, key=lambda t: (t[0], t[1]))
            task[3] = False
            self.now = task[0]
            task[2]()
        self.now = target

    @property
    def pending(self):
        return sum(1 for t in self._tasks if t[3])


TEXT = "teh cat sat"
S1, S2 = Suggestion("teh", "the", id=0), Suggestion("sat", "sit", id=1)
O1, O2 = Occurrence(0, 3, S1), Occurrence(8, 3, S2)
HB1, HB2 = Hitbox(O1, Rect(0, 0, 30, 10)), Hitbox(O2, Rect(80, 0, 110, 10))
BOXES = [HB1, HB2]


@pytest.fixture()
def sched():
    return FakeScheduler()


@pytest.fixture()
def events():
    return []


@pytest.fixture()
def layer(sched, events):
    return InteractionLayer(scheduler=sched, on_popover=events.append)


# ---------- debouncer ----------

def test_debouncer_newest_trigger_wins(sched):
    fired = []
    d = Debouncer(sched, 50, "t")
    d.trigger(lambda: fired.append("a"))
    sched.advance(30)
    d.trigger(lambda: fired.append("b"))
    assert d.pending
    sched.advance(49)
    assert fired == []
    sched.advance(1)
    assert fired == ["b"] and not d.pending


def test_debouncer_cancel(sched):
    fired = []
    d = Debouncer(sched, 50)
    d.trigger(lambda: fired.append(1))
    d.cancel()
    sched.advance(100)
    assert fired == [] and sched.pending == 0


def test_immediate_scheduler_runs_at_once():
    fired = []
    d = Debouncer(ImmediateScheduler(), 300)
    d.trigger(lambda: fired.append(1))
    assert fired == [1] and not d.pending


# ---------- hover ----------

def test_hover_opens_after_intent_delay(layer, sched):
    assert layer.pointer_move(5, 5, BOXES) is HB1
    sched.advance(299)
    assert layer.popover is None
    sched.advance(1)
    assert layer.popover.occurrence is O1
    assert layer.popover.source == "hover"
    assert layer.popover.suggestions == [S1]


def test_newer_hover_supersedes_pending_one(layer, sched, events):
    layer.pointer_move(5, 5, BOXES)
    sched.advance(200)
    layer.pointer_move(90, 5, BOXES)
    sched.advance(200)
    assert layer.popover is None
    sched.advance(100)
    assert layer.popover.occurrence is O2
    assert [p.occurrence for p in events if p is not None] == [O2]


def test_moving_inside_same_hitbox_does_not_restart_timer(layer, sched):
    layer.pointer_move(5, 5, BOXES)
    sched.advance(200)
    layer.pointer_move(20, 6, BOXES)
    sched.advance(100)
    assert layer.popover is not None


def test_pointer_outside_control_is_a_miss(layer, sched):
    assert layer.pointer_move(5, 5, BOXES, control_rect=Rect(100, 100, 200, 200)) is None
    sched.advance(1000)
    assert layer.popover is None


def test_close_grace_lets_pointer_reach_tooltip(layer, sched):
    layer.pointer_move(5, 5, BOXES)
    sched.advance(300)
    layer.pointer_move(500, 500, BOXES)
    sched.advance(299)
    assert layer.popover is not None
    layer.pointer_enter_popover()
    sched.advance(500)
    assert layer.popover is not None

    layer.pointer_leave_popover()
    sched.advance(300)
    assert layer.popover is None


def test_hover_tooltip_closes_after_grace(layer, sched, events):
    layer.pointer_move(5, 5, BOXES)
    sched.advance(300)
    layer.pointer_move(500, 500, BOXES)
    sched.advance(300)
    assert layer.popover is None
    assert events[-1] is None


# ---------- caret ----------

def test_caret_inside_span_opens_after_debounce(layer, sched):
    layer.caret_moved(TEXT, [O1, O2], 3)
    assert layer.popover is None
    sched.advance(50)
    assert layer.popover.occurrence is O1
    assert layer.popover.source == "caret"


def test_caret_outside_any_span_closes(layer, sched):
    layer.caret_moved(TEXT, [O1, O2], 1)
    sched.advance(50)
    layer.caret_moved(TEXT, [O1, O2], 5)
    sched.advance(50)
    assert layer.popover is None


def test_selection_must_cover_exact_span(layer, sched):
    layer.caret_moved(TEXT, [O1, O2], 8, 11)
    sched.advance(50)
    assert layer.popover.occurrence is O2
    layer.caret_moved(TEXT, [O1, O2], 8, 10)
    sched.advance(50)
    assert layer.popover is None


def test_caret_burst_resolves_only_last_position(layer, sched, events):
    layer.caret_moved(TEXT, [O1, O2], 1)
    sched.advance(20)
    layer.caret_moved(TEXT, [O1, O2], 9)
    sched.advance(50)
    assert [p.occurrence for p in events if p is not None] == [O2]


def test_caret_in_empty_text_resolves_nothing(layer, sched):
    layer.caret_moved("", [O1], 0)
    sched.advance(50)
    assert layer.popover is None


# ---------- click ----------

def test_click_opens_group_immediately(sched, events):
    twin = Suggestion("Teh", "The", id=2)
    layer = InteractionLayer(scheduler=sched, group_of=lambda s: [s, twin], on_popover=events.append)
    layer.pointer_move(90, 5, BOXES)
    pop = layer.click(O1, Rect(0, 0, 30, 10))
    assert pop.suggestions == [S1, twin]
    assert pop.source == "click"
    # the pending hover was cancelled
    sched.advance(1000)
    assert layer.popover is pop


# ---------- dismissal ----------

def test_pointer_down_inside_owned_ui_keeps_tooltip(layer):
    layer.owned.update({"control", "tooltip"})
    layer.click(O1)
    assert layer.pointer_down("tooltip") is False
    # encapsulated UI reports its host as target; the path still holds the owned node
    assert layer.pointer_down("shadow-host", ["button", "tooltip", "body"]) is False
    assert layer.popover is not None


def test_pointer_down_elsewhere_dismisses(layer, sched):
    layer.owned.add("control")
    layer.click(O1)
    layer.caret_moved(TEXT, [O1], 1)
    assert layer.pointer_down("body", ["body", "html"]) is True
    sched.advance(100)
    assert layer.popover is None


def test_is_owned_checks_target_and_path():
    assert is_owned("a", [], {"a"})
    assert is_owned("x", ["y", "a"], {"a"})
    assert not is_owned("x", ["y"], {"a"})
