# src/correctnow/render.py
"""
Decoration renderer.

Two surfaces are supported:

- Plain text controls (single-line inputs, multi-line text areas) cannot style
  sub-ranges, so a *mirror layer* is drawn over them: a character-for-character
  copy of the text with transparent glyphs, styled exactly like the control,
  in which only the occurrence ranges are wrapped in underline spans. The
  mirror follows the control's scroll offsets and computed style.

- Rich surfaces hold markup, so occurrences are wrapped in place. They are
  modelled by `RichDocument`, a flat run of text nodes and mark nodes; each
  mark carries the index of the occurrence it decorates.

Both renderers fully replace previous decorations on every call, so calling
`render` twice with the same input yields the same result.
"""

from __future__ import annotations

import html
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .models import Hitbox, Occurrence, Rect

MARK_CLASS = "cn-mark"
OCC_ATTR = "data-cn-occ"

# computed-style properties copied from the control onto the mirror
MIRRORED_PROPERTIES: Tuple[str, ...] = (
    "font",
    "font-size",
    "font-family",
    "font-weight",
    "font-style",
    "letter-spacing",
    "line-height",
    "padding-top",
    "padding-right",
    "padding-bottom",
    "padding-left",
    "border-top-width",
    "border-right-width",
    "border-bottom-width",
    "border-left-width",
    "box-sizing",
    "text-align",
)


@dataclass(frozen=True, slots=True)
class Decoration:
    index: int          # position in the occurrence list
    start: int
    end: int
    suggestion_id: int


def decorations_for(occurrences: Sequence[Occurrence]) -> List[Decoration]:
    return [Decoration(i, o.start, o.end, o.suggestion.id) for i, o in enumerate(occurrences)]


# ---------------------------------------------------------------------------
# mirror layer (plain text controls)
# ---------------------------------------------------------------------------

def mirror_html(text: str, occurrences: Sequence[Occurrence]) -> str:
    """Escaped copy of `text` with each occurrence wrapped in a mark span."""
    parts: List[str] = []
    pos = 0
    for i, o in enumerate(occurrences):
        parts.append(html.escape(text[pos:o.start]))
        marked = html.escape(text[o.start:o.end])
        parts.append(f'<span class="{MARK_CLASS}" {OCC_ATTR}="{i}">{marked}</span>')
        pos = o.end
    parts.append(html.escape(text[pos:]))
    return "".join(parts)


def mirror_style(computed: Mapping[str, str], *, multiline: bool) -> Dict[str, str]:
    style = {k: computed[k] for k in MIRRORED_PROPERTIES if k in computed}
    # inputs are single-line; text areas wrap
    style["white-space"] = "pre-wrap" if multiline else "pre"
    style["word-break"] = "break-word"
    style["overflow"] = "hidden"
    style["background"] = "transparent"
    style["color"] = "transparent"
    return style


def scroll_transform(scroll_left: float, scroll_top: float, *, multiline: bool) -> str:
    x = scroll_left or 0
    y = (scroll_top or 0) if multiline else 0
    return f"translate({-x:g}px, {-y:g}px)"


# (occurrence index, occurrence) -> rect of the rendered mark, or None if not laid out
Measure = Callable[[int, Occurrence], Optional[Rect]]


@dataclass
class MirrorLayer:
    """Visual state of the mirror drawn over one plain text control."""
    multiline: bool = True
    html: str = ""
    style: Dict[str, str] = field(default_factory=dict)
    transform: str = "translate(0px, 0px)"
    decorations: List[Decoration] = field(default_factory=list)
    hitboxes: List[Hitbox] = field(default_factory=list)
    _occurrences: List[Occurrence] = field(default_factory=list, repr=False)

    def render(self, text: str, occurrences: Sequence[Occurrence]) -> List[Decoration]:
        self._occurrences = list(occurrences)
        self.decorations = decorations_for(self._occurrences)
        self.html = mirror_html(text, self._occurrences) if self._occurrences else ""
        # stale until the host measures the new layout
        self.hitboxes = []
        return self.decorations

    def sync_style(self, computed: Mapping[str, str]) -> None:
        self.style = mirror_style(computed, multiline=self.multiline)

    def sync_scroll(self, scroll_left: float, scroll_top: float = 0) -> None:
        self.transform = scroll_transform(scroll_left, scroll_top, multiline=self.multiline)

    def collect_hitboxes(self, measure: Measure) -> List[Hitbox]:
        boxes: List[Hitbox] = []
        for i, o in enumerate(self._occurrences):
            rect = measure(i, o)
            if rect is None or rect.is_empty:
                continue
            boxes.append(Hitbox(o, rect))
        self.hitboxes = boxes
        return boxes

    def clear(self) -> None:
        self.render("", [])


# ---------------------------------------------------------------------------
# in-place wrapping (rich surfaces)
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class TextNode:
    text: str


@dataclass(slots=True)
class MarkNode:
    text: str
    index: int
    suggestion_id: int


Node = Union[TextNode, MarkNode]


class RichDocument:
    """
    Logical content of a rich editable surface: an ordered run of nodes whose
    concatenated text is the surface's plain text.
    """

    def __init__(self, content: "str | Sequence[Node]" = "") -> None:
        if isinstance(content, str):
            self.nodes: List[Node] = [TextNode(content)] if content else []
        else:
            self.nodes = list(content)

    @property
    def text(self) -> str:
        return "".join(n.text for n in self.nodes)

    def set_text(self, text: str) -> None:
        self.nodes = [TextNode(text)] if text else []

    def marks(self) -> List[MarkNode]:
        return [n for n in self.nodes if isinstance(n, MarkNode)]

    def offset_map(self) -> List[Tuple[int, int]]:
        """char index -> (node index, offset within node)"""
        out: List[Tuple[int, int]] = []
        for ni, node in enumerate(self.nodes):
            out.extend((ni, i) for i in range(len(node.text)))
        return out

    def unwrap(self) -> None:
        """Turn every mark back into text and merge adjacent text nodes."""
        merged: List[Node] = []
        for node in self.nodes:
            if not node.text:
                continue
            if merged and isinstance(merged[-1], TextNode):
                merged[-1] = TextNode(merged[-1].text + node.text)
            else:
                merged.append(TextNode(node.text))
        self.nodes = merged

    def wrap(self, start: int, end: int, index: int, suggestion_id: int) -> Optional[MarkNode]:
        """
        Wrap [start, end) in one mark node. Returns None when the range is
        empty, out of bounds, or touches an existing mark.
        """
        omap = self.offset_map()
        if start >= end or start < 0 or end > len(omap):
            return None
        first_node, first_off = omap[start]
        last_node, last_off = omap[end - 1]
        span = self.nodes[first_node:last_node + 1]
        if any(isinstance(n, MarkNode) for n in span):
            return None

        joined = "".join(n.text for n in span)
        head = span[0].text[:first_off]
        tail = span[-1].text[last_off + 1:]
        body = joined[first_off:len(joined) - len(tail)]
        mark = MarkNode(body, index, suggestion_id)

        replacement: List[Node] = []
        if head:
            replacement.append(TextNode(head))
        replacement.append(mark)
        if tail:
            replacement.append(TextNode(tail))
        self.nodes[first_node:last_node + 1] = replacement
        return mark


class RichRenderer:
    def __init__(self, document: RichDocument) -> None:
        self.document = document
        self.decorations: List[Decoration] = []

    def render(self, occurrences: Sequence[Occurrence]) -> List[Decoration]:
        self.document.unwrap()
        done: List[Decoration] = []
        for d in decorations_for(occurrences):
            if self.document.wrap(d.start, d.end, d.index, d.suggestion_id) is not None:
                done.append(d)
        self.decorations = done
        return done

    def clear(self) -> None:
        self.document.unwrap()
        self.decorations = []
