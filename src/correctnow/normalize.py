from __future__ import annotations
import unicodedata


def comparison_form(text: str) -> str:
    """Trimmed, NFC-composed form used to detect no-op suggestions."""
    return unicodedata.normalize("NFC", text.strip())


def is_noop(original: str, corrected: str) -> bool:
    return comparison_form(original) == comparison_form(corrected)


def group_key(text: str) -> str:
    """
    Key under which suggestions are grouped in the popover.
    Rules:
      * case-insensitive via .casefold()
      * punctuation/symbols dropped
      * whitespace runs collapsed to one space, trimmed
      * NFC first so composed and decomposed accents group together
    """
    out_chars: list[str] = []
    last_was_space = False

    for ch in unicodedata.normalize("NFC", text):
        if ch.isspace():
            last_was_space = True
            continue
        if ch.isalnum():
            # flush one collapsed space before a word char (not at start)
            if last_was_space and out_chars:
                out_chars.append(" ")
            last_was_space = False
            out_chars.append(ch.casefold())
        # punctuation/symbol: dropped, but does not break space runs

    return "".join(out_chars)


def count_words(text: str) -> int:
    return len(text.split())
