from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from .logging_utils import debug_log

__all__ = [
    "RubyToken",
    "RUBY_OPEN",
    "RUBY_CLOSE",
    "RUBY_SEPARATOR",
    "RUBY_BASE_MARK",
    "find_ruby_tokens",
    "is_han_token",
    "resegment",
    "resegment_tokens",
]

RUBY_BASE_MARK = "｜"
RUBY_OPEN = "《"
RUBY_CLOSE = "》"
RUBY_SEPARATOR = ","

Tokenize = Callable[[str], list[str]]


@dataclass(frozen=True)
class RubyToken:
    base: str
    reading: str


def _is_han_char(ch: str) -> bool:
    code = ord(ch)
    return (
        0x4E00 <= code <= 0x9FFF
        or 0x3400 <= code <= 0x4DBF
        or 0x20000 <= code <= 0x2A6DF
        or 0x2A700 <= code <= 0x2B73F
        or 0x2B740 <= code <= 0x2B81F
        or 0x2B820 <= code <= 0x2CEAF
        or 0x2CEB0 <= code <= 0x2EBEF
        or 0x30000 <= code <= 0x3134F
        or 0xF900 <= code <= 0xFAFF
        or 0x2F800 <= code <= 0x2FA1F
        or 0x2E80 <= code <= 0x2FDF
        or ch in "々〆〇〻"
    )


def is_han_token(token: str) -> bool:
    """True when every character of a non-empty token is Han script."""
    return bool(token) and all(_is_han_char(ch) for ch in token)


def _find_forward(tokens: list[str], start: int, target: str) -> int:
    """Index of ``target`` at or after ``start`` on the same line, else -1."""
    for index in range(start, len(tokens)):
        token = tokens[index]
        if token == target:
            return index
        if "\n" in token:
            return -1
    return -1


def _rewrite(tokens: Iterable[str]) -> tuple[list[str], list[RubyToken]]:
    seg = list(tokens)
    found: list[RubyToken] = []
    j = 0
    while j < len(seg):
        token = seg[j]
        if token == RUBY_BASE_MARK:
            # ｜base《reading》 -> 《base,reading》
            reading_open = _find_forward(seg, j + 1, RUBY_OPEN)
            if reading_open == -1:
                j += 1
                continue
            seg[j] = RUBY_OPEN
            seg[reading_open] = RUBY_SEPARATOR
            base = "".join(seg[j + 1 : reading_open])
            j = _record_reading(seg, reading_open + 1, base, found)
            continue
        if token == RUBY_OPEN:
            # base《reading》 -> 《base,reading》 with base = trailing Han run
            start = j
            while start > 0 and is_han_token(seg[start - 1]):
                start -= 1
            base_tokens = seg[start:j]
            seg[start : j + 1] = [RUBY_OPEN, *base_tokens, RUBY_SEPARATOR]
            j = _record_reading(seg, j + 2, "".join(base_tokens), found)
            continue
        j += 1
    return seg, found


def _record_reading(seg: list[str], start: int, base: str, found: list[RubyToken]) -> int:
    close = _find_forward(seg, start, RUBY_CLOSE)
    end = close if close != -1 else start
    found.append(RubyToken(base=base, reading="".join(seg[start:end])))
    return end + 1 if close != -1 else start


def resegment_tokens(tokens: Iterable[str]) -> list[str]:
    """Rewrite a token sequence so every ruby gloss reads ``《base,reading》``."""
    seg, _ = _rewrite(tokens)
    return seg


def find_ruby_tokens(tokens: Iterable[str]) -> list[RubyToken]:
    """Return the (base, reading) pairs recovered from ``tokens``."""
    _, found = _rewrite(tokens)
    return found


_default_tokenizer: Tokenize | None = None


def _get_default_tokenizer() -> Tokenize:
    global _default_tokenizer
    if _default_tokenizer is None:
        from .nlp import Tokenizer

        _default_tokenizer = Tokenizer()
    return _default_tokenizer


def resegment(text: str, tokenizer: Tokenize | None = None) -> str:
    """
    Normalise both ruby notations of ``text`` into ``《base,reading》``.

    ``tokenizer`` splits text into surface tokens that concatenate back to the
    input; the fugashi segmenter from :mod:`aozora.nlp` is used when omitted.
    A reading with no Han base before it gets an empty base.
    """
    if RUBY_OPEN not in text:
        return text
    tokenize = tokenizer or _get_default_tokenizer()
    seg, found = _rewrite(tokenize(text))
    empty = sum(1 for token in found if not token.base)
    debug_log(f"Resegmented {len(found)} ruby glosses ({empty} without a base)")
    return "".join(seg)
