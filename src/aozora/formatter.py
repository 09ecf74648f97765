from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass

from .logging_utils import debug_log
from .rules import apply_markup_rules

__all__ = [
    "AnnotationFormatError",
    "FormatState",
    "format_text",
    "ALIGN_RIGHT",
    "ALIGN_LEFT",
    "COLOPHON_PREFIX",
    "FULLWIDTH_SPACE",
    "SEPARATOR_PREFIX",
    "ZENKAKU_BYTES",
]

ALIGN_RIGHT = "\\f[align,right]"
ALIGN_LEFT = "\\f[align,left]"
FULLWIDTH_SPACE = "　"
SEPARATOR_PREFIX = "----------"
COLOPHON_PREFIX = "底本："
# UTF-8 width of one full-width cell; trailing offsets are counted in bytes.
ZENKAKU_BYTES = 3

_BLOCK_PREFIX = "［＃ここから"
_INDENT_WORD = "字下げ"
_RAISE_WORD = "字上げ"
_INDENT_END = "［＃ここで字下げ終わり］"
_RAISE_END = "［＃ここで字上げ終わり］"
_ALIGN_BEGIN = "［＃ここから地付き］"
_ALIGN_END = "［＃ここで地付き終わり］"
_ALIGN_LINE = "［＃地付き］"

_LINE_INDENT_PATTERN = re.compile(r"［＃(?P<width>[^］]*?)字下げ］")
_LINE_RAISE_PATTERN = re.compile(r"［＃(?P<width>[^］]*?)字上げ］")
_TRAILING_PATTERN = re.compile(r"［＃地から(?P<width>[^］]*?)字上げ］")
_WIDTH_PATTERN = re.compile(r"[0-9０-９]+")


class AnnotationFormatError(ValueError):
    """Raised when an annotation's width field is not a number."""


@dataclass
class FormatState:
    """Formatting state carried from line to line during one pass."""

    block_indent: str = ""
    line_indent: str = ""
    block_align: str = ""
    line_align: str = ""
    block_raise: str = ""
    line_raise: str = ""
    trailing_pad: int = 0

    def prefix(self) -> str:
        return self.line_align + self.block_align + self.line_indent + self.block_indent

    def suffix(self) -> str:
        return self.line_raise + self.block_raise

    def reset_line(self) -> None:
        self.line_indent = ""
        self.line_align = ""
        self.line_raise = ""
        self.trailing_pad = 0


def _parse_width(field: str, line: str, line_no: int) -> int:
    match = _WIDTH_PATTERN.search(field)
    if match is None:
        raise AnnotationFormatError(
            f"Line {line_no + 1}: annotation width is not a number: {line!r}"
        )
    return int(unicodedata.normalize("NFKC", match.group(0)))


def _block_width(line: str, word: str, line_no: int) -> int:
    end = line.find(word)
    return _parse_width(line[len(_BLOCK_PREFIX) : end], line, line_no)


def _find_separator_end(lines: list[str], start: int) -> int:
    for index in range(start + 1, len(lines)):
        if lines[index].startswith(SEPARATOR_PREFIX):
            return index + 1
    return len(lines)


def _apply_block_marker(line: str, state: FormatState, line_no: int) -> bool:
    """Update block state for marker-only lines; True when the line is consumed."""
    if line.startswith(_BLOCK_PREFIX) and _INDENT_WORD in line:
        width = _block_width(line, _INDENT_WORD, line_no)
        state.block_indent = FULLWIDTH_SPACE * width
        return True
    if line.startswith(_INDENT_END):
        state.block_indent = ""
        return True
    if line.startswith(_BLOCK_PREFIX) and _RAISE_WORD in line:
        width = _block_width(line, _RAISE_WORD, line_no)
        state.block_raise = FULLWIDTH_SPACE * width
        return True
    if line.startswith(_RAISE_END):
        state.block_raise = ""
        return True
    return False


def _apply_line_markers(line: str, state: FormatState, line_no: int) -> str:
    """Record single-line markers in ``state`` and drop their annotation text."""
    if _ALIGN_BEGIN in line:
        state.block_align = ALIGN_RIGHT
        line = line.replace(_ALIGN_BEGIN, "")
    if _ALIGN_END in line:
        state.block_align = ""
        state.line_align = ALIGN_LEFT
        line = line.replace(_ALIGN_END, "")
    if _ALIGN_LINE in line:
        state.line_align = ALIGN_RIGHT
        line = line.replace(_ALIGN_LINE, "")

    match = _TRAILING_PATTERN.search(line)
    if match is not None:
        state.trailing_pad = _parse_width(match.group("width"), line, line_no) * ZENKAKU_BYTES

    match = _LINE_INDENT_PATTERN.search(line)
    if match is not None:
        width = _parse_width(match.group("width"), line, line_no)
        state.line_indent = FULLWIDTH_SPACE * width
        line = line[: match.start()] + line[match.end() :]

    match = _LINE_RAISE_PATTERN.search(line)
    if match is not None:
        width = _parse_width(match.group("width"), line, line_no)
        state.line_raise = FULLWIDTH_SPACE * width
        line = line[: match.start()] + line[match.end() :]
    return line


def _trim_prefix_bytes(prefix: str, pad: int) -> str:
    """Drop whole characters from ``prefix`` until up to ``pad`` bytes are gone."""
    dropped = 0
    for index, ch in enumerate(prefix):
        width = len(ch.encode("utf-8"))
        if dropped + width > pad:
            return prefix[index:]
        dropped += width
    return ""


def _compose(line: str, state: FormatState) -> str:
    prefix = state.prefix()
    pad = state.trailing_pad
    if pad > 0 and len(prefix.encode("utf-8")) > pad:
        prefix = _trim_prefix_bytes(prefix, pad)
    return prefix + line + state.suffix() + "\n"


def format_text(text: str) -> str:
    """
    Rewrite Aozora layout annotations line by line.

    Bibliographic blocks between ``----------`` separators are dropped, the
    scan stops at the ``底本：`` colophon, indentation/alignment markers update
    a :class:`FormatState` that prefixes the following output, and the inline
    markup rules are applied to every emitted line. Ruby delimiters are left
    for :func:`aozora.ruby.resegment`.

    Raises :class:`AnnotationFormatError` when a width field cannot be parsed;
    no partial output is returned in that case.
    """
    lines = text.split("\n")
    state = FormatState()
    pieces: list[str] = []
    ends_with_last_line = False
    index = 0
    while index < len(lines):
        line = lines[index]
        if line.startswith(SEPARATOR_PREFIX):
            skip_to = _find_separator_end(lines, index)
            debug_log(f"Skipped header block on lines {index + 1}-{skip_to}")
            index = skip_to
            continue
        if line.startswith(COLOPHON_PREFIX):
            debug_log(f"Colophon reached on line {index + 1}")
            break
        if _apply_block_marker(line, state, index):
            index += 1
            continue
        line = _apply_line_markers(line, state, index)
        line = apply_markup_rules(line)
        pieces.append(_compose(line, state))
        ends_with_last_line = index == len(lines) - 1
        state.reset_line()
        index += 1

    result = "".join(pieces)
    if ends_with_last_line:
        # The final source line had no newline of its own.
        result = result[:-1]
    return result
