from __future__ import annotations

from pathlib import Path

from .book_io import TEXT_ENCODING, read_book_file
from .formatter import format_text
from .ruby import Tokenize, resegment

__all__ = ["convert", "convert_file"]


def convert(text: str, *, tokenizer: Tokenize | None = None) -> str:
    """Format annotations line by line, then normalise ruby over the result."""
    return resegment(format_text(text), tokenizer=tokenizer)


def convert_file(
    path: Path,
    *,
    encoding: str = TEXT_ENCODING,
    tokenizer: Tokenize | None = None,
) -> str:
    return convert(read_book_file(path, encoding), tokenizer=tokenizer)
