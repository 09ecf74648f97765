from __future__ import annotations

import io
import zipfile
from pathlib import Path

import requests

from .logging_utils import debug_log

__all__ = [
    "BookFetchError",
    "TEXT_ENCODING",
    "decode_book_bytes",
    "fetch_book_text",
    "read_book_file",
]

# Aozora Bunko texts are Shift_JIS; cp932 covers the vendor extensions.
TEXT_ENCODING = "cp932"
_ZIP_MAGIC = b"PK\x03\x04"


class BookFetchError(RuntimeError):
    """Raised when the book text cannot be downloaded or read."""


def _unwrap_zip(raw: bytes) -> bytes:
    try:
        with zipfile.ZipFile(io.BytesIO(raw)) as zf:
            for name in zf.namelist():
                if name.lower().endswith(".txt"):
                    debug_log(f"Reading {name} from zip payload")
                    return zf.read(name)
    except zipfile.BadZipFile as exc:
        raise BookFetchError(f"Corrupt zip payload: {exc}") from exc
    raise BookFetchError("Zip payload does not contain a .txt file")


def decode_book_bytes(raw: bytes, encoding: str = TEXT_ENCODING) -> str:
    """
    Decode a downloaded text (or a card zip holding it) into ``\\n`` lines.

    Undecodable bytes become U+FFFD. Every line, the last one included, ends
    with a newline.
    """
    if raw.startswith(_ZIP_MAGIC):
        raw = _unwrap_zip(raw)
    text = raw.decode(encoding, errors="replace")
    lines = text.replace("\r\n", "\n").split("\n")
    if lines[-1] == "":
        lines.pop()
    return "".join(f"{line}\n" for line in lines)


def fetch_book_text(url: str, *, timeout: float = 60.0, encoding: str = TEXT_ENCODING) -> str:
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise BookFetchError(f"Failed to download {url}: {exc}") from exc
    debug_log(f"Fetched {len(response.content)} bytes from {url}")
    return decode_book_bytes(response.content, encoding)


def read_book_file(path: Path, encoding: str = TEXT_ENCODING) -> str:
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise BookFetchError(f"Failed to read {path}: {exc}") from exc
    return decode_book_bytes(raw, encoding)
