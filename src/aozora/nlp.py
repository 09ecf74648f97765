from __future__ import annotations

import os
import re
import shlex
from pathlib import Path

from .logging_utils import debug_log

__all__ = [
    "Tokenizer",
    "TokenizerUnavailableError",
    "UNIDIC_DIR_ENV",
    "get_unidic_dicdir",
]

UNIDIC_DIR_ENV = "AOZORA_UNIDIC_DIR"

# Ruby delimiters must reach the resegmenter as standalone tokens; MeCab
# groups runs of symbols such as 》」 into one surface.
_DELIMITER_SPLIT = re.compile(r"([｜《》])")


class TokenizerUnavailableError(RuntimeError):
    """Raised when the MeCab tokenizer cannot be initialized."""


def get_unidic_dicdir() -> Path | None:
    env_dir = os.environ.get(UNIDIC_DIR_ENV)
    if env_dir:
        candidate = Path(env_dir).expanduser()
        if (candidate / "dicrc").exists():
            return candidate
    try:
        import unidic  # type: ignore
    except ImportError:
        return None
    dicdir = Path(getattr(unidic, "DICDIR", ""))
    if dicdir and (dicdir / "dicrc").exists():
        return dicdir
    return None


def _split_delimiters(surface: str) -> list[str]:
    if len(surface) == 1:
        return [surface]
    return [piece for piece in _DELIMITER_SPLIT.split(surface) if piece]


class Tokenizer:
    """Fugashi-based word segmenter returning surfaces that rebuild the input."""

    def __init__(self) -> None:
        try:
            from fugashi import GenericTagger, Tagger  # type: ignore
        except ImportError as exc:
            raise TokenizerUnavailableError(
                "Ruby conversion requires 'fugashi' (MeCab) to be installed."
            ) from exc

        dicdir = get_unidic_dicdir()
        try:
            if dicdir:
                debug_log(f"Using MeCab dictionary at {dicdir}")
                self._tagger = GenericTagger(f"-d {shlex.quote(str(dicdir))}")
            else:
                debug_log("Using the default fugashi dictionary")
                self._tagger = Tagger()
        except RuntimeError as exc:
            raise TokenizerUnavailableError(
                f"Failed to initialize MeCab dictionary ({dicdir or 'default'}): {exc}"
            ) from exc

    def __call__(self, text: str) -> list[str]:
        return self.tokenize(text)

    def tokenize(self, text: str) -> list[str]:
        tokens: list[str] = []
        for line in text.splitlines(keepends=True):
            body = line.rstrip("\r\n")
            tokens.extend(self._tokenize_line(body))
            if len(body) < len(line):
                tokens.append(line[len(body) :])
        return tokens

    def _tokenize_line(self, text: str) -> list[str]:
        tokens: list[str] = []
        if not text:
            return tokens
        pos = 0
        for raw in self._tagger(text):
            surface = raw.surface
            if not surface:
                continue
            start = text.find(surface, pos)
            if start == -1:
                continue
            if start > pos:
                # Whitespace MeCab skipped over.
                tokens.append(text[pos:start])
            tokens.extend(_split_delimiters(surface))
            pos = start + len(surface)
        if pos < len(text):
            tokens.append(text[pos:])
        return tokens
