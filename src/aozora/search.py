from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

__all__ = [
    "Candidate",
    "InvalidBookError",
    "TEXT_BASE_URL",
    "book_url",
    "narrow",
    "narrow_all",
]

TEXT_BASE_URL = "https://aozorahack.org/aozorabunko_text"

# Column positions in list_person_all_extended_utf8.csv.
TITLE_FIELD = 1
FAMILY_NAME_FIELD = 15
GIVEN_NAME_FIELD = 16
SOURCE_EDITION_FIELD = 27
TEXT_URL_FIELD = 45

_CARD_MARKER = "/card"
_ZIP_SUFFIX = ".zip"


class InvalidBookError(ValueError):
    """Raised when an index row has no usable text archive URL."""


@dataclass(frozen=True)
class Candidate:
    """One index row considered for a query."""

    row: tuple[str, ...]

    @classmethod
    def from_row(cls, row: Sequence[str]) -> "Candidate":
        return cls(row=tuple(row))

    def _field(self, index: int) -> str:
        if index < len(self.row):
            return self.row[index]
        return ""

    @property
    def title(self) -> str:
        return self._field(TITLE_FIELD)

    @property
    def author(self) -> str:
        return self._field(FAMILY_NAME_FIELD) + self._field(GIVEN_NAME_FIELD)

    @property
    def source_edition(self) -> str:
        return self._field(SOURCE_EDITION_FIELD)

    @property
    def url_template(self) -> str:
        return self._field(TEXT_URL_FIELD)

    def matches(self, query: str) -> bool:
        return query in self.title or query in self.author

    def summary(self) -> str:
        return f"「{self.title}」{self.author}({self.source_edition})"


def book_url(candidate: Candidate, base_url: str = TEXT_BASE_URL) -> str:
    """
    Map a card archive URL to the plain-text mirror.

    ``https://www.aozora.gr.jp/cards/000879/files/127_ruby_150.zip`` becomes
    ``<base_url>/cards/000879/files/127_ruby_150/127_ruby_150.txt``.
    """
    raw = candidate.url_template
    start = raw.find(_CARD_MARKER)
    end = raw.rfind(_ZIP_SUFFIX)
    if start == -1 or end == -1 or end < start:
        raise InvalidBookError(f"Not a card archive URL: {raw!r}")
    name = raw[raw.rfind("/") + 1 : end]
    return f"{base_url.rstrip('/')}{raw[start:end]}/{name}.txt"


def narrow(
    query: str,
    candidates: Iterable[Candidate],
    *,
    base_url: str = TEXT_BASE_URL,
) -> tuple[str, list[Candidate]]:
    """
    Keep the candidates whose title or author contains ``query``.

    The URL is derived from the first match only. When that first match has no
    valid archive URL the whole result is empty, so a URL is never paired
    with a different candidate.
    """
    matches = [candidate for candidate in candidates if candidate.matches(query)]
    if not matches:
        return "", []
    try:
        url = book_url(matches[0], base_url)
    except InvalidBookError:
        return "", []
    return url, matches


def narrow_all(
    terms: Iterable[str],
    candidates: Iterable[Candidate],
    *,
    base_url: str = TEXT_BASE_URL,
) -> tuple[str, list[Candidate]]:
    """Apply :func:`narrow` term by term, each on the previous matches."""
    url = ""
    remaining = list(candidates)
    for term in terms:
        url, remaining = narrow(term, remaining, base_url=base_url)
    return url, remaining
