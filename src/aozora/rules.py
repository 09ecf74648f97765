from __future__ import annotations

import re
from dataclasses import dataclass

__all__ = [
    "MarkupRule",
    "MARKUP_RULES",
    "apply_markup_rules",
    "UNDERLINE_ON",
    "UNDERLINE_OFF",
    "BOLD_ON",
    "BOLD_OFF",
    "ITALIC_ON",
    "ITALIC_OFF",
    "NEW_LEAF_SENTINEL",
    "NEW_PAGE_SENTINEL",
    "CENTERED_PAGE_SENTINEL",
    "GAIJI_PLACEHOLDER",
]

UNDERLINE_ON = "\\f[u]"
UNDERLINE_OFF = "\\f[/u]"
BOLD_ON = "\\f[b]"
BOLD_OFF = "\\f[/b]"
ITALIC_ON = "\\f[i]"
ITALIC_OFF = "\\f[/i]"

# Two-character sentinels read by the renderer as "start a new page, keep
# the screen". The leaf form also skips to the next recto.
NEW_LEAF_SENTINEL = "■□"
NEW_PAGE_SENTINEL = "□■"
CENTERED_PAGE_SENTINEL = "◆◇"

GAIJI_PLACEHOLDER = "□"

_KIND_REPLACE = "replace"
_KIND_TARGET = "target"
_KIND_LINE = "line"
_KIND_PREFIX = "prefix"


@dataclass(frozen=True)
class MarkupRule:
    """
    One annotation family and how it renders.

    ``kind`` selects the behaviour of :meth:`apply`:

    * ``replace``: every match becomes ``token``.
    * ``target``: the annotation names a quoted span (``target`` group); the
      annotation is dropped and the first occurrence of the span in the line
      is wrapped in ``token``/``closing``. When the span is not in the line the
      annotation is left untouched.
    * ``line``: the annotation is dropped and the whole line is wrapped.
    * ``prefix``: the annotation is dropped and ``token`` is put in front.
    """

    name: str
    kind: str
    pattern: re.Pattern[str]
    token: str
    closing: str = ""

    def apply(self, line: str) -> str:
        if self.kind == _KIND_REPLACE:
            return self.pattern.sub(lambda _match: self.token, line)
        if self.kind == _KIND_TARGET:
            return self._apply_target(line)
        if not self.pattern.search(line):
            return line
        stripped = self.pattern.sub("", line)
        if self.kind == _KIND_LINE:
            return f"{self.token}{stripped}{self.closing}"
        if self.kind == _KIND_PREFIX:
            return f"{self.token}{stripped}"
        raise ValueError(f"Unknown markup rule kind: {self.kind}")

    def _apply_target(self, line: str) -> str:
        # Annotations whose target is missing stay in the line; skip past them.
        skipped = 0
        while True:
            matches = list(self.pattern.finditer(line))
            if skipped >= len(matches):
                return line
            match = matches[skipped]
            target = match.group("target")
            remainder = line[: match.start()] + line[match.end() :]
            index = remainder.find(target)
            if index == -1:
                skipped += 1
                continue
            line = (
                remainder[:index]
                + self.token
                + target
                + self.closing
                + remainder[index + len(target) :]
            )


def _emphasis_rules(name: str, words: str, on: str, off: str) -> list[MarkupRule]:
    return [
        MarkupRule(
            name=f"{name}-target",
            kind=_KIND_TARGET,
            pattern=re.compile(rf"［＃「(?P<target>[^」]+)」[にの]?は?(?:{words})］"),
            token=on,
            closing=off,
        ),
        MarkupRule(
            name=f"{name}-begin",
            kind=_KIND_REPLACE,
            pattern=re.compile(rf"［＃(?:ここから)?(?:{words})］"),
            token=on,
        ),
        MarkupRule(
            name=f"{name}-end",
            kind=_KIND_REPLACE,
            pattern=re.compile(rf"［＃(?:ここで)?(?:{words})終わり］"),
            token=off,
        ),
    ]


MARKUP_RULES: tuple[MarkupRule, ...] = (
    MarkupRule(
        name="gaiji",
        kind=_KIND_REPLACE,
        pattern=re.compile(r"※［＃[^］]*］"),
        token=GAIJI_PLACEHOLDER,
    ),
    MarkupRule(
        name="new-leaf",
        kind=_KIND_PREFIX,
        pattern=re.compile(r"［＃(?:改丁|改見開き)］"),
        token=NEW_LEAF_SENTINEL,
    ),
    MarkupRule(
        name="new-page",
        kind=_KIND_PREFIX,
        pattern=re.compile(r"［＃(?:改ページ|改段)］"),
        token=NEW_PAGE_SENTINEL,
    ),
    MarkupRule(
        name="centered-page",
        kind=_KIND_PREFIX,
        pattern=re.compile(r"［＃ページの左右中央］"),
        token=CENTERED_PAGE_SENTINEL,
    ),
    *_emphasis_rules("underline", "傍点|傍線", UNDERLINE_ON, UNDERLINE_OFF),
    *_emphasis_rules("bold", "太字", BOLD_ON, BOLD_OFF),
    *_emphasis_rules("italic", "斜体", ITALIC_ON, ITALIC_OFF),
    MarkupRule(
        name="heading",
        kind=_KIND_LINE,
        pattern=re.compile(r"［＃「[^」]+」は[大中小]見出し］"),
        token=BOLD_ON,
        closing=BOLD_OFF,
    ),
    MarkupRule(
        name="heading-begin",
        kind=_KIND_REPLACE,
        pattern=re.compile(r"［＃(?:ここから)?[大中小]見出し］"),
        token=BOLD_ON,
    ),
    MarkupRule(
        name="heading-end",
        kind=_KIND_REPLACE,
        pattern=re.compile(r"［＃(?:ここで)?[大中小]見出し終わり］"),
        token=BOLD_OFF,
    ),
)


def apply_markup_rules(line: str, rules: tuple[MarkupRule, ...] = MARKUP_RULES) -> str:
    """Run every rule over ``line`` in table order; later rules see earlier output."""
    for rule in rules:
        line = rule.apply(line)
    return line
