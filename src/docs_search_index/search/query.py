"""Query parsing into an abstract query.

Syntax on top of plain keywords:

- ``"exact words"`` is a phrase: the tokens must appear contiguously and in
  order within one field. An unmatched quote runs to the end of the query.
- ``stem*`` is a prefix: it matches every indexed token starting with the
  normalized stem.

Every remaining token is required (implicit AND). Phrase tokens are required
as well, so a phrase narrows the candidate set before adjacency is checked.
"""

from __future__ import annotations

from dataclasses import dataclass
import re

from docs_search_index.search.analyzers import get_analyzer


_QUOTED = re.compile(r'"([^"]*)(?:"|$)')


@dataclass(frozen=True)
class ParsedQuery:
    """Abstract query produced by ``parse_query``."""

    required: tuple[str, ...] = ()
    phrases: tuple[tuple[str, ...], ...] = ()
    prefixes: tuple[str, ...] = ()
    raw: str = ""

    def is_empty(self) -> bool:
        return not (self.required or self.prefixes)

    @property
    def token_count(self) -> int:
        return len(self.required) + len(self.prefixes)


class _QueryAccumulator:
    def __init__(self) -> None:
        self.required: list[str] = []
        self.phrases: list[tuple[str, ...]] = []
        self.prefixes: list[str] = []

    def add_required(self, token: str) -> None:
        if token not in self.required:
            self.required.append(token)

    def add_phrase(self, tokens: tuple[str, ...]) -> None:
        for token in tokens:
            self.add_required(token)
        if len(tokens) > 1 and tokens not in self.phrases:
            self.phrases.append(tokens)

    def add_prefix(self, stem: str) -> None:
        if stem not in self.prefixes:
            self.prefixes.append(stem)


def _split_segments(text: str) -> list[tuple[str, bool]]:
    """Split ``text`` into (segment, is_phrase) pairs in query order."""

    segments: list[tuple[str, bool]] = []
    cursor = 0
    for match in _QUOTED.finditer(text):
        if match.start() > cursor:
            segments.append((text[cursor : match.start()], False))
        segments.append((match.group(1), True))
        cursor = match.end()
    if cursor < len(text):
        segments.append((text[cursor:], False))
    return segments


def _parse_word(word: str, acc: _QueryAccumulator, *, prefix_enabled: bool) -> None:
    standard = get_analyzer("standard")
    if not (prefix_enabled and word.endswith("*")):
        for token in standard(word):
            acc.add_required(token.text)
        return

    stem = word.rstrip("*")
    stem_tokens = get_analyzer("prefix")(stem)
    if not stem_tokens or stem_tokens[-1].end_char != len(stem):
        # The wildcard does not touch a usable token ("a*", "foo.*").
        for token in standard(stem):
            acc.add_required(token.text)
        return

    last = stem_tokens[-1]
    for token in standard(stem[: last.start_char]):
        acc.add_required(token.text)
    acc.add_prefix(last.text)


def parse_query(text: str, *, prefix_enabled: bool = True) -> ParsedQuery:
    """Parse a raw query string.

    Args:
        text: Query as typed by the user.
        prefix_enabled: When False a trailing ``*`` is ignored and the stem is
            an ordinary required token.

    Returns:
        The abstract query. Empty or all-stopword input yields an empty query.
    """

    if not text or not text.strip():
        return ParsedQuery(raw=text or "")

    acc = _QueryAccumulator()
    standard = get_analyzer("standard")
    for segment, is_phrase in _split_segments(text):
        if is_phrase:
            acc.add_phrase(tuple(token.text for token in standard(segment)))
            continue
        for word in segment.split():
            _parse_word(word, acc, prefix_enabled=prefix_enabled)

    return ParsedQuery(
        required=tuple(acc.required),
        phrases=tuple(acc.phrases),
        prefixes=tuple(acc.prefixes),
        raw=text,
    )
