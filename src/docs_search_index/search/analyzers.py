"""Analyzer utilities for the documentation search stack.

Analyzers follow a composable tokenizer/filter design: a tokenizer yields
``Token`` objects carrying their character span in the source text, and
filters rewrite or drop tokens. Positions are renumbered after filtering so
phrase adjacency is defined on the surviving token stream.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
import re
from typing import Protocol
import unicodedata


@dataclass
class Token:
    """Represents a token emitted by analyzers."""

    text: str
    position: int
    start_char: int
    end_char: int

    def copy_with(self, **updates: object) -> Token:
        data = {
            "text": self.text,
            "position": self.position,
            "start_char": self.start_char,
            "end_char": self.end_char,
        }
        data.update(updates)
        return Token(**data)  # type: ignore[arg-type]


class Analyzer(Protocol):
    """Protocol implemented by analyzers."""

    def __call__(self, text: str) -> list[Token]:  # pragma: no cover - interface definition
        ...


class Tokenizer(Protocol):
    """Protocol implemented by tokenizers."""

    def __call__(self, text: str) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class TokenFilter(Protocol):
    """Protocol implemented by token filters."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:  # pragma: no cover - interface definition
        ...


class AlphanumericTokenizer:
    """Splits text on every run of non-alphanumeric characters.

    Underscores count as boundaries, so ``to_dcm`` yields ``to`` and ``dcm``.
    Combining marks stay inside the run, so decomposed text (``e`` + U+0301)
    is not split before accent folding.
    """

    _PATTERN = re.compile(
        r"(?:[^\W_]|[\u0300-\u036f\u1ab0-\u1aff\u1dc0-\u1dff\u20d0-\u20ff\ufe20-\ufe2f])+",
        re.UNICODE,
    )

    def __call__(self, text: str) -> Iterator[Token]:
        for position, match in enumerate(self._PATTERN.finditer(text)):
            yield Token(
                text=match.group(0),
                position=position,
                start_char=match.start(),
                end_char=match.end(),
            )


class CaseFoldFilter:
    """Filter that applies Unicode case folding."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            folded = token.text.casefold()
            yield token if folded == token.text else token.copy_with(text=folded)


def fold_accents(text: str) -> str:
    """Return ``text`` with combining marks removed (``é`` -> ``e``)."""

    if text.isascii():
        return text
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


class AccentFoldFilter:
    """Folds accented characters to their base form."""

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            folded = fold_accents(token.text)
            if not folded:
                continue
            yield token if folded == token.text else token.copy_with(text=folded)


class MinLengthFilter:
    """Drops tokens shorter than ``min_length`` characters."""

    def __init__(self, min_length: int = 2) -> None:
        self.min_length = min_length

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if len(token.text) >= self.min_length:
                yield token


DEFAULT_STOPWORDS = [
    "a",
    "an",
    "and",
    "are",
    "as",
    "at",
    "be",
    "but",
    "by",
    "for",
    "if",
    "in",
    "into",
    "is",
    "it",
    "no",
    "not",
    "of",
    "on",
    "or",
    "such",
    "that",
    "the",
    "their",
    "then",
    "there",
    "these",
    "they",
    "this",
    "to",
    "was",
    "will",
    "with",
]


class StopFilter:
    """Removes stopwords from the stream."""

    def __init__(self, stopwords: Sequence[str] | None = None) -> None:
        vocab = stopwords if stopwords is not None else DEFAULT_STOPWORDS
        self.stopwords = frozenset(word.casefold() for word in vocab)

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        for token in tokens:
            if token.text not in self.stopwords:
                yield token


class AnalyzerPipeline:
    """Composable analyzer pipeline (tokenizer + filters)."""

    def __init__(self, tokenizer: Tokenizer, filters: Sequence[TokenFilter] | None = None) -> None:
        self.tokenizer = tokenizer
        self.filters = list(filters or [])

    def __call__(self, text: str) -> list[Token]:
        if not text:
            return []
        stream: Iterable[Token] = self.tokenizer(text)
        for token_filter in self.filters:
            stream = token_filter(stream)
        tokens = list(stream)
        for idx, token in enumerate(tokens):  # normalize positions post-filtering
            token.position = idx
        return tokens


class StandardAnalyzer:
    """Default analyzer used for every indexed field and for query text."""

    def __init__(self, *, stopwords: Sequence[str] | None = None, min_length: int = 2) -> None:
        self.pipeline = AnalyzerPipeline(
            AlphanumericTokenizer(),
            [CaseFoldFilter(), AccentFoldFilter(), MinLengthFilter(min_length), StopFilter(stopwords)],
        )

    def __call__(self, text: str) -> list[Token]:
        return self.pipeline(text)


class PrefixStemAnalyzer:
    """Normalizes prefix stems without dropping stopwords.

    ``the*`` should still reach ``theta``, so only folding and the length
    floor apply here.
    """

    def __init__(self, *, min_length: int = 2) -> None:
        self.pipeline = AnalyzerPipeline(
            AlphanumericTokenizer(),
            [CaseFoldFilter(), AccentFoldFilter(), MinLengthFilter(min_length)],
        )

    def __call__(self, text: str) -> list[Token]:
        return self.pipeline(text)


_ANALYZER_FACTORIES: dict[str, Callable[[], Analyzer]] = {
    "standard": StandardAnalyzer,
    "prefix": PrefixStemAnalyzer,
}

_ANALYZER_ALIASES: dict[str, str] = {"default": "standard"}

_ANALYZER_CACHE: dict[str, Analyzer] = {}


def get_analyzer(name: str | None = None) -> Analyzer:
    """Return analyzer by name, defaulting to the standard analyzer.

    Analyzers are stateless, so aliases resolve to one shared instance.
    """

    normalized = (name or "default").lower()
    normalized = _ANALYZER_ALIASES.get(normalized, normalized)
    if normalized not in _ANALYZER_FACTORIES:
        msg = f"Unknown analyzer '{name}'. Available: {sorted({*_ANALYZER_FACTORIES, *_ANALYZER_ALIASES})}"
        raise ValueError(msg)
    analyzer = _ANALYZER_CACHE.get(normalized)
    if analyzer is None:
        analyzer = _ANALYZER_FACTORIES[normalized]()
        _ANALYZER_CACHE[normalized] = analyzer
    return analyzer


def tokenize(text: str) -> list[str]:
    """Return normalized token strings for ``text`` using the standard analyzer."""

    return [token.text for token in get_analyzer()(text)]
