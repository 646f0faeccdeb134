"""Snippet extraction for search results.

A snippet is a bounded window of the body text centred on the first match.
Window edges snap to word boundaries, an ellipsis marks each side that was
cut, and residual formatting from the documentation generator (newline runs,
indentation) is collapsed. This is best effort: it does not promise to
reproduce the source text byte for byte.
"""

from __future__ import annotations

from collections.abc import Sequence
import re

from docs_search_index.search.analyzers import (
    AccentFoldFilter,
    AlphanumericTokenizer,
    AnalyzerPipeline,
    CaseFoldFilter,
    fold_accents,
)


ELLIPSIS = "…"
DEFAULT_SNIPPET_CHARS = 160

_WHITESPACE_RUN = re.compile(r"\s+")
_WORD_BOUNDARY = re.compile(r"\s")
_MARKDOWN_LINK = re.compile(r"\[([^\]]*)\]\(([^)]*)\)")
_HIGHLIGHT_ANALYZER = AnalyzerPipeline(AlphanumericTokenizer(), [CaseFoldFilter(), AccentFoldFilter()])


def clean_fragment(text: str) -> str:
    """Collapse whitespace runs left behind by the generator."""

    return _WHITESPACE_RUN.sub(" ", text).strip()


def _snap_start(text: str, start: int, limit: int) -> int:
    """Move ``start`` forward past a partial word, never beyond ``limit``."""

    if start <= 0:
        return 0
    if _WORD_BOUNDARY.match(text, start - 1):
        return start
    boundary = _WORD_BOUNDARY.search(text, start, max(start, limit))
    return boundary.end() if boundary else start


def _snap_end(text: str, end: int, limit: int) -> int:
    """Move ``end`` back to the previous word boundary, never before ``limit``."""

    if end >= len(text):
        return len(text)
    if _WORD_BOUNDARY.match(text, end):
        return end
    for position in range(end - 1, max(limit, 0) - 1, -1):
        if text[position].isspace():
            return position
    return end


def snippet_window(text: str, span: tuple[int, int] | None, max_chars: int) -> tuple[int, int]:
    """Return the (start, end) character window for a snippet.

    Args:
        text: Full body text.
        span: Character span of the first match, or None for a title-only match.
        max_chars: Maximum window length before cleanup.
    """

    length = len(text)
    if length <= max_chars:
        return 0, length

    if span is None:
        return 0, _snap_end(text, max_chars, max_chars * 3 // 4)

    match_start, match_end = span
    center = (match_start + match_end) // 2
    start = max(0, center - max_chars // 2)
    end = start + max_chars
    if end > length:
        end = length
        start = max(0, end - max_chars)
    if match_start < start:
        start = match_start
        end = min(length, start + max_chars)

    slack = max_chars // 4
    start = _snap_start(text, start, min(match_start, start + slack))
    end = _snap_end(text, end, max(match_end, end - slack))
    return start, end


def _is_inside_protected_region(start: int, end: int, protected_regions: list[tuple[int, int]]) -> bool:
    return any(start < region_end and end > region_start for region_start, region_end in protected_regions)


def highlight_terms_in_snippet(
    snippet: str,
    terms: Sequence[str],
    style: str = "plain",
    max_highlights: int = 3,
) -> str:
    """Highlight matching terms in a snippet.

    Args:
        snippet: The snippet text to highlight.
        terms: Terms to highlight.
        style: "plain" for [[term]] or "html" for <mark>term</mark>.
        max_highlights: Maximum number of terms to highlight.
    """
    if not snippet or not terms:
        return snippet

    protected_regions = [(match.start(), match.end()) for match in _MARKDOWN_LINK.finditer(snippet)]

    wanted = {fold_accents(term.casefold()) for term in terms if term and len(term) >= 2}
    if not wanted:
        return snippet

    # Whole words only, compared in the same folded form the index uses.
    selected: list[tuple[int, int, str]] = []
    for token in _HIGHLIGHT_ANALYZER(snippet):
        if token.text not in wanted:
            continue
        start, end = token.start_char, token.end_char
        if _is_inside_protected_region(start, end, protected_regions):
            continue
        selected.append((start, end, snippet[start:end]))
        if len(selected) >= max_highlights:
            break

    result = snippet
    for start, end, matched_text in sorted(selected, key=lambda x: x[0], reverse=True):
        replacement = f"<mark>{matched_text}</mark>" if style == "html" else f"[[{matched_text}]]"
        result = result[:start] + replacement + result[end:]
    return result


def build_snippet(
    text: str,
    span: tuple[int, int] | None = None,
    *,
    max_chars: int = DEFAULT_SNIPPET_CHARS,
    terms: Sequence[str] = (),
    style: str | None = None,
) -> str:
    """Build the snippet shown for one result.

    This is the main entry point for snippet generation.

    Args:
        text: The body text of the document.
        span: Character span of the first body match; None falls back to the
            start of the text.
        max_chars: Maximum window length.
        terms: Terms to highlight when ``style`` is set.
        style: None (no highlighting), "plain" or "html".
    """
    if not text or not text.strip():
        return ""

    start, end = snippet_window(text, span, max_chars)
    fragment = clean_fragment(text[start:end])
    if not fragment:
        return ""
    if style:
        fragment = highlight_terms_in_snippet(fragment, terms, style=style)
    if text[:start].strip():
        fragment = ELLIPSIS + fragment
    if text[end:].strip():
        fragment = fragment + ELLIPSIS
    return fragment
