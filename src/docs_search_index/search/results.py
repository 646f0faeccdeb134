"""Query options and result value objects, plus the result assembler.

Value objects are immutable (frozen pydantic models) so a response handed to
a caller can never be altered by a later rebuild.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from docs_search_index.search.index import IndexSnapshot
from docs_search_index.search.models import Category
from docs_search_index.search.scoring import DEFAULT_MAX_RESULTS, RankedDocument
from docs_search_index.search.snippet import DEFAULT_SNIPPET_CHARS, build_snippet


class QueryOptions(BaseModel):
    """Per-query knobs supplied by the caller."""

    model_config = ConfigDict(frozen=True)

    max_results: int = Field(default=DEFAULT_MAX_RESULTS, ge=0, description="Maximum number of results")
    prefix_enabled: bool = Field(default=True, description="Treat a trailing '*' as a prefix match")
    strict_phrases: bool = Field(
        default=True, description="Drop documents that do not contain every quoted phrase"
    )
    snippet_length: int = Field(default=DEFAULT_SNIPPET_CHARS, ge=16, description="Maximum snippet window")
    highlight: Literal["plain", "html"] | None = Field(default=None, description="Highlight matched terms")


class SearchResult(BaseModel):
    """Value object for a single ranked result."""

    model_config = ConfigDict(frozen=True)

    location: str
    page: str
    title: str
    category: Category
    score: float
    snippet: str


class SearchStats(BaseModel):
    """Debug information for one query evaluation."""

    model_config = ConfigDict(frozen=True)

    snapshot_id: str | None
    result_count: int
    query_tokens: int
    search_time: float


class SearchResponse(BaseModel):
    """Value object for a complete search response."""

    model_config = ConfigDict(frozen=True)

    query: str
    results: list[SearchResult] = Field(default_factory=list)
    stats: SearchStats | None = None

    def locations(self) -> list[str]:
        return [result.location for result in self.results]


def assemble_results(
    snapshot: IndexSnapshot,
    ranked: Sequence[RankedDocument],
    options: QueryOptions,
) -> list[SearchResult]:
    """Map ranked doc ids back to presentable results with snippets."""

    results: list[SearchResult] = []
    for entry in ranked:
        document = snapshot.get_document(entry.doc_id)
        if document is None:
            continue
        results.append(
            SearchResult(
                location=document.location,
                page=document.page,
                title=document.title,
                category=document.category,
                score=entry.score,
                snippet=build_snippet(
                    document.text,
                    entry.text_span,
                    max_chars=options.snippet_length,
                    terms=entry.matched_tokens,
                    style=options.highlight,
                ),
            )
        )
    return results
