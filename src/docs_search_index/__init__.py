"""Full-text search over generated documentation search payloads."""

from docs_search_index.cancellation import CancellationToken
from docs_search_index.config import Settings
from docs_search_index.errors import (
    BuildCancelled,
    BuildInProgress,
    DuplicateLocation,
    InvalidCorpus,
    QueryCancelled,
    RecordRejected,
    SearchIndexError,
)
from docs_search_index.search.index import BuildSummary, IndexSnapshot, build_index
from docs_search_index.search.models import Category, Document, Field
from docs_search_index.search.payload import load_payload_file, parse_search_payload
from docs_search_index.search.results import QueryOptions, SearchResponse, SearchResult
from docs_search_index.search.search_index import IndexState, SearchIndex, search_snapshot


__all__ = [
    "BuildCancelled",
    "BuildInProgress",
    "BuildSummary",
    "CancellationToken",
    "Category",
    "Document",
    "DuplicateLocation",
    "Field",
    "IndexSnapshot",
    "IndexState",
    "InvalidCorpus",
    "QueryCancelled",
    "QueryOptions",
    "RecordRejected",
    "SearchIndex",
    "SearchIndexError",
    "SearchResponse",
    "SearchResult",
    "Settings",
    "build_index",
    "load_payload_file",
    "parse_search_payload",
    "search_snapshot",
]
