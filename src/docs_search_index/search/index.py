"""Inverted index construction and immutable index snapshots.

The module provides:

* ``IndexBuilder`` - accepts loaded documents and produces an immutable
  ``IndexSnapshot`` with postings, per-document lengths and categories.
* ``IndexSnapshot`` - read-only view used by every query; never mutated after
  ``IndexBuilder.build`` returns it.
* ``build_index`` - one-shot corpus load + build, the only way a host obtains
  a publishable snapshot.
"""

from __future__ import annotations

from bisect import bisect_left
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
import hashlib
import logging
import time
from types import MappingProxyType
from typing import Any

import orjson

from docs_search_index.cancellation import CancellationToken, check_cancelled
from docs_search_index.errors import BuildCancelled, DuplicateLocation, RecordRejected
from docs_search_index.observability.metrics import BUILD_COUNT, BUILD_LATENCY, track_latency
from docs_search_index.observability.tracing import create_span
from docs_search_index.search.analyzers import Analyzer, get_analyzer
from docs_search_index.search.corpus import load_corpus
from docs_search_index.search.models import Category, Document, Field, Posting


logger = logging.getLogger(__name__)

_INDEX_FORMAT_VERSION = "v1-fields-title-category-text"


@dataclass(frozen=True)
class BuildSummary:
    """Report of one build attempt that produced a snapshot."""

    snapshot_id: str
    documents_indexed: int
    records_skipped: int
    duplicates: int
    vocabulary_size: int
    duration_s: float = 0.0
    rejections: tuple[RecordRejected, ...] = ()
    duplicate_locations: tuple[DuplicateLocation, ...] = ()

    @property
    def degraded(self) -> bool:
        return self.records_skipped > 0 or self.duplicates > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshot_id": self.snapshot_id,
            "documents_indexed": self.documents_indexed,
            "records_skipped": self.records_skipped,
            "duplicates": self.duplicates,
            "vocabulary_size": self.vocabulary_size,
            "duration_s": round(self.duration_s, 6),
            "rejections": [rejection.to_dict() for rejection in self.rejections],
            "duplicate_locations": [duplicate.to_dict() for duplicate in self.duplicate_locations],
        }


@dataclass(frozen=True, eq=False)
class IndexSnapshot:
    """Immutable inverted index over one corpus snapshot."""

    documents: tuple[Document, ...]
    postings: Mapping[str, tuple[Posting, ...]]
    doc_frequencies: Mapping[str, int]
    doc_lengths: tuple[int, ...]
    doc_categories: tuple[Category, ...]
    vocabulary: tuple[str, ...]
    summary: BuildSummary
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    _locations: Mapping[str, int] = field(default_factory=dict, repr=False)

    @property
    def snapshot_id(self) -> str:
        return self.summary.snapshot_id

    @property
    def doc_count(self) -> int:
        return len(self.documents)

    def is_empty(self) -> bool:
        return not self.documents

    def get_document(self, doc_id: int) -> Document | None:
        if 0 <= doc_id < len(self.documents):
            return self.documents[doc_id]
        return None

    def find(self, location: str) -> Document | None:
        """Return the document stored under ``location``."""
        doc_id = self._locations.get(location)
        return None if doc_id is None else self.documents[doc_id]

    def get_postings(self, token: str) -> tuple[Posting, ...]:
        return self.postings.get(token, ())

    def doc_frequency(self, token: str) -> int:
        return self.doc_frequencies.get(token, 0)

    def expand_prefix(self, prefix: str) -> tuple[str, ...]:
        """Return every indexed token starting with ``prefix``, in sorted order."""
        if not prefix:
            return ()
        start = bisect_left(self.vocabulary, prefix)
        matches: list[str] = []
        for token in self.vocabulary[start:]:
            if not token.startswith(prefix):
                break
            matches.append(token)
        return tuple(matches)


class _FingerprintBuilder:
    """Deterministically hash indexed documents so identical corpora share an id."""

    def __init__(self) -> None:
        self._root = hashlib.sha256(_INDEX_FORMAT_VERSION.encode("ascii"))
        self._count = 0

    def add_document(self, document: Document) -> None:
        serialized = orjson.dumps(document.to_dict(), option=orjson.OPT_SORT_KEYS)
        self._root.update(hashlib.sha256(serialized).digest())
        self._count += 1

    def digest(self) -> str:
        if not self._count:
            return hashlib.sha256(b"empty:" + _INDEX_FORMAT_VERSION.encode("ascii")).hexdigest()
        return self._root.hexdigest()


class IndexBuilder:
    """Builds an ``IndexSnapshot`` from documents added in ``doc_id`` order."""

    def __init__(self, *, analyzer: Analyzer | None = None) -> None:
        self._analyzer = analyzer or get_analyzer()
        # token -> (doc_id, field) -> (positions, spans)
        self._postings: defaultdict[str, dict[tuple[int, Field], tuple[list[int], list[tuple[int, int]]]]] = (
            defaultdict(dict)
        )
        self._documents: list[Document] = []
        self._doc_lengths: list[int] = []
        self._fingerprint = _FingerprintBuilder()

    def add_document(self, document: Document) -> None:
        expected = len(self._documents)
        if document.doc_id != expected:
            msg = f"Documents must be added in doc_id order: expected {expected}, got {document.doc_id}"
            raise ValueError(msg)

        length = 0
        for index_field in Field:
            tokens = self._analyzer(document.field_text(index_field))
            length += len(tokens)
            for token in tokens:
                entry = self._postings[token.text].get((document.doc_id, index_field))
                if entry is None:
                    entry = ([], [])
                    self._postings[token.text][(document.doc_id, index_field)] = entry
                entry[0].append(token.position)
                entry[1].append((token.start_char, token.end_char))

        self._documents.append(document)
        self._doc_lengths.append(length)
        self._fingerprint.add_document(document)

    def build(
        self,
        *,
        rejections: Iterable[RecordRejected] = (),
        duplicates: Iterable[DuplicateLocation] = (),
        duration_s: float = 0.0,
    ) -> IndexSnapshot:
        postings: dict[str, tuple[Posting, ...]] = {}
        doc_frequencies: dict[str, int] = {}
        for token, entries in self._postings.items():
            ordered = sorted(entries.items(), key=lambda item: (item[0][0], item[0][1].rank))
            postings[token] = tuple(
                Posting(doc_id=doc_id, field=index_field, positions=tuple(positions), spans=tuple(spans))
                for (doc_id, index_field), (positions, spans) in ordered
            )
            doc_frequencies[token] = len({doc_id for doc_id, _field in entries})

        rejections = tuple(rejections)
        duplicates = tuple(duplicates)
        summary = BuildSummary(
            snapshot_id=self._fingerprint.digest(),
            documents_indexed=len(self._documents),
            records_skipped=len(rejections),
            duplicates=len(duplicates),
            vocabulary_size=len(postings),
            duration_s=duration_s,
            rejections=rejections,
            duplicate_locations=duplicates,
        )
        documents = tuple(self._documents)
        return IndexSnapshot(
            documents=documents,
            postings=MappingProxyType(postings),
            doc_frequencies=MappingProxyType(doc_frequencies),
            doc_lengths=tuple(self._doc_lengths),
            doc_categories=tuple(document.category for document in documents),
            vocabulary=tuple(sorted(postings)),
            summary=summary,
            _locations=MappingProxyType({document.location: document.doc_id for document in documents}),
        )


def build_index(
    records: Iterable[Any],
    *,
    cancel: CancellationToken | None = None,
    index_name: str = "default",
) -> IndexSnapshot:
    """Load ``records`` and build a complete snapshot in a single pass.

    Nothing is published here; the caller decides whether to swap the returned
    snapshot in. A failed or cancelled build leaves no trace.

    Raises:
        InvalidCorpus: ``records`` is not a sequence of records.
        BuildCancelled: ``cancel`` was set before the build finished.
    """

    start = time.perf_counter()
    with (
        create_span("index.build", attributes={"index.name": index_name}) as span,
        track_latency(BUILD_LATENCY, index=index_name),
    ):
        try:
            loaded = load_corpus(records, cancel=cancel)
            builder = IndexBuilder()
            for document in loaded.documents:
                check_cancelled(cancel, BuildCancelled, "build cancelled while indexing documents")
                builder.add_document(document)
        except BuildCancelled:
            BUILD_COUNT.labels(index=index_name, status="cancelled").inc()
            logger.info("Index build for '%s' cancelled", index_name)
            raise
        except Exception:
            BUILD_COUNT.labels(index=index_name, status="failed").inc()
            raise

        snapshot = builder.build(
            rejections=loaded.rejections,
            duplicates=loaded.duplicates,
            duration_s=time.perf_counter() - start,
        )
        summary = snapshot.summary
        BUILD_COUNT.labels(index=index_name, status="degraded" if summary.degraded else "ok").inc()
        span.set_attribute("index.documents", summary.documents_indexed)
        span.set_attribute("index.records_skipped", summary.records_skipped)
        span.set_attribute("index.duplicates", summary.duplicates)
        logger.info(
            "Built index snapshot %s for '%s': %d documents, %d tokens, %d skipped, %d duplicates",
            summary.snapshot_id[:12],
            index_name,
            summary.documents_indexed,
            summary.vocabulary_size,
            summary.records_skipped,
            summary.duplicates,
        )
        return snapshot
