"""Host-owned search index handle.

``SearchIndex`` hides the whole stack (loader, analyzers, builder, scorer,
snippets) behind ``rebuild``/``swap``/``search``. It owns exactly one
"current snapshot" reference and the lifecycle state machine::

    EMPTY -> BUILDING -> READY -> REBUILDING -> READY ...

Readers grab the current snapshot reference once per query and never take a
lock; publishing is a single reference assignment, so an in-flight query keeps
evaluating against the snapshot it started with. There is no module-level
index: hosts create as many handles as they need.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
import logging
import threading
import time
from typing import Any

from docs_search_index.cancellation import CancellationToken
from docs_search_index.config import Settings
from docs_search_index.errors import BuildCancelled, BuildInProgress, InvalidCorpus
from docs_search_index.observability.metrics import INDEX_DOC_COUNT, SEARCH_LATENCY, track_latency
from docs_search_index.observability.tracing import create_span
from docs_search_index.search.index import BuildSummary, IndexSnapshot, build_index
from docs_search_index.search.query import parse_query
from docs_search_index.search.results import QueryOptions, SearchResponse, SearchStats, assemble_results
from docs_search_index.search.scoring import DEFAULT_PHRASE_BONUS, rank


logger = logging.getLogger(__name__)


class IndexState(str, Enum):
    """Lifecycle states of a ``SearchIndex``."""

    EMPTY = "empty"
    BUILDING = "building"
    READY = "ready"
    REBUILDING = "rebuilding"

    @property
    def serves_queries(self) -> bool:
        return self in {IndexState.READY, IndexState.REBUILDING}


def search_snapshot(
    snapshot: IndexSnapshot | None,
    query: str,
    options: QueryOptions | None = None,
    *,
    phrase_bonus: float = DEFAULT_PHRASE_BONUS,
    cancel: CancellationToken | None = None,
    index_name: str = "default",
) -> SearchResponse:
    """Evaluate ``query`` against one snapshot.

    A missing snapshot, an empty corpus and an empty or all-stopword query all
    produce an empty response.

    Raises:
        QueryCancelled: ``cancel`` was set during evaluation.
    """

    options = options or QueryOptions()
    start = time.perf_counter()
    snapshot_id = snapshot.snapshot_id if snapshot is not None else None
    with (
        create_span(
            "search.query",
            attributes={"search.query": query[:100], "search.max_results": options.max_results},
        ) as span,
        track_latency(SEARCH_LATENCY, index=index_name),
    ):
        parsed = parse_query(query, prefix_enabled=options.prefix_enabled)
        results = []
        if snapshot is not None and not parsed.is_empty():
            ranked = rank(
                snapshot,
                parsed,
                max_results=options.max_results,
                phrase_bonus=phrase_bonus,
                strict_phrases=options.strict_phrases,
                cancel=cancel,
            )
            results = assemble_results(snapshot, ranked, options)
        span.set_attribute("search.result_count", len(results))

    return SearchResponse(
        query=query,
        results=results,
        stats=SearchStats(
            snapshot_id=snapshot_id,
            result_count=len(results),
            query_tokens=parsed.token_count,
            search_time=time.perf_counter() - start,
        ),
    )


class SearchIndex:
    """Single-writer, multi-reader owner of the current index snapshot."""

    def __init__(self, name: str = "default", *, settings: Settings | None = None) -> None:
        self.name = name
        self.settings = settings or Settings()
        self._default_options = self.settings.default_query_options()
        self._snapshot: IndexSnapshot | None = None
        self._state = IndexState.EMPTY
        self._last_summary: BuildSummary | None = None
        self._writer_lock = threading.Lock()
        self._state_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"SearchIndex(name={self.name!r}, state={self._state.value!r})"

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def snapshot(self) -> IndexSnapshot | None:
        """The currently published snapshot (None while EMPTY)."""
        return self._snapshot

    @property
    def last_summary(self) -> BuildSummary | None:
        return self._last_summary

    def rebuild(self, records: Iterable[Any], *, cancel: CancellationToken | None = None) -> BuildSummary:
        """Build a snapshot from ``records`` and publish it on success.

        Queries keep using the previous snapshot while the build runs. On
        failure or cancellation the previous snapshot stays published.

        Raises:
            BuildInProgress: another rebuild or swap holds the writer slot.
            InvalidCorpus: ``records`` is not a sequence of records.
            BuildCancelled: ``cancel`` was set during the build.
        """

        if not self._writer_lock.acquire(blocking=False):
            raise BuildInProgress(f"index '{self.name}' is already being rebuilt")
        try:
            with self._state_lock:
                self._state = IndexState.REBUILDING if self._snapshot is not None else IndexState.BUILDING
            try:
                snapshot = build_index(records, cancel=cancel, index_name=self.name)
            except InvalidCorpus as exc:
                logger.warning("Rebuild of '%s' rejected invalid corpus: %s", self.name, exc)
                self._restore_state()
                raise
            except BuildCancelled:
                self._restore_state()
                raise
            except Exception:
                logger.exception("Rebuild of '%s' failed", self.name)
                self._restore_state()
                raise
            self._publish(snapshot)
            return snapshot.summary
        finally:
            self._writer_lock.release()

    def swap(self, snapshot: IndexSnapshot) -> IndexSnapshot | None:
        """Publish a snapshot built elsewhere; return the one it supersedes.

        Raises:
            BuildInProgress: a rebuild is running on this handle.
        """

        if not isinstance(snapshot, IndexSnapshot):
            raise TypeError(f"swap() expects an IndexSnapshot, got {type(snapshot).__name__}")
        if not self._writer_lock.acquire(blocking=False):
            raise BuildInProgress(f"index '{self.name}' is being rebuilt; swap rejected")
        try:
            return self._publish(snapshot)
        finally:
            self._writer_lock.release()

    def search(
        self,
        query: str,
        options: QueryOptions | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> SearchResponse:
        """Evaluate ``query`` against the snapshot current at call time."""

        snapshot = self._snapshot
        return search_snapshot(
            snapshot,
            query,
            options or self._default_options,
            phrase_bonus=self.settings.phrase_bonus,
            cancel=cancel,
            index_name=self.name,
        )

    def _publish(self, snapshot: IndexSnapshot) -> IndexSnapshot | None:
        with create_span("index.swap", attributes={"index.name": self.name, "index.snapshot": snapshot.snapshot_id}):
            with self._state_lock:
                previous = self._snapshot
                self._snapshot = snapshot
                self._last_summary = snapshot.summary
                self._state = IndexState.READY
            INDEX_DOC_COUNT.labels(index=self.name).set(snapshot.doc_count)
            logger.info(
                "Published snapshot %s for '%s' (%d documents, replaced %s)",
                snapshot.snapshot_id[:12],
                self.name,
                snapshot.doc_count,
                previous.snapshot_id[:12] if previous is not None else "nothing",
            )
        return previous

    def _restore_state(self) -> None:
        with self._state_lock:
            self._state = IndexState.READY if self._snapshot is not None else IndexState.EMPTY
