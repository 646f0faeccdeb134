"""Cooperative cancellation shared between a host and a running build or query."""

from __future__ import annotations

import threading

from docs_search_index.errors import SearchIndexError


class CancellationToken:
    """Thread-safe flag checked by builds (per document) and queries (per candidate)."""

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, error_type: type[SearchIndexError], message: str) -> None:
        if self._event.is_set():
            raise error_type(message)


def check_cancelled(
    token: CancellationToken | None,
    error_type: type[SearchIndexError],
    message: str,
) -> None:
    """Raise ``error_type`` when ``token`` is set; a missing token never cancels."""

    if token is not None:
        token.raise_if_cancelled(error_type, message)
