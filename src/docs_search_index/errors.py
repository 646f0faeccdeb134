"""Error taxonomy for corpus loading, index builds and query evaluation.

Per-record problems (``RecordRejected``, ``DuplicateLocation``) are collected
into the build summary instead of being raised past the loader. The remaining
errors propagate to the caller that triggered them and never touch the
currently published snapshot.
"""

from __future__ import annotations


class SearchIndexError(Exception):
    """Base error for the search index package."""


class RecordRejected(SearchIndexError):
    """A single record failed validation and was skipped."""

    def __init__(self, index: int, reason: str, location: str | None = None) -> None:
        self.index = index
        self.reason = reason
        self.location = location
        where = f" ({location})" if location else ""
        super().__init__(f"record #{index}{where} rejected: {reason}")

    def to_dict(self) -> dict[str, object]:
        return {"index": self.index, "reason": self.reason, "location": self.location}


class DuplicateLocation(SearchIndexError):
    """A later record replaced an earlier record with the same location."""

    def __init__(self, location: str, replaced_index: int, index: int) -> None:
        self.location = location
        self.replaced_index = replaced_index
        self.index = index
        super().__init__(f"duplicate location {location!r}: record #{index} replaces record #{replaced_index}")

    def to_dict(self) -> dict[str, object]:
        return {"location": self.location, "replaced_index": self.replaced_index, "index": self.index}


class InvalidCorpus(SearchIndexError):
    """The input as a whole cannot be read as a sequence of records."""


class BuildCancelled(SearchIndexError):
    """An index build was cancelled before it completed."""


class BuildInProgress(SearchIndexError):
    """A rebuild was requested while another build is still running."""


class QueryCancelled(SearchIndexError):
    """Query evaluation was cancelled by its caller."""
