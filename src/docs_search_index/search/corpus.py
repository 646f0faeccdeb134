"""Corpus loading: validation and stable identifiers for incoming records.

The loader never fails the whole corpus because of individual bad records.
Invalid records are skipped and reported, duplicate locations resolve to the
later record, and only an input that is not a record sequence at all raises
``InvalidCorpus``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
import logging
from typing import Any

from docs_search_index.cancellation import CancellationToken, check_cancelled
from docs_search_index.errors import BuildCancelled, DuplicateLocation, InvalidCorpus, RecordRejected
from docs_search_index.observability.metrics import RECORDS_REJECTED
from docs_search_index.search.models import REQUIRED_RECORD_FIELDS, Category, Document


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedCorpus:
    """Outcome of loading one corpus snapshot."""

    documents: tuple[Document, ...]
    rejections: tuple[RecordRejected, ...]
    duplicates: tuple[DuplicateLocation, ...]

    @property
    def skipped_count(self) -> int:
        return len(self.rejections)

    @property
    def duplicate_count(self) -> int:
        return len(self.duplicates)


def _validate_record(index: int, record: Any) -> tuple[str, str, str, Category, str]:
    if not isinstance(record, Mapping):
        raise RecordRejected(index, f"expected an object, got {type(record).__name__}")

    location = record.get("location")
    hint = location if isinstance(location, str) else None
    missing = [name for name in REQUIRED_RECORD_FIELDS if name not in record or record[name] is None]
    if missing:
        raise RecordRejected(index, f"missing field(s): {', '.join(missing)}", hint)

    not_text = [name for name in REQUIRED_RECORD_FIELDS if not isinstance(record[name], str)]
    if not_text:
        raise RecordRejected(index, f"non-string field(s): {', '.join(not_text)}", hint)

    if not location.strip():
        raise RecordRejected(index, "blank location")

    category = Category.parse(record["category"])
    if category is None:
        raise RecordRejected(index, f"unrecognized category {record['category']!r}", location)

    return location, record["page"], record["title"], category, record["text"]


def load_corpus(records: Iterable[Any], *, cancel: CancellationToken | None = None) -> LoadedCorpus:
    """Validate ``records`` and assign each accepted record its ``doc_id``.

    Args:
        records: Ordered sequence of raw records (mappings with the five
            documentation fields).
        cancel: Optional token checked once per record.

    Returns:
        The accepted documents in corpus order plus rejection and duplicate
        reports.

    Raises:
        InvalidCorpus: ``records`` is not a sequence of records.
        BuildCancelled: ``cancel`` was set while loading.
    """

    if records is None or isinstance(records, (str, bytes, bytearray, Mapping)):
        raise InvalidCorpus(f"corpus must be a sequence of records, got {type(records).__name__}")
    try:
        iterator = iter(records)
    except TypeError as exc:
        raise InvalidCorpus(f"corpus is not iterable: {type(records).__name__}") from exc

    # location -> (input index, validated fields); dict order tracks the survivors.
    accepted: dict[str, tuple[int, tuple[str, str, str, Category, str]]] = {}
    rejections: list[RecordRejected] = []
    duplicates: list[DuplicateLocation] = []

    for index, record in enumerate(iterator):
        check_cancelled(cancel, BuildCancelled, "build cancelled while loading corpus")
        try:
            fields = _validate_record(index, record)
        except RecordRejected as exc:
            logger.debug("Skipping record: %s", exc)
            rejections.append(exc)
            RECORDS_REJECTED.labels(reason="invalid").inc()
            continue

        location = fields[0]
        previous = accepted.pop(location, None)
        if previous is not None:
            duplicate = DuplicateLocation(location, replaced_index=previous[0], index=index)
            logger.debug("%s", duplicate)
            duplicates.append(duplicate)
            RECORDS_REJECTED.labels(reason="duplicate").inc()
        accepted[location] = (index, fields)

    documents = tuple(
        Document(doc_id=doc_id, location=location, page=page, title=title, category=category, text=text)
        for doc_id, (_index, (location, page, title, category, text)) in enumerate(accepted.values())
    )

    if rejections or duplicates:
        logger.warning(
            "Loaded %d documents (%d records skipped, %d duplicate locations)",
            len(documents),
            len(rejections),
            len(duplicates),
        )
    else:
        logger.debug("Loaded %d documents", len(documents))

    return LoadedCorpus(documents=documents, rejections=tuple(rejections), duplicates=tuple(duplicates))
