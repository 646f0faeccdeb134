"""Candidate selection and relevance scoring over an index snapshot.

Scores are a weighted term-frequency sum rather than BM25: for each matched
token and each field it occurs in, ``tf x field_weight x idf`` where
``idf = max(1, ln(N / df))``. Satisfied phrases add a fixed bonus and every
document gets its category tier bonus. Ordering is by score descending with
ties broken by the corpus ordinal, so results never depend on hash order.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
import heapq
import math

from docs_search_index.cancellation import CancellationToken, check_cancelled
from docs_search_index.errors import QueryCancelled
from docs_search_index.search.index import IndexSnapshot
from docs_search_index.search.models import Field, Posting
from docs_search_index.search.query import ParsedQuery


DEFAULT_MAX_RESULTS = 20
DEFAULT_PHRASE_BONUS = 10.0


@dataclass(frozen=True)
class RankedDocument:
    """Represents a scored document produced by ``rank``."""

    doc_id: int
    score: float
    matched_tokens: tuple[str, ...] = ()
    phrases_matched: int = 0
    text_span: tuple[int, int] | None = None


def calculate_idf(doc_freq: int, total_docs: int) -> float:
    """Return ``ln(total_docs / doc_freq)`` floored at 1."""

    if doc_freq <= 0 or total_docs <= 0:
        return 0.0
    return max(1.0, math.log(total_docs / doc_freq))


def intersect_sorted(left: Sequence[int], right: Sequence[int]) -> list[int]:
    """Merge-intersect two ascending doc id lists."""

    result: list[int] = []
    i = j = 0
    while i < len(left) and j < len(right):
        a, b = left[i], right[j]
        if a == b:
            result.append(a)
            i += 1
            j += 1
        elif a < b:
            i += 1
        else:
            j += 1
    return result


def _doc_ids(postings: Sequence[Posting]) -> list[int]:
    ids: list[int] = []
    for posting in postings:
        if not ids or ids[-1] != posting.doc_id:
            ids.append(posting.doc_id)
    return ids


def _union_doc_ids(snapshot: IndexSnapshot, tokens: Sequence[str]) -> list[int]:
    merged: set[int] = set()
    for token in tokens:
        merged.update(_doc_ids(snapshot.get_postings(token)))
    return sorted(merged)


def select_candidates(
    snapshot: IndexSnapshot,
    query: ParsedQuery,
    *,
    cancel: CancellationToken | None = None,
) -> tuple[list[int], tuple[str, ...]]:
    """Return candidate doc ids (ascending) and the index tokens that can match.

    Required tokens contribute their own postings; each prefix contributes the
    union over its expansions. All groups are intersected.
    """

    groups: list[tuple[str, ...]] = [(token,) for token in query.required]
    groups.extend(snapshot.expand_prefix(prefix) for prefix in query.prefixes)
    if not groups:
        return [], ()

    doc_sets: list[list[int]] = []
    for group in groups:
        check_cancelled(cancel, QueryCancelled, "query cancelled while selecting candidates")
        doc_ids = _doc_ids(snapshot.get_postings(group[0])) if len(group) == 1 else _union_doc_ids(snapshot, group)
        if not doc_ids:
            return [], ()
        doc_sets.append(doc_ids)

    doc_sets.sort(key=len)
    candidates = doc_sets[0]
    for doc_ids in doc_sets[1:]:
        candidates = intersect_sorted(candidates, doc_ids)
        if not candidates:
            return [], ()

    tokens = tuple(dict.fromkeys(token for group in groups for token in group))
    return candidates, tokens


def phrase_span(
    phrase: Sequence[str],
    doc_postings: Mapping[str, Sequence[Posting]],
) -> tuple[bool, tuple[int, int] | None]:
    """Check whether ``phrase`` occurs contiguously in one field of a document.

    Returns whether it matched and, for a match in the body text, the
    character span of the earliest occurrence.
    """

    # One posting per (token, field) within a single document.
    by_field_per_token: list[dict[Field, Posting]] = []
    for token in phrase:
        by_field = {posting.field: posting for posting in doc_postings.get(token, ())}
        if not by_field:
            return False, None
        by_field_per_token.append(by_field)

    shared_fields = set.intersection(*(set(by_field) for by_field in by_field_per_token))
    matched = False
    best_span: tuple[int, int] | None = None
    for field in sorted(shared_fields, key=lambda entry: entry.rank):
        chain = [by_field[field] for by_field in by_field_per_token]
        position_sets = [set(posting.positions) for posting in chain]
        first, last = chain[0], chain[-1]
        for start_idx, start in enumerate(first.positions):
            if all(start + offset in position_sets[offset] for offset in range(1, len(chain))):
                matched = True
                if field is Field.TEXT:
                    end_idx = last.positions.index(start + len(chain) - 1)
                    best_span = (first.spans[start_idx][0], last.spans[end_idx][1])
                break
    return matched, best_span


def _postings_by_doc(
    snapshot: IndexSnapshot,
    tokens: Sequence[str],
    candidates: Sequence[int],
    cancel: CancellationToken | None = None,
) -> dict[int, dict[str, list[Posting]]]:
    wanted = set(candidates)
    by_doc: dict[int, dict[str, list[Posting]]] = defaultdict(dict)
    for token in tokens:
        check_cancelled(cancel, QueryCancelled, "query cancelled while gathering postings")
        for posting in snapshot.get_postings(token):
            if posting.doc_id in wanted:
                by_doc[posting.doc_id].setdefault(token, []).append(posting)
    return by_doc


def rank(
    snapshot: IndexSnapshot,
    query: ParsedQuery,
    *,
    max_results: int = DEFAULT_MAX_RESULTS,
    phrase_bonus: float = DEFAULT_PHRASE_BONUS,
    strict_phrases: bool = True,
    cancel: CancellationToken | None = None,
) -> list[RankedDocument]:
    """Return ranked results for a parsed query against one snapshot.

    Raises:
        QueryCancelled: ``cancel`` was set while candidates were being scored.
    """

    if query.is_empty() or snapshot.is_empty() or max_results <= 0:
        return []

    candidates, tokens = select_candidates(snapshot, query, cancel=cancel)
    if not candidates:
        return []

    total_docs = snapshot.doc_count
    idf = {token: calculate_idf(snapshot.doc_frequency(token), total_docs) for token in tokens}
    postings_by_doc = _postings_by_doc(snapshot, tokens, candidates, cancel)

    ranked: list[RankedDocument] = []
    for doc_id in candidates:
        check_cancelled(cancel, QueryCancelled, "query cancelled while scoring candidates")
        doc_postings = postings_by_doc.get(doc_id, {})

        score = 0.0
        text_span: tuple[int, int] | None = None
        for token, postings in doc_postings.items():
            for posting in postings:
                score += posting.frequency * posting.weight * idf[token]
                if posting.field is Field.TEXT and (text_span is None or posting.spans[0][0] < text_span[0]):
                    text_span = posting.spans[0]

        phrases_matched = 0
        missing_phrase = False
        for phrase in query.phrases:
            matched, span = phrase_span(phrase, doc_postings)
            if not matched:
                missing_phrase = True
                continue
            phrases_matched += 1
            if span is not None and (text_span is None or span[0] < text_span[0]):
                text_span = span
        if strict_phrases and missing_phrase:
            continue

        score += phrases_matched * phrase_bonus
        score += snapshot.doc_categories[doc_id].tier_bonus
        ranked.append(
            RankedDocument(
                doc_id=doc_id,
                score=score,
                matched_tokens=tuple(doc_postings),
                phrases_matched=phrases_matched,
                text_span=text_span,
            )
        )

    return heapq.nsmallest(max_results, ranked, key=lambda entry: (-entry.score, entry.doc_id))
