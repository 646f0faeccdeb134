"""Unit tests for the SearchIndex handle: lifecycle, snapshot swaps and end-to-end search."""

from __future__ import annotations

from collections.abc import Iterator
import threading
import unicodedata

import pytest

from docs_search_index.cancellation import CancellationToken
from docs_search_index.config import Settings
from docs_search_index.errors import BuildCancelled, BuildInProgress, InvalidCorpus, QueryCancelled
from docs_search_index.search.index import build_index
from docs_search_index.search.models import Category
from docs_search_index.search.results import QueryOptions
from docs_search_index.search.search_index import IndexState, SearchIndex, search_snapshot


def _blocking_records(records: list[dict], started: threading.Event, release: threading.Event) -> Iterator[dict]:
    started.set()
    release.wait(timeout=5)
    yield from records


def _start_blocked_rebuild(index: SearchIndex, records: list[dict]) -> tuple[threading.Thread, threading.Event, dict]:
    started = threading.Event()
    release = threading.Event()
    outcome: dict = {}

    def run() -> None:
        try:
            outcome["summary"] = index.rebuild(_blocking_records(records, started, release))
        except Exception as exc:  # pragma: no cover - surfaced through the assertion below
            outcome["error"] = exc

    thread = threading.Thread(target=run)
    thread.start()
    assert started.wait(timeout=5)
    return thread, release, outcome


@pytest.mark.unit
def test_new_index_is_empty_and_answers_nothing():
    index = SearchIndex("rotations")

    assert index.state is IndexState.EMPTY
    assert not index.state.serves_queries
    assert index.snapshot is None
    assert index.last_summary is None
    response = index.search("quaternion")
    assert response.results == []
    assert response.stats.snapshot_id is None


@pytest.mark.unit
def test_rebuild_publishes_snapshot_and_becomes_ready(rotation_records):
    index = SearchIndex("rotations")

    summary = index.rebuild(rotation_records)

    assert index.state is IndexState.READY
    assert index.snapshot.snapshot_id == summary.snapshot_id
    assert index.last_summary == summary
    assert summary.documents_indexed == 2


@pytest.mark.unit
def test_keyword_scenario(rotation_records):
    index = SearchIndex()
    index.rebuild(rotation_records)

    assert index.search("quaternion").locations() == [rotation_records[0]["location"]]
    assert index.search("orthonormalize").locations() == [rotation_records[1]["location"]]
    assert index.search("rotation").results == []


@pytest.mark.unit
def test_duplicate_location_scenario(rotation_records):
    later = dict(rotation_records[0], title="Quaternion Inverse (updated)", text="updated inverse")
    index = SearchIndex()

    summary = index.rebuild([*rotation_records, later])

    assert summary.duplicates == 1
    assert index.snapshot.doc_count == 2
    assert index.snapshot.find(later["location"]).title == "Quaternion Inverse (updated)"
    assert index.search("updated").locations() == [later["location"]]
    assert index.search("compute").results == []


@pytest.mark.unit
def test_result_fields_and_snippet(docs_records):
    index = SearchIndex()
    index.rebuild(docs_records)

    response = index.search("kinematics")

    (result,) = response.results
    assert result.location == "man/quaternions/#Quaternions-1"
    assert result.page == "Quaternions"
    assert result.title == "Quaternions"
    assert result.category is Category.SECTION
    assert "kinematics" in result.snippet
    assert response.stats.result_count == 1
    assert response.stats.query_tokens == 1
    assert response.stats.snapshot_id == index.snapshot.snapshot_id


@pytest.mark.unit
def test_title_only_match_gets_leading_text_snippet(docs_records):
    index = SearchIndex()
    index.rebuild(docs_records)

    (result,) = index.search("installation").results

    assert result.snippet.startswith("This package can be installed")


@pytest.mark.unit
def test_empty_text_record_yields_empty_snippet(docs_records):
    index = SearchIndex()
    index.rebuild(docs_records)

    (result,) = index.search("home").results

    assert result.location == "#"
    assert result.snippet == ""


@pytest.mark.unit
def test_unique_title_words_find_their_document(docs_records):
    index = SearchIndex()
    index.rebuild(docs_records)

    for query, location in [
        ("Installation", "#Installation-1"),
        ("cosine", "man/dcm/#Direction-Cosine-Matrices-1"),
        ("Home", "#"),
    ]:
        assert location in index.search(query).locations()


@pytest.mark.unit
def test_prefix_and_phrase_queries_end_to_end(docs_records):
    index = SearchIndex()
    index.rebuild(docs_records)

    assert index.search('"direction cosine matrix"').locations() == [
        "man/dcm/#Direction-Cosine-Matrices-1",
        "lib/library/#ReferenceFrameRotations.dcm_to_quat",
    ]
    assert "lib/library/#ReferenceFrameRotations.dcm_to_quat" in index.search("dcm_to_qu*").locations()
    assert index.search("kinemat*").locations() == ["man/quaternions/#Quaternions-1"]
    assert index.search("kinemat*", QueryOptions(prefix_enabled=False)).results == []


@pytest.mark.unit
def test_title_matches_outrank_body_matches(docs_records):
    index = SearchIndex()
    index.rebuild(docs_records)

    locations = index.search("quaternion").locations()

    assert locations[0] == "lib/library/#ReferenceFrameRotations.Quaternion"
    assert set(locations) == {
        "man/quaternions/#Quaternions-1",
        "man/dcm/#Direction-Cosine-Matrices-1",
        "lib/library/#ReferenceFrameRotations.dcm_to_quat",
        "lib/library/#ReferenceFrameRotations.Quaternion",
    }


@pytest.mark.unit
def test_query_options_control_result_count_and_highlighting(docs_records):
    index = SearchIndex()
    index.rebuild(docs_records)

    response = index.search("quaternion", QueryOptions(max_results=1, highlight="html"))

    assert len(response.results) == 1
    assert "<mark>" in response.results[0].snippet


@pytest.mark.unit
def test_settings_supply_default_options(docs_records):
    index = SearchIndex(settings=Settings(search_max_results=2))
    index.rebuild(docs_records)

    assert len(index.search("quaternion").results) == 2


@pytest.mark.unit
def test_stopword_only_query_is_empty_not_an_error(docs_records):
    index = SearchIndex()
    index.rebuild(docs_records)

    response = index.search("the of and")

    assert response.results == []
    assert response.stats.query_tokens == 0


@pytest.mark.unit
def test_empty_corpus_is_ready_but_answers_nothing():
    index = SearchIndex()

    summary = index.rebuild([])

    assert index.state is IndexState.READY
    assert summary.documents_indexed == 0
    assert index.search("anything").results == []


@pytest.mark.unit
def test_rebuild_is_idempotent(docs_records):
    index = SearchIndex()
    first = index.rebuild(docs_records)
    before = index.search("quaternion")

    second = index.rebuild(docs_records)
    after = index.search("quaternion")

    assert first.snapshot_id == second.snapshot_id
    assert before.results == after.results


@pytest.mark.unit
def test_invalid_corpus_keeps_previous_snapshot(rotation_records):
    index = SearchIndex()
    index.rebuild(rotation_records)
    snapshot = index.snapshot

    with pytest.raises(InvalidCorpus):
        index.rebuild(None)  # type: ignore[arg-type]

    assert index.state is IndexState.READY
    assert index.snapshot is snapshot
    assert index.search("quaternion").results


@pytest.mark.unit
def test_invalid_first_build_returns_to_empty():
    index = SearchIndex()

    with pytest.raises(InvalidCorpus):
        index.rebuild({"docs": []})  # type: ignore[arg-type]

    assert index.state is IndexState.EMPTY


@pytest.mark.unit
def test_cancelled_rebuild_keeps_previous_snapshot(rotation_records, docs_records):
    index = SearchIndex()
    index.rebuild(rotation_records)
    snapshot = index.snapshot
    token = CancellationToken()
    token.cancel()

    with pytest.raises(BuildCancelled):
        index.rebuild(docs_records, cancel=token)

    assert index.snapshot is snapshot
    assert index.state is IndexState.READY
    assert index.search("kinematics").results == []


@pytest.mark.unit
def test_cancelled_query_raises(rotation_records):
    index = SearchIndex()
    index.rebuild(rotation_records)
    token = CancellationToken()
    token.cancel()

    with pytest.raises(QueryCancelled):
        index.search("quaternion", cancel=token)
    assert index.search("quaternion").results


@pytest.mark.unit
def test_queries_during_rebuild_use_previous_snapshot(rotation_records, docs_records):
    index = SearchIndex()
    index.rebuild(rotation_records)
    previous = index.snapshot

    thread, release, outcome = _start_blocked_rebuild(index, docs_records)
    try:
        assert index.state is IndexState.REBUILDING
        assert index.state.serves_queries
        assert index.snapshot is previous
        assert index.search("orthonormalize").results
        assert index.search("kinematics").results == []
    finally:
        release.set()
        thread.join(timeout=5)

    assert "error" not in outcome
    assert index.state is IndexState.READY
    assert index.snapshot is not previous
    assert index.search("kinematics").results


@pytest.mark.unit
def test_first_build_reports_building_state(rotation_records):
    index = SearchIndex()

    thread, release, outcome = _start_blocked_rebuild(index, rotation_records)
    try:
        assert index.state is IndexState.BUILDING
        assert index.search("quaternion").results == []
    finally:
        release.set()
        thread.join(timeout=5)

    assert outcome["summary"].documents_indexed == 2
    assert index.state is IndexState.READY


@pytest.mark.unit
def test_concurrent_rebuild_and_swap_are_rejected(rotation_records):
    index = SearchIndex()
    other = build_index(rotation_records)

    thread, release, outcome = _start_blocked_rebuild(index, rotation_records)
    try:
        with pytest.raises(BuildInProgress):
            index.rebuild(rotation_records)
        with pytest.raises(BuildInProgress):
            index.swap(other)
    finally:
        release.set()
        thread.join(timeout=5)

    assert "error" not in outcome
    index.rebuild(rotation_records)


@pytest.mark.unit
def test_swap_publishes_external_snapshot(rotation_records, docs_records):
    index = SearchIndex()
    first = build_index(rotation_records)
    second = build_index(docs_records)

    assert index.swap(first) is None
    assert index.state is IndexState.READY
    assert index.swap(second) is first
    assert index.snapshot is second
    assert index.last_summary is second.summary


@pytest.mark.unit
def test_swap_rejects_non_snapshots():
    with pytest.raises(TypeError):
        SearchIndex().swap({"docs": []})  # type: ignore[arg-type]


@pytest.mark.unit
def test_retained_snapshot_is_unaffected_by_later_swaps(rotation_records, docs_records):
    index = SearchIndex()
    index.rebuild(rotation_records)
    retained = index.snapshot

    index.rebuild(docs_records)

    assert search_snapshot(retained, "orthonormalize").results
    assert index.search("orthonormalize").results == []


@pytest.mark.unit
def test_search_snapshot_handles_missing_snapshot():
    response = search_snapshot(None, "quaternion")

    assert response.results == []
    assert response.stats.result_count == 0


@pytest.mark.unit
def test_handles_are_independent(rotation_records, docs_records):
    first = SearchIndex("dev")
    second = SearchIndex("latest")
    first.rebuild(rotation_records)
    second.rebuild(docs_records)

    assert first.search("kinematics").results == []
    assert second.search("kinematics").results
    assert repr(first) == "SearchIndex(name='dev', state='ready')"


@pytest.mark.unit
def test_decomposed_title_is_found_by_composed_query():
    record = {
        "location": "lib/library/#det",
        "page": "Library",
        "title": unicodedata.normalize("NFD", "Déterminant"),
        "category": "function",
        "text": unicodedata.normalize("NFD", "Le déterminant de la matrice."),
    }
    index = SearchIndex()
    index.rebuild([record])

    response = index.search("déterminant", QueryOptions(highlight="plain"))

    assert response.locations() == ["lib/library/#det"]
    assert "[[" in response.results[0].snippet
