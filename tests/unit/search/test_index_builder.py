"""Unit tests for the index builder and snapshots."""

from __future__ import annotations

import pytest

from docs_search_index.cancellation import CancellationToken
from docs_search_index.errors import BuildCancelled, InvalidCorpus
from docs_search_index.search.index import IndexBuilder, build_index
from docs_search_index.search.models import Category, Document, Field


def _document(doc_id: int, *, title: str, text: str, category: Category = Category.SECTION) -> Document:
    return Document(
        doc_id=doc_id,
        location=f"#doc-{doc_id}",
        page="Home",
        title=title,
        category=category,
        text=text,
    )


@pytest.mark.unit
def test_postings_record_field_frequency_and_positions():
    builder = IndexBuilder()
    builder.add_document(_document(0, title="Quaternion", text="quaternion to quaternion product"))
    snapshot = builder.build()

    postings = snapshot.get_postings("quaternion")
    assert [(posting.doc_id, posting.field, posting.frequency) for posting in postings] == [
        (0, Field.TITLE, 1),
        (0, Field.TEXT, 2),
    ]
    assert postings[1].positions == (0, 1)
    assert postings[1].spans == ((0, 10), (14, 24))


@pytest.mark.unit
def test_category_label_is_indexed_with_its_weight():
    builder = IndexBuilder()
    builder.add_document(_document(0, title="Quaternion", text="", category=Category.FUNCTION))
    snapshot = builder.build()

    (posting,) = snapshot.get_postings("function")
    assert posting.field is Field.CATEGORY
    assert posting.weight == 3.0


@pytest.mark.unit
def test_postings_are_sorted_by_doc_id_and_counted_per_document():
    builder = IndexBuilder()
    builder.add_document(_document(0, title="Euler", text="angle"))
    builder.add_document(_document(1, title="Angle", text="euler angle"))
    builder.add_document(_document(2, title="Axis", text="angle"))
    snapshot = builder.build()

    assert [posting.doc_id for posting in snapshot.get_postings("angle")] == [0, 1, 1, 2]
    assert snapshot.doc_frequency("angle") == 3
    assert snapshot.doc_frequency("missing") == 0


@pytest.mark.unit
def test_doc_lengths_and_categories_are_recorded():
    builder = IndexBuilder()
    builder.add_document(_document(0, title="Euler Angles", text="", category=Category.PAGE))
    builder.add_document(_document(1, title="Axis", text="the rotation axis", category=Category.TYPE))
    snapshot = builder.build()

    # Category labels count towards the length.
    assert snapshot.doc_lengths == (3, 4)
    assert snapshot.doc_categories == (Category.PAGE, Category.TYPE)


@pytest.mark.unit
def test_documents_must_arrive_in_doc_id_order():
    builder = IndexBuilder()

    with pytest.raises(ValueError, match="doc_id order"):
        builder.add_document(_document(1, title="Out of order", text=""))


@pytest.mark.unit
def test_expand_prefix_uses_sorted_vocabulary():
    builder = IndexBuilder()
    builder.add_document(_document(0, title="Quaternion quat", text="quadrant orthonormal"))
    snapshot = builder.build()

    assert snapshot.expand_prefix("qua") == ("quadrant", "quat", "quaternion")
    assert snapshot.expand_prefix("quate") == ("quaternion",)
    assert snapshot.expand_prefix("zz") == ()
    assert snapshot.expand_prefix("") == ()


@pytest.mark.unit
def test_build_index_reports_summary(rotation_records):
    records = [*rotation_records, {"location": "#broken"}, dict(rotation_records[0], title="Inverse")]
    snapshot = build_index(records)

    summary = snapshot.summary
    assert snapshot.doc_count == 2
    assert summary.documents_indexed == 2
    assert summary.records_skipped == 1
    assert summary.duplicates == 1
    assert summary.degraded
    assert summary.vocabulary_size == len(snapshot.vocabulary)
    data = summary.to_dict()
    assert data["rejections"][0]["index"] == 2
    assert data["duplicate_locations"][0]["replaced_index"] == 0


@pytest.mark.unit
def test_snapshot_lookup_by_doc_id_and_location(rotation_records):
    snapshot = build_index(rotation_records)

    assert snapshot.get_document(1).title == "DCM Orthonormalization"
    assert snapshot.get_document(2) is None
    assert snapshot.get_document(-1) is None
    assert snapshot.find(rotation_records[0]["location"]).doc_id == 0
    assert snapshot.find("#missing") is None


@pytest.mark.unit
def test_snapshot_id_is_deterministic_and_content_sensitive(rotation_records):
    first = build_index(rotation_records)
    second = build_index(rotation_records)
    changed = build_index([rotation_records[0]])

    assert first.snapshot_id == second.snapshot_id
    assert first.snapshot_id != changed.snapshot_id
    assert first is not second


@pytest.mark.unit
def test_empty_corpus_builds_empty_snapshot():
    snapshot = build_index([])

    assert snapshot.is_empty()
    assert snapshot.vocabulary == ()
    assert not snapshot.summary.degraded
    assert snapshot.snapshot_id


@pytest.mark.unit
def test_snapshot_postings_are_read_only(rotation_records):
    snapshot = build_index(rotation_records)

    with pytest.raises(TypeError):
        snapshot.postings["new"] = ()  # type: ignore[index]


@pytest.mark.unit
def test_build_index_cancellation_raises():
    token = CancellationToken()
    token.cancel()

    with pytest.raises(BuildCancelled):
        build_index([{"location": "#", "page": "p", "title": "t", "category": "page", "text": ""}], cancel=token)


@pytest.mark.unit
def test_build_index_rejects_invalid_corpus():
    with pytest.raises(InvalidCorpus):
        build_index(None)  # type: ignore[arg-type]
