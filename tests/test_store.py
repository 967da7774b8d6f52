# tests/test_store.py
from datetime import datetime, timezone

import pytest

from studydeck.db import get_connection
from studydeck.models import GeneratedCard, GeneratedQuestion
from studydeck.store import ContentStoreError, SQLiteContentStore


def _question(n):
    options = tuple(f"Option {letter}{n}" for letter in "ABCD")
    return GeneratedQuestion(
        question=f"Question {n}?", options=options, correct_answer=options[1], explanation=f"Because {n}",
    )


def test_add_and_get_document(store):
    doc = store.add_document("u1", "notes.txt", file_url="file:///notes.txt",
                             summary="A summary.", key_points=["one", "two"])
    loaded = store.get_document(doc.id)
    assert loaded == doc
    assert loaded.key_points == ["one", "two"]


def test_get_document_missing(store):
    assert store.get_document("nope") is None


def test_list_documents_newest_first(store):
    first = store.add_document("u1", "first.txt")
    second = store.add_document("u1", "second.txt")
    third = store.add_document("u1", "third.txt")
    titles = [d.title for d in store.list_documents("u1")]
    assert titles == [third.title, second.title, first.title]


def test_list_documents_filters_by_user(store):
    store.add_document("u1", "mine.txt")
    store.add_document("u2", "theirs.txt")
    assert [d.title for d in store.list_documents("u1")] == ["mine.txt"]
    assert store.list_documents("nobody") == []


def test_quiz_items_keep_document_order(store):
    doc = store.add_document("u1", "notes.txt")
    saved = store.save_quiz_items(doc.id, [_question(i) for i in range(4)])
    loaded = store.list_quiz_items(doc.id)
    assert loaded == saved
    assert [q.question for q in loaded] == [f"Question {i}?" for i in range(4)]
    assert loaded[0].correct_answer == "Option B0"
    assert loaded[0].explanation == "Because 0"


def test_quiz_items_appended_after_existing(store):
    doc = store.add_document("u1", "notes.txt")
    store.save_quiz_items(doc.id, [_question(0)])
    store.save_quiz_items(doc.id, [_question(1)])
    assert [q.question for q in store.list_quiz_items(doc.id)] == ["Question 0?", "Question 1?"]


def test_flashcards_keep_document_order(store):
    doc = store.add_document("u1", "notes.txt")
    cards = [GeneratedCard(front=f"F{i}", back=f"B{i}") for i in range(5)]
    saved = store.save_flashcards(doc.id, cards)
    loaded = store.list_flashcards(doc.id)
    assert loaded == saved
    assert [c.front for c in loaded] == ["F0", "F1", "F2", "F3", "F4"]
    assert len({c.id for c in loaded}) == 5


def test_list_items_for_unknown_document(store):
    assert store.list_quiz_items("nope") == []
    assert store.list_flashcards("nope") == []


def test_upsert_progress_inserts(store):
    doc = store.add_document("u1", "notes.txt")
    when = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    progress = store.upsert_progress("u1", doc.id, 80, 120, when)
    assert progress.quiz_score == 80
    assert progress.time_spent == 120
    assert progress.last_accessed == when.isoformat()


def test_upsert_progress_one_record_per_user_document(store, tmp_db):
    doc = store.add_document("u1", "notes.txt")
    store.upsert_progress("u1", doc.id, 50, 60, "2026-03-01T10:00:00+00:00")
    store.upsert_progress("u1", doc.id, 90, 45, "2026-03-02T10:00:00+00:00")
    conn = get_connection(tmp_db)
    rows = conn.execute("SELECT * FROM progress").fetchall()
    conn.close()
    assert len(rows) == 1
    assert rows[0]["quiz_score"] == 90
    assert rows[0]["time_spent"] == 45


def test_upsert_progress_is_idempotent(store):
    doc = store.add_document("u1", "notes.txt")
    first = store.upsert_progress("u1", doc.id, 67, 30, "2026-03-01T10:00:00+00:00")
    second = store.upsert_progress("u1", doc.id, 67, 30, "2026-03-01T10:00:00+00:00")
    assert first == second
    assert len(store.list_progress("u1")) == 1


def test_upsert_without_score_keeps_previous_score(store):
    doc = store.add_document("u1", "notes.txt")
    store.upsert_progress("u1", doc.id, 75, 60, "2026-03-01T10:00:00+00:00")
    progress = store.upsert_progress("u1", doc.id, None, 30, "2026-03-02T10:00:00+00:00")
    assert progress.quiz_score == 75
    assert progress.time_spent == 30


def test_upsert_progress_unknown_document_raises(store):
    with pytest.raises(ContentStoreError):
        store.upsert_progress("u1", "missing", 10, 5, "2026-03-01T10:00:00+00:00")


def test_list_progress_most_recent_first(store):
    a = store.add_document("u1", "a.txt")
    b = store.add_document("u1", "b.txt")
    store.upsert_progress("u1", a.id, 10, 5, "2026-03-01T10:00:00+00:00")
    store.upsert_progress("u1", b.id, 20, 5, "2026-03-05T10:00:00+00:00")
    assert [p.document_id for p in store.list_progress("u1")] == [b.id, a.id]
    assert store.get_progress("u1", a.id).quiz_score == 10
    assert store.get_progress("u2", a.id) is None


def test_delete_document_cascades(store, tmp_db):
    doc = store.add_document("u1", "notes.txt")
    store.save_quiz_items(doc.id, [_question(0)])
    store.save_flashcards(doc.id, [GeneratedCard(front="F", back="B")])
    store.upsert_progress("u1", doc.id, 100, 10, "2026-03-01T10:00:00+00:00")
    assert store.delete_document(doc.id) is True
    assert store.get_document(doc.id) is None
    assert store.list_quiz_items(doc.id) == []
    assert store.list_flashcards(doc.id) == []
    assert store.list_progress("u1") == []


def test_delete_missing_document_returns_false(store):
    assert store.delete_document("nope") is False


def test_count_items(store):
    doc = store.add_document("u1", "notes.txt")
    store.save_quiz_items(doc.id, [_question(0), _question(1)])
    store.save_flashcards(doc.id, [GeneratedCard(front="F", back="B")])
    other = store.add_document("u2", "other.txt")
    store.save_flashcards(other.id, [GeneratedCard(front="F", back="B")])
    assert store.count_items("u1") == {"quizzes": 2, "flashcards": 1}


def test_unwritable_store_raises_store_error(tmp_path):
    store = SQLiteContentStore(str(tmp_path / "ok.db"))
    store.db_path = str(tmp_path / "missing-dir" / "gone.db")
    with pytest.raises(ContentStoreError):
        store.list_documents("u1")
