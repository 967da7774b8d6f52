# tests/test_integration.py
"""End-to-end test of the core workflow."""
import json
from types import SimpleNamespace

from conftest import FakeClock
from studydeck.dashboard import get_study_stats
from studydeck.generation import GenerationService
from studydeck.importer import import_document
from studydeck.models import Deck
from studydeck.session import SHUFFLED, SessionEngine


class ScriptedCompletions:
    """Returns canned model output keyed on the system prompt."""

    def create(self, **kwargs):
        system = kwargs["messages"][0]["content"]
        if "summary" in system and "keyPoints" in system:
            content = json.dumps({"summary": "Cells make up living things.", "keyPoints": ["cells", "DNA"]})
        elif "multiple-choice" in system:
            content = json.dumps([
                {"question": "Basic unit of life?", "options": ["Cell", "Atom", "Organ", "Tissue"],
                 "correctAnswer": "Cell", "explanation": "Cells are the basic unit."},
                {"question": "Carries genes?", "options": ["DNA", "ATP", "Water", "Salt"],
                 "correctAnswer": "DNA", "explanation": "DNA stores genetic information."},
                {"question": "Powerhouse?", "options": ["Nucleus", "Mitochondria", "Ribosome", "Wall"],
                 "correctAnswer": "Mitochondria", "explanation": "Mitochondria make ATP."},
            ])
        else:
            content = json.dumps([{"front": "Cell", "back": "Basic unit of life"},
                                  {"front": "DNA", "back": "Genetic material"}])
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def test_upload_study_and_persist(tmp_path, store):
    """Upload a document, take its quiz and flashcards, and check stored progress."""
    f = tmp_path / "biology.txt"
    f.write_text("Cells are the basic unit of life. DNA carries genes. Mitochondria make ATP.")
    client = SimpleNamespace(chat=SimpleNamespace(completions=ScriptedCompletions()))
    generator = GenerationService(client=client)

    result = import_document(store, generator, "u1", str(f), quiz_count=3, flashcard_count=2)
    doc = result.document

    # Quiz: two of three right
    clock = FakeClock()
    engine = SessionEngine(clock=clock)
    engine.start(Deck(doc.id, store.list_quiz_items(doc.id)))
    for answer in ["Cell", "ATP", "Mitochondria"]:
        clock.tick(10)
        engine.record_quiz_answer(engine.snapshot().position, answer)
    summary = engine.finish()
    assert summary.quiz_score == 67
    assert summary.time_spent == 30
    store.upsert_progress("u1", doc.id, summary.quiz_score, summary.time_spent, summary.last_accessed)

    # Retrying the same write is harmless
    store.upsert_progress("u1", doc.id, summary.quiz_score, summary.time_spent, summary.last_accessed)
    assert len(store.list_progress("u1")) == 1

    # Flashcards, shuffled: one known, one not
    engine.start(Deck(doc.id, store.list_flashcards(doc.id)), SHUFFLED)
    first = engine.current()
    engine.flip()
    engine.mark_resolved(first.id)
    engine.mark_unresolved(engine.current().id)
    clock.tick(5)
    card_summary = engine.finish()
    assert card_summary.quiz_score is None
    progress = store.upsert_progress(
        "u1", doc.id, card_summary.quiz_score, card_summary.time_spent, card_summary.last_accessed,
    )
    assert progress.quiz_score == 67

    stats = get_study_stats(store, "u1")
    assert stats["documents"] == 1
    assert stats["quizzes"] == 3
    assert stats["flashcards"] == 2
    assert stats["avg_quiz_score"] == 67.0

    assert store.delete_document(doc.id) is True
    assert get_study_stats(store, "u1")["documents"] == 0
