import pytest

from studydeck.models import Deck, FlashcardItem, QuizItem
from studydeck.store import SQLiteContentStore


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_studydeck.db")
    return db_path


@pytest.fixture
def store(tmp_db):
    return SQLiteContentStore(tmp_db)


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def tick(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def make_quiz_deck(correct_answers, document_id="doc-1"):
    items = []
    for i, correct in enumerate(correct_answers):
        options = [correct] + [o for o in ("A", "B", "C", "X") if o != correct][:3]
        items.append(QuizItem(
            id=f"q{i}", document_id=document_id, question=f"Question {i}?",
            options=tuple(options), correct_answer=correct,
        ))
    return Deck(document_id, items)


def make_flashcard_deck(count, document_id="doc-1"):
    return Deck(document_id, [
        FlashcardItem(id=f"c{i}", document_id=document_id, front=f"Front {i}", back=f"Back {i}")
        for i in range(count)
    ])
