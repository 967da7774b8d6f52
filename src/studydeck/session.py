"""In-memory study session engine for quizzes and flashcard decks.

A session walks one deck item by item. It is either ``Active`` at some
position or ``Completed`` once the last item has been passed; only ``reset``,
``shuffle`` or a fresh ``start`` leave the completed state. The engine does no
I/O: callers persist the summary returned by ``finish``.
"""
import math
import random
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from studydeck.models import (
    Deck, FlashcardItem, Item, ProgressSummary, QuizItem, SessionSnapshot,
)

SEQUENTIAL = "sequential"
SHUFFLED = "shuffled"
MODES = (SEQUENTIAL, SHUFFLED)

QUIZ = "quiz"
FLASHCARD = "flashcard"


class SessionError(Exception):
    """Base class for invalid use of a study session."""


class EmptyDeckError(SessionError):
    pass


class InvalidDeckError(SessionError):
    pass


class NoActiveSessionError(SessionError):
    pass


class OutOfSequenceError(SessionError):
    pass


class SessionCompleteError(SessionError):
    pass


class SessionNotCompleteError(SessionError):
    pass


class WrongSessionKindError(SessionError):
    pass


class UnknownItemError(SessionError):
    pass


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _deck_kind(items: tuple) -> str:
    if all(isinstance(item, QuizItem) for item in items):
        return QUIZ
    if all(isinstance(item, FlashcardItem) for item in items):
        return FLASHCARD
    raise InvalidDeckError("A deck must contain only quiz items or only flashcards")


@dataclass
class Session:
    document_id: str
    kind: str
    mode: str
    items: list[Item]
    started_at: float
    position: int = 0
    score: int = 0
    resolved: set[str] = field(default_factory=set)
    answers: list[Optional[str]] = field(default_factory=list)
    answer_visible: bool = False
    completed_at: Optional[float] = None

    @property
    def completed(self) -> bool:
        return self.completed_at is not None

    def clear(self) -> None:
        self.position = 0
        self.score = 0
        self.resolved = set()
        self.answers = [None] * len(self.items) if self.kind == QUIZ else []
        self.answer_visible = False
        self.completed_at = None


class SessionEngine:
    """Drives one study pass over a deck.

    Not thread-safe; one engine serves one user interacting with one deck.
    """

    def __init__(self, rng: Optional[random.Random] = None,
                 clock: Callable[[], float] = time.time):
        self._rng = rng or random.Random()
        self._clock = clock
        self._session: Optional[Session] = None

    @property
    def is_active(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def start(self, deck: Deck, mode: str = SEQUENTIAL) -> SessionSnapshot:
        if mode not in MODES:
            raise ValueError(f"Unknown session mode: {mode!r}")
        if len(deck) == 0:
            raise EmptyDeckError(f"Document {deck.document_id} has no items to study")
        kind = _deck_kind(deck.items)
        keys = deck.keys()
        if len(set(keys)) != len(keys):
            raise InvalidDeckError("Deck items must have unique keys")

        items = list(deck.items)
        if mode == SHUFFLED:
            self._rng.shuffle(items)
        session = Session(
            document_id=deck.document_id,
            kind=kind,
            mode=mode,
            items=items,
            started_at=self._clock(),
        )
        session.clear()
        self._session = session
        return self.snapshot()

    def _require_session(self) -> Session:
        if self._session is None:
            raise NoActiveSessionError("No study session has been started")
        return self._session

    def _require_active(self) -> Session:
        session = self._require_session()
        if session.completed:
            raise SessionCompleteError("Session is complete; reset or start a new one")
        return session

    def current(self) -> Item:
        session = self._require_session()
        if session.completed:
            raise NoActiveSessionError("Session is complete; there is no current item")
        return session.items[session.position]

    def advance(self) -> SessionSnapshot:
        session = self._require_active()
        session.answer_visible = False
        if session.position + 1 >= len(session.items):
            session.completed_at = self._clock()
        else:
            session.position += 1
        return self.snapshot()

    def retreat(self) -> SessionSnapshot:
        session = self._require_active()
        if session.position > 0:
            session.position -= 1
            session.answer_visible = False
        return self.snapshot()

    def record_quiz_answer(self, position: int, answer: str) -> bool:
        """Record ``answer`` for the item at ``position`` and move on.

        Returns True when the answer matches the correct option exactly.
        """
        session = self._require_active()
        if session.kind != QUIZ:
            raise WrongSessionKindError("Answers can only be recorded in a quiz session")
        if position != session.position:
            raise OutOfSequenceError(
                f"Answer for position {position} but current position is {session.position}"
            )
        item = session.items[position]
        previous = session.answers[position]
        if previous is not None and item.is_correct(previous):
            session.score -= 1
        session.answers[position] = answer
        correct = item.is_correct(answer)
        if correct:
            session.score += 1
        self.advance()
        return correct

    def _require_flashcard_key(self, item_key: str) -> Session:
        session = self._require_active()
        if session.kind != FLASHCARD:
            raise WrongSessionKindError("Cards can only be marked in a flashcard session")
        if not any(item.id == item_key for item in session.items):
            raise UnknownItemError(f"Item {item_key!r} is not part of this session")
        return session

    def mark_resolved(self, item_key: str) -> SessionSnapshot:
        session = self._require_flashcard_key(item_key)
        session.resolved.add(item_key)
        return self.advance()

    def mark_unresolved(self, item_key: str) -> SessionSnapshot:
        # Resolution is monotonic within a session; nothing is removed here.
        self._require_flashcard_key(item_key)
        return self.advance()

    def flip(self) -> SessionSnapshot:
        session = self._require_active()
        session.answer_visible = not session.answer_visible
        return self.snapshot()

    def reset(self) -> SessionSnapshot:
        session = self._require_session()
        session.clear()
        return self.snapshot()

    def shuffle(self) -> SessionSnapshot:
        session = self._require_session()
        self._rng.shuffle(session.items)
        session.clear()
        return self.snapshot()

    def snapshot(self) -> SessionSnapshot:
        session = self._require_session()
        end = session.completed_at if session.completed else self._clock()
        return SessionSnapshot(
            document_id=session.document_id,
            kind=session.kind,
            mode=session.mode,
            position=len(session.items) if session.completed else session.position,
            total=len(session.items),
            current_item=None if session.completed else session.items[session.position],
            score=session.score,
            resolved_count=len(session.resolved),
            elapsed=end - session.started_at,
            completed=session.completed,
            answer_visible=session.answer_visible,
            answers=tuple(session.answers),
        )

    def finish(self) -> ProgressSummary:
        session = self._require_session()
        if not session.completed:
            raise SessionNotCompleteError(
                f"{len(session.items) - session.position} item(s) left in this session"
            )
        quiz_score = None
        if session.kind == QUIZ:
            quiz_score = _round_half_up(session.score / len(session.items) * 100)
        return ProgressSummary(
            document_id=session.document_id,
            quiz_score=quiz_score,
            time_spent=_round_half_up(session.completed_at - session.started_at),
            last_accessed=datetime.fromtimestamp(session.completed_at, tz=timezone.utc),
        )
