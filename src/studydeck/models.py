"""Data classes for documents, study items and progress."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union


@dataclass
class Document:
    id: str
    user_id: str
    title: str
    file_url: str = ""
    summary: Optional[str] = None
    key_points: list[str] = field(default_factory=list)
    created_at: Optional[str] = None


@dataclass(frozen=True)
class QuizItem:
    """A multiple-choice question. The correct answer is matched by option text."""
    id: str
    document_id: str
    question: str
    options: tuple[str, ...]
    correct_answer: str
    explanation: str = ""

    def __post_init__(self):
        object.__setattr__(self, "options", tuple(self.options))
        if len(set(self.options)) != len(self.options):
            raise ValueError(f"Quiz item {self.id} has duplicate options")
        if self.correct_answer not in self.options:
            raise ValueError(f"Quiz item {self.id}: correct answer is not one of the options")

    def is_correct(self, answer: str) -> bool:
        return answer == self.correct_answer


@dataclass(frozen=True)
class FlashcardItem:
    id: str
    document_id: str
    front: str
    back: str


Item = Union[QuizItem, FlashcardItem]


@dataclass(frozen=True)
class Deck:
    """Ordered items belonging to one document."""
    document_id: str
    items: tuple[Item, ...]

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))

    def __len__(self) -> int:
        return len(self.items)

    def keys(self) -> list[str]:
        return [item.id for item in self.items]


@dataclass
class Progress:
    user_id: str
    document_id: str
    time_spent: int = 0
    quiz_score: Optional[int] = None
    last_accessed: Optional[str] = None


@dataclass(frozen=True)
class ProgressSummary:
    """What a finished session hands back for persisting."""
    document_id: str
    quiz_score: Optional[int]
    time_spent: int
    last_accessed: datetime


@dataclass(frozen=True)
class SessionSnapshot:
    document_id: str
    kind: str
    mode: str
    position: int
    total: int
    current_item: Optional[Item]
    score: int
    resolved_count: int
    elapsed: float
    completed: bool
    answer_visible: bool = False
    answers: tuple[Optional[str], ...] = ()


@dataclass(frozen=True)
class Summary:
    summary: str
    key_points: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class GeneratedQuestion:
    question: str
    options: tuple[str, ...]
    correct_answer: str
    explanation: str = ""


@dataclass(frozen=True)
class GeneratedCard:
    front: str
    back: str
