"""Content store for documents, study items and progress records."""
import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional, Protocol, Sequence, Union

from loguru import logger

from studydeck.db import DEFAULT_DB_PATH, get_connection, init_db
from studydeck.models import (
    Document, FlashcardItem, GeneratedCard, GeneratedQuestion, Progress, QuizItem,
)


class ContentStoreError(Exception):
    """The backing store could not complete a read or write."""


class ContentStore(Protocol):
    def list_documents(self, user_id: str) -> list[Document]: ...

    def list_quiz_items(self, document_id: str) -> list[QuizItem]: ...

    def list_flashcards(self, document_id: str) -> list[FlashcardItem]: ...

    def upsert_progress(
        self,
        user_id: str,
        document_id: str,
        quiz_score: Optional[int],
        time_spent: int,
        last_accessed: Union[datetime, str],
    ) -> Progress: ...

    def delete_document(self, document_id: str) -> bool: ...


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex


def _document_from_row(row: sqlite3.Row) -> Document:
    return Document(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        file_url=row["file_url"] or "",
        summary=row["summary"],
        key_points=json.loads(row["key_points"] or "[]"),
        created_at=row["created_at"],
    )


def _quiz_item_from_row(row: sqlite3.Row) -> QuizItem:
    return QuizItem(
        id=row["id"],
        document_id=row["document_id"],
        question=row["question"],
        options=tuple(json.loads(row["options"])),
        correct_answer=row["correct_answer"],
        explanation=row["explanation"] or "",
    )


def _flashcard_from_row(row: sqlite3.Row) -> FlashcardItem:
    return FlashcardItem(
        id=row["id"], document_id=row["document_id"], front=row["front"], back=row["back"],
    )


def _progress_from_row(row: sqlite3.Row) -> Progress:
    return Progress(
        user_id=row["user_id"],
        document_id=row["document_id"],
        quiz_score=row["quiz_score"],
        time_spent=row["time_spent"],
        last_accessed=row["last_accessed"],
    )


class SQLiteContentStore:
    """ContentStore backed by a local SQLite file.

    Every call opens its own connection, so one instance can be shared by the
    whole process.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path
        init_db(db_path)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = get_connection(self.db_path)
        except sqlite3.Error as e:
            raise ContentStoreError(f"Cannot open {self.db_path}: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise ContentStoreError(str(e)) from e
        finally:
            conn.close()

    # Documents

    def add_document(
        self,
        user_id: str,
        title: str,
        file_url: str = "",
        summary: Optional[str] = None,
        key_points: Sequence[str] = (),
    ) -> Document:
        doc = Document(
            id=_new_id(),
            user_id=user_id,
            title=title,
            file_url=file_url,
            summary=summary,
            key_points=list(key_points),
            created_at=_now(),
        )
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO documents (id, user_id, title, file_url, summary, key_points, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (doc.id, doc.user_id, doc.title, doc.file_url, doc.summary,
                 json.dumps(doc.key_points), doc.created_at),
            )
        return doc

    def get_document(self, document_id: str) -> Optional[Document]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM documents WHERE id = ?", (document_id,)).fetchone()
        return _document_from_row(row) if row else None

    def list_documents(self, user_id: str) -> list[Document]:
        """All of a user's documents, newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM documents WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
        return [_document_from_row(r) for r in rows]

    def delete_document(self, document_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            deleted = cursor.rowcount > 0
        logger.debug("Deleted document {} ({})", document_id, "found" if deleted else "missing")
        return deleted

    # Study items

    def save_quiz_items(self, document_id: str, questions: Sequence[GeneratedQuestion]) -> list[QuizItem]:
        items = [
            QuizItem(
                id=_new_id(),
                document_id=document_id,
                question=q.question,
                options=q.options,
                correct_answer=q.correct_answer,
                explanation=q.explanation,
            )
            for q in questions
        ]
        with self._connect() as conn:
            start = conn.execute(
                "SELECT COALESCE(MAX(position) + 1, 0) FROM quiz_items WHERE document_id = ?",
                (document_id,),
            ).fetchone()[0]
            conn.executemany(
                """INSERT INTO quiz_items (id, document_id, position, question, options, correct_answer, explanation)
                VALUES (?, ?, ?, ?, ?, ?, ?)""",
                [
                    (item.id, document_id, start + i, item.question, json.dumps(list(item.options)),
                     item.correct_answer, item.explanation)
                    for i, item in enumerate(items)
                ],
            )
        return items

    def save_flashcards(self, document_id: str, cards: Sequence[GeneratedCard]) -> list[FlashcardItem]:
        items = [
            FlashcardItem(id=_new_id(), document_id=document_id, front=c.front, back=c.back)
            for c in cards
        ]
        with self._connect() as conn:
            start = conn.execute(
                "SELECT COALESCE(MAX(position) + 1, 0) FROM flashcards WHERE document_id = ?",
                (document_id,),
            ).fetchone()[0]
            conn.executemany(
                "INSERT INTO flashcards (id, document_id, position, front, back) VALUES (?, ?, ?, ?, ?)",
                [(item.id, document_id, start + i, item.front, item.back) for i, item in enumerate(items)],
            )
        return items

    def list_quiz_items(self, document_id: str) -> list[QuizItem]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM quiz_items WHERE document_id = ? ORDER BY position",
                (document_id,),
            ).fetchall()
        return [_quiz_item_from_row(r) for r in rows]

    def list_flashcards(self, document_id: str) -> list[FlashcardItem]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM flashcards WHERE document_id = ? ORDER BY position",
                (document_id,),
            ).fetchall()
        return [_flashcard_from_row(r) for r in rows]

    # Progress

    def upsert_progress(
        self,
        user_id: str,
        document_id: str,
        quiz_score: Optional[int],
        time_spent: int,
        last_accessed: Union[datetime, str],
    ) -> Progress:
        """Write the single progress record for (user, document).

        A missing quiz score keeps whatever score was stored before.
        """
        if isinstance(last_accessed, datetime):
            last_accessed = last_accessed.isoformat()
        with self._connect() as conn:
            conn.execute(
                """INSERT INTO progress (user_id, document_id, quiz_score, time_spent, last_accessed)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id, document_id) DO UPDATE SET
                    quiz_score = COALESCE(excluded.quiz_score, progress.quiz_score),
                    time_spent = excluded.time_spent,
                    last_accessed = excluded.last_accessed""",
                (user_id, document_id, quiz_score, time_spent, last_accessed),
            )
            row = conn.execute(
                "SELECT * FROM progress WHERE user_id = ? AND document_id = ?",
                (user_id, document_id),
            ).fetchone()
        logger.debug("Saved progress for {} on {}: score={} time={}s",
                     user_id, document_id, row["quiz_score"], row["time_spent"])
        return _progress_from_row(row)

    def get_progress(self, user_id: str, document_id: str) -> Optional[Progress]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM progress WHERE user_id = ? AND document_id = ?",
                (user_id, document_id),
            ).fetchone()
        return _progress_from_row(row) if row else None

    def list_progress(self, user_id: str) -> list[Progress]:
        """A user's progress records, most recently accessed first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM progress WHERE user_id = ? ORDER BY last_accessed DESC",
                (user_id,),
            ).fetchall()
        return [_progress_from_row(r) for r in rows]

    def count_items(self, user_id: str) -> dict:
        """Quiz and flashcard totals across a user's documents."""
        with self._connect() as conn:
            quizzes = conn.execute(
                """SELECT COUNT(*) FROM quiz_items q JOIN documents d ON q.document_id = d.id
                WHERE d.user_id = ?""",
                (user_id,),
            ).fetchone()[0]
            flashcards = conn.execute(
                """SELECT COUNT(*) FROM flashcards f JOIN documents d ON f.document_id = d.id
                WHERE d.user_id = ?""",
                (user_id,),
            ).fetchone()[0]
        return {"quizzes": quizzes, "flashcards": flashcards}
