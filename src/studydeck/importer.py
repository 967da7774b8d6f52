"""Upload pipeline: extract text, generate study material, store it."""
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from studydeck.models import Document, FlashcardItem, QuizItem, Summary
from studydeck.store import ContentStoreError


@dataclass
class ImportResult:
    document: Document
    summary: Summary
    quiz_items: list[QuizItem]
    flashcards: list[FlashcardItem]
    length: int


def read_file_content(file_path: str) -> str:
    path = Path(file_path)
    suffix = path.suffix.lower()

    if suffix in (".txt", ".md"):
        return path.read_text(encoding="utf-8")
    elif suffix == ".pdf":
        from PyPDF2 import PdfReader
        reader = PdfReader(file_path)
        return "\n".join(page.extract_text() or "" for page in reader.pages)
    elif suffix == ".docx":
        from docx import Document as DocxDocument
        doc = DocxDocument(file_path)
        return "\n".join(p.text for p in doc.paragraphs)
    elif suffix in (".html", ".htm"):
        from bs4 import BeautifulSoup
        html = path.read_text(encoding="utf-8")
        return BeautifulSoup(html, "html.parser").get_text()
    else:
        # Try reading as plain text
        return path.read_text(encoding="utf-8", errors="replace")


def import_document(
    store,
    generator,
    user_id: str,
    file_path: str,
    quiz_count: int = 5,
    flashcard_count: int = 10,
) -> ImportResult:
    """Turn a file into a stored document with its quiz and flashcards."""
    path = Path(file_path)
    content = read_file_content(file_path)
    if not content.strip():
        raise ValueError(f"No readable text in {path.name}")

    summary = generator.summarize(content)
    questions = generator.generate_quiz(content, quiz_count)
    cards = generator.generate_flashcards(content, flashcard_count)

    document = store.add_document(
        user_id=user_id,
        title=path.name,
        file_url=path.resolve().as_uri(),
        summary=summary.summary,
        key_points=summary.key_points,
    )
    try:
        quiz_items = store.save_quiz_items(document.id, questions)
        flashcards = store.save_flashcards(document.id, cards)
    except ContentStoreError:
        logger.warning(f"Saving study items for {path.name} failed; removing the document")
        store.delete_document(document.id)
        raise
    logger.info(
        f"Imported {path.name}: {len(quiz_items)} questions, {len(flashcards)} flashcards"
    )
    return ImportResult(
        document=document,
        summary=summary,
        quiz_items=quiz_items,
        flashcards=flashcards,
        length=len(content),
    )
