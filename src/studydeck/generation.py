"""Summary, quiz and flashcard generation through the OpenAI chat API.

Every call is best-effort: API errors and unusable responses are logged and
replaced with deterministic placeholder content, so callers always get a
non-empty result they can store and study.
"""
import json
import re
from typing import Any, Optional

from loguru import logger
from openai import OpenAI

from studydeck.models import GeneratedCard, GeneratedQuestion, Summary

MAX_INPUT_CHARS = 4000
OPTION_COUNT = 4

SUMMARY_PROMPT = (
    "You are an expert study assistant. Create a comprehensive summary and extract key points "
    "from the given text. Return your response in JSON format with 'summary' (a concise 2-3 "
    "sentence summary) and 'keyPoints' (an array of 5-7 important points)."
)
QUIZ_PROMPT = (
    "You are an expert educator creating quiz questions. Generate {count} multiple-choice "
    "questions based on the given text. Each question should have 4 distinct options with only "
    "one correct answer. Return your response as a JSON array with objects containing: question, "
    "options (array of 4 strings), correctAnswer (the correct option text), and explanation."
)
FLASHCARD_PROMPT = (
    "You are an expert educator creating study flashcards. Generate {count} flashcards based on "
    "the given text. Each flashcard should have a 'front' (term, concept, or question) and "
    "'back' (definition, explanation, or answer). Return your response as a JSON array with "
    "objects containing 'front' and 'back' properties."
)

_BULLET = re.compile(r"^[-•*]\s*")
_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


class MissingCredentialsError(Exception):
    """No API key was configured, so nothing is sent to the provider."""


def _strip_bullet(line: str) -> str:
    return _BULLET.sub("", line).strip()


def _non_empty_lines(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def _parse_json(text: str) -> Any:
    return json.loads(_FENCE.sub("", text.strip()))


def _unwrap_list(parsed: Any, *keys: str) -> Optional[list]:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in keys:
            if isinstance(parsed.get(key), list):
                return parsed[key]
    return None


def placeholder_summary(text: str) -> Summary:
    """Pick the leading sentences of ``text`` as summary and key points."""
    sentences = [s.strip() for s in re.split(r"[.!?]+", text) if len(s.strip()) > 10]
    summary = ". ".join(sentences[:3]) + "." if sentences else "No summary available."
    key_points = [s for s in sentences[3:8] if len(s) > 20][:5]
    return Summary(summary=summary, key_points=key_points)


def placeholder_quiz(count: int) -> list[GeneratedQuestion]:
    questions = []
    for i in range(1, count + 1):
        options = tuple(f"Option {letter} for question {i}" for letter in "ABCD")
        questions.append(GeneratedQuestion(
            question=f"Sample question {i} about the document content?",
            options=options,
            correct_answer=options[0],
            explanation=f"This is a placeholder explanation for question {i}.",
        ))
    return questions


def placeholder_flashcards(count: int) -> list[GeneratedCard]:
    return [
        GeneratedCard(front=f"Key concept {i}", back=f"Definition or explanation for key concept {i}")
        for i in range(1, count + 1)
    ]


def is_valid_question(question: GeneratedQuestion) -> bool:
    options = question.options
    return (
        len(options) == OPTION_COUNT
        and len(set(options)) == OPTION_COUNT
        and all(isinstance(o, str) and o for o in options)
        and question.correct_answer in options
    )


def parse_summary(text: str) -> Summary:
    try:
        parsed = _parse_json(text)
    except ValueError:
        lines = _non_empty_lines(text)
        return Summary(
            summary=lines[0] if lines else "AI-generated summary",
            key_points=[_strip_bullet(line) for line in lines[1:6]],
        )
    if not isinstance(parsed, dict):
        raise ValueError("Summary response is not a JSON object")
    key_points = parsed.get("keyPoints") or parsed.get("key_points") or ["Key points extracted"]
    if not isinstance(key_points, list):
        key_points = [key_points]
    return Summary(
        summary=str(parsed.get("summary") or "Summary generated successfully"),
        key_points=[str(point) for point in key_points],
    )


def parse_quiz(text: str, count: int) -> list[GeneratedQuestion]:
    """Parse a quiz response, dropping questions that cannot be scored."""
    try:
        parsed = _parse_json(text)
    except ValueError:
        lines = _non_empty_lines(text)
        questions = []
        for i in range(min(count, len(lines) // 6)):
            block = lines[i * 6:i * 6 + 6]
            questions.append(GeneratedQuestion(
                question=block[0],
                options=tuple(block[1:5]),
                correct_answer=block[1],
                explanation=block[5],
            ))
        return [q for q in questions if is_valid_question(q)]

    raw = _unwrap_list(parsed, "questions", "quiz")
    if raw is None:
        raise ValueError("Quiz response is not a JSON array")
    questions = []
    for entry in raw[:count]:
        if not isinstance(entry, dict):
            continue
        raw_options = entry.get("options")
        options = tuple(str(o) for o in raw_options) if isinstance(raw_options, list) else ()
        questions.append(GeneratedQuestion(
            question=entry.get("question") or "Sample question",
            options=options,
            correct_answer=entry.get("correctAnswer") or entry.get("correct_answer")
            or (options[0] if options else ""),
            explanation=entry.get("explanation") or "Explanation not provided",
        ))
    return [q for q in questions if is_valid_question(q)]


def parse_flashcards(text: str, count: int) -> list[GeneratedCard]:
    try:
        parsed = _parse_json(text)
    except ValueError:
        lines = _non_empty_lines(text)
        return [
            GeneratedCard(front=_strip_bullet(lines[i * 2]), back=_strip_bullet(lines[i * 2 + 1]))
            for i in range(min(count, len(lines) // 2))
        ]

    raw = _unwrap_list(parsed, "flashcards", "cards")
    if raw is None:
        raise ValueError("Flashcard response is not a JSON array")
    return [
        GeneratedCard(
            front=str(entry.get("front") or "Key concept"),
            back=str(entry.get("back") or "Definition or explanation"),
        )
        for entry in raw[:count]
        if isinstance(entry, dict)
    ]


class GenerationService:
    """Chat-completion client producing study material from document text."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        client: Any = None,
    ):
        if client is None:
            if not api_key or not api_key.strip():
                raise MissingCredentialsError(
                    "An OpenAI API key is required; set OPENAI_API_KEY or STUDYDECK_OPENAI_API_KEY"
                )
            client = OpenAI(api_key=api_key, base_url=base_url) if base_url else OpenAI(api_key=api_key)
        self._client = client
        self.model = model

    @classmethod
    def from_settings(cls, settings) -> "GenerationService":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
        )

    def _complete(self, system: str, user: str, temperature: float, max_tokens: int) -> str:
        response = self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ValueError("Empty response from model")
        return content

    def summarize(self, text: str) -> Summary:
        try:
            content = self._complete(
                SUMMARY_PROMPT,
                f"Please summarize this text and extract key points:\n\n{text[:MAX_INPUT_CHARS]}",
                temperature=0.3,
                max_tokens=1000,
            )
            return parse_summary(content)
        except Exception as e:
            logger.warning(f"Summary generation failed, using extracted sentences: {e}")
            return placeholder_summary(text)

    def generate_quiz(self, text: str, count: int = 5) -> list[GeneratedQuestion]:
        try:
            content = self._complete(
                QUIZ_PROMPT.format(count=count),
                f"Create {count} quiz questions from this text:\n\n{text[:MAX_INPUT_CHARS]}",
                temperature=0.4,
                max_tokens=2000,
            )
            questions = parse_quiz(content, count)
        except Exception as e:
            logger.warning(f"Quiz generation failed, using placeholder questions: {e}")
            return placeholder_quiz(count)
        if not questions:
            logger.warning("Quiz response had no usable questions, using placeholder questions")
            return placeholder_quiz(count)
        return questions

    def generate_flashcards(self, text: str, count: int = 10) -> list[GeneratedCard]:
        try:
            content = self._complete(
                FLASHCARD_PROMPT.format(count=count),
                f"Create {count} flashcards from this text:\n\n{text[:MAX_INPUT_CHARS]}",
                temperature=0.3,
                max_tokens=2000,
            )
            cards = parse_flashcards(content, count)
        except Exception as e:
            logger.warning(f"Flashcard generation failed, using placeholder cards: {e}")
            return placeholder_flashcards(count)
        if not cards:
            logger.warning("Flashcard response had no usable cards, using placeholder cards")
            return placeholder_flashcards(count)
        return cards
