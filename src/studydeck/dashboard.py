"""Study statistics for the dashboard screen."""
from studydeck.models import Document, Progress


def format_duration(seconds: int) -> str:
    if seconds >= 3600:
        return f"{seconds // 3600}h {(seconds % 3600) // 60}m"
    elif seconds >= 60:
        return f"{seconds // 60}m {seconds % 60}s"
    return f"{seconds}s"


def get_score_color(score: float) -> str:
    if score >= 80:
        return "green"
    elif score >= 60:
        return "yellow"
    return "red"


def get_study_stats(store, user_id: str) -> dict:
    documents = store.list_documents(user_id)
    progress = store.list_progress(user_id)
    counts = store.count_items(user_id)
    scores = [p.quiz_score for p in progress if p.quiz_score is not None]
    avg_quiz = round(sum(scores) / len(scores), 1) if scores else 0.0
    return {
        "documents": len(documents),
        "summarized": sum(1 for d in documents if d.summary),
        "quizzes": counts["quizzes"],
        "flashcards": counts["flashcards"],
        "total_time": sum(p.time_spent or 0 for p in progress),
        "avg_quiz_score": avg_quiz,
    }


def get_recent_documents(store, user_id: str, limit: int = 5) -> list[Document]:
    return store.list_documents(user_id)[:limit]


def get_recent_progress(store, user_id: str, limit: int = 5) -> list[Progress]:
    return store.list_progress(user_id)[:limit]


def search_documents(store, user_id: str, term: str) -> list[Document]:
    """Documents whose title or summary contains ``term``, ignoring case."""
    needle = term.lower().strip()
    documents = store.list_documents(user_id)
    if not needle:
        return documents
    return [
        d for d in documents
        if needle in d.title.lower() or (d.summary and needle in d.summary.lower())
    ]
