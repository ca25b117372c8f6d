"""
Progress bookkeeping.

Completed counts stay within ``[0, total]`` and current indices within
``[0, total)`` (0 for an empty list) no matter what the client sends.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Set

from pydantic import BaseModel

from pdflearn.models import Progress, utcnow


class ProgressUpdate(BaseModel):
    flashcards_completed: Optional[int] = None
    flashcards_viewed: Optional[List[str]] = None
    quiz_completed: Optional[int] = None
    quiz_answered: Optional[List[str]] = None
    current_flashcard_index: Optional[int] = None
    current_quiz_index: Optional[int] = None


def clamp_count(value: int, total: int) -> int:
    return max(0, min(value, total))


def clamp_index(value: int, total: int) -> int:
    if total <= 0:
        return 0
    return max(0, min(value, total - 1))


def touch(progress: Progress) -> None:
    now = utcnow()
    progress.last_accessed = now
    progress.updated_at = now


def _merge_ids(existing: Iterable[str], new_ids: Iterable[str], allowed: Optional[Set[str]]) -> List[str]:
    merged = list(dict.fromkeys(str(i) for i in existing))
    for item in new_ids:
        item = str(item)
        if allowed is not None and item not in allowed:
            continue
        if item not in merged:
            merged.append(item)
    return merged


def record_flashcard_view(progress: Progress, flashcard_id: int | str) -> Progress:
    # A fresh list is assigned so SQLAlchemy notices the JSON change
    progress.flashcards_viewed = _merge_ids(progress.flashcards_viewed or [], [flashcard_id], None)
    progress.flashcards_completed = clamp_count(len(progress.flashcards_viewed), progress.flashcards_total)
    touch(progress)
    return progress


def record_quiz_answer(progress: Progress, question_id: int | str) -> Progress:
    progress.quiz_answered = _merge_ids(progress.quiz_answered or [], [question_id], None)
    progress.quiz_completed = clamp_count(len(progress.quiz_answered), progress.quiz_total)
    touch(progress)
    return progress


def set_flashcard_index(progress: Progress, index: int) -> Progress:
    progress.current_flashcard_index = clamp_index(index, progress.flashcards_total)
    touch(progress)
    return progress


def set_quiz_index(progress: Progress, index: int) -> Progress:
    progress.current_quiz_index = clamp_index(index, progress.quiz_total)
    touch(progress)
    return progress


def apply_progress_update(
    progress: Progress,
    update: ProgressUpdate,
    flashcard_ids: Optional[Set[str]] = None,
    quiz_ids: Optional[Set[str]] = None,
) -> Progress:
    """Apply a partial update; ids not belonging to the document are ignored."""
    if update.flashcards_viewed is not None:
        progress.flashcards_viewed = _merge_ids([], update.flashcards_viewed, flashcard_ids)
        progress.flashcards_completed = clamp_count(len(progress.flashcards_viewed), progress.flashcards_total)
    if update.flashcards_completed is not None:
        progress.flashcards_completed = clamp_count(update.flashcards_completed, progress.flashcards_total)
    if update.quiz_answered is not None:
        progress.quiz_answered = _merge_ids([], update.quiz_answered, quiz_ids)
        progress.quiz_completed = clamp_count(len(progress.quiz_answered), progress.quiz_total)
    if update.quiz_completed is not None:
        progress.quiz_completed = clamp_count(update.quiz_completed, progress.quiz_total)
    if update.current_flashcard_index is not None:
        progress.current_flashcard_index = clamp_index(update.current_flashcard_index, progress.flashcards_total)
    if update.current_quiz_index is not None:
        progress.current_quiz_index = clamp_index(update.current_quiz_index, progress.quiz_total)
    touch(progress)
    return progress


def _percent(done: int, total: int) -> int:
    return round(done / total * 100) if total > 0 else 0


def summarize_progress(progress: Progress) -> dict:
    total = progress.flashcards_total + progress.quiz_total
    done = progress.flashcards_completed + progress.quiz_completed
    if done == 0:
        state = "not_started"
    elif done >= total:
        state = "complete"
    else:
        state = "in_progress"
    return {
        "pdf_document_id": progress.pdf_document_id,
        "flashcards_total": progress.flashcards_total,
        "flashcards_completed": progress.flashcards_completed,
        "flashcards_viewed": list(progress.flashcards_viewed or []),
        "quiz_total": progress.quiz_total,
        "quiz_completed": progress.quiz_completed,
        "quiz_answered": list(progress.quiz_answered or []),
        "current_flashcard_index": progress.current_flashcard_index,
        "current_quiz_index": progress.current_quiz_index,
        "flashcard_percent": _percent(progress.flashcards_completed, progress.flashcards_total),
        "quiz_percent": _percent(progress.quiz_completed, progress.quiz_total),
        "overall_percent": _percent(done, total),
        "state": state,
        "last_accessed": progress.last_accessed.isoformat() if progress.last_accessed else None,
    }
