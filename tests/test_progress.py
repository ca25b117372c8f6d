"""
Unit tests for progress bookkeeping
"""
import pytest

from pdflearn.models import Progress
from pdflearn.services.progress import (
    ProgressUpdate,
    apply_progress_update,
    clamp_count,
    clamp_index,
    record_flashcard_view,
    record_quiz_answer,
    set_flashcard_index,
    summarize_progress,
)


def _progress(flashcards=4, quiz=2):
    return Progress(user_id=1, pdf_document_id=1, flashcards_total=flashcards, quiz_total=quiz)


@pytest.mark.parametrize("value,total,expected", [(-3, 5, 0), (3, 5, 3), (9, 5, 5), (4, 0, 0)])
def test_clamp_count(value, total, expected):
    assert clamp_count(value, total) == expected


@pytest.mark.parametrize("value,total,expected", [(-1, 5, 0), (2, 5, 2), (5, 5, 4), (3, 0, 0)])
def test_clamp_index(value, total, expected):
    assert clamp_index(value, total) == expected


def test_repeated_views_count_once():
    progress = _progress()
    record_flashcard_view(progress, 7)
    record_flashcard_view(progress, "7")
    record_flashcard_view(progress, 8)
    assert progress.flashcards_viewed == ["7", "8"]
    assert progress.flashcards_completed == 2


def test_answers_never_exceed_total():
    progress = _progress(quiz=1)
    record_quiz_answer(progress, 1)
    record_quiz_answer(progress, 2)
    assert progress.quiz_completed == 1


def test_index_stays_in_range():
    progress = _progress(flashcards=3)
    set_flashcard_index(progress, 10)
    assert progress.current_flashcard_index == 2


def test_update_ignores_foreign_ids_and_clamps():
    progress = _progress(flashcards=2, quiz=2)
    update = ProgressUpdate(
        flashcards_viewed=["1", "2", "99"],
        quiz_completed=50,
        current_quiz_index=-4,
    )
    apply_progress_update(progress, update, flashcard_ids={"1", "2"}, quiz_ids={"3", "4"})
    assert progress.flashcards_viewed == ["1", "2"]
    assert progress.flashcards_completed == 2
    assert progress.quiz_completed == 2
    assert progress.current_quiz_index == 0


def test_summary_states():
    progress = _progress(flashcards=2, quiz=2)
    assert summarize_progress(progress)["state"] == "not_started"

    record_flashcard_view(progress, 1)
    summary = summarize_progress(progress)
    assert summary["state"] == "in_progress"
    assert summary["flashcard_percent"] == 50
    assert summary["overall_percent"] == 25

    apply_progress_update(progress, ProgressUpdate(flashcards_completed=2, quiz_completed=2))
    assert summarize_progress(progress)["state"] == "complete"


def test_summary_of_empty_document():
    summary = summarize_progress(_progress(flashcards=0, quiz=0))
    assert summary["overall_percent"] == 0
    assert summary["state"] == "not_started"
