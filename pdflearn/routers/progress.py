from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from pdflearn.db import get_session
from pdflearn.models import Progress
from pdflearn.services import repository
from pdflearn.services.progress import (
    ProgressUpdate,
    apply_progress_update,
    record_flashcard_view,
    record_quiz_answer,
    set_flashcard_index,
    set_quiz_index,
    summarize_progress,
)
from pdflearn.session import UserSession, get_user_session


router = APIRouter(prefix="/documents/{document_id}/progress", tags=["progress"])


def _load_progress(session: Session, user_id: int, document_id: int) -> Progress:
    progress = repository.get_progress(session, user_id, document_id)
    if not progress:
        raise HTTPException(status_code=404, detail="Progress not found")
    return progress


@router.get("")
def get_progress(
    document_id: int,
    user_session: UserSession = Depends(get_user_session),
    session: Session = Depends(get_session),
):
    return summarize_progress(_load_progress(session, user_session.user_id, document_id))


@router.patch("")
def update_progress(
    document_id: int,
    update: ProgressUpdate,
    user_session: UserSession = Depends(get_user_session),
    session: Session = Depends(get_session),
):
    user_id = user_session.user_id
    progress = _load_progress(session, user_id, document_id)
    flashcard_ids = {str(c.id) for c in repository.get_flashcards(session, user_id, document_id)}
    quiz_ids = {str(q.id) for q in repository.get_quiz_questions(session, user_id, document_id)}
    apply_progress_update(progress, update, flashcard_ids=flashcard_ids, quiz_ids=quiz_ids)
    return summarize_progress(repository.save_progress(session, progress))


@router.post("/flashcards/{flashcard_id}/viewed")
def flashcard_viewed(
    document_id: int,
    flashcard_id: int,
    user_session: UserSession = Depends(get_user_session),
    session: Session = Depends(get_session),
):
    user_id = user_session.user_id
    progress = _load_progress(session, user_id, document_id)
    card = next((c for c in repository.get_flashcards(session, user_id, document_id) if c.id == flashcard_id), None)
    if card is None:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    record_flashcard_view(progress, card.id)
    set_flashcard_index(progress, card.order_index)
    return summarize_progress(repository.save_progress(session, progress))


@router.post("/quiz/{question_id}/answered")
def quiz_answered(
    document_id: int,
    question_id: int,
    user_session: UserSession = Depends(get_user_session),
    session: Session = Depends(get_session),
):
    user_id = user_session.user_id
    progress = _load_progress(session, user_id, document_id)
    question = next((q for q in repository.get_quiz_questions(session, user_id, document_id) if q.id == question_id), None)
    if question is None:
        raise HTTPException(status_code=404, detail="Quiz question not found")
    record_quiz_answer(progress, question.id)
    set_quiz_index(progress, question.order_index)
    return summarize_progress(repository.save_progress(session, progress))
