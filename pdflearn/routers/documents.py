import os
from typing import List

from anyio import from_thread
from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from sqlmodel import Session
import structlog

from pdflearn.db import get_session
from pdflearn.errors import ExtractionError, PdfLearnError, UploadInProgressError
from pdflearn.middleware.rate_limit import upload_limit
from pdflearn.models import Document, Flashcard, QuizQuestion
from pdflearn.notifications import notify_stage
from pdflearn.services import repository
from pdflearn.services.pipeline import UploadPipeline, get_processing_status
from pdflearn.services.progress import summarize_progress
from pdflearn.session import UserSession, get_user_session

logger = structlog.get_logger()

router = APIRouter(prefix="/documents", tags=["documents"])

MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "50"))
PDF_CONTENT_TYPE = "application/pdf"
GENERIC_CONTENT_TYPES = {None, "", "application/octet-stream"}


class BulkDeleteRequest(BaseModel):
    document_ids: List[int]


def document_to_dict(document: Document) -> dict:
    return {
        "id": document.id,
        "filename": document.filename,
        "page_count": document.page_count,
        "content": document.content,
        "created_at": document.created_at.isoformat(),
        "updated_at": document.updated_at.isoformat(),
    }


def flashcard_to_dict(card: Flashcard) -> dict:
    return {
        "id": card.id,
        "question": card.question,
        "answer": card.answer,
        "category": card.category,
        "order_index": card.order_index,
    }


def quiz_question_to_dict(question: QuizQuestion) -> dict:
    return {
        "id": question.id,
        "question": question.question,
        "options": list(question.options),
        "correctAnswer": question.correct_answer,
        "explanation": question.explanation,
        "order_index": question.order_index,
    }


def _is_pdf_upload(file: UploadFile) -> bool:
    if file.content_type == PDF_CONTENT_TYPE:
        return True
    return file.content_type in GENERIC_CONTENT_TYPES and (file.filename or "").lower().endswith(".pdf")


def _error_status(error: PdfLearnError) -> int:
    if isinstance(error, ExtractionError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, UploadInProgressError):
        return status.HTTP_409_CONFLICT
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _document_detail(session: Session, user_id: int, document: Document) -> dict:
    progress = repository.get_progress(session, user_id, document.id)
    return {
        "document": document_to_dict(document),
        "flashcards": [flashcard_to_dict(c) for c in repository.get_flashcards(session, user_id, document.id)],
        "quizQuestions": [quiz_question_to_dict(q) for q in repository.get_quiz_questions(session, user_id, document.id)],
        "progress": summarize_progress(progress) if progress else None,
    }


@router.post("/upload")
@upload_limit()
async def upload_document(
    request: Request,
    file: UploadFile = File(...),
    user_session: UserSession = Depends(get_user_session),
    session: Session = Depends(get_session),
):
    if not _is_pdf_upload(file):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be a PDF")

    data = await file.read()
    if len(data) > MAX_UPLOAD_MB * 1024 * 1024:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File is larger than {MAX_UPLOAD_MB}MB",
        )

    def on_stage(stage: str, progress: int) -> None:
        # Runs in the worker thread; hop back to the event loop for the socket
        try:
            from_thread.run(notify_stage, user_session.user_id, stage, progress)
        except RuntimeError as e:
            logger.warning("stage_notification_skipped", stage=stage, error=str(e))

    pipeline = UploadPipeline(session, user_session, on_stage=on_stage)
    filename = file.filename or "document.pdf"
    try:
        result = await run_in_threadpool(pipeline.run, filename, data)
    except PdfLearnError as e:
        logger.warning("upload_failed", user_id=user_session.user_id, filename=filename, error=e.user_message)
        raise HTTPException(status_code=_error_status(e), detail=e.user_message)

    detail = _document_detail(session, user_session.user_id, result.document)
    detail["source"] = result.content.source
    return detail


@router.get("/processing-status")
def processing_status(user_session: UserSession = Depends(get_user_session)):
    return get_processing_status(user_session.user_id)


@router.get("")
def list_documents(
    search: str | None = None,
    sort: str = Query("date", pattern="^(date|name|size)$"),
    user_session: UserSession = Depends(get_user_session),
    session: Session = Depends(get_session),
):
    return repository.list_documents(session, user_session.user_id, search=search, sort=sort)


@router.get("/in-progress")
def in_progress_documents(
    user_session: UserSession = Depends(get_user_session),
    session: Session = Depends(get_session),
):
    return [
        {"id": document.id, "filename": document.filename, "progress": summarize_progress(progress)}
        for document, progress in repository.list_in_progress(session, user_session.user_id)
    ]


@router.post("/bulk-delete")
def bulk_delete_documents(
    body: BulkDeleteRequest,
    user_session: UserSession = Depends(get_user_session),
    session: Session = Depends(get_session),
):
    deleted = repository.delete_documents(session, user_session.user_id, body.document_ids)
    return {"deleted": deleted, "skipped": [i for i in body.document_ids if i not in deleted]}


@router.get("/{document_id}")
def get_document(
    document_id: int,
    user_session: UserSession = Depends(get_user_session),
    session: Session = Depends(get_session),
):
    document = repository.get_document(session, user_session.user_id, document_id)
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")
    return _document_detail(session, user_session.user_id, document)


@router.delete("/{document_id}")
def delete_document(
    document_id: int,
    user_session: UserSession = Depends(get_user_session),
    session: Session = Depends(get_session),
):
    if not repository.delete_document(session, user_session.user_id, document_id):
        raise HTTPException(status_code=404, detail="Document not found")
    return {"deleted": document_id}
