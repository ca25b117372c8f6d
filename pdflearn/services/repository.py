"""
Ownership-filtered persistence for documents, learning materials and progress
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from pdflearn.errors import PersistenceError
from pdflearn.models import Document, Flashcard, Progress, QuizQuestion
from pdflearn.services.content import GeneratedContent
from pdflearn.services.pdf_processor import ExtractedPdf

logger = structlog.get_logger()


def _commit(session: Session, step: str, **context) -> None:
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("persistence_failed", step=step, error=str(e), **context)
        raise PersistenceError() from e


def save_generated_document(
    session: Session,
    user_id: int,
    extracted: ExtractedPdf,
    content: GeneratedContent,
) -> Document:
    """Store the document, its flashcards, quiz questions and initial progress.

    Four separate commits: a failure after the first one leaves the document
    row behind without materials.
    """
    document = Document(
        user_id=user_id,
        filename=extracted.filename,
        content=extracted.text,
        page_count=extracted.page_count,
    )
    session.add(document)
    _commit(session, "document", user_id=user_id, filename=extracted.filename)
    session.refresh(document)

    try:
        session.add_all([
            Flashcard(
                pdf_id=document.id,
                user_id=user_id,
                question=card.question,
                answer=card.answer,
                category=card.category,
                order_index=index,
            )
            for index, card in enumerate(content.flashcards)
        ])
        _commit(session, "flashcards", document_id=document.id)

        session.add_all([
            QuizQuestion(
                pdf_id=document.id,
                user_id=user_id,
                question=q.question,
                options=list(q.options),
                correct_answer=q.correct_answer,
                explanation=q.explanation,
                order_index=index,
            )
            for index, q in enumerate(content.quiz_questions)
        ])
        _commit(session, "quiz_questions", document_id=document.id)

        session.add(Progress(
            user_id=user_id,
            pdf_document_id=document.id,
            flashcards_total=len(content.flashcards),
            quiz_total=len(content.quiz_questions),
        ))
        _commit(session, "progress", document_id=document.id)
    except PersistenceError:
        logger.warning("orphaned_document", document_id=document.id, user_id=user_id)
        raise

    logger.info(
        "document_saved",
        document_id=document.id,
        user_id=user_id,
        flashcards=len(content.flashcards),
        quiz_questions=len(content.quiz_questions),
        source=content.source,
    )
    return document


def get_document(session: Session, user_id: int, document_id: int) -> Optional[Document]:
    return session.exec(
        select(Document).where(Document.id == document_id, Document.user_id == user_id)
    ).first()


def get_flashcards(session: Session, user_id: int, document_id: int) -> List[Flashcard]:
    return list(session.exec(
        select(Flashcard)
        .where(Flashcard.pdf_id == document_id, Flashcard.user_id == user_id)
        .order_by(Flashcard.order_index)
    ).all())


def get_quiz_questions(session: Session, user_id: int, document_id: int) -> List[QuizQuestion]:
    return list(session.exec(
        select(QuizQuestion)
        .where(QuizQuestion.pdf_id == document_id, QuizQuestion.user_id == user_id)
        .order_by(QuizQuestion.order_index)
    ).all())


def get_progress(session: Session, user_id: int, document_id: int) -> Optional[Progress]:
    return session.exec(
        select(Progress).where(Progress.user_id == user_id, Progress.pdf_document_id == document_id)
    ).first()


def save_progress(session: Session, progress: Progress) -> Progress:
    session.add(progress)
    _commit(session, "progress_update", document_id=progress.pdf_document_id)
    session.refresh(progress)
    return progress


def _count_by_document(session: Session, model, document_ids: List[int]) -> Dict[int, int]:
    if not document_ids:
        return {}
    rows = session.exec(
        select(model.pdf_id, func.count(model.id))
        .where(model.pdf_id.in_(document_ids))
        .group_by(model.pdf_id)
    ).all()
    return {pdf_id: count for pdf_id, count in rows}


def list_documents(
    session: Session,
    user_id: int,
    search: Optional[str] = None,
    sort: str = "date",
) -> List[dict]:
    """Library listing with flashcard/quiz counts per document."""
    query = select(Document).where(Document.user_id == user_id)
    if search:
        query = query.where(func.lower(Document.filename).contains(search.lower()))
    if sort == "name":
        query = query.order_by(func.lower(Document.filename))
    elif sort == "size":
        query = query.order_by(func.length(Document.content).desc())
    else:
        query = query.order_by(Document.created_at.desc(), Document.id.desc())
    documents = session.exec(query).all()

    ids = [d.id for d in documents]
    flashcard_counts = _count_by_document(session, Flashcard, ids)
    quiz_counts = _count_by_document(session, QuizQuestion, ids)
    return [
        {
            "id": d.id,
            "filename": d.filename,
            "page_count": d.page_count,
            "content_length": len(d.content),
            "created_at": d.created_at.isoformat(),
            "updated_at": d.updated_at.isoformat(),
            "flashcard_count": flashcard_counts.get(d.id, 0),
            "quiz_count": quiz_counts.get(d.id, 0),
        }
        for d in documents
    ]


def list_in_progress(session: Session, user_id: int) -> List[tuple]:
    """(document, progress) pairs the user has started but not finished."""
    rows = session.exec(
        select(Document, Progress)
        .join(Progress, Progress.pdf_document_id == Document.id)
        .where(Document.user_id == user_id, Progress.user_id == user_id)
        .order_by(Progress.last_accessed.desc())
    ).all()
    in_progress = []
    for document, progress in rows:
        done = progress.flashcards_completed + progress.quiz_completed
        total = progress.flashcards_total + progress.quiz_total
        if 0 < done < total:
            in_progress.append((document, progress))
    return in_progress


def delete_document(session: Session, user_id: int, document_id: int) -> bool:
    """Delete a document and everything hanging off it.

    Returns False without touching anything when the user does not own it.
    """
    document = get_document(session, user_id, document_id)
    if document is None:
        logger.warning("document_delete_rejected", document_id=document_id, user_id=user_id)
        return False
    dependents = [
        *session.exec(select(Flashcard).where(Flashcard.pdf_id == document_id)).all(),
        *session.exec(select(QuizQuestion).where(QuizQuestion.pdf_id == document_id)).all(),
        *session.exec(select(Progress).where(Progress.pdf_document_id == document_id)).all(),
    ]
    for row in dependents:
        session.delete(row)
    session.flush()
    session.delete(document)
    _commit(session, "delete", document_id=document_id)
    logger.info("document_deleted", document_id=document_id, user_id=user_id)
    return True


def delete_documents(session: Session, user_id: int, document_ids: Iterable[int]) -> List[int]:
    return [doc_id for doc_id in dict.fromkeys(document_ids) if delete_document(session, user_id, doc_id)]
