"""
Upload pipeline: extract -> generate -> save.

One pipeline per user at a time; a second upload while one is running is
rejected rather than queued.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Optional, Set

import structlog
from sqlmodel import Session

from pdflearn.errors import PdfLearnError, UploadInProgressError
from pdflearn.models import Document
from pdflearn.services.cache import cache
from pdflearn.services.content import ContentGenerator, GeneratedContent
from pdflearn.services.generator import build_content_generator
from pdflearn.services.logging import log_performance
from pdflearn.services.monitoring import PDF_UPLOADS
from pdflearn.services.pdf_processor import ExtractedPdf, extract_pdf
from pdflearn.services.repository import save_generated_document
from pdflearn.session import UserSession

logger = structlog.get_logger()

STAGE_PROGRESS = {
    "extracting": 30,
    "generating": 60,
    "saving": 80,
    "complete": 100,
}
STATUS_TTL_SECONDS = 3600

StageCallback = Callable[[str, int], None]

_in_flight: Set[int] = set()
_in_flight_lock = threading.Lock()


@contextmanager
def processing_guard(user_id: int):
    with _in_flight_lock:
        if user_id in _in_flight:
            raise UploadInProgressError()
        _in_flight.add(user_id)
    try:
        yield
    finally:
        with _in_flight_lock:
            _in_flight.discard(user_id)


def is_processing(user_id: int) -> bool:
    with _in_flight_lock:
        return user_id in _in_flight


def status_key(user_id: int) -> str:
    return f"processing:{user_id}"


def get_processing_status(user_id: int) -> dict:
    # Copy so the in-memory cache entry is not mutated
    status = dict(cache.get(status_key(user_id)) or {"stage": "idle", "progress": 0})
    status["is_processing"] = is_processing(user_id)
    return status


@dataclass
class UploadResult:
    document: Document
    extracted: ExtractedPdf
    content: GeneratedContent


class UploadPipeline:
    def __init__(
        self,
        session: Session,
        user_session: UserSession,
        generator: Optional[ContentGenerator] = None,
        on_stage: Optional[StageCallback] = None,
    ):
        self.session = session
        self.user_session = user_session
        self.generator = generator
        self.on_stage = on_stage

    def _report(self, stage: str, filename: str, message: Optional[str] = None) -> None:
        progress = STAGE_PROGRESS.get(stage, 0)
        status = {"stage": stage, "progress": progress, "filename": filename}
        if message:
            status["message"] = message
        cache.set(status_key(self.user_session.user_id), status, expire=STATUS_TTL_SECONDS)
        logger.info("upload_stage", user_id=self.user_session.user_id, stage=stage, progress=progress)
        if self.on_stage is not None:
            self.on_stage(stage, progress)

    @log_performance("extract")
    def extract(self, filename: str, data: bytes) -> ExtractedPdf:
        return extract_pdf(data, filename)

    @log_performance("generate")
    def generate(self, extracted: ExtractedPdf) -> GeneratedContent:
        generator = self.generator or build_content_generator(self.session)
        return generator.generate(extracted.text, extracted.page_count)

    @log_performance("save")
    def save(self, extracted: ExtractedPdf, content: GeneratedContent) -> Document:
        return save_generated_document(self.session, self.user_session.user_id, extracted, content)

    def run(self, filename: str, data: bytes) -> UploadResult:
        with processing_guard(self.user_session.user_id):
            try:
                self._report("extracting", filename)
                extracted = self.extract(filename, data)

                self._report("generating", filename)
                content = self.generate(extracted)

                self._report("saving", filename)
                document = self.save(extracted, content)
            except PdfLearnError as e:
                PDF_UPLOADS.labels(status="failed").inc()
                self._report("failed", filename, message=e.user_message)
                raise
            except Exception as e:
                logger.exception("upload_unexpected_error", user_id=self.user_session.user_id, filename=filename)
                PDF_UPLOADS.labels(status="failed").inc()
                error = PdfLearnError()
                self._report("failed", filename, message=error.user_message)
                raise error from e

            PDF_UPLOADS.labels(status="success").inc()
            self._report("complete", filename)
            return UploadResult(document=document, extracted=extracted, content=content)
