"""
Upload pipeline tests: stages, failures and the per-user guard
"""
import uuid
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from conftest import PHOTOSYNTHESIS_TEXT, blank_pdf, build_pdf
from pdflearn.errors import ExtractionError, NoExtractableTextError, PdfLearnError, UploadInProgressError
from pdflearn.services import repository
from pdflearn.services.cache import cache
from pdflearn.services.fallback import LocalContentGenerator
from pdflearn.services.pdf_processor import extract_pdf
from pdflearn.services.pipeline import (
    UploadPipeline,
    get_processing_status,
    is_processing,
    processing_guard,
    status_key,
)
from pdflearn.session import UserSession


def _user_session(user):
    return UserSession(
        user_id=user.id,
        email=user.email,
        session_id=uuid.uuid4().hex,
        access_token="unused",
        opened_at=datetime.now(timezone.utc),
    )


class TestExtraction:
    def test_text_pdf(self):
        extracted = extract_pdf(build_pdf(["First page sentence.", "Second page sentence."]), "two.pdf")
        assert extracted.page_count == 2
        assert "First page sentence." in extracted.text
        assert "Second page sentence." in extracted.text
        assert extracted.text.index("First") < extracted.text.index("Second")

    def test_blank_pdf_has_no_text(self):
        with pytest.raises(NoExtractableTextError):
            extract_pdf(blank_pdf(), "scan.pdf")

    @pytest.mark.parametrize("data", [b"", b"this is not a pdf"])
    def test_unreadable_payload(self, data):
        with pytest.raises(ExtractionError):
            extract_pdf(data, "broken.pdf")


class TestUploadPipeline:
    def test_run_reports_every_stage(self, db_session, user):
        stages = []
        pipeline = UploadPipeline(
            db_session,
            _user_session(user),
            generator=LocalContentGenerator(),
            on_stage=lambda stage, progress: stages.append((stage, progress)),
        )
        result = pipeline.run("bio.pdf", build_pdf([PHOTOSYNTHESIS_TEXT]))

        assert stages == [("extracting", 30), ("generating", 60), ("saving", 80), ("complete", 100)]
        assert result.content.source == "local"
        assert result.document.filename == "bio.pdf"
        assert repository.get_progress(db_session, user.id, result.document.id).flashcards_total == len(
            result.content.flashcards
        )
        status = get_processing_status(user.id)
        assert status["stage"] == "complete"
        assert status["is_processing"] is False

    def test_no_generation_without_text(self, db_session, user):
        generator = MagicMock()
        stages = []
        pipeline = UploadPipeline(
            db_session,
            _user_session(user),
            generator=generator,
            on_stage=lambda stage, progress: stages.append(stage),
        )
        with pytest.raises(NoExtractableTextError):
            pipeline.run("scan.pdf", blank_pdf())

        generator.generate.assert_not_called()
        assert stages == ["extracting", "failed"]
        assert repository.list_documents(db_session, user.id) == []
        status = get_processing_status(user.id)
        assert status["stage"] == "failed"
        assert "no extractable text" in status["message"]

    def test_second_upload_is_rejected_while_running(self, db_session, user):
        pipeline = UploadPipeline(db_session, _user_session(user), generator=LocalContentGenerator())
        with processing_guard(user.id):
            assert is_processing(user.id)
            with pytest.raises(UploadInProgressError):
                pipeline.run("bio.pdf", build_pdf([PHOTOSYNTHESIS_TEXT]))
        assert not is_processing(user.id)

    def test_guard_released_after_failure(self, db_session, user):
        pipeline = UploadPipeline(db_session, _user_session(user), generator=LocalContentGenerator())
        with pytest.raises(ExtractionError):
            pipeline.run("broken.pdf", b"garbage")
        assert not is_processing(user.id)

    def test_unexpected_error_is_reported_as_failure(self, db_session, user):
        generator = MagicMock()
        generator.generate.side_effect = RuntimeError("boom")
        stages = []
        pipeline = UploadPipeline(
            db_session,
            _user_session(user),
            generator=generator,
            on_stage=lambda stage, progress: stages.append(stage),
        )
        with pytest.raises(PdfLearnError) as excinfo:
            pipeline.run("bio.pdf", build_pdf([PHOTOSYNTHESIS_TEXT]))

        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert stages == ["extracting", "generating", "failed"]
        status = get_processing_status(user.id)
        assert status["stage"] == "failed"
        assert status["message"] == PdfLearnError.user_message
        assert status["is_processing"] is False
        assert repository.list_documents(db_session, user.id) == []


def test_status_lookup_leaves_cached_entry_untouched(user):
    cache.set(status_key(user.id), {"stage": "saving", "progress": 80})
    assert get_processing_status(user.id)["is_processing"] is False
    assert cache.get(status_key(user.id)) == {"stage": "saving", "progress": 80}
