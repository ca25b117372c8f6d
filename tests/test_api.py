"""
Integration tests for API endpoints
"""
from unittest.mock import MagicMock, patch

import pytest
from starlette.websockets import WebSocketDisconnect

from conftest import PHOTOSYNTHESIS_TEXT, blank_pdf, build_pdf, register
from pdflearn.errors import PdfLearnError


def _upload(client, headers, data, filename="bio.pdf", content_type="application/pdf"):
    return client.post("/documents/upload", files={"file": (filename, data, content_type)}, headers=headers)


class TestHealthEndpoints:
    def test_health_check(self, client):
        """Test health check endpoint"""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data
        assert data["checks"]["completion"]["mode"] == "local"
        assert data["checks"]["cache"]["backend"] == "memory"

    def test_metrics_endpoint(self, client):
        """Test metrics endpoint"""
        client.get("/health")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "http_requests_total" in response.text

    def test_index(self, client):
        assert client.get("/").json()["name"] == "PDF Learn"


class TestUpload:
    def test_upload_without_api_key_uses_local_generator(self, client, auth_headers):
        response = _upload(client, auth_headers, build_pdf([PHOTOSYNTHESIS_TEXT]))
        assert response.status_code == 200, response.text
        body = response.json()

        assert body["source"] == "local"
        assert body["document"]["filename"] == "bio.pdf"
        assert body["document"]["page_count"] == 1
        assert body["flashcards"][0]["question"] == "What is Photosynthesis?"
        assert all(len(q["options"]) == 4 for q in body["quizQuestions"])
        assert body["progress"]["flashcards_total"] == len(body["flashcards"])
        assert body["progress"]["state"] == "not_started"

        status = client.get("/documents/processing-status", headers=auth_headers).json()
        assert status["stage"] == "complete"
        assert status["progress"] == 100

    def test_blank_pdf_is_rejected(self, client, auth_headers):
        response = _upload(client, auth_headers, blank_pdf(), filename="scan.pdf")
        assert response.status_code == 400
        assert "no extractable text" in response.json()["detail"]
        assert client.get("/documents", headers=auth_headers).json() == []

    def test_non_pdf_is_rejected(self, client, auth_headers):
        response = _upload(client, auth_headers, b"hello", filename="notes.txt", content_type="text/plain")
        assert response.status_code == 400

    def test_unexpected_failure_returns_readable_message(self, client, auth_headers):
        generator = MagicMock()
        generator.generate.side_effect = RuntimeError("boom")
        with patch("pdflearn.services.pipeline.build_content_generator", return_value=generator):
            response = _upload(client, auth_headers, build_pdf([PHOTOSYNTHESIS_TEXT]))

        assert response.status_code == 500
        assert response.json() == {"detail": PdfLearnError.user_message}
        status = client.get("/documents/processing-status", headers=auth_headers).json()
        assert status["stage"] == "failed"

    def test_requires_authentication(self, client):
        assert _upload(client, {}, build_pdf([PHOTOSYNTHESIS_TEXT])).status_code == 401


class TestLibrary:
    def test_list_get_and_delete(self, client, auth_headers):
        document_id = _upload(client, auth_headers, build_pdf([PHOTOSYNTHESIS_TEXT])).json()["document"]["id"]

        library = client.get("/documents", headers=auth_headers).json()
        assert [d["id"] for d in library] == [document_id]
        assert library[0]["flashcard_count"] > 0

        detail = client.get(f"/documents/{document_id}", headers=auth_headers)
        assert detail.status_code == 200
        assert detail.json()["document"]["content"]

        assert client.delete(f"/documents/{document_id}", headers=auth_headers).status_code == 200
        assert client.get(f"/documents/{document_id}", headers=auth_headers).status_code == 404
        assert client.get("/documents", headers=auth_headers).json() == []

    def test_other_users_cannot_see_or_delete(self, client, auth_headers):
        document_id = _upload(client, auth_headers, build_pdf([PHOTOSYNTHESIS_TEXT])).json()["document"]["id"]
        other = {"Authorization": f"Bearer {register(client)['access_token']}"}

        assert client.get(f"/documents/{document_id}", headers=other).status_code == 404
        assert client.delete(f"/documents/{document_id}", headers=other).status_code == 404
        assert client.get("/documents", headers=other).json() == []
        assert client.get(f"/documents/{document_id}", headers=auth_headers).status_code == 200

    def test_bulk_delete(self, client, auth_headers):
        first = _upload(client, auth_headers, build_pdf([PHOTOSYNTHESIS_TEXT])).json()["document"]["id"]
        second = _upload(client, auth_headers, build_pdf([PHOTOSYNTHESIS_TEXT]), filename="b.pdf").json()["document"]["id"]

        response = client.post(
            "/documents/bulk-delete", json={"document_ids": [first, second, 999999]}, headers=auth_headers
        )
        assert response.json() == {"deleted": [first, second], "skipped": [999999]}

    def test_invalid_sort(self, client, auth_headers):
        assert client.get("/documents?sort=random", headers=auth_headers).status_code == 422


class TestProgressEndpoints:
    def test_view_and_answer(self, client, auth_headers):
        body = _upload(client, auth_headers, build_pdf([PHOTOSYNTHESIS_TEXT])).json()
        document_id = body["document"]["id"]
        card = body["flashcards"][1]
        question = body["quizQuestions"][0]
        base = f"/documents/{document_id}/progress"

        viewed = client.post(f"{base}/flashcards/{card['id']}/viewed", headers=auth_headers).json()
        assert viewed["flashcards_completed"] == 1
        assert viewed["current_flashcard_index"] == 1
        assert viewed["state"] == "in_progress"

        answered = client.post(f"{base}/quiz/{question['id']}/answered", headers=auth_headers).json()
        assert answered["quiz_completed"] == 1

        in_progress = client.get("/documents/in-progress", headers=auth_headers).json()
        assert [d["id"] for d in in_progress] == [document_id]

    def test_patch_clamps_values(self, client, auth_headers):
        body = _upload(client, auth_headers, build_pdf([PHOTOSYNTHESIS_TEXT])).json()
        base = f"/documents/{body['document']['id']}/progress"

        response = client.patch(
            base,
            json={"flashcards_completed": 500, "current_quiz_index": 99, "quiz_answered": ["999999"]},
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["flashcards_completed"] == len(body["flashcards"])
        assert data["current_quiz_index"] == len(body["quizQuestions"]) - 1
        assert data["quiz_answered"] == []

    def test_unknown_flashcard(self, client, auth_headers):
        body = _upload(client, auth_headers, build_pdf([PHOTOSYNTHESIS_TEXT])).json()
        url = f"/documents/{body['document']['id']}/progress/flashcards/999999/viewed"
        assert client.post(url, headers=auth_headers).status_code == 404


class TestWebSocket:
    def test_rejects_missing_token(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws?token=bad") as websocket:
                websocket.receive_text()

    def test_accepts_session_token(self, client):
        token = register(client)["access_token"]
        with client.websocket_connect(f"/ws?token={token}") as websocket:
            assert websocket is not None
