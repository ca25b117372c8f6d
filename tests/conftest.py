# tests/conftest.py
import io
import os
import tempfile
import uuid

# Must be set before pdflearn modules read them at import time
_TEST_DIR = tempfile.mkdtemp()
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ["REDIS_URL"] = "redis://127.0.0.1:1/0"
os.environ.pop("OPENAI_API_KEY", None)

import pytest
from fastapi.testclient import TestClient
from pypdf import PdfWriter
from sqlmodel import Session

from pdflearn.db import engine, init_db
from pdflearn.main import app
from pdflearn.models import User
from pdflearn.auth import get_password_hash

init_db()

PHOTOSYNTHESIS_TEXT = (
    "Photosynthesis is the process by which green plants convert light energy into chemical energy. "
    "Chlorophyll absorbs mostly blue and red light and reflects green light back to the observer. "
    "The Calvin cycle uses carbon dioxide from the air to build sugars inside the chloroplast stroma."
)


def build_pdf(pages):
    """Minimal PDF with one Helvetica text line per entry in each page."""
    body = [None, None, b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>"]
    page_ids = []
    for text in pages:
        ops = ["BT", "/F1 10 Tf", "14 TL", "40 750 Td"]
        for line in text.split("\n"):
            escaped = line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
            ops.append(f"({escaped}) Tj T*")
        ops.append("ET")
        stream = "\n".join(ops).encode("latin-1")
        body.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream")
        content_id = len(body)
        body.append((
            "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            f"/Resources << /Font << /F1 3 0 R >> >> /Contents {content_id} 0 R >>"
        ).encode())
        page_ids.append(len(body))
    body[0] = b"<< /Type /Catalog /Pages 2 0 R >>"
    kids = " ".join(f"{i} 0 R" for i in page_ids)
    body[1] = f"<< /Type /Pages /Kids [{kids}] /Count {len(page_ids)} >>".encode()

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, obj in enumerate(body, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + obj + b"\nendobj\n"
    xref_at = len(out)
    out += b"xref\n0 %d\n0000000000 65535 f \n" % (len(body) + 1)
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(body) + 1, xref_at)
    return bytes(out)


def blank_pdf(pages=1):
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=612, height=792)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db_session():
    with Session(engine) as session:
        yield session


@pytest.fixture
def user(db_session):
    """A fresh user row; emails are unique per test."""
    user = User(
        email=f"student-{uuid.uuid4().hex[:8]}@example.com",
        full_name="Test Student",
        hashed_password=get_password_hash("secret123"),
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def other_user(db_session):
    user = User(
        email=f"other-{uuid.uuid4().hex[:8]}@example.com",
        hashed_password=get_password_hash("secret123"),
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def register(client, email=None, password="secret123"):
    email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
    response = client.post("/auth/register", data={"email": email, "password": password, "full_name": "Test"})
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def auth_headers(client):
    token = register(client)["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def text_pdf():
    return build_pdf([
        "Photosynthesis is the process by which green plants convert light energy into chemical energy.",
        "Chlorophyll absorbs mostly blue and red light and reflects green light back to the observer.",
    ])
