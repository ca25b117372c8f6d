from datetime import datetime, timezone
from typing import List, Optional

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, JSON, UniqueConstraint


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    full_name: str = ""
    hashed_password: str
    created_at: datetime = Field(default_factory=utcnow)


class Document(SQLModel, table=True):
    __tablename__ = "pdfs"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True, ondelete="CASCADE")
    filename: str
    content: str
    page_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Flashcard(SQLModel, table=True):
    __tablename__ = "flashcards"

    id: Optional[int] = Field(default=None, primary_key=True)
    pdf_id: int = Field(foreign_key="pdfs.id", index=True, ondelete="CASCADE")
    user_id: int = Field(foreign_key="users.id", index=True, ondelete="CASCADE")
    question: str
    answer: str
    category: str = Field(default="General")
    order_index: int = 0
    created_at: datetime = Field(default_factory=utcnow)


class QuizQuestion(SQLModel, table=True):
    __tablename__ = "quiz_questions"

    id: Optional[int] = Field(default=None, primary_key=True)
    pdf_id: int = Field(foreign_key="pdfs.id", index=True, ondelete="CASCADE")
    user_id: int = Field(foreign_key="users.id", index=True, ondelete="CASCADE")
    question: str
    options: List[str] = Field(sa_column=Column(JSON, nullable=False))
    correct_answer: int
    explanation: str = ""
    order_index: int = 0
    created_at: datetime = Field(default_factory=utcnow)


class Progress(SQLModel, table=True):
    __tablename__ = "pdf_progress"
    __table_args__ = (UniqueConstraint("user_id", "pdf_document_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True, ondelete="CASCADE")
    pdf_document_id: int = Field(foreign_key="pdfs.id", index=True, ondelete="CASCADE")
    flashcards_total: int = 0
    flashcards_completed: int = 0
    flashcards_viewed: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    quiz_total: int = 0
    quiz_completed: int = 0
    quiz_answered: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    current_flashcard_index: int = 0
    current_quiz_index: int = 0
    last_accessed: datetime = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class AppSetting(SQLModel, table=True):
    __tablename__ = "app_settings"

    id: Optional[int] = Field(default=None, primary_key=True)
    key: str = Field(index=True, unique=True)
    value: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
