"""
Generated study material and the generator capability
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List

DEFAULT_CATEGORY = "General"


@dataclass
class GeneratedFlashcard:
    id: int
    question: str
    answer: str
    category: str = DEFAULT_CATEGORY

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "question": self.question, "answer": self.answer, "category": self.category}


@dataclass
class GeneratedQuizQuestion:
    id: int
    question: str
    options: List[str]
    correct_answer: int
    explanation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "options": list(self.options),
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
        }


@dataclass
class GeneratedContent:
    flashcards: List[GeneratedFlashcard] = field(default_factory=list)
    quiz_questions: List[GeneratedQuizQuestion] = field(default_factory=list)
    source: str = "completion"

    @property
    def is_empty(self) -> bool:
        return not self.flashcards and not self.quiz_questions

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flashcards": [c.to_dict() for c in self.flashcards],
            "quizQuestions": [q.to_dict() for q in self.quiz_questions],
            "source": self.source,
        }


class ContentGenerator(ABC):
    """Anything that turns document text into flashcards and quiz questions."""

    name = "base"

    @abstractmethod
    def generate(self, text: str, page_count: int = 1) -> GeneratedContent:
        ...
