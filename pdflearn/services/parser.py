"""
Parsing and validation of completion responses.

``extract_json_payload`` holds every heuristic for digging a JSON value out of
a chat reply (code fences, leading prose, trailing chatter). Everything after
that works on plain Python values.
"""
from __future__ import annotations

import json
import re
from numbers import Real
from typing import Any, Dict, List, Optional

from pdflearn.errors import EmptyContentError, MalformedResponseError
from pdflearn.services.content import (
    DEFAULT_CATEGORY,
    GeneratedContent,
    GeneratedFlashcard,
    GeneratedQuizQuestion,
)
from pdflearn.services.pdf_processor import normalize_whitespace
from pdflearn.services.prompts import QUIZ_OPTION_COUNT

MIN_QUESTION_CHARS = 10
MIN_ANSWER_CHARS = 20

_FENCE_RE = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\n?")
_CLOSERS = {"{": "}", "[": "]"}
_QUIZ_KEYS = ("quizQuestions", "questions", "quiz_questions")


def strip_code_fences(raw: str) -> str:
    return _FENCE_RE.sub("", raw).strip()


def extract_json_payload(raw_text: Optional[str]) -> Any:
    """Return the first JSON object/array embedded in ``raw_text``.

    Raises MalformedResponseError when nothing parseable is found.
    """
    if not raw_text or not raw_text.strip():
        raise MalformedResponseError("Empty completion response")

    text = strip_code_fences(raw_text)
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        raise MalformedResponseError("No JSON object or array in completion response")
    start = min(starts)
    end = text.rfind(_CLOSERS[text[start]])
    if end <= start:
        raise MalformedResponseError("Unterminated JSON in completion response")

    try:
        return json.loads(text[start:end + 1])
    except (ValueError, RecursionError) as e:
        raise MalformedResponseError(f"Invalid JSON in completion response: {e}") from e


def _text(value: Any) -> str:
    return normalize_whitespace(value) if isinstance(value, str) else ""


def _option_text(value: Any) -> str:
    # Numeric answers such as 2 or 0.5 are valid options
    if isinstance(value, Real) and not isinstance(value, bool):
        return str(value)
    return _text(value)


def _answer_index(item: Dict[str, Any]) -> Optional[int]:
    value = item.get("correctAnswer", item.get("correct_answer"))
    if isinstance(value, bool) or not isinstance(value, Real):
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    return int(value)


def validate_flashcards(items: Any) -> List[GeneratedFlashcard]:
    cards: List[GeneratedFlashcard] = []
    if not isinstance(items, list):
        return cards
    for item in items:
        if not isinstance(item, dict):
            continue
        question = _text(item.get("question"))
        answer = _text(item.get("answer"))
        if len(question) <= MIN_QUESTION_CHARS or len(answer) <= MIN_ANSWER_CHARS:
            continue
        category = _text(item.get("category")) or DEFAULT_CATEGORY
        cards.append(GeneratedFlashcard(id=len(cards) + 1, question=question, answer=answer, category=category))
    return cards


def validate_quiz_questions(items: Any) -> List[GeneratedQuizQuestion]:
    questions: List[GeneratedQuizQuestion] = []
    if not isinstance(items, list):
        return questions
    for item in items:
        if not isinstance(item, dict):
            continue
        question = _text(item.get("question"))
        options = item.get("options")
        explanation = _text(item.get("explanation"))
        if not question or not explanation:
            continue
        if not isinstance(options, list) or len(options) != QUIZ_OPTION_COUNT:
            continue
        cleaned = [_option_text(o) for o in options]
        if not all(cleaned):
            continue
        index = _answer_index(item)
        if index is None or not 0 <= index < QUIZ_OPTION_COUNT:
            continue
        questions.append(GeneratedQuizQuestion(
            id=len(questions) + 1,
            question=question,
            options=cleaned,
            correct_answer=index,
            explanation=explanation,
        ))
    return questions


def _split_payload(payload: Any):
    if isinstance(payload, dict):
        quiz = next((payload[k] for k in _QUIZ_KEYS if k in payload), [])
        return payload.get("flashcards", []), quiz
    if isinstance(payload, list):
        # Bare array: route each item by its shape
        quiz = [i for i in payload if isinstance(i, dict) and "options" in i]
        cards = [i for i in payload if isinstance(i, dict) and "options" not in i]
        return cards, quiz
    return [], []


def parse_generated_content(raw_text: Optional[str]) -> GeneratedContent:
    """Parse a completion reply into validated flashcards and quiz questions.

    Malformed entries are dropped, never repaired. Raises
    MalformedResponseError if no JSON is found and EmptyContentError if
    nothing survives validation.
    """
    payload = extract_json_payload(raw_text)
    raw_cards, raw_quiz = _split_payload(payload)
    content = GeneratedContent(
        flashcards=validate_flashcards(raw_cards),
        quiz_questions=validate_quiz_questions(raw_quiz),
        source="completion",
    )
    if content.is_empty:
        raise EmptyContentError("Completion response contained no valid flashcards or quiz questions")
    return content
