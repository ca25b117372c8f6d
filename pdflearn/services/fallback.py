from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

import structlog

from pdflearn.errors import EmptyContentError
from pdflearn.services.content import (
    ContentGenerator,
    GeneratedContent,
    GeneratedFlashcard,
    GeneratedQuizQuestion,
)
from pdflearn.services.pdf_processor import normalize_whitespace

logger = structlog.get_logger()

SENTENCE_SPLIT_RE = re.compile(r"[.!?]+(?:\s+|$)")
DEFINITION_RE = re.compile(r"^(?:(?:The|A|An)\s+)?([A-Z][\w\-]*(?:\s+[\w\-]+){0,5}?)\s+(?:is|are)\s+(.{10,})$")
_ARTICLE = r"(?:(?:The|A|An)\s+)?"


@dataclass(frozen=True)
class RelationPattern:
    regex: re.Pattern
    question: str
    category: str


# Tried before the "X is Y" definition shape, which would otherwise swallow them
LEADING_PATTERNS = (
    RelationPattern(
        re.compile(
            rf"^{_ARTICLE}(?P<subject>.{{3,79}}?)\s+(?:can be used for|is used to|is used for|serves to|helps to)"
            r"\s+(?P<answer>.{16,})$",
            re.IGNORECASE,
        ),
        "What is {subject} used for?",
        "Application",
    ),
    RelationPattern(
        re.compile(
            rf"^{_ARTICLE}(?P<subject>.{{3,59}}?)\s+(?:is different from|differs from|contrasts with)"
            r"\s+(?P<other>.+?)\s+because\s+(?P<answer>.{16,})$",
            re.IGNORECASE,
        ),
        "How does {subject} differ from {other}?",
        "Comparison",
    ),
)
TRAILING_PATTERNS = (
    RelationPattern(
        re.compile(
            rf"^{_ARTICLE}(?P<subject>.{{3,79}}?)\s+(?:involves|includes|consists of|comprises|contains)"
            r"\s+(?P<answer>.{21,})$",
            re.IGNORECASE,
        ),
        "What does {subject} involve?",
        "Process",
    ),
    RelationPattern(
        re.compile(
            r"^(?P<subject>.{3,79}?)\s+(?:causes|results in|leads to|produces|creates)\s+(?P<answer>.{16,})$",
            re.IGNORECASE,
        ),
        "What does {subject} cause?",
        "Cause & Effect",
    ),
    RelationPattern(
        re.compile(r"^(?:Unlike|While|Whereas)\s+(?P<subject>.{3,79}?),\s+(?P<answer>.{16,})$", re.IGNORECASE),
        "How does this differ from {subject}?",
        "Comparison",
    ),
)

SIGNIFICANCE_SENTENCE = "This is a key idea the document uses to explain its topic."
GENERIC_DISTRACTORS = (
    "The document does not discuss this topic.",
    "The document states the opposite of this.",
    "None of the statements are supported by the document.",
)
SUMMARY_CHARS = 500


def split_sentences(text: str, min_length: int = 50) -> List[str]:
    units = (normalize_whitespace(u) for u in SENTENCE_SPLIT_RE.split(text or ""))
    return [u for u in units if len(u) >= min_length]


def _capitalize(value: str) -> str:
    return value[:1].upper() + value[1:]


def _match_relation(patterns, sentence: str) -> Optional[Tuple[str, str, str, str]]:
    """Return (question, answer, category, subject) for the first matching pattern."""
    for pattern in patterns:
        match = pattern.regex.match(sentence)
        if match:
            parts = {key: value.strip() for key, value in match.groupdict().items()}
            return (
                pattern.question.format(**parts),
                f"{_capitalize(parts['answer'])}.",
                pattern.category,
                parts["subject"],
            )
    return None


class LocalContentGenerator(ContentGenerator):
    """Regex/sentence heuristic used when the completion path is unavailable.

    Produces at most ``max_items`` flashcards and quiz questions. Quality is
    intentionally modest; the point is that the user still gets something.
    """

    name = "local"

    def __init__(self, max_items: int = 5, min_sentence_length: int = 50):
        self.max_items = max_items
        self.min_sentence_length = min_sentence_length

    def generate(self, text: str, page_count: int = 1) -> GeneratedContent:
        source = normalize_whitespace(text)
        if not source:
            raise EmptyContentError("No text available for local generation")

        flashcards: List[GeneratedFlashcard] = []
        quiz: List[GeneratedQuizQuestion] = []
        for sentence in split_sentences(source, self.min_sentence_length)[: self.max_items]:
            relation = _match_relation(LEADING_PATTERNS, sentence)
            definition = None if relation else DEFINITION_RE.match(sentence)
            if relation is None and definition is None:
                relation = _match_relation(TRAILING_PATTERNS, sentence)

            if definition:
                term, predicate = definition.group(1).strip(), definition.group(2).strip()
                flashcards.append(GeneratedFlashcard(
                    id=len(flashcards) + 1,
                    question=f"What is {term}?",
                    answer=f"{_capitalize(predicate)}. {SIGNIFICANCE_SENTENCE}",
                    category="Definition",
                ))
                question = f"Which statement about {term} is supported by the document?"
            elif relation:
                card_question, answer, category, subject = relation
                flashcards.append(GeneratedFlashcard(
                    id=len(flashcards) + 1,
                    question=card_question,
                    answer=answer,
                    category=category,
                ))
                question = f"Which statement about {subject} is supported by the document?"
            else:
                lead = " ".join(sentence.split()[:6])
                flashcards.append(GeneratedFlashcard(
                    id=len(flashcards) + 1,
                    question=f"What does the document say about \"{lead}...\"?",
                    answer=f"{sentence}.",
                    category="Concept",
                ))
                question = "Which statement is supported by the document?"

            quiz.append(GeneratedQuizQuestion(
                id=len(quiz) + 1,
                question=question,
                options=[f"{sentence}.", *GENERIC_DISTRACTORS],
                correct_answer=0,
                explanation=f"The document states: \"{sentence}.\"",
            ))

        if not flashcards:
            flashcards.append(GeneratedFlashcard(
                id=1,
                question="What is the main content of this document?",
                answer=source[:SUMMARY_CHARS],
                category="Summary",
            ))

        logger.info("local_content_generated", flashcards=len(flashcards), quiz_questions=len(quiz))
        return GeneratedContent(flashcards=flashcards, quiz_questions=quiz, source="local")
