from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple

PROMPT_MAX_CHARS = int(os.getenv("PROMPT_MAX_CHARS", "8000"))
TRUNCATION_MARKER = "\n\n[Content truncated for processing]"

FLASHCARD_CATEGORIES = (
    "Definition",
    "Concept",
    "Process",
    "Fact",
    "Application",
    "Comparison",
    "Cause & Effect",
)
QUIZ_OPTION_COUNT = 4


@dataclass(frozen=True)
class CountPolicy:
    flashcards_min: int = 8
    flashcards_max: int = 15
    quiz_min: int = 5
    quiz_max: int = 12

    def targets(self, text: str, page_count: int = 1) -> Tuple[int, int]:
        """Scale the number of items with page count and content length."""
        pages = max(page_count, 0)
        flashcards = int(pages * 2) + len(text) // 500
        quiz = int(pages * 1.5) + len(text) // 800
        return (
            min(max(self.flashcards_min, flashcards), self.flashcards_max),
            min(max(self.quiz_min, quiz), self.quiz_max),
        )


@dataclass(frozen=True)
class PromptPair:
    system: str
    user: str
    flashcard_count: int
    quiz_count: int
    truncated: bool


def truncate_content(text: str, max_chars: int = PROMPT_MAX_CHARS) -> Tuple[str, bool]:
    """Cut ``text`` to ``max_chars``.

    A sentence ending inside the last 30% of the window is preferred as the
    cut point; otherwise the window is hard-cut. The marker is appended only
    when something was removed.
    """
    if len(text) <= max_chars:
        return text, False
    window = text[:max_chars]
    last_end = max(window.rfind("."), window.rfind("!"), window.rfind("?"))
    if last_end > max_chars * 0.7:
        window = window[: last_end + 1]
    return window + TRUNCATION_MARKER, True


SYSTEM_PROMPT = """You are an expert educational content creator. You write study material strictly from the document the user provides.

Rules:
- Use only facts stated in the document. Do not add outside knowledge.
- Write complete, grammatically correct sentences with correct spelling and punctuation.
- Every question must be answerable from the document alone.
- Create exactly {flashcard_count} flashcards and exactly {quiz_count} multiple-choice quiz questions.
- Each flashcard has a clear, specific "question", a complete "answer" of at least one full sentence, and a "category" chosen from: {categories}.
- Each quiz question has a "question", exactly {option_count} "options" (plain strings, no letter prefixes), a "correctAnswer" that is the 0-based index of the correct option, and an "explanation" of why that option is correct.
- Distractors must be plausible but clearly wrong according to the document.

Return ONLY a valid JSON object, with no additional text, in exactly this shape:
{{
  "flashcards": [
    {{"question": "What is ...?", "answer": "...", "category": "Definition"}}
  ],
  "quizQuestions": [
    {{
      "question": "Which ...?",
      "options": ["...", "...", "...", "..."],
      "correctAnswer": 0,
      "explanation": "..."
    }}
  ]
}}"""

USER_PROMPT = """Create flashcards and quiz questions from the following document ({page_count} page(s)).

Document:
\"\"\"
{content}
\"\"\""""


def build_prompts(
    text: str,
    page_count: int = 1,
    policy: CountPolicy | None = None,
    max_chars: int = PROMPT_MAX_CHARS,
) -> PromptPair:
    policy = policy or CountPolicy()
    content, truncated = truncate_content(text.strip(), max_chars)
    flashcard_count, quiz_count = policy.targets(content, page_count)
    system = SYSTEM_PROMPT.format(
        flashcard_count=flashcard_count,
        quiz_count=quiz_count,
        categories=", ".join(FLASHCARD_CATEGORIES),
        option_count=QUIZ_OPTION_COUNT,
    )
    user = USER_PROMPT.format(page_count=page_count, content=content)
    return PromptPair(
        system=system,
        user=user,
        flashcard_count=flashcard_count,
        quiz_count=quiz_count,
        truncated=truncated,
    )
