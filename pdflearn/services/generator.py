from __future__ import annotations

from typing import Optional

import structlog
from sqlmodel import Session

from pdflearn.errors import CompletionError, ConfigurationError, EmptyContentError, MalformedResponseError
from pdflearn.services.content import ContentGenerator, GeneratedContent
from pdflearn.services.fallback import LocalContentGenerator
from pdflearn.services.llm import CompletionClient, resolve_api_key
from pdflearn.services.monitoring import CONTENT_GENERATION_REQUESTS
from pdflearn.services.parser import parse_generated_content
from pdflearn.services.prompts import CountPolicy, PROMPT_MAX_CHARS, build_prompts

logger = structlog.get_logger()

# Failures that mean "try the next strategy", not "abort the upload"
RECOVERABLE_ERRORS = (ConfigurationError, CompletionError, MalformedResponseError, EmptyContentError)


class CompletionContentGenerator(ContentGenerator):
    name = "completion"

    def __init__(
        self,
        client: CompletionClient,
        policy: Optional[CountPolicy] = None,
        max_chars: int = PROMPT_MAX_CHARS,
    ):
        self.client = client
        self.policy = policy or CountPolicy()
        self.max_chars = max_chars

    def generate(self, text: str, page_count: int = 1) -> GeneratedContent:
        prompts = build_prompts(text, page_count, self.policy, self.max_chars)
        logger.info(
            "completion_generation_started",
            flashcard_target=prompts.flashcard_count,
            quiz_target=prompts.quiz_count,
            truncated=prompts.truncated,
        )
        raw = self.client.complete(prompts.system, prompts.user)
        content = parse_generated_content(raw)
        # Keep the model from overshooting the requested counts
        content.flashcards = content.flashcards[: prompts.flashcard_count]
        content.quiz_questions = content.quiz_questions[: prompts.quiz_count]
        return content


class FallbackContentGenerator(ContentGenerator):
    """Try ``primary``; on a recoverable failure use ``fallback`` instead."""

    def __init__(self, primary: ContentGenerator, fallback: ContentGenerator):
        self.primary = primary
        self.fallback = fallback
        self.name = f"{primary.name}+{fallback.name}"

    def generate(self, text: str, page_count: int = 1) -> GeneratedContent:
        try:
            content = self.primary.generate(text, page_count)
            CONTENT_GENERATION_REQUESTS.labels(strategy=self.primary.name, status="success").inc()
            return content
        except RECOVERABLE_ERRORS as e:
            CONTENT_GENERATION_REQUESTS.labels(strategy=self.primary.name, status="failed").inc()
            logger.warning(
                "content_generation_fallback",
                primary=self.primary.name,
                fallback=self.fallback.name,
                reason=type(e).__name__,
                error=str(e),
            )
        content = self.fallback.generate(text, page_count)
        CONTENT_GENERATION_REQUESTS.labels(strategy=self.fallback.name, status="success").inc()
        return content


def build_content_generator(session: Optional[Session] = None) -> ContentGenerator:
    """Pick the completion generator when a credential is available."""
    local = LocalContentGenerator()
    try:
        api_key = resolve_api_key(session)
    except ConfigurationError:
        logger.info("completion_unavailable", reason="missing_api_key")
        return local
    return FallbackContentGenerator(CompletionContentGenerator(CompletionClient(api_key)), local)
