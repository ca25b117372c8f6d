from __future__ import annotations

import os
from typing import Optional

import structlog
from openai import OpenAI, OpenAIError
from sqlmodel import Session, select

from pdflearn.errors import CompletionError, ConfigurationError
from pdflearn.models import AppSetting

logger = structlog.get_logger()

OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_TEMPERATURE = float(os.getenv("OPENAI_TEMPERATURE", "0.2"))
OPENAI_MAX_TOKENS = int(os.getenv("OPENAI_MAX_TOKENS", "3000"))

API_KEY_SETTING = "OPENAI_API_KEY"
PLACEHOLDER_API_KEY = "your-openai-api-key-here"


def resolve_api_key(session: Optional[Session] = None) -> str:
    """Return the completion credential from the environment or the settings table."""
    api_key = os.getenv("OPENAI_API_KEY")
    if api_key:
        return api_key
    if session is not None:
        setting = session.exec(select(AppSetting).where(AppSetting.key == API_KEY_SETTING)).first()
        if setting and setting.value and setting.value != PLACEHOLDER_API_KEY:
            return setting.value
    raise ConfigurationError("OPENAI_API_KEY not set")


class CompletionClient:
    """Single-attempt chat completion call with fixed parameters."""

    def __init__(
        self,
        api_key: str,
        model: str = OPENAI_MODEL,
        temperature: float = OPENAI_TEMPERATURE,
        max_tokens: int = OPENAI_MAX_TOKENS,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        # One attempt only; failures go straight to the local generator
        self._client = OpenAI(api_key=api_key, max_retries=0)

    def complete(self, system: str, user: str) -> str:
        try:
            rsp = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            logger.warning("completion_request_failed", model=self.model, error=str(e))
            raise CompletionError(f"Completion request failed: {e}") from e

        content = rsp.choices[0].message.content if rsp.choices else None
        if not content or not content.strip():
            raise CompletionError("Completion returned an empty response")
        logger.info("completion_received", model=self.model, chars=len(content))
        return content
