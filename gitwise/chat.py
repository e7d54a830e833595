import logging
from typing import Any, Optional

import openai

from gitwise.config import Settings
from gitwise.context_builder import build_chat_context
from gitwise.errors import (
    AuthError,
    ChatError,
    ChatTimeoutError,
    ConfigurationError,
    NotAnalyzedError,
    QuotaExceededError,
    ValidationError,
)
from gitwise.orchestrator import validate_repo_url
from gitwise.schemas import AnalysisRecord
from gitwise.store import AnalysisRepository

logger = logging.getLogger(__name__)


def create_chat_client(settings: Settings) -> Optional[openai.AsyncOpenAI]:
    """AsyncOpenAI client for OpenRouter, or None when no key is configured."""
    if not settings.chat_api_key:
        return None
    return openai.AsyncOpenAI(
        api_key=settings.chat_api_key,
        base_url=settings.chat_base_url,
        timeout=settings.request_timeout * 2,
        max_retries=0,
        default_headers={
            "HTTP-Referer": settings.client_url,
            "X-Title": settings.chat_title,
        },
    )


class ChatContextCompiler:
    """Answers one question about an analyzed repository.

    Unlike analysis, chat has no fallback: every upstream failure is
    raised to the caller as a ChatError subtype.
    """

    def __init__(
        self,
        settings: Settings,
        store: AnalysisRepository,
        client: Optional[openai.AsyncOpenAI],
    ):
        self._settings = settings
        self._store = store
        self._client = client

    def compile_context(self, record: AnalysisRecord) -> str:
        return build_chat_context(record, self._settings)

    async def chat(self, repo_url: Any, message: Any, model: Optional[str] = None) -> str:
        url = validate_repo_url(repo_url)
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("Message is required")

        record = self._store.find_by_url(url)
        if record is None:
            raise NotAnalyzedError("Repository not analyzed yet. Please analyze first.")
        if self._client is None:
            raise ConfigurationError("OPENROUTER_API_KEY is not configured")

        model = model or self._settings.chat_model
        logger.info(f"Chat request for {url} - model={model}")
        messages = [
            {"role": "system", "content": self.compile_context(record)},
            {"role": "user", "content": message},
        ]

        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=self._settings.chat_temperature,
                max_tokens=self._settings.chat_max_tokens,
            )
        except openai.AuthenticationError as exc:
            raise AuthError("Invalid API Key.") from exc
        except openai.RateLimitError as exc:
            raise QuotaExceededError("API Quota exceeded. Try again later.") from exc
        except openai.APITimeoutError as exc:
            raise ChatTimeoutError("Request timed out.") from exc
        except openai.OpenAIError as exc:
            logger.warning(f"Chat request failed: {exc}")
            raise ChatError("Failed to get response from AI.") from exc

        if not response.choices or response.choices[0].message.content is None:
            raise ChatError("No response generated from AI")
        return response.choices[0].message.content
