import asyncio
import json
import logging
import re

import openai

from gitwise.config import Settings
from gitwise.context_builder import build_analysis_context
from gitwise.prompts import ANALYSIS_SYSTEM_PROMPT, ANALYSIS_USER_TEMPLATE
from gitwise.schemas import RawAnalysisResult, RepositorySnapshot

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```[a-zA-Z]*")


def create_analysis_client(settings: Settings) -> openai.AsyncOpenAI | None:
    """AsyncOpenAI client for the analysis endpoint, or None without a key. Never retries."""
    if not settings.analysis_api_key:
        logger.warning("ANALYSIS_API_KEY is not set; analyses will use fallback content")
        return None
    return openai.AsyncOpenAI(
        api_key=settings.analysis_api_key,
        base_url=settings.analysis_base_url,
        timeout=settings.analysis_timeout,
        max_retries=0,
    )


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def extract_json_object(text: str) -> str | None:
    """Substring from the first '{' to the last '}', or None."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def parse_analysis_text(text: str) -> RawAnalysisResult:
    """Best-effort extraction of a JSON object from model output."""
    candidate = extract_json_object(strip_code_fences(text or ""))
    if candidate is None:
        return RawAnalysisResult(error="no JSON object found in response")
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        return RawAnalysisResult(error=f"invalid JSON: {exc}")
    if not isinstance(data, dict):
        return RawAnalysisResult(error="response JSON is not an object")
    return RawAnalysisResult(payload=data)


class AnalysisRequester:
    """Sends one analysis prompt per snapshot; failures degrade, never raise."""

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None):
        self._settings = settings
        self._client = client

    def build_messages(self, snapshot: RepositorySnapshot) -> list[dict[str, str]]:
        system_prompt = ANALYSIS_SYSTEM_PROMPT.format(
            improvement_count=self._settings.improvement_count
        )
        context = build_analysis_context(snapshot, self._settings)
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": ANALYSIS_USER_TEMPLATE.format(context=context)},
        ]

    async def request(self, snapshot: RepositorySnapshot) -> RawAnalysisResult:
        model = self._settings.analysis_model
        if self._client is None:
            return RawAnalysisResult(error="analysis client not configured")

        logger.info(f"Analysis LLM call - model={model}")
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=model,
                    messages=self.build_messages(snapshot),
                    temperature=self._settings.llm_temperature,
                    max_tokens=self._settings.llm_max_tokens,
                ),
                timeout=self._settings.analysis_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Analysis LLM call exceeded {self._settings.analysis_timeout}s, degrading to fallback"
            )
            return RawAnalysisResult(error="LLM call timed out")
        except openai.OpenAIError as exc:
            logger.warning(f"Analysis LLM call failed, degrading to fallback: {exc}")
            return RawAnalysisResult(error=f"LLM API error: {exc}")

        usage = response.usage
        if usage:
            logger.debug(
                f"LLM token usage - model={model}, "
                f"prompt={usage.prompt_tokens}, completion={usage.completion_tokens}, "
                f"total={usage.total_tokens}"
            )

        if not response.choices:
            logger.warning("Analysis LLM returned no choices")
            return RawAnalysisResult(error="no choices in response")

        raw = response.choices[0].message.content or ""
        logger.debug(f"LLM raw response ({len(raw)} chars)")

        result = parse_analysis_text(raw)
        if not result.usable:
            logger.warning(f"Unusable analysis response: {result.error}")
        else:
            logger.info("Analysis LLM call complete")
        return result
