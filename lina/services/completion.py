"""
Completion Relay: the only code that talks to the model provider.

Every provider failure is converted to UpstreamError with the raw detail kept
for the logs. Provider rate-limit / quota errors set rate_limited=True so the
API can answer "try again later" instead of a generic failure.
"""
import logging
from abc import ABC, abstractmethod
from typing import Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI

from lina.core.config import Settings
from lina.core.errors import UpstreamError
from lina.core.topics import BREVITY_PROMPT

logger = logging.getLogger(__name__)

TEMPERATURE = 0.6
MAX_OUTPUT_TOKENS = 600


class CompletionRelay(ABC):
    provider = "unknown"

    def __init__(self, model: str):
        self.model = model

    @abstractmethod
    async def complete(self, system_prompt: str, user_text: str) -> str:
        """Return the generated reply (non-empty) or raise UpstreamError."""

    @staticmethod
    def _require_text(text: Optional[str], provider: str) -> str:
        text = (text or "").strip()
        if not text:
            raise UpstreamError(detail=f"{provider} returned an empty completion")
        return text


class OpenAIRelay(CompletionRelay):
    provider = "openai"

    def __init__(self, api_key: str, model: str, client: Optional[AsyncOpenAI] = None):
        super().__init__(model)
        self.client = client or AsyncOpenAI(api_key=api_key)

    async def complete(self, system_prompt: str, user_text: str) -> str:
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                temperature=TEMPERATURE,
                max_tokens=MAX_OUTPUT_TOKENS,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "system", "content": BREVITY_PROMPT},
                    {"role": "user", "content": user_text},
                ],
            )
        except APIStatusError as e:
            # 429 covers both request bursts and an exhausted API balance
            raise UpstreamError(
                detail=f"OpenAI {e.status_code}: {e.message}",
                rate_limited=e.status_code == 429,
            ) from e
        except APIConnectionError as e:
            raise UpstreamError(detail=f"OpenAI connection error: {e}") from e
        except APIError as e:
            raise UpstreamError(detail=f"OpenAI error: {e}") from e

        choices = getattr(completion, "choices", None) or []
        text = choices[0].message.content if choices and choices[0].message else None
        return self._require_text(text, self.provider)


class GeminiRelay(CompletionRelay):
    provider = "gemini"

    def __init__(self, api_key: str, model: str, client: Optional[genai.Client] = None):
        super().__init__(model)
        self.client = client or genai.Client(api_key=api_key)

    async def complete(self, system_prompt: str, user_text: str) -> str:
        config = genai_types.GenerateContentConfig(
            system_instruction=[system_prompt, BREVITY_PROMPT],
            temperature=TEMPERATURE,
            max_output_tokens=MAX_OUTPUT_TOKENS,
        )
        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=user_text,
                config=config,
            )
        except genai_errors.APIError as e:
            raise UpstreamError(
                detail=f"Gemini {e.code}: {e.message}",
                rate_limited=e.code == 429,
            ) from e

        return self._require_text(getattr(response, "text", None), self.provider)


def build_relay(settings: Settings) -> CompletionRelay:
    if settings.llm_provider == "gemini":
        return GeminiRelay(settings.gemini_api_key, settings.model)
    return OpenAIRelay(settings.openai_api_key, settings.model)
