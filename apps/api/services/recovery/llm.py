"""
Generative collaborator clients.

The intake and substitution flows only need "system instructions + history
+ new utterance -> text". Both providers are wrapped behind TextGenerator so
the orchestrator never touches an SDK directly and tests can pass an
AsyncMock.

Provider selection (RECOVERY_LLM_PROVIDER):
- gemini (default): google-genai, gemini-2.5-flash
- anthropic: AsyncAnthropic messages API
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from anthropic import AsyncAnthropic
from google import genai
from google.genai import types as genai_types

from core.config import settings
from services.recovery.schemas import ConversationMessage

logger = logging.getLogger(__name__)


class GenerationError(Exception):
    """The provider errored, timed out, or was not configured."""


@runtime_checkable
class TextGenerator(Protocol):
    async def generate(
        self,
        system_instructions: str,
        history: Sequence[ConversationMessage],
        utterance: str,
    ) -> str:
        ...


class GeminiTextGenerator:
    """google-genai async client. One generate_content call per turn."""

    provider = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
        timeout_s: Optional[float] = None,
        client: Any = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_AI_API_KEY
        self.model = model or settings.RECOVERY_GEMINI_MODEL
        self.temperature = settings.RECOVERY_LLM_TEMPERATURE if temperature is None else temperature
        self.max_output_tokens = max_output_tokens or settings.RECOVERY_LLM_MAX_OUTPUT_TOKENS
        self.timeout_s = timeout_s or settings.RECOVERY_LLM_TIMEOUT_S
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise GenerationError("GOOGLE_AI_API_KEY is not configured")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @staticmethod
    def build_contents(history: Sequence[ConversationMessage], utterance: str) -> List[genai_types.Content]:
        contents = []
        for msg in history:
            role = "user" if msg.role == "user" else "model"
            contents.append(genai_types.Content(role=role, parts=[genai_types.Part(text=msg.text)]))
        contents.append(genai_types.Content(role="user", parts=[genai_types.Part(text=utterance)]))
        return contents

    async def generate(
        self,
        system_instructions: str,
        history: Sequence[ConversationMessage],
        utterance: str,
    ) -> str:
        client = self._get_client()
        config = genai_types.GenerateContentConfig(
            system_instruction=system_instructions,
            max_output_tokens=self.max_output_tokens,
            temperature=self.temperature,
        )
        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=self.model,
                    contents=self.build_contents(history, utterance),
                    config=config,
                ),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise GenerationError(f"Gemini call timed out after {self.timeout_s}s") from e
        except Exception as e:
            raise GenerationError(f"Gemini call failed: {e}") from e

        text = ""
        if response.candidates:
            candidate = response.candidates[0]
            if candidate.content and candidate.content.parts:
                for part in candidate.content.parts:
                    if getattr(part, "text", None):
                        text += part.text

        usage = getattr(response, "usage_metadata", None)
        logger.info(
            "Gemini generation completed",
            extra={"extra_fields": {
                "model": self.model,
                "input_tokens": getattr(usage, "prompt_token_count", 0) or 0,
                "output_tokens": getattr(usage, "candidates_token_count", 0) or 0,
            }},
        )
        return text


class AnthropicTextGenerator:
    """Anthropic messages API via AsyncAnthropic."""

    provider = "anthropic"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
        timeout_s: Optional[float] = None,
        client: Any = None,
    ):
        self.api_key = api_key if api_key is not None else settings.ANTHROPIC_API_KEY
        self.model = model or settings.RECOVERY_ANTHROPIC_MODEL
        self.temperature = settings.RECOVERY_LLM_TEMPERATURE if temperature is None else temperature
        self.max_output_tokens = max_output_tokens or settings.RECOVERY_LLM_MAX_OUTPUT_TOKENS
        self.timeout_s = timeout_s or settings.RECOVERY_LLM_TIMEOUT_S
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise GenerationError("ANTHROPIC_API_KEY is not configured")
            self._client = AsyncAnthropic(api_key=self.api_key)
        return self._client

    @staticmethod
    def build_messages(history: Sequence[ConversationMessage], utterance: str) -> List[Dict[str, str]]:
        """
        Anthropic requires the first message to be from the user and roles to
        alternate: leading assistant turns are dropped and consecutive turns
        from the same role are merged.
        """
        messages: List[Dict[str, str]] = []
        turns = [(m.role, m.text) for m in history] + [("user", utterance)]
        for role, text in turns:
            if not messages and role != "user":
                continue
            if messages and messages[-1]["role"] == role:
                messages[-1]["content"] += "\n\n" + text
            else:
                messages.append({"role": role, "content": text})
        return messages

    async def generate(
        self,
        system_instructions: str,
        history: Sequence[ConversationMessage],
        utterance: str,
    ) -> str:
        client = self._get_client()
        try:
            response = await asyncio.wait_for(
                client.messages.create(
                    model=self.model,
                    system=system_instructions,
                    messages=self.build_messages(history, utterance),
                    max_tokens=self.max_output_tokens,
                    temperature=self.temperature,
                ),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise GenerationError(f"Anthropic call timed out after {self.timeout_s}s") from e
        except Exception as e:
            raise GenerationError(f"Anthropic call failed: {e}") from e

        text = "".join(
            block.text for block in (response.content or []) if getattr(block, "type", None) == "text"
        )
        usage = getattr(response, "usage", None)
        logger.info(
            "Anthropic generation completed",
            extra={"extra_fields": {
                "model": self.model,
                "input_tokens": getattr(usage, "input_tokens", 0) or 0,
                "output_tokens": getattr(usage, "output_tokens", 0) or 0,
            }},
        )
        return text


def get_text_generator() -> TextGenerator:
    """FastAPI dependency: the configured provider. Overridden in tests."""
    provider = (settings.RECOVERY_LLM_PROVIDER or "gemini").strip().lower()
    if provider == "anthropic":
        return AnthropicTextGenerator()
    if provider != "gemini":
        logger.warning(f"Unknown RECOVERY_LLM_PROVIDER {provider!r}; using gemini")
    return GeminiTextGenerator()
