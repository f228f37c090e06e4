"""
Collaborator client tests. SDK clients are mocked; no network.
"""

import asyncio
from types import SimpleNamespace

import pytest
from unittest.mock import AsyncMock, MagicMock

from core.config import settings
from services.recovery.llm import (
    AnthropicTextGenerator,
    GeminiTextGenerator,
    GenerationError,
    TextGenerator,
    get_text_generator,
)
from tests.recovery_helpers import assistant, user


def _gemini_response(*texts):
    parts = [SimpleNamespace(text=t) for t in texts]
    return SimpleNamespace(
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))],
        usage_metadata=SimpleNamespace(prompt_token_count=10, candidates_token_count=5),
    )


class TestGeminiTextGenerator:
    @pytest.mark.asyncio
    async def test_joins_text_parts(self):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(return_value=_gemini_response("Where ", "does it hurt?"))
        generator = GeminiTextGenerator(api_key="k", client=client)

        text = await generator.generate("system", [user("hi"), assistant("hello")], "my knee")

        assert text == "Where does it hurt?"
        kwargs = client.aio.models.generate_content.await_args.kwargs
        assert kwargs["model"] == settings.RECOVERY_GEMINI_MODEL
        assert kwargs["config"].system_instruction == "system"
        assert [c.role for c in kwargs["contents"]] == ["user", "model", "user"]
        assert kwargs["contents"][-1].parts[0].text == "my knee"

    @pytest.mark.asyncio
    async def test_no_candidates_returns_empty_text(self):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(return_value=SimpleNamespace(candidates=[], usage_metadata=None))
        generator = GeminiTextGenerator(api_key="k", client=client)
        assert await generator.generate("s", [], "u") == ""

    @pytest.mark.asyncio
    async def test_sdk_error_wrapped(self):
        client = MagicMock()
        client.aio.models.generate_content = AsyncMock(side_effect=RuntimeError("quota"))
        generator = GeminiTextGenerator(api_key="k", client=client)
        with pytest.raises(GenerationError, match="quota"):
            await generator.generate("s", [], "u")

    @pytest.mark.asyncio
    async def test_timeout_wrapped(self):
        async def slow(**kwargs):
            await asyncio.sleep(1)

        client = MagicMock()
        client.aio.models.generate_content = slow
        generator = GeminiTextGenerator(api_key="k", client=client, timeout_s=0.01)
        with pytest.raises(GenerationError, match="timed out"):
            await generator.generate("s", [], "u")

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        generator = GeminiTextGenerator(api_key="")
        with pytest.raises(GenerationError, match="GOOGLE_AI_API_KEY"):
            await generator.generate("s", [], "u")


class TestAnthropicTextGenerator:
    def test_messages_start_with_user_and_alternate(self):
        history = [assistant("Hi! What's going on?"), user("my back"), user("it's stiff"), assistant("Since when?")]
        messages = AnthropicTextGenerator.build_messages(history, "a week")
        assert messages == [
            {"role": "user", "content": "my back\n\nit's stiff"},
            {"role": "assistant", "content": "Since when?"},
            {"role": "user", "content": "a week"},
        ]

    @pytest.mark.asyncio
    async def test_returns_text_blocks(self):
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=SimpleNamespace(
            content=[SimpleNamespace(type="text", text="How long has it hurt?")],
            usage=SimpleNamespace(input_tokens=3, output_tokens=4),
        ))
        generator = AnthropicTextGenerator(api_key="k", client=client)

        assert await generator.generate("system", [], "my hip") == "How long has it hurt?"
        kwargs = client.messages.create.await_args.kwargs
        assert kwargs["system"] == "system"
        assert kwargs["max_tokens"] == settings.RECOVERY_LLM_MAX_OUTPUT_TOKENS

    @pytest.mark.asyncio
    async def test_sdk_error_wrapped(self):
        client = MagicMock()
        client.messages.create = AsyncMock(side_effect=RuntimeError("overloaded"))
        generator = AnthropicTextGenerator(api_key="k", client=client)
        with pytest.raises(GenerationError):
            await generator.generate("s", [], "u")


class TestGetTextGenerator:
    def test_default_is_gemini(self, monkeypatch):
        monkeypatch.setattr(settings, "RECOVERY_LLM_PROVIDER", "gemini")
        generator = get_text_generator()
        assert isinstance(generator, GeminiTextGenerator)
        assert isinstance(generator, TextGenerator)

    def test_anthropic_selected(self, monkeypatch):
        monkeypatch.setattr(settings, "RECOVERY_LLM_PROVIDER", "Anthropic")
        assert isinstance(get_text_generator(), AnthropicTextGenerator)

    def test_unknown_provider_falls_back_to_gemini(self, monkeypatch):
        monkeypatch.setattr(settings, "RECOVERY_LLM_PROVIDER", "openai")
        assert isinstance(get_text_generator(), GeminiTextGenerator)
