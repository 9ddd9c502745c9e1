from types import SimpleNamespace
from unittest.mock import AsyncMock

import anthropic
import httpx
import pytest

from podscribe.errors import ReconciliationError
from podscribe.language_model import (
    MAX_OUTPUT_TOKENS,
    ChatLanguageModel,
    ClaudeLanguageModel,
    create_language_model,
)

_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _message(*texts: str) -> SimpleNamespace:
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=t) for t in texts],
        stop_reason="end_turn",
        usage=SimpleNamespace(
            input_tokens=1200,
            output_tokens=300,
            cache_creation_input_tokens=None,
            cache_read_input_tokens=1000,
        ),
    )


def _chat_response(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestClaudeLanguageModel:
    async def test_system_prompt_is_cached(self) -> None:
        model = ClaudeLanguageModel(model="claude-sonnet-4-5", api_key="test-key")
        create = AsyncMock(return_value=_message("  Dober dan.  "))
        model._client.messages.create = create  # type: ignore[method-assign]

        result = await model.complete("system rules", "user text")

        assert result == "Dober dan."
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "claude-sonnet-4-5"
        assert kwargs["max_tokens"] == MAX_OUTPUT_TOKENS
        assert kwargs["system"] == [
            {"type": "text", "text": "system rules", "cache_control": {"type": "ephemeral"}}
        ]
        assert kwargs["messages"] == [{"role": "user", "content": "user text"}]

    async def test_caching_can_be_disabled(self) -> None:
        model = ClaudeLanguageModel(model="claude-sonnet-4-5", api_key="test-key")
        create = AsyncMock(return_value=_message("ok"))
        model._client.messages.create = create  # type: ignore[method-assign]

        await model.complete("system", "user", cache_system=False)

        assert create.await_args.kwargs["system"] == [{"type": "text", "text": "system"}]

    async def test_joins_text_blocks(self) -> None:
        model = ClaudeLanguageModel(model="claude-sonnet-4-5", api_key="test-key")
        model._client.messages.create = AsyncMock(return_value=_message("first", "second"))  # type: ignore[method-assign]

        assert await model.complete("s", "u") == "first\nsecond"

    async def test_transient_errors_retried_then_wrapped(self) -> None:
        model = ClaudeLanguageModel(model="claude-sonnet-4-5", api_key="test-key", max_attempts=2)
        create = AsyncMock(side_effect=anthropic.APIConnectionError(request=_REQUEST))
        model._client.messages.create = create  # type: ignore[method-assign]

        with pytest.raises(ReconciliationError, match="failed after 2 attempts"):
            await model.complete("s", "u")

        assert create.await_count == 2

    @pytest.mark.parametrize(
        ("error_cls", "status"),
        [
            (anthropic.OverloadedError, 529),
            (anthropic.ServiceUnavailableError, 503),
            (anthropic.DeadlineExceededError, 504),
        ],
    )
    async def test_overloaded_and_unavailable_are_retried(
        self, error_cls: type[anthropic.APIStatusError], status: int
    ) -> None:
        model = ClaudeLanguageModel(model="claude-sonnet-4-5", api_key="test-key", max_attempts=3)
        error = error_cls("overloaded", response=httpx.Response(status, request=_REQUEST), body=None)
        create = AsyncMock(side_effect=[error, error, _message("Recovered.")])
        model._client.messages.create = create  # type: ignore[method-assign]

        assert await model.complete("s", "u") == "Recovered."
        assert create.await_count == 3

    async def test_overloaded_exhausts_retries(self) -> None:
        model = ClaudeLanguageModel(model="claude-sonnet-4-5", api_key="test-key", max_attempts=3)
        error = anthropic.OverloadedError(
            "overloaded", response=httpx.Response(529, request=_REQUEST), body=None
        )
        create = AsyncMock(side_effect=error)
        model._client.messages.create = create  # type: ignore[method-assign]

        with pytest.raises(ReconciliationError, match="failed after 3 attempts"):
            await model.complete("s", "u")

        assert create.await_count == 3

    async def test_permanent_errors_wrapped_without_retry(self) -> None:
        model = ClaudeLanguageModel(model="claude-sonnet-4-5", api_key="test-key")
        error = anthropic.BadRequestError(
            "prompt is too long", response=httpx.Response(400, request=_REQUEST), body=None
        )
        create = AsyncMock(side_effect=error)
        model._client.messages.create = create  # type: ignore[method-assign]

        with pytest.raises(ReconciliationError, match="prompt is too long"):
            await model.complete("s", "u")

        assert create.await_count == 1


class TestChatLanguageModel:
    async def test_sends_system_and_user_messages(self) -> None:
        model = ChatLanguageModel(
            model="gpt-4.1", base_url="https://api.openai.com/v1", api_key="test-key"
        )
        create = AsyncMock(return_value=_chat_response("  Result.\n"))
        model._client.chat.completions.create = create  # type: ignore[method-assign]

        result = await model.complete("system", "user")

        assert result == "Result."
        assert create.await_args.kwargs["messages"] == [
            {"role": "system", "content": "system"},
            {"role": "user", "content": "user"},
        ]

    async def test_missing_content_is_empty(self) -> None:
        model = ChatLanguageModel(
            model="gpt-4.1", base_url="https://api.openai.com/v1", api_key="test-key"
        )
        model._client.chat.completions.create = AsyncMock(return_value=_chat_response(None))  # type: ignore[method-assign]

        assert await model.complete("system", "user") == ""


class TestCreateLanguageModel:
    def test_anthropic(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")

        model = create_language_model("anthropic/claude-sonnet-4-5", max_attempts=4)

        assert isinstance(model, ClaudeLanguageModel)
        assert model.model == "claude-sonnet-4-5"
        assert model.max_attempts == 4

    @pytest.mark.parametrize(
        ("model_id", "env"),
        [("openai/gpt-4.1", "OPENAI_API_KEY"), ("groq/llama-3.3-70b-versatile", "GROQ_API_KEY")],
    )
    def test_openai_compatible(self, monkeypatch: pytest.MonkeyPatch, model_id: str, env: str) -> None:
        monkeypatch.setenv(env, "test-key")

        model = create_language_model(model_id)

        assert isinstance(model, ChatLanguageModel)
        assert model.model == model_id.split("/", 1)[1]

    def test_speech_only_provider_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ELEVENLABS_API_KEY", "test-key")

        with pytest.raises(ValueError, match="no text generation"):
            create_language_model("elevenlabs/scribe_v1")

    def test_unknown_provider(self) -> None:
        with pytest.raises(ValueError, match="Unknown provider"):
            create_language_model("mistral/large")
