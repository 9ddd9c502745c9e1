import logging
import time
from typing import Any, Protocol

import anthropic
import openai

from podscribe.errors import ReconciliationError
from podscribe.providers import (
    PROVIDERS,
    TRANSIENT_ERRORS,
    get_api_key,
    handle_api_errors,
    parse_model,
    retrying,
)

logger = logging.getLogger(__name__)

MAX_OUTPUT_TOKENS = 16384


class LanguageModel(Protocol):
    async def complete(self, system: str, user: str, cache_system: bool = True) -> str: ...


class ClaudeLanguageModel:
    def __init__(self, model: str, api_key: str, max_attempts: int = 3) -> None:
        self.model = model
        self.max_attempts = max_attempts
        self._client = anthropic.AsyncAnthropic(api_key=api_key, max_retries=0)

    async def complete(self, system: str, user: str, cache_system: bool = True) -> str:
        system_block: dict[str, Any] = {"type": "text", "text": system}
        if cache_system:
            system_block["cache_control"] = {"type": "ephemeral"}

        try:
            message = await retrying(self.max_attempts)(self._create, [system_block], user)
        except TRANSIENT_ERRORS as e:
            raise ReconciliationError(
                f"{self.model} failed after {self.max_attempts} attempts: {e}"
            ) from e

        return "\n".join(
            block.text for block in message.content if block.type == "text"
        ).strip()

    async def _create(self, system: list[dict[str, Any]], user: str) -> Any:
        started = time.monotonic()
        with handle_api_errors(ReconciliationError):
            message = await self._client.messages.create(
                model=self.model,
                max_tokens=MAX_OUTPUT_TOKENS,
                system=system,  # type: ignore[arg-type]
                messages=[{"role": "user", "content": user}],
            )
        self._log_usage(message, time.monotonic() - started)
        return message

    def _log_usage(self, message: Any, elapsed: float) -> None:
        usage = message.usage
        logger.info("%s completed in %.2fs (%s)", self.model, elapsed, message.stop_reason)
        logger.info(
            "  Input: %d tokens | Output: %d tokens", usage.input_tokens, usage.output_tokens
        )
        cache_create = usage.cache_creation_input_tokens or 0
        cache_read = usage.cache_read_input_tokens or 0
        if cache_create or cache_read:
            logger.info("  Cache create: %d | Cache read: %d", cache_create, cache_read)


class ChatLanguageModel:
    """Any OpenAI-compatible chat endpoint. Prompt caching there is automatic."""

    def __init__(self, model: str, base_url: str, api_key: str, max_attempts: int = 3) -> None:
        self.model = model
        self.max_attempts = max_attempts
        self._client = openai.AsyncOpenAI(base_url=base_url, api_key=api_key, max_retries=0)

    async def complete(self, system: str, user: str, cache_system: bool = True) -> str:
        messages: list[dict[str, str]] = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]

        try:
            response = await retrying(self.max_attempts)(self._create, messages)
        except TRANSIENT_ERRORS as e:
            raise ReconciliationError(
                f"{self.model} failed after {self.max_attempts} attempts: {e}"
            ) from e

        return (response.choices[0].message.content or "").strip()

    async def _create(self, messages: list[dict[str, str]]) -> Any:
        started = time.monotonic()
        with handle_api_errors(ReconciliationError):
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,  # type: ignore[arg-type]
            )
        logger.info("%s completed in %.2fs", self.model, time.monotonic() - started)
        return response


def create_language_model(model: str, max_attempts: int = 3) -> LanguageModel:
    provider, model_name = parse_model(model)
    if provider is PROVIDERS["elevenlabs"]:
        raise ValueError(f"Provider of '{model}' has no text generation models")
    api_key = get_api_key(provider.api_key_env)
    if provider is PROVIDERS["anthropic"]:
        return ClaudeLanguageModel(model=model_name, api_key=api_key, max_attempts=max_attempts)
    return ChatLanguageModel(
        model=model_name, base_url=provider.base_url, api_key=api_key, max_attempts=max_attempts
    )
