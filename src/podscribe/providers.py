import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import anthropic
import httpx
import openai
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from podscribe.errors import ScribeError, TransientBackendError

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    openai.RateLimitError,
    openai.APIConnectionError,  # includes APITimeoutError
    openai.InternalServerError,
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.InternalServerError,
    anthropic.OverloadedError,  # 529
    anthropic.ServiceUnavailableError,
    anthropic.DeadlineExceededError,
    httpx.TransportError,
    TransientBackendError,
)

DEFAULT_MAX_ATTEMPTS = 3

RETRY_WAIT = wait_exponential(multiplier=1, min=1, max=4)


def retrying(max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> AsyncRetrying:
    """Retry policy for a single API call: exponential backoff on transient errors only."""
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=RETRY_WAIT,
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


@contextmanager
def handle_api_errors(error_class: type[ScribeError]) -> Iterator[None]:
    try:
        yield
    except TRANSIENT_ERRORS:
        raise
    except (openai.OpenAIError, anthropic.AnthropicError, httpx.HTTPError) as e:
        raise error_class(str(e)) from e


@dataclass(frozen=True)
class ProviderConfig:
    base_url: str
    api_key_env: str


PROVIDERS: dict[str, ProviderConfig] = {
    "anthropic": ProviderConfig(
        base_url="https://api.anthropic.com",
        api_key_env="ANTHROPIC_API_KEY",
    ),
    "openai": ProviderConfig(
        base_url="https://api.openai.com/v1",
        api_key_env="OPENAI_API_KEY",
    ),
    "groq": ProviderConfig(
        base_url="https://api.groq.com/openai/v1",
        api_key_env="GROQ_API_KEY",
    ),
    "elevenlabs": ProviderConfig(
        base_url="https://api.elevenlabs.io/v1",
        api_key_env="ELEVENLABS_API_KEY",
    ),
}


def parse_model(model: str) -> tuple[ProviderConfig, str]:
    """Split 'anthropic/claude-sonnet-4-5' into (ProviderConfig, 'claude-sonnet-4-5')."""
    prefix, sep, model_name = model.partition("/")
    if not sep or prefix not in PROVIDERS:
        known = ", ".join(PROVIDERS)
        raise ValueError(f"Unknown provider in model '{model}'. Known providers: {known}")
    return PROVIDERS[prefix], model_name


def get_api_key(env_var: str) -> str:
    """Read an API key from the environment, raising ScribeError if missing."""
    key = os.environ.get(env_var, "")
    if not key:
        raise ScribeError(f"Missing API key: set the {env_var} environment variable")
    return key


LANGUAGE_NAMES: dict[str, str] = {
    "bs": "Bosnian",
    "cs": "Czech",
    "de": "German",
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "hr": "Croatian",
    "hu": "Hungarian",
    "it": "Italian",
    "nl": "Dutch",
    "pl": "Polish",
    "pt": "Portuguese",
    "sk": "Slovak",
    "sl": "Slovenian",
    "sr": "Serbian",
}


def normalize_language_code(code: str) -> str:
    """Strip region/script subtags. e.g. 'sl-SI' -> 'sl', 'pt-BR' -> 'pt'."""
    return code.split("-")[0].lower()


def language_name(code: str) -> str:
    """English name for a language code, for use in prompts. Unknown codes pass through."""
    return LANGUAGE_NAMES.get(normalize_language_code(code), code)
