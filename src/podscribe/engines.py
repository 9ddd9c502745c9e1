import logging
from abc import ABC, abstractmethod
from enum import StrEnum
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import httpx
import openai

from podscribe.config import Config
from podscribe.errors import (
    TranscriptionError,
    TransientBackendError,
    UnknownEngineError,
    UnsupportedInputError,
)
from podscribe.providers import (
    PROVIDERS,
    TRANSIENT_ERRORS,
    get_api_key,
    handle_api_errors,
    retrying,
)
from podscribe.types import QualitySegment, TranscriptionResult, WordTiming

logger = logging.getLogger(__name__)

MB = 1024 * 1024
ENGINE_TIMEOUT = 600.0  # seconds; long episodes take a while to upload and process


class EngineCode(StrEnum):
    OPEN = "open"
    ELAB = "elab"
    GROQ = "groq"


@runtime_checkable
class Engine(Protocol):
    code: str

    async def transcribe(
        self,
        audio_path: Path,
        language: str | None = None,
    ) -> TranscriptionResult: ...


def check_upload(audio_path: Path, max_bytes: int, code: str) -> None:
    """Reject input the backend would refuse. Never truncates."""
    if not audio_path.is_file():
        raise UnsupportedInputError(f"Audio file not found: {audio_path}")
    size = audio_path.stat().st_size
    if size == 0:
        raise UnsupportedInputError(f"Audio file is empty: {audio_path}")
    if size > max_bytes:
        raise UnsupportedInputError(
            f"{audio_path.name} is {size / MB:.1f} MB, "
            f"over the {max_bytes // MB} MB upload limit of engine '{code}'"
        )


def ordered_words(
    raw: list[tuple[str, float | None, float | None]], code: str
) -> list[WordTiming] | None:
    """Build the word timeline, or None if any entry breaks the timing contract.

    A timeline is all-or-nothing: one untimed or out-of-order word drops the lot.
    """
    if not raw:
        return None

    words: list[WordTiming] = []
    previous_start = 0.0
    for text, start, end in raw:
        if start is None or end is None or end < start or start < previous_start:
            logger.warning(
                "Engine '%s' returned an unusable word timeline at %r (%s-%s); dropping words",
                code, text, start, end,
            )
            return None
        words.append(WordTiming(word=text, start=float(start), end=float(end)))
        previous_start = start
    return words


class _RetryingEngine(ABC):
    code: str
    max_upload_bytes: int

    def __init__(self, model: str, max_attempts: int = 3) -> None:
        self.model = model
        self.max_attempts = max_attempts

    async def transcribe(
        self,
        audio_path: Path,
        language: str | None = None,
    ) -> TranscriptionResult:
        check_upload(audio_path, self.max_upload_bytes, self.code)
        try:
            return await retrying(self.max_attempts)(self._transcribe_once, audio_path, language)
        except TRANSIENT_ERRORS as e:
            raise TranscriptionError(
                f"Engine '{self.code}' failed after {self.max_attempts} attempts: {e}"
            ) from e

    @abstractmethod
    async def _transcribe_once(
        self, audio_path: Path, language: str | None
    ) -> TranscriptionResult: ...


class OpenAIEngine(_RetryingEngine):
    """OpenAI speech-to-text. Text only: the gpt-4o transcription models return no timings."""

    code = EngineCode.OPEN
    max_upload_bytes = 25 * MB

    def __init__(self, model: str, api_key: str, max_attempts: int = 3) -> None:
        super().__init__(model, max_attempts)
        self._client = openai.AsyncOpenAI(
            base_url=PROVIDERS["openai"].base_url,
            api_key=api_key,
            timeout=ENGINE_TIMEOUT,
            max_retries=0,
        )

    async def _transcribe_once(
        self, audio_path: Path, language: str | None
    ) -> TranscriptionResult:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "file": audio_path,
        }
        if language is not None:
            kwargs["language"] = language

        with handle_api_errors(TranscriptionError):
            response = await self._client.audio.transcriptions.create(**kwargs)

        return TranscriptionResult(text=response.text.strip(), source_language=language)


class GroqEngine(_RetryingEngine):
    """Groq-hosted Whisper with word and segment timestamps."""

    code = EngineCode.GROQ
    max_upload_bytes = 25 * MB

    def __init__(self, model: str, api_key: str, max_attempts: int = 3) -> None:
        super().__init__(model, max_attempts)
        self._client = openai.AsyncOpenAI(
            base_url=PROVIDERS["groq"].base_url,
            api_key=api_key,
            timeout=ENGINE_TIMEOUT,
            max_retries=0,
        )

    async def _transcribe_once(
        self, audio_path: Path, language: str | None
    ) -> TranscriptionResult:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "file": audio_path,
            "response_format": "verbose_json",
            "timestamp_granularities": ["word", "segment"],
        }
        if language is not None:
            kwargs["language"] = language

        with handle_api_errors(TranscriptionError):
            response = await self._client.audio.transcriptions.create(**kwargs)

        return self._parse_response(response, language)

    def _parse_response(self, response: Any, language: str | None) -> TranscriptionResult:
        raw_words = getattr(response, "words", None) or []
        words = ordered_words(
            [(w.word.strip(), w.start, w.end) for w in raw_words],
            self.code,
        )

        raw_segments = getattr(response, "segments", None)
        segments: list[QualitySegment] | None = None
        if raw_segments:
            segments = [
                QualitySegment(
                    text=seg.text.strip(),
                    start=float(seg.start),
                    end=float(seg.end),
                    no_speech_prob=float(seg.no_speech_prob),
                    compression_ratio=float(seg.compression_ratio),
                    avg_logprob=float(seg.avg_logprob),
                )
                for seg in raw_segments
            ]

        return TranscriptionResult(
            text=response.text.strip(),
            source_language=getattr(response, "language", None) or language,
            words=words,
            segments=segments,
        )


class ElevenLabsEngine(_RetryingEngine):
    """ElevenLabs Scribe over its REST API.

    Scribe reports words interleaved with "spacing" and "audio_event" entries;
    only real words make it into the timeline.
    """

    code = EngineCode.ELAB
    max_upload_bytes = 1000 * MB

    def __init__(
        self,
        model: str,
        api_key: str,
        max_attempts: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(model, max_attempts)
        self.api_key = api_key
        self._transport = transport

    async def _transcribe_once(
        self, audio_path: Path, language: str | None
    ) -> TranscriptionResult:
        data = {
            "model_id": self.model,
            "timestamps_granularity": "word",
            "tag_audio_events": "false",
        }
        if language is not None:
            data["language_code"] = language

        with handle_api_errors(TranscriptionError):
            async with httpx.AsyncClient(
                base_url=PROVIDERS["elevenlabs"].base_url,
                timeout=ENGINE_TIMEOUT,
                transport=self._transport,
            ) as client:
                with open(audio_path, "rb") as f:
                    response = await client.post(
                        "/speech-to-text",
                        headers={"xi-api-key": self.api_key},
                        data=data,
                        files={"file": (audio_path.name, f)},
                    )

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientBackendError(f"HTTP {response.status_code}: {_error_detail(response)}")
        if response.is_error:
            raise TranscriptionError(
                f"ElevenLabs rejected the request: HTTP {response.status_code}: "
                f"{_error_detail(response)}"
            )

        return self._parse_response(response.json(), language)

    def _parse_response(self, data: dict[str, Any], language: str | None) -> TranscriptionResult:
        raw: list[tuple[str, float | None, float | None]] = []
        for entry in data.get("words") or []:
            if entry.get("type", "word") != "word":
                continue
            start, end = entry.get("start"), entry.get("end")
            characters = entry.get("characters") or []
            if (start is None or end is None) and characters:
                start = characters[0].get("start")
                end = characters[-1].get("end")
            raw.append((entry.get("text", "").strip(), start, end))

        return TranscriptionResult(
            text=data.get("text", "").strip(),
            source_language=data.get("language_code") or language,
            words=ordered_words(raw, self.code),
        )


def _error_detail(response: httpx.Response) -> str:
    try:
        detail = response.json().get("detail")
    except ValueError:
        return response.text[:200]
    if isinstance(detail, dict):
        return str(detail.get("message", detail))
    return str(detail or response.text[:200])


def create_engine(code: str, config: Config) -> Engine:
    try:
        engine_code = EngineCode(code)
    except ValueError:
        known = ", ".join(c.value for c in EngineCode)
        raise UnknownEngineError(
            f"Unknown transcription engine: {code}. Known engines: {known}"
        ) from None

    if engine_code is EngineCode.OPEN:
        return OpenAIEngine(
            model=config.openai_model,
            api_key=get_api_key(PROVIDERS["openai"].api_key_env),
            max_attempts=config.max_attempts,
        )
    if engine_code is EngineCode.GROQ:
        return GroqEngine(
            model=config.groq_model,
            api_key=get_api_key(PROVIDERS["groq"].api_key_env),
            max_attempts=config.max_attempts,
        )
    return ElevenLabsEngine(
        model=config.elevenlabs_model,
        api_key=get_api_key(PROVIDERS["elevenlabs"].api_key_env),
        max_attempts=config.max_attempts,
    )
