import asyncio
from pathlib import Path

import pytest
from tenacity import wait_none

from podscribe.errors import MediaError, TranscriptionError
from podscribe.types import TranscriptionResult, WordTiming


@pytest.fixture(autouse=True)
def _no_retry_wait(monkeypatch: pytest.MonkeyPatch) -> None:  # pyright: ignore[reportUnusedFunction]
    monkeypatch.setattr("podscribe.providers.RETRY_WAIT", wait_none())


@pytest.fixture
def audio(tmp_path: Path) -> Path:
    path = tmp_path / "episode.mp3"
    path.write_bytes(b"fake audio")
    return path


def timeline(*entries: tuple[str, float, float]) -> list[WordTiming]:
    return [WordTiming(word=w, start=s, end=e) for w, s, e in entries]


class FakeEngine:
    def __init__(
        self,
        code: str = "fake",
        text: str = "transcribed text",
        words: list[WordTiming] | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.code = code
        self.text = text
        self.words = words
        self.error = error
        self.delay = delay
        self.calls: list[tuple[Path, str | None]] = []

    async def transcribe(self, audio_path: Path, language: str | None = None) -> TranscriptionResult:
        self.calls.append((audio_path, language))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return TranscriptionResult(text=self.text, source_language=language, words=self.words)


def failing_engine(code: str, message: str = "boom", delay: float = 0.0) -> FakeEngine:
    return FakeEngine(code=code, error=TranscriptionError(message), delay=delay)


class FakeLanguageModel:
    def __init__(self, output: str = "reconciled text", error: Exception | None = None) -> None:
        self.output = output
        self.error = error
        self.calls: list[tuple[str, str, bool]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def complete(self, system: str, user: str, cache_system: bool = True) -> str:
        self.calls.append((system, user, cache_system))
        if self.error is not None:
            raise self.error
        return self.output


class FakeMedia:
    def __init__(self, duration: float = 100.0, fail_on: str | None = None) -> None:
        self.duration = duration
        self.fail_on = fail_on
        self.calls: list[tuple[object, ...]] = []

    def _record(self, name: str, *args: object) -> None:
        self.calls.append((name, *args))
        if self.fail_on == name:
            raise MediaError(f"{name} failed")

    def probe_duration(self, path: Path) -> float:
        self._record("probe_duration", path)
        return self.duration

    def extract_segment(self, path: Path, out_path: Path, start: float, end: float) -> None:
        self._record("extract_segment", path, out_path, start, end)

    def trim_to_duration(self, path: Path, out_path: Path, keep_seconds: float) -> None:
        self._record("trim_to_duration", path, out_path, keep_seconds)
