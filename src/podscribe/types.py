from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class WordTiming:
    word: str
    start: float
    end: float


@dataclass(frozen=True)
class QualitySegment:
    text: str
    start: float
    end: float
    no_speech_prob: float
    compression_ratio: float
    avg_logprob: float

    def looks_like_non_speech(self) -> bool:
        """Whisper's own hallucination heuristics: silence/music or repetitive output."""
        if self.no_speech_prob > 0.6 and self.avg_logprob < -1.0:
            return True
        return self.compression_ratio > 2.4


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    source_language: str | None = None
    words: list[WordTiming] | None = None
    segments: list[QualitySegment] | None = None
    cleaned: str | None = None

    @property
    def canonical_text(self) -> str:
        return self.cleaned or self.text


@dataclass(frozen=True)
class ComparisonResult:
    primary: TranscriptionResult
    all: dict[str, TranscriptionResult]
    errors: dict[str, str]
    reconciled: str | None = None

    @property
    def canonical_text(self) -> str:
        return self.reconciled or self.primary.text


@dataclass(frozen=True)
class SpeechBoundaryMatch:
    matched_words: int
    timestamp: float


@dataclass(frozen=True)
class TrimPlan:
    trim_point: float
    expected_savings: float
    speech_end: float


@dataclass(frozen=True)
class NoTrim:
    reason: str
    savings: float | None = None


@dataclass(frozen=True)
class RepackageResult:
    transcription: TranscriptionResult | ComparisonResult
    transcript: str
    audio_path: Path
    trim: TrimPlan | NoTrim
