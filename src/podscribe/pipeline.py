import asyncio
import logging
from pathlib import Path

from podscribe.boundary import find_speech_end
from podscribe.coordinator import EngineCoordinator
from podscribe.media import MediaToolkit
from podscribe.trim import DEFAULT_MIN_SAVINGS, DEFAULT_PADDING, apply_trim, decide_trim
from podscribe.types import (
    ComparisonResult,
    NoTrim,
    RepackageResult,
    TranscriptionResult,
    TrimPlan,
)

logger = logging.getLogger(__name__)

NO_TIMELINE = "no word timeline or canonical text"
TRIM_DISABLED = "trimming disabled"


def select_timeline(
    transcription: TranscriptionResult | ComparisonResult, preferred: str
) -> TranscriptionResult | None:
    """Engine result to trim against: the preferred engine's, else the first with words."""
    if isinstance(transcription, TranscriptionResult):
        return transcription if transcription.words else None

    preferred_result = transcription.all.get(preferred)
    if preferred_result is not None and preferred_result.words:
        return preferred_result

    for code, result in transcription.all.items():
        if result.words:
            logger.info("Engine '%s' has no word timeline, using '%s'", preferred, code)
            return result
    return None


async def skip_intro(
    audio_path: Path, media: MediaToolkit, work_dir: Path, skip_seconds: float
) -> Path:
    total_duration = await asyncio.to_thread(media.probe_duration, audio_path)
    skipped_path = work_dir / f"{audio_path.stem}_skipped.mp3"
    await asyncio.to_thread(
        media.extract_segment, audio_path, skipped_path, skip_seconds, total_duration
    )
    logger.info(
        "Skipped fixed intro: %.1fs (%.1fs -> %.1fs)",
        skip_seconds, total_duration, total_duration - skip_seconds,
    )
    return skipped_path


def _refined_text(transcription: TranscriptionResult | ComparisonResult) -> str | None:
    if isinstance(transcription, ComparisonResult):
        return transcription.reconciled
    return transcription.cleaned


async def repackage(
    audio_path: Path,
    coordinator: EngineCoordinator,
    media: MediaToolkit,
    work_dir: Path,
    captions: str | None = None,
    timeline_engine: str = "groq",
    trim: bool = True,
    padding_seconds: float = DEFAULT_PADDING,
    min_savings_seconds: float = DEFAULT_MIN_SAVINGS,
    skip_intro_seconds: float = 0.0,
) -> RepackageResult:
    """Transcribe ``audio_path`` and cut its outro where the spoken content ends.

    The outro is only trimmed against a reconciled or cleaned transcript: the
    raw text of the very engine that produced the timeline proves nothing.

    With ``skip_intro_seconds`` the fixed intro is cut off first; everything
    after that, timestamps included, refers to the shortened file.
    """
    source_path = audio_path
    if skip_intro_seconds > 0:
        audio_path = await skip_intro(source_path, media, work_dir, skip_intro_seconds)

    transcription = await coordinator.transcribe(audio_path, captions=captions)
    transcript = transcription.canonical_text

    if not trim:
        return RepackageResult(transcription, transcript, audio_path, NoTrim(reason=TRIM_DISABLED))

    refined = _refined_text(transcription)
    timeline = select_timeline(transcription, timeline_engine)
    if not refined or timeline is None or not timeline.words:
        logger.info("Skipping outro trim: %s", NO_TIMELINE)
        return RepackageResult(transcription, transcript, audio_path, NoTrim(reason=NO_TIMELINE))

    if timeline.segments:
        suspect = [s for s in timeline.segments if s.looks_like_non_speech()]
        if suspect:
            logger.info(
                "%d of %d segments look like non-speech, first at %.1fs",
                len(suspect), len(timeline.segments), suspect[0].start,
            )

    match = find_speech_end(refined, timeline.words)
    total_duration = await asyncio.to_thread(media.probe_duration, audio_path)
    decision = decide_trim(
        total_duration,
        match.timestamp if match else None,
        padding_seconds=padding_seconds,
        min_savings_seconds=min_savings_seconds,
    )
    if not isinstance(decision, TrimPlan):
        return RepackageResult(transcription, transcript, audio_path, decision)

    output_path = await asyncio.to_thread(
        apply_trim,
        audio_path,
        decision,
        total_duration,
        media,
        work_dir / "tails" / f"{source_path.stem}_tail.mp3",
        work_dir / f"{source_path.stem}_trimmed.mp3",
    )
    return RepackageResult(transcription, transcript, output_path, decision)
