import logging
from pathlib import Path

from podscribe.media import MediaToolkit
from podscribe.types import NoTrim, TrimPlan

logger = logging.getLogger(__name__)

DEFAULT_PADDING = 2.0
DEFAULT_MIN_SAVINGS = 5.0

NO_MATCH = "no boundary match"
BELOW_THRESHOLD = "savings below threshold"
PAST_END = "trim point past end of audio"


def decide_trim(
    total_duration: float,
    speech_end: float | None,
    padding_seconds: float = DEFAULT_PADDING,
    min_savings_seconds: float = DEFAULT_MIN_SAVINGS,
) -> TrimPlan | NoTrim:
    """Decide whether cutting the outro after ``speech_end`` is worth it."""
    if speech_end is None:
        logger.info("Skipping outro trim: %s", NO_MATCH)
        return NoTrim(reason=NO_MATCH)

    trim_point = speech_end + padding_seconds
    savings = total_duration - speech_end

    if savings < min_savings_seconds:
        logger.info(
            "Skipping outro trim: %s (would save %.1fs, minimum %.1fs)",
            BELOW_THRESHOLD, savings, min_savings_seconds,
        )
        return NoTrim(reason=BELOW_THRESHOLD, savings=savings)

    if trim_point >= total_duration:
        logger.info(
            "Skipping outro trim: %s (%.1fs padded past %.1fs)",
            PAST_END, trim_point, total_duration,
        )
        return NoTrim(reason=PAST_END, savings=savings)

    logger.info(
        "Speech ends at %.1fs, trimming at %.1fs (saving %.1fs of %.1fs)",
        speech_end, trim_point, savings, total_duration,
    )
    return TrimPlan(trim_point=trim_point, expected_savings=savings, speech_end=speech_end)


def apply_trim(
    audio_path: Path,
    plan: TrimPlan,
    total_duration: float,
    media: MediaToolkit,
    tail_path: Path,
    output_path: Path,
) -> Path:
    """Save the discarded tail for review, then cut the audio at the trim point.

    Media failures propagate: a half-done trim must not ship.
    """
    media.extract_segment(audio_path, tail_path, plan.trim_point, total_duration)
    logger.info("Saved tail for review: %s", tail_path)

    media.trim_to_duration(audio_path, output_path, plan.trim_point)
    logger.info("Trimmed audio written to %s", output_path)
    return output_path
