"""Turns raw speech-to-text output into one clean, canonical transcript.

Two entry points share the same cleanup and formatting rules:

- ``reconcile`` merges two or more transcripts of the same audio sentence by
  sentence. A source labelled ``captions`` is treated as low-quality
  auto-generated captions and only breaks ties.
- ``cleanup`` polishes a single transcript, optionally checking unclear words
  against captions.

Both refuse to return blank text: an empty model answer would silently wipe
the transcript, so it is raised as ``EmptyOutputError`` instead.
"""

import logging
from collections.abc import Mapping

from podscribe.errors import EmptyOutputError, ScribeError
from podscribe.language_model import LanguageModel
from podscribe.providers import language_name

logger = logging.getLogger(__name__)

CAPTIONS_LABEL = "captions"

CLEANUP_RULES = """\
- Fix obvious grammar and spelling errors
- Regularize punctuation (proper sentence endings, quotation marks, dashes)
- Remove hallucination artifacts: repeated phrases, nonsense fragments, filler artifacts
- Remove transcription noise tags such as "[music]", "[applause]", "[glazba]" and similar
- Do NOT rephrase sentences or change their meaning, only fix errors and clean up
- Do NOT add content that is not in the input
- Keep the original language. Do NOT translate into English or any other language
- Output ONLY the transcript text: no commentary, no headers, no source labels
"""

FORMATTING_RULES = """\
- Divide the text into paragraphs separated by one blank line
- Start a new paragraph on topic shifts, scene changes, or when the speaker changes
- Mark all direct speech with straight double quotes "..." (never »...«, „..." or '...')
  Example: She said: "Tell me more!"
  Example: "How kind of you," she replied. "You made a real effort too."
- When one speaker's dialogue runs over several sentences, keep it in ONE paragraph
- Separate different speakers' turns with one blank line
"""

RECONCILE_SYSTEM_PROMPT = f"""\
You are a transcript reconciliation expert. You receive transcripts of the same audio \
from several speech-to-text sources. Your job is to produce the single best transcript.

Reconciliation rules:
- Compare the transcripts sentence by sentence
- For each sentence, pick the best rendering (most accurate words, best grammar, most natural phrasing)
- If a sentence appears in only one source and looks like a hallucination (repetitive, nonsensical, or out of context), omit it
- A source labelled "{CAPTIONS_LABEL}" holds auto-generated captions. They are low quality \
(no punctuation, timing artifacts, frequent errors). Use them ONLY as a tie-breaker when the other \
sources disagree on a word or phrase, never as an equal vote

Cleanup rules:
{CLEANUP_RULES}
Formatting rules:
{FORMATTING_RULES}"""

CLEANUP_SYSTEM_PROMPT = f"""\
You are a transcript cleanup expert. You receive a raw transcript from a speech-to-text \
engine. Your job is to produce a clean, polished version of it.

Rules:
{CLEANUP_RULES}
Formatting rules:
{FORMATTING_RULES}"""

OUTPUT_FOOTER = (
    "Format with paragraphs and uniform dialogue markers. "
    "Only output the transcript text, nothing else."
)


class Reconciler:
    def __init__(self, model: LanguageModel, language: str) -> None:
        self.model = model
        self.language = language

    async def reconcile(self, named_texts: Mapping[str, str]) -> str:
        if len(named_texts) < 2:
            raise ValueError(f"Need 2+ transcripts to reconcile, got {len(named_texts)}")

        logger.info("Reconciling %d transcripts: %s", len(named_texts), ", ".join(named_texts))
        return await self._complete(RECONCILE_SYSTEM_PROMPT, self._reconcile_prompt(named_texts))

    async def cleanup(self, text: str, reference_captions: str | None = None) -> str:
        if not text.strip():
            raise ValueError("Cannot clean up an empty transcript")

        logger.info("Cleaning up transcript (%d chars)", len(text))
        return await self._complete(
            CLEANUP_SYSTEM_PROMPT, self._cleanup_prompt(text, reference_captions)
        )

    async def _complete(self, system: str, user: str) -> str:
        result = await self.model.complete(system, user, cache_system=True)
        if not result.strip():
            raise EmptyOutputError("Language model returned an empty transcript")
        logger.info("Result: %d chars", len(result))
        return result.strip()

    def _reconcile_prompt(self, named_texts: Mapping[str, str]) -> str:
        blocks = [f"=== Source: {label} ===\n{text.strip()}" for label, text in named_texts.items()]
        return (
            "\n\n".join(blocks)
            + "\n\n---\n\n"
            + f"Reconcile these {len(named_texts)} transcripts of the same "
            + f"{language_name(self.language)} audio into a single best transcript.\n"
            + OUTPUT_FOOTER
            + "\n"
        )

    def _cleanup_prompt(self, text: str, reference_captions: str | None) -> str:
        prompt = f"Clean up this {language_name(self.language)} transcript:\n\n{text.strip()}\n"
        if reference_captions and reference_captions.strip():
            prompt += (
                "\n---\n\n"
                "Reference: auto-generated captions (lower quality, use only to verify unclear words):\n\n"
                f"{reference_captions.strip()}\n"
            )
        return prompt + "\n---\n\n" + OUTPUT_FOOTER + "\n"


async def reconcile_or_none(reconciler: Reconciler, named_texts: Mapping[str, str]) -> str | None:
    try:
        return await reconciler.reconcile(named_texts)
    except ScribeError as e:
        logger.warning("Reconciliation failed (non-fatal): %s", e)
        return None


async def cleanup_or_none(
    reconciler: Reconciler, text: str, reference_captions: str | None = None
) -> str | None:
    try:
        return await reconciler.cleanup(text, reference_captions)
    except (ScribeError, ValueError) as e:
        logger.warning("Cleanup failed (non-fatal): %s", e)
        return None
