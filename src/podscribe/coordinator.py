import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path

from podscribe.config import Config
from podscribe.engines import Engine, create_engine
from podscribe.errors import AllEnginesFailedError
from podscribe.language_model import create_language_model
from podscribe.reconciler import CAPTIONS_LABEL, Reconciler, cleanup_or_none, reconcile_or_none
from podscribe.types import ComparisonResult, TranscriptionResult

logger = logging.getLogger(__name__)


class EngineCoordinator:
    """Runs one engine, or several side by side, over the same audio file.

    With several engines every one of them runs to completion: a failing or
    slow engine never cancels its siblings, and the primary result depends
    only on configured order, not on which engine finished first.
    """

    def __init__(
        self,
        engines: Sequence[tuple[str, Engine]],
        reconciler: Reconciler | None = None,
        language: str | None = None,
    ) -> None:
        if not engines:
            raise ValueError("At least one transcription engine is required")
        codes = [code for code, _ in engines]
        if len(set(codes)) != len(codes):
            raise ValueError(f"Duplicate engine codes: {', '.join(codes)}")
        if CAPTIONS_LABEL in codes:
            raise ValueError(f"Engine code '{CAPTIONS_LABEL}' is reserved for captions")
        self.engines = list(engines)
        self.reconciler = reconciler
        self.language = language

    @property
    def codes(self) -> list[str]:
        return [code for code, _ in self.engines]

    async def transcribe(
        self, audio_path: Path, captions: str | None = None
    ) -> TranscriptionResult | ComparisonResult:
        if len(self.engines) == 1:
            return await self._transcribe_single(audio_path, captions)
        return await self._transcribe_comparison(audio_path, captions)

    async def _transcribe_single(
        self, audio_path: Path, captions: str | None
    ) -> TranscriptionResult:
        _, engine = self.engines[0]
        result = await engine.transcribe(audio_path, language=self.language)
        if self.reconciler is None:
            return result

        cleaned = await cleanup_or_none(self.reconciler, result.text, reference_captions=captions)
        if cleaned is None:
            return result
        return replace(result, cleaned=cleaned)

    async def _transcribe_comparison(
        self, audio_path: Path, captions: str | None
    ) -> ComparisonResult:
        # One slot per engine, written only by that engine's task
        results: dict[str, TranscriptionResult | None] = dict.fromkeys(self.codes)
        failures: dict[str, str | None] = dict.fromkeys(self.codes)

        async def _run_one(code: str, engine: Engine) -> None:
            logger.info("Starting engine: %s", code)
            started = time.monotonic()
            try:
                results[code] = await engine.transcribe(audio_path, language=self.language)
            except Exception as e:
                failures[code] = str(e) or type(e).__name__
                logger.warning("Engine '%s' failed: %s", code, failures[code])
                return
            logger.info("Engine '%s' completed in %.2fs", code, time.monotonic() - started)

        async with asyncio.TaskGroup() as tg:
            for code, engine in self.engines:
                tg.create_task(_run_one(code, engine))

        succeeded = {code: r for code, r in results.items() if r is not None}
        errors = {code: msg for code, msg in failures.items() if msg is not None}

        if not succeeded:
            raise AllEnginesFailedError(errors)

        primary_code = next(code for code in self.codes if code in succeeded)
        if primary_code != self.codes[0]:
            logger.warning(
                "Primary engine '%s' failed, falling back to '%s'", self.codes[0], primary_code
            )

        reconciled: str | None = None
        sources = {code: r.text for code, r in succeeded.items()}
        if captions and captions.strip():
            sources[CAPTIONS_LABEL] = captions
        if len(sources) >= 2 and self.reconciler is not None:
            reconciled = await reconcile_or_none(self.reconciler, sources)
        elif len(sources) < 2:
            logger.info("Only one transcript available, skipping reconciliation")

        return ComparisonResult(
            primary=succeeded[primary_code],
            all=succeeded,
            errors=errors,
            reconciled=reconciled,
        )


def create_coordinator(config: Config, engine_codes: Sequence[str] | None = None) -> EngineCoordinator:
    codes = list(engine_codes or config.engines)
    engines = [(code, create_engine(code, config)) for code in codes]
    model = create_language_model(config.reconcile_model, max_attempts=config.max_attempts)
    reconciler = Reconciler(model, language=config.prompt_language)
    return EngineCoordinator(engines, reconciler=reconciler, language=config.language)
