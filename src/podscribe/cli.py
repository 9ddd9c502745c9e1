import asyncio
import json
import logging
from dataclasses import replace
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from podscribe.config import CONFIG_FILE, load_config
from podscribe.coordinator import create_coordinator
from podscribe.errors import ScribeError
from podscribe.media import FFmpegToolkit
from podscribe.pipeline import repackage
from podscribe.types import ComparisonResult, RepackageResult, TrimPlan

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _format_transcript_markdown(title: str, text: str) -> str:
    return f"# {title}\n\n## Transcript\n\n{text.strip()}\n"


def _format_json(result: RepackageResult) -> str:
    transcription = result.transcription
    data: dict[str, object] = {"transcript": result.transcript}

    if isinstance(transcription, ComparisonResult):
        data["primary"] = transcription.primary.text
        data["reconciled"] = transcription.reconciled
        data["engines"] = {code: r.text for code, r in transcription.all.items()}
        data["errors"] = transcription.errors
    else:
        data["primary"] = transcription.text
        data["cleaned"] = transcription.cleaned

    if isinstance(result.trim, TrimPlan):
        data["trim"] = {
            "speech_end": result.trim.speech_end,
            "trim_point": result.trim.trim_point,
            "expected_savings": result.trim.expected_savings,
        }
    else:
        data["trim"] = {"skipped": result.trim.reason, "savings": result.trim.savings}
    data["audio"] = str(result.audio_path)

    return json.dumps(data, indent=2, ensure_ascii=False)


def _write_outputs(
    audio_path: Path,
    result: RepackageResult,
    output_folder: Path,
    output_format: str,
    verbose: bool,
) -> Path:
    stem = audio_path.stem
    if output_format == "json":
        out_path = output_folder / f"{stem}_transcript.json"
        out_path.write_text(_format_json(result), encoding="utf-8")
    else:
        out_path = output_folder / f"{stem}_transcript.md"
        out_path.write_text(_format_transcript_markdown(stem, result.transcript), encoding="utf-8")

    transcription = result.transcription
    if verbose and isinstance(transcription, ComparisonResult):
        for code, engine_result in transcription.all.items():
            engine_path = output_folder / f"{stem}_transcript_{code}.md"
            engine_path.write_text(
                _format_transcript_markdown(stem, engine_result.text), encoding="utf-8"
            )
            console.print(f"  [dim]{code}[/dim] → {engine_path}")

    return out_path


@click.command(epilog="""\b
Examples:
  podscribe episode.mp3
  podscribe episode.mp3 -e open -e groq --language sl
  podscribe episode.mp3 --captions episode.captions.txt --output-format json
  podscribe episode.mp3 -e groq --no-trim
""")
@click.argument("source", type=click.Path(path_type=Path))
@click.option(
    "-e", "--engine", "engines", multiple=True,
    help="Transcription engine code (open, elab, groq); repeat for comparison mode",
)
@click.option("--language", default=None, help="Spoken language code (e.g. sl, hr, en)")
@click.option("--target-language", default=None, help="Language of the reconciled transcript")
@click.option(
    "--captions", type=click.Path(exists=True, dir_okay=False, path_type=Path), default=None,
    help="Plain-text auto-generated captions used as a low-quality reference",
)
@click.option("--output-folder", type=click.Path(path_type=Path), default=None, help="Write output files to this directory")
@click.option(
    "--output-format", type=click.Choice(["text", "json"]),
    default="text", show_default=True, help="Transcript output format",
)
@click.option("--no-trim", is_flag=True, help="Do not trim the outro")
@click.option(
    "--skip-intro", type=float, default=None,
    help="Seconds of fixed intro to cut before transcribing",
)
@click.option(
    "--config", "config_path", type=click.Path(path_type=Path), default=CONFIG_FILE,
    show_default=True, help="Configuration file",
)
@click.option("-v", "--verbose", is_flag=True, help="Debug logging and per-engine transcripts")
def main(
    source: Path,
    engines: tuple[str, ...],
    language: str | None,
    target_language: str | None,
    captions: Path | None,
    output_folder: Path | None,
    output_format: str,
    no_trim: bool,
    skip_intro: float | None,
    config_path: Path,
    verbose: bool,
) -> None:
    """Transcribe a spoken-audio episode with one or more engines and trim its outro."""
    _setup_logging(verbose)
    try:
        if not source.is_file():
            raise ScribeError(f"File not found: {source}")

        config = load_config(config_path)
        if language:
            config = replace(config, language=language)
        if target_language:
            config = replace(config, target_language=target_language)
        if engines:
            config = replace(config, engines=engines)
        if skip_intro is not None:
            config = replace(config, skip_intro=skip_intro)

        folder = output_folder or source.parent
        folder.mkdir(parents=True, exist_ok=True)

        coordinator = create_coordinator(config)
        caption_text = captions.read_text(encoding="utf-8") if captions else None

        console.print(
            f"Transcribing [bold]{source.name}[/bold] with {', '.join(config.engines)}..."
        )
        result = asyncio.run(
            repackage(
                source,
                coordinator,
                FFmpegToolkit(),
                folder,
                captions=caption_text,
                timeline_engine=config.timeline_engine,
                trim=not no_trim,
                padding_seconds=config.trim_padding,
                min_savings_seconds=config.min_savings,
                skip_intro_seconds=config.skip_intro,
            )
        )

        out_path = _write_outputs(source, result, folder, output_format, verbose)
        console.print(f"Transcript written to [bold]{out_path}[/bold]")
        if isinstance(result.trim, TrimPlan):
            console.print(
                f"Trimmed audio written to [bold]{result.audio_path}[/bold] "
                f"(saved {result.trim.expected_savings:.1f}s)"
            )
        else:
            console.print(f"[yellow]Outro not trimmed:[/yellow] {result.trim.reason}")
    except (ScribeError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1) from None
