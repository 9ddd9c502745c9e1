import logging
import subprocess
from pathlib import Path
from typing import Protocol

from podscribe.errors import MediaError

logger = logging.getLogger(__name__)


class MediaToolkit(Protocol):
    def probe_duration(self, path: Path) -> float: ...

    def extract_segment(self, path: Path, out_path: Path, start: float, end: float) -> None: ...

    def trim_to_duration(self, path: Path, out_path: Path, keep_seconds: float) -> None: ...


class FFmpegToolkit:
    """Audio probing and cutting with the ffmpeg/ffprobe binaries.

    Cuts are re-encoded to MP3 so they land on the requested time rather than
    the nearest frame boundary of the source stream.
    """

    def __init__(self, ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe") -> None:
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe

    def probe_duration(self, path: Path) -> float:
        cmd = [
            self.ffprobe,
            "-v", "quiet",
            "-show_entries", "format=duration",
            "-of", "csv=p=0",
            str(path),
        ]
        output = self._run(cmd, f"probe {path.name}")
        try:
            return float(output.strip())
        except ValueError:
            raise MediaError(f"ffprobe returned no duration for {path}: {output!r}") from None

    def extract_segment(self, path: Path, out_path: Path, start: float, end: float) -> None:
        if end <= start:
            raise MediaError(f"Empty segment requested from {path.name}: {start:.2f}s-{end:.2f}s")
        out_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = [
            self.ffmpeg,
            "-y",
            "-ss", f"{start:.3f}",
            "-i", str(path),
            "-t", f"{end - start:.3f}",
            "-c:a", "libmp3lame",
            "-b:a", "192k",
            str(out_path),
        ]
        self._run(cmd, f"extract {start:.1f}s-{end:.1f}s of {path.name}")

    def trim_to_duration(self, path: Path, out_path: Path, keep_seconds: float) -> None:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = [
            self.ffmpeg,
            "-y",
            "-i", str(path),
            "-t", f"{keep_seconds:.3f}",
            "-c:a", "libmp3lame",
            "-b:a", "192k",
            str(out_path),
        ]
        self._run(cmd, f"trim {path.name} to {keep_seconds:.1f}s")

    def _run(self, cmd: list[str], description: str) -> str:
        logger.debug("Executing: %s", " ".join(cmd))
        try:
            completed = subprocess.run(cmd, check=True, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise MediaError(f"{cmd[0]} not found; is ffmpeg installed?") from e
        except subprocess.CalledProcessError as e:
            error_message = e.stderr.strip() if e.stderr else "Unknown ffmpeg error"
            logger.error("Failed to %s: %s", description, error_message)
            raise MediaError(f"Failed to {description}: {error_message}") from e
        return completed.stdout
