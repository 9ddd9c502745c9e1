import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from podscribe.errors import MediaError
from podscribe.media import FFmpegToolkit


def _completed(stdout: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=[], returncode=0, stdout=stdout, stderr="")


@patch("podscribe.media.subprocess.run")
def test_probe_duration(mock_run: MagicMock, tmp_path: Path) -> None:
    mock_run.return_value = _completed("140.025000\n")

    duration = FFmpegToolkit().probe_duration(tmp_path / "ep.mp3")

    assert duration == pytest.approx(140.025)
    cmd = mock_run.call_args.args[0]
    assert cmd[0] == "ffprobe"
    assert cmd[-1] == str(tmp_path / "ep.mp3")


@patch("podscribe.media.subprocess.run")
def test_probe_duration_unparseable(mock_run: MagicMock, tmp_path: Path) -> None:
    mock_run.return_value = _completed("N/A\n")

    with pytest.raises(MediaError, match="no duration"):
        FFmpegToolkit().probe_duration(tmp_path / "ep.mp3")


@patch("podscribe.media.subprocess.run")
def test_extract_segment(mock_run: MagicMock, tmp_path: Path) -> None:
    mock_run.return_value = _completed()
    out = tmp_path / "tails" / "ep_tail.mp3"

    FFmpegToolkit().extract_segment(tmp_path / "ep.mp3", out, 121.0, 140.0)

    cmd = mock_run.call_args.args[0]
    assert cmd[cmd.index("-ss") + 1] == "121.000"
    assert cmd[cmd.index("-t") + 1] == "19.000"
    assert cmd[-1] == str(out)
    assert out.parent.is_dir()


def test_extract_empty_segment_rejected(tmp_path: Path) -> None:
    with pytest.raises(MediaError, match="Empty segment"):
        FFmpegToolkit().extract_segment(tmp_path / "ep.mp3", tmp_path / "t.mp3", 10.0, 10.0)


@patch("podscribe.media.subprocess.run")
def test_trim_to_duration(mock_run: MagicMock, tmp_path: Path) -> None:
    mock_run.return_value = _completed()

    FFmpegToolkit(ffmpeg="/opt/bin/ffmpeg").trim_to_duration(
        tmp_path / "ep.mp3", tmp_path / "ep_trimmed.mp3", 121.0
    )

    cmd = mock_run.call_args.args[0]
    assert cmd[0] == "/opt/bin/ffmpeg"
    assert "-ss" not in cmd
    assert cmd[cmd.index("-t") + 1] == "121.000"


@patch("podscribe.media.subprocess.run")
def test_ffmpeg_failure(mock_run: MagicMock, tmp_path: Path) -> None:
    mock_run.side_effect = subprocess.CalledProcessError(1, "ffmpeg", stderr="Invalid data found\n")

    with pytest.raises(MediaError, match="Invalid data found"):
        FFmpegToolkit().trim_to_duration(tmp_path / "ep.mp3", tmp_path / "o.mp3", 10.0)


@patch("podscribe.media.subprocess.run", side_effect=FileNotFoundError("ffprobe"))
def test_missing_binary(mock_run: MagicMock, tmp_path: Path) -> None:
    with pytest.raises(MediaError, match="not found"):
        FFmpegToolkit().probe_duration(tmp_path / "ep.mp3")
