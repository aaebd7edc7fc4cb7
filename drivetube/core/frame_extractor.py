from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from loguru import logger

from drivetube.utils.helpers import run_cmd


class FrameExtractionError(RuntimeError):
    pass


def frame_timestamps(duration: float, count: int) -> list[float]:
    """Evenly spaced timestamps that avoid the very first and last frame."""
    return [duration * (i + 1) / (count + 1) for i in range(count)]


def ffprobe_duration_seconds(path: Path) -> float:
    try:
        out = _probe(path)
    except RuntimeError as exc:
        raise FrameExtractionError(f"ffprobe failed: {exc}") from exc
    try:
        return float(out)
    except ValueError:
        return 0.0


def _probe(path: Path) -> str:
    return run_cmd(
        [
            "ffprobe",
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(path),
        ],
        timeout=60,
        retries=1,
        retry_sleep=1.0,
    ).strip()


def _ffmpeg_frame_cmd(video_path: Path, ts: float, width: int, out: Path) -> list[str]:
    return [
        "ffmpeg",
        "-y",
        "-ss",
        f"{ts:.3f}",
        "-i",
        str(video_path),
        "-frames:v",
        "1",
        "-vf",
        f"scale={width}:-2",
        "-q:v",
        "3",
        str(out),
    ]


def extract_frames(video_path: Path, count: int = 3, width: int = 640) -> list[bytes]:
    """
    Grab *count* JPEG frames from *video_path*.

    Frames are written to a private temporary directory which is removed
    before returning, whether extraction succeeded or not.
    """
    duration = ffprobe_duration_seconds(video_path)
    if duration < 1:
        raise FrameExtractionError(f"Invalid video duration: {duration}")

    logger.info(f"[Frames] Extracting {count} frame(s) from {video_path.name} ({duration:.1f}s)")
    frames: list[bytes] = []
    with tempfile.TemporaryDirectory(prefix="drivetube-frames-") as tmp:
        for index, ts in enumerate(frame_timestamps(duration, count)):
            out = Path(tmp) / f"frame-{index}.jpg"
            try:
                run_cmd(_ffmpeg_frame_cmd(video_path, ts, width, out), timeout=120)
            except RuntimeError as exc:
                logger.warning(f"[Frames] Frame at {ts:.1f}s failed: {exc}")
                continue
            if out.exists():
                frames.append(out.read_bytes())

    if not frames:
        raise FrameExtractionError("ffmpeg produced no frames")
    logger.info(f"[Frames] Extracted {len(frames)} frame(s)")
    return frames


@contextmanager
def downloaded_video(drive, file_id: str, suffix: str = ".mp4") -> Iterator[Path]:
    """
    Download a Drive file to a temporary path owned by the caller's block.

    The file is deleted when the block exits, on success and on error alike.
    """
    fd, name = tempfile.mkstemp(prefix="drivetube-video-", suffix=suffix)
    os.close(fd)
    path = Path(name)
    try:
        drive.download_to(file_id, path)
        yield path
    finally:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning(f"[Frames] Could not remove temp file {path}: {exc}")
