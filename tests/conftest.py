from __future__ import annotations

import io
from datetime import datetime
from pathlib import Path

import pytest

from drivetube.core.ai_engine import AIError
from drivetube.core.transcriber import TranscriptionResult
from drivetube.models import DriveFile, UploadResult, UploadStatus
from drivetube.utils.database import VideoStore
from drivetube.utils.helpers import UTC

FOLDER_ID = "FOLDER0123456789abcdefgh"
FOLDER_LINK = f"https://drive.google.com/drive/folders/{FOLDER_ID}?usp=sharing"

NOW = datetime(2026, 3, 1, 8, 0, tzinfo=UTC)


def video_file(index: int, name: str | None = None) -> DriveFile:
    return DriveFile(
        id=f"file{index:02d}xxxxxxxxxxxxxxxx",
        name=name or f"clip_{index}.mp4",
        mime_type="video/mp4",
        size=1024,
        created_time=f"2026-02-{20 - index:02d}T12:00:00Z",
    )


class FakeDrive:
    def __init__(self, files: list[DriveFile], folder_id: str = FOLDER_ID) -> None:
        self.files = list(files)
        self.folder_id = folder_id
        self.streams: list[io.BytesIO] = []
        self.downloads: list[Path] = []
        self.prefix_reads: list[tuple[str, int]] = []

    def get_metadata(self, object_id: str) -> DriveFile:
        if object_id == self.folder_id:
            return DriveFile(id=object_id, name="Uploads", mime_type="application/vnd.google-apps.folder")
        for f in self.files:
            if f.id == object_id:
                return f
        from drivetube.core.drive_client import DriveError

        raise DriveError(f"Cannot read Drive object {object_id}: 404")

    def list_videos(self, folder_id: str, max_depth: int = 5) -> list[DriveFile]:
        return list(self.files)

    def open_stream(self, file_id: str) -> io.BytesIO:
        stream = io.BytesIO(f"video-bytes-{file_id}".encode())
        self.streams.append(stream)
        return stream

    def read_prefix(self, file_id: str, max_bytes: int) -> bytes:
        self.prefix_reads.append((file_id, max_bytes))
        return b"audio-prefix"

    def download_to(self, file_id: str, path: Path) -> Path:
        Path(path).write_bytes(b"full-video")
        self.downloads.append(Path(path))
        return path


class FakeUploader:
    """Records uploads; results and statuses can be queued per call."""

    def __init__(
        self,
        results: list[UploadResult] | None = None,
        status: UploadStatus | None = None,
    ) -> None:
        self.results = list(results or [])
        self.status = status or UploadStatus(upload_status="processed", privacy_status="private")
        self.uploads: list[dict] = []
        self.visibility_changes: list[tuple[str, str]] = []
        self.status_reads: list[str] = []

    def upload(self, stream, title, description, tags, privacy="private", publish_at=None) -> UploadResult:
        self.uploads.append(
            {
                "data": stream.read(),
                "title": title,
                "description": description,
                "tags": list(tags),
                "privacy": getattr(privacy, "value", privacy),
                "publish_at": publish_at,
            }
        )
        if self.results:
            return self.results.pop(0)
        return UploadResult(success=True, video_id=f"yt{len(self.uploads)}")

    def get_upload_status(self, video_id: str) -> UploadStatus:
        self.status_reads.append(video_id)
        if isinstance(self.status, Exception):
            raise self.status
        return self.status

    def set_visibility(self, video_id: str, visibility) -> None:
        self.visibility_changes.append((video_id, getattr(visibility, "value", visibility)))


class FakeTranscriber:
    def __init__(self, transcript: str | None = None, error: str = "no speech") -> None:
        self.transcript = transcript
        self.error = error
        self.calls = 0

    def transcribe(self, data: bytes) -> TranscriptionResult:
        self.calls += 1
        if self.transcript:
            return TranscriptionResult(success=True, transcript=self.transcript)
        return TranscriptionResult(success=False, error=self.error)


class FakeAI:
    """Replies in order; an Exception entry is raised instead of returned."""

    def __init__(self, replies: list | None = None) -> None:
        self.replies = list(replies or [])
        self.prompts: list[tuple[str, int]] = []

    def generate_json(self, prompt: str, images: list[bytes] | None = None) -> dict:
        self.prompts.append((prompt, len(images or [])))
        if not self.replies:
            raise AIError("no reply configured")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def store(tmp_path):
    s = VideoStore(tmp_path / "drivetube.sqlite3")
    yield s
    s.close()
