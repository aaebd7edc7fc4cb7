from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class VideoStatus(str, Enum):
    DRAFT = "DRAFT"
    PROCESSING = "PROCESSING"
    PENDING = "PENDING"
    UPLOADED = "UPLOADED"
    RESTRICTED = "RESTRICTED"
    FAILED = "FAILED"


class Visibility(str, Enum):
    PRIVATE = "private"
    UNLISTED = "unlisted"
    PUBLIC = "public"


class CopyrightStatus(str, Enum):
    PENDING = "PENDING"
    CLEAR = "CLEAR"
    CLAIMED = "CLAIMED"


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class VideoRecord:
    drive_id: str
    user_id: str
    file_name: str
    id: str = field(default_factory=new_id)
    job_id: str | None = None
    title: str = ""
    description: str = ""
    tags: str = ""
    transcript: str | None = None
    status: VideoStatus = VideoStatus.DRAFT
    youtube_id: str | None = None
    uploaded_at: datetime | None = None
    scheduled_for: datetime | None = None
    visibility: Visibility = Visibility.PRIVATE
    copyright_status: CopyrightStatus = CopyrightStatus.PENDING
    copyright_checked_at: datetime | None = None
    error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def tag_list(self) -> list[str]:
        return [t.strip() for t in (self.tags or "").split(",") if t.strip()]


@dataclass
class AutomationJob:
    user_id: str
    name: str
    drive_folder_link: str
    upload_hour: int = 10
    videos_per_day: int = 1
    enabled: bool = True
    id: str = field(default_factory=new_id)
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if not 0 <= int(self.upload_hour) <= 23:
            raise ValueError(f"upload_hour must be within 0-23, got {self.upload_hour}")
        if int(self.videos_per_day) < 1:
            raise ValueError(f"videos_per_day must be positive, got {self.videos_per_day}")


@dataclass(frozen=True)
class ScheduleScope:
    """Slots are counted per job when a job is known, otherwise per user."""

    user_id: str
    job_id: str | None = None


@dataclass
class UserSettings:
    user_id: str
    drive_folder_link: str | None = None
    upload_hour: int = 10
    videos_per_day: int = 1


@dataclass
class CopyrightLog:
    video_id: str
    youtube_id: str
    claim_type: str | None
    claim_status: str | None
    claim_details: str
    checked_at: datetime | None = None


@dataclass(frozen=True)
class DriveFile:
    id: str
    name: str
    mime_type: str
    size: int | None = None
    created_time: str | None = None

    @property
    def is_folder(self) -> bool:
        return self.mime_type == "application/vnd.google-apps.folder"

    @property
    def is_video(self) -> bool:
        return self.mime_type.startswith("video/")

    @property
    def drive_url(self) -> str:
        return f"https://drive.google.com/file/d/{self.id}/view"


@dataclass
class VideoMetadata:
    title: str
    description: str
    tags: list[str]
    transcript: str | None = None
    source: str = "filename"


@dataclass(frozen=True)
class UploadResult:
    success: bool
    video_id: str | None = None
    error: str | None = None
    is_quota_error: bool = False


@dataclass(frozen=True)
class UploadStatus:
    upload_status: str
    has_restrictions: bool = False
    region_restricted: bool = False
    privacy_status: str | None = None
    rejection_reason: str | None = None


@dataclass
class FileDetail:
    file_name: str
    status: str
    youtube_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"fileName": self.file_name, "status": self.status}
        if self.youtube_id:
            out["youtubeId"] = self.youtube_id
        if self.error:
            out["error"] = self.error
        return out


@dataclass
class AutomationResult:
    processed: int = 0
    uploaded: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    details: list[FileDetail] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "uploaded": self.uploaded,
            "failed": self.failed,
            "errors": list(self.errors),
            "details": [d.to_dict() for d in self.details],
        }
