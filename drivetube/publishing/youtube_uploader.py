"""
publishing/youtube_uploader.py – drivetube YouTube Uploader
===========================================================
Responsibilities:
  1. Upload a video stream via YouTube Data API v3 resumable upload
  2. Schedule publish time (publishAt in RFC 3339 UTC, forces private)
  3. Retry transient API errors (429 / 5xx / connection drops) with back-off
  4. Report quota exhaustion as a distinct, non-raising result
  5. Read processing / restriction status and change visibility afterwards
  6. Channel info and video deletion for the CLI
"""
from __future__ import annotations

import json
import socket
from datetime import datetime
from typing import IO, Any

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload
from loguru import logger
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from drivetube.models import UploadResult, UploadStatus, Visibility
from drivetube.utils.helpers import rfc3339

# ── YouTube constants ─────────────────────────────────────────────────────────
YT_DEFAULT_CATEGORY = "22"

# Resumable upload chunk size: 8 MB
CHUNK_SIZE = 8 * 1024 * 1024

RETRYABLE_STATUS = {429, 500, 502, 503, 504}

QUOTA_REASONS = {"quotaExceeded", "uploadLimitExceeded", "dailyLimitExceeded", "rateLimitExceeded"}

# rejectionReason values that mean someone else's rights were asserted
RESTRICTING_REJECTIONS = {"claim", "copyright", "trademark", "legal", "duplicate"}


def _error_reasons(exc: HttpError) -> set[str]:
    reasons: set[str] = set()
    for detail in getattr(exc, "error_details", None) or []:
        if isinstance(detail, dict) and detail.get("reason"):
            reasons.add(str(detail["reason"]))
    try:
        payload = json.loads(exc.content.decode("utf-8") if isinstance(exc.content, bytes) else exc.content)
    except (ValueError, TypeError, AttributeError):
        return reasons
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        for item in error.get("errors") or []:
            if isinstance(item, dict) and item.get("reason"):
                reasons.add(str(item["reason"]))
    return reasons


def is_quota_error(exc: Exception) -> bool:
    if not isinstance(exc, HttpError):
        return False
    return exc.resp.status in (403, 429) and bool(_error_reasons(exc) & QUOTA_REASONS)


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, HttpError):
        return exc.resp.status in RETRYABLE_STATUS and not is_quota_error(exc)
    return isinstance(exc, (ConnectionError, socket.timeout, TimeoutError))


class YouTubeUploader:

    def __init__(self, credentials=None, service=None, category_id: str = YT_DEFAULT_CATEGORY) -> None:
        if service is None:
            service = build("youtube", "v3", credentials=credentials, cache_discovery=False)
        self._service = service
        self._category_id = category_id

    # ── Core upload ────────────────────────────────────────────────────────

    def upload(
        self,
        stream: IO[bytes],
        title: str,
        description: str,
        tags: list[str],
        privacy: Visibility | str = Visibility.PRIVATE,
        publish_at: datetime | None = None,
    ) -> UploadResult:
        """
        Upload *stream* (seekable, positioned anywhere) as a new video.

        A *publish_at* instant forces ``private`` until YouTube releases it.
        Never raises; failures come back as ``UploadResult(success=False)``.
        """
        privacy = Visibility(privacy).value
        status: dict[str, Any] = {"privacyStatus": privacy, "selfDeclaredMadeForKids": False}
        if publish_at is not None:
            status["privacyStatus"] = Visibility.PRIVATE.value
            status["publishAt"] = rfc3339(publish_at)

        body = {
            "snippet": {
                "title": title,
                "description": description,
                "tags": list(tags),
                "categoryId": self._category_id,
            },
            "status": status,
        }

        logger.info(
            f"[Uploader] Starting upload: '{title[:60]}' | "
            f"privacy={status['privacyStatus']} | publish_at={status.get('publishAt')}"
        )
        try:
            video_id = self._execute_resumable_upload(body, stream)
        except HttpError as exc:
            if is_quota_error(exc):
                logger.error(f"[Uploader] Quota exhausted: {exc}")
                return UploadResult(success=False, error=f"YouTube quota exceeded: {exc}", is_quota_error=True)
            logger.error(f"[Uploader] Upload failed: {exc}")
            return UploadResult(success=False, error=str(exc))
        except Exception as exc:
            logger.error(f"[Uploader] Upload failed: {exc}")
            return UploadResult(success=False, error=str(exc) or exc.__class__.__name__)

        logger.success(f"[Uploader] Upload complete → https://youtu.be/{video_id}")
        return UploadResult(success=True, video_id=video_id)

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(4),
        wait=wait_exponential(multiplier=2, min=2, max=60),
        reraise=True,
    )
    def _execute_resumable_upload(self, body: dict, stream: IO[bytes]) -> str:
        stream.seek(0)
        media = MediaIoBaseUpload(stream, mimetype="video/*", chunksize=CHUNK_SIZE, resumable=True)
        request = self._service.videos().insert(
            part=",".join(body.keys()),
            body=body,
            media_body=media,
        )

        response = None
        while response is None:
            status, response = request.next_chunk()
            if status:
                logger.debug(f"[Uploader] Upload progress: {int(status.progress() * 100)}%")

        video_id = response.get("id") if isinstance(response, dict) else None
        if not video_id:
            raise RuntimeError("Upload completed without a video id")
        return str(video_id)

    # ── Post-upload ────────────────────────────────────────────────────────

    def get_upload_status(self, video_id: str) -> UploadStatus:
        resp = self._service.videos().list(part="status,contentDetails", id=video_id).execute()
        items = resp.get("items") or []
        if not items:
            return UploadStatus(upload_status="notFound")

        item = items[0]
        status = item.get("status") or {}
        details = item.get("contentDetails") or {}

        upload_status = str(status.get("uploadStatus") or "unknown")
        rejection = status.get("rejectionReason")
        blocked = (details.get("regionRestriction") or {}).get("blocked") or []

        return UploadStatus(
            upload_status=upload_status,
            has_restrictions=upload_status == "rejected" or (rejection or "") in RESTRICTING_REJECTIONS,
            region_restricted=bool(blocked),
            privacy_status=status.get("privacyStatus"),
            rejection_reason=rejection,
        )

    def set_visibility(self, video_id: str, visibility: Visibility | str) -> None:
        value = Visibility(visibility).value
        self._service.videos().update(
            part="status",
            body={"id": video_id, "status": {"privacyStatus": value, "selfDeclaredMadeForKids": False}},
        ).execute()
        logger.info(f"[Uploader] {video_id} visibility → {value}")

    # ── Channel utilities ──────────────────────────────────────────────────

    def get_channel_info(self) -> dict[str, Any] | None:
        try:
            resp = self._service.channels().list(part="snippet,statistics", mine=True).execute()
        except HttpError as exc:
            logger.warning(f"[Uploader] Channel lookup failed: {exc}")
            return None
        items = resp.get("items") or []
        if not items:
            return None
        channel = items[0]
        snippet = channel.get("snippet") or {}
        stats = channel.get("statistics") or {}
        return {
            "id": channel.get("id"),
            "title": snippet.get("title"),
            "thumbnail": ((snippet.get("thumbnails") or {}).get("default") or {}).get("url"),
            "subscriber_count": stats.get("subscriberCount"),
            "video_count": stats.get("videoCount"),
        }

    def delete_video(self, video_id: str) -> bool:
        self._service.videos().delete(id=video_id).execute()
        logger.info(f"[Uploader] Deleted {video_id}")
        return True
