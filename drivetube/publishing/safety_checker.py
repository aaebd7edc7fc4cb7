from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from googleapiclient.errors import HttpError
from loguru import logger

from drivetube.models import UploadStatus, Visibility

TERMINAL_UPLOAD_STATES = {"processed", "failed", "rejected"}


def default_restriction_policy(status: UploadStatus) -> bool:
    return status.has_restrictions or status.region_restricted


@dataclass(frozen=True)
class SafetyOutcome:
    restricted: bool
    status: UploadStatus | None
    # set when a restricted video could not be switched to private
    visibility_error: str | None = None


class SafetyChecker:
    """
    Waits for YouTube to finish processing an upload, then decides whether
    the video is restricted. Restricted videos are forced back to private.
    Running the check twice on the same video gives the same verdict.
    """

    def __init__(
        self,
        uploader,
        poll_interval: float = 5,
        max_attempts: int = 24,
        sleep: Callable[[float], None] = time.sleep,
        is_restricted: Callable[[UploadStatus], bool] = default_restriction_policy,
    ) -> None:
        self._uploader = uploader
        self._poll_interval = poll_interval
        self._max_attempts = max(1, int(max_attempts))
        self._sleep = sleep
        self._is_restricted = is_restricted

    def _read(self, video_id: str) -> UploadStatus | None:
        try:
            return self._uploader.get_upload_status(video_id)
        except (HttpError, OSError, RuntimeError) as exc:
            logger.warning(f"[Safety] Status read failed for {video_id}: {exc}")
            return None

    def check(self, video_id: str) -> SafetyOutcome:
        status: UploadStatus | None = None
        for attempt in range(1, self._max_attempts + 1):
            status = self._read(video_id) or status
            if status is not None and status.upload_status in TERMINAL_UPLOAD_STATES:
                break
            logger.debug(f"[Safety] {video_id} still processing (attempt {attempt}/{self._max_attempts})")
            self._sleep(self._poll_interval)
        else:
            logger.warning(f"[Safety] {video_id} not processed after {self._max_attempts} polls")

        # restriction flags can land just after processing finishes
        status = self._read(video_id) or status

        if status is None:
            logger.warning(f"[Safety] No status for {video_id}; treating as unrestricted")
            return SafetyOutcome(restricted=False, status=None)

        restricted = bool(self._is_restricted(status))
        if restricted:
            logger.warning(
                f"[Safety] {video_id} restricted (upload={status.upload_status}, "
                f"reason={status.rejection_reason}, region={status.region_restricted})"
            )
            try:
                self._uploader.set_visibility(video_id, Visibility.PRIVATE)
            except (HttpError, OSError, RuntimeError) as exc:
                logger.error(f"[Safety] Could not make {video_id} private: {exc}")
                return SafetyOutcome(restricted=True, status=status, visibility_error=str(exc))
        else:
            logger.info(f"[Safety] {video_id} passed ({status.upload_status})")
        return SafetyOutcome(restricted=restricted, status=status)
