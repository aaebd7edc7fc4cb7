"""
publishing/copyright_monitor.py – drivetube Copyright Monitor
=============================================================
Second-pass review of uploads a day after they went up. Claims that
arrive late (after the immediate safety check) pull the video back to
private; clean videos are made public unless YouTube's own scheduled
release is still ahead of us.
"""
from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from googleapiclient.errors import HttpError
from loguru import logger

from drivetube.models import CopyrightLog, CopyrightStatus, VideoStatus, Visibility
from drivetube.publishing.safety_checker import default_restriction_policy
from drivetube.utils.helpers import json_dumps, now_utc


@dataclass
class CopyrightCheckReport:
    checked: int = 0
    made_public: int = 0
    flagged: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def check_pending_copyright(
    store,
    uploader,
    older_than: timedelta = timedelta(hours=24),
    limit: int = 10,
    now: Callable[[], datetime] = now_utc,
) -> CopyrightCheckReport:
    current = now()
    due = store.videos_due_for_copyright_check(current - older_than, limit=limit)
    logger.info(f"[Copyright] Found {len(due)} video(s) to check")

    report = CopyrightCheckReport()
    for video in due:
        try:
            status = uploader.get_upload_status(video.youtube_id)
        except (HttpError, OSError, RuntimeError) as exc:
            report.errors.append(f"Failed to check {video.file_name}: {exc}")
            continue

        report.checked += 1
        # a restriction found at upload time stands until someone clears it by hand
        claimed = video.status == VideoStatus.RESTRICTED or default_restriction_policy(status)

        try:
            store.add_copyright_log(
                CopyrightLog(
                    video_id=video.id,
                    youtube_id=video.youtube_id,
                    claim_type="claim" if claimed else None,
                    claim_status=status.upload_status,
                    claim_details=json_dumps(asdict(status)),
                    checked_at=current,
                )
            )
            if claimed:
                uploader.set_visibility(video.youtube_id, Visibility.PRIVATE)
                store.update_video(
                    video.id,
                    copyright_status=CopyrightStatus.CLAIMED,
                    visibility=Visibility.PRIVATE,
                    copyright_checked_at=current,
                )
                report.flagged += 1
                logger.warning(f"[Copyright] Claim on '{video.file_name}' ({video.youtube_id}), kept private")
            elif video.scheduled_for is not None and video.scheduled_for > current:
                store.update_video(video.id, copyright_status=CopyrightStatus.CLEAR, copyright_checked_at=current)
                logger.info(f"[Copyright] '{video.file_name}' clear, release stays at {video.scheduled_for.isoformat()}")
            else:
                uploader.set_visibility(video.youtube_id, Visibility.PUBLIC)
                store.update_video(
                    video.id,
                    copyright_status=CopyrightStatus.CLEAR,
                    visibility=Visibility.PUBLIC,
                    copyright_checked_at=current,
                )
                report.made_public += 1
                logger.success(f"[Copyright] '{video.file_name}' clear, now public")
        except (HttpError, OSError, RuntimeError, KeyError, sqlite3.Error) as exc:
            report.errors.append(f"Error processing {video.file_name}: {exc}")

    return report


def copyright_summary(store) -> dict[str, int]:
    counts = store.count_by_copyright_status()
    return {
        "pending": counts.get(CopyrightStatus.PENDING.value, 0),
        "clear": counts.get(CopyrightStatus.CLEAR.value, 0),
        "claimed": counts.get(CopyrightStatus.CLAIMED.value, 0),
    }
