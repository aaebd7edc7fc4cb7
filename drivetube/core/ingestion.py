from __future__ import annotations

from dataclasses import dataclass, field

from googleapiclient.errors import HttpError
from loguru import logger

from drivetube.core.drive_client import DriveError, resolve_drive_target
from drivetube.models import DriveFile, VideoStatus


# In-flight and terminal records are never picked up again by a scan
ALWAYS_EXCLUDED = (
    VideoStatus.UPLOADED,
    VideoStatus.PROCESSING,
    VideoStatus.PENDING,
    VideoStatus.FAILED,
    VideoStatus.RESTRICTED,
)


@dataclass
class IngestionOutcome:
    candidates: list[DriveFile] = field(default_factory=list)
    discovered: int = 0
    error: str | None = None


def exclusion_statuses(draft_only: bool) -> tuple[VideoStatus, ...]:
    """Draft scans skip existing drafts; upload runs may promote them."""
    if draft_only:
        return ALWAYS_EXCLUDED + (VideoStatus.DRAFT,)
    return ALWAYS_EXCLUDED


def discover_files(drive, link: str, max_depth: int = 5) -> tuple[list[DriveFile], str | None]:
    target = resolve_drive_target(link)
    if not target:
        return [], "Invalid Google Drive link"

    try:
        meta = drive.get_metadata(target)
        if meta.is_folder:
            return drive.list_videos(target, max_depth=max_depth), None
        if meta.is_video:
            return [meta], None
        return [], f"Unsupported Drive item type: {meta.mime_type or 'unknown'}"
    except (DriveError, HttpError) as exc:
        logger.error(f"[Ingestion] Drive discovery failed for {target}: {exc}")
        return [], f"Failed to read Drive content: {exc}"


def find_candidates(
    drive,
    store,
    owner: str,
    link: str,
    limit: int | None,
    draft_only: bool,
    max_depth: int = 5,
) -> IngestionOutcome:
    """
    Resolve *link* to the Drive files that still need work for *owner*.

    Empty folders and fully-processed folders are reported through
    ``IngestionOutcome.error``; nothing here raises for them.
    """
    files, error = discover_files(drive, link, max_depth=max_depth)
    if error:
        return IngestionOutcome(error=error)
    if not files:
        return IngestionOutcome(error="No video files found in the Drive target")

    # records held by another owner are never taken over, so they cannot be candidates
    known = store.known_drive_ids(owner, exclusion_statuses(draft_only)) | store.foreign_drive_ids(owner)
    fresh = [f for f in files if f.id not in known]
    if not fresh:
        return IngestionOutcome(discovered=len(files), error="All videos have already been processed")

    if limit is not None:
        fresh = fresh[: max(0, int(limit))]
    logger.info(f"[Ingestion] {len(files)} discovered, {len(fresh)} candidate(s) selected (draft_only={draft_only})")
    return IngestionOutcome(candidates=fresh, discovered=len(files))


def preview_candidates(drive, store, owner: str, link: str, max_depth: int = 5) -> IngestionOutcome:
    """Everything an upload run could pick up, without a limit."""
    return find_candidates(drive, store, owner, link, limit=None, draft_only=False, max_depth=max_depth)


def get_pending_count(drive, store, owner: str, link: str, max_depth: int = 5) -> int:
    try:
        return len(preview_candidates(drive, store, owner, link, max_depth=max_depth).candidates)
    except Exception as exc:
        logger.warning(f"[Ingestion] Pending count failed for {owner}: {exc}")
        return 0
