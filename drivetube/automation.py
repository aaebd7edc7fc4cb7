"""
automation.py – drivetube Automation Run Orchestrator
=====================================================
One bounded batch: Drive link → eligible candidates → metadata → store →
YouTube upload → safety check. Candidates are handled one at a time, in the
order ingestion returns them, because every schedule slot depends on the
slot persisted for the previous candidate.

Per-file problems are isolated and reported in the AutomationResult; only
run-level preconditions (bad link, unreadable Drive content, nothing to do)
end a run early, and they do so with a single error entry.
"""
from __future__ import annotations

from contextlib import closing
from datetime import datetime
from typing import Callable

from loguru import logger

from drivetube.core.ai_engine import GeminiClient
from drivetube.core.drive_client import DriveClient
from drivetube.core.ingestion import find_candidates
from drivetube.core.metadata_generator import MetadataContext, MetadataSelector, build_selector
from drivetube.core.transcriber import AssemblyAITranscriber
from drivetube.models import (
    AutomationResult,
    CopyrightStatus,
    DriveFile,
    FileDetail,
    VideoRecord,
    VideoStatus,
    Visibility,
)
from drivetube.publishing.safety_checker import SafetyChecker
from drivetube.publishing.scheduler import get_next_schedule_time
from drivetube.publishing.youtube_uploader import YouTubeUploader
from drivetube.utils.config import AppConfig
from drivetube.utils.helpers import as_utc, now_utc


class AutomationRunner:

    def __init__(
        self,
        store,
        drive,
        uploader,
        selector: MetadataSelector,
        safety: SafetyChecker,
        now: Callable[[], datetime] = now_utc,
        max_depth: int = 5,
    ) -> None:
        self._store = store
        self._drive = drive
        self._uploader = uploader
        self._selector = selector
        self._safety = safety
        self._now = now
        self._max_depth = max_depth

    # ── Public entry ───────────────────────────────────────────────────────

    def run(
        self,
        owner: str,
        link: str,
        limit: int = 1,
        upload_hour: int = 10,
        draft_only: bool = False,
        explicit_schedule_time: datetime | None = None,
        immediate: bool = False,
        job_id: str | None = None,
        daily_quota: int | None = None,
    ) -> AutomationResult:
        result = AutomationResult()
        mode = "draft scan" if draft_only else ("immediate upload" if immediate else "scheduled upload")
        logger.info(f"[Automation] Run for {owner} ({mode}, limit={limit}, job={job_id or '-'})")

        try:
            outcome = find_candidates(
                self._drive,
                self._store,
                owner,
                link,
                limit=limit,
                draft_only=draft_only,
                max_depth=self._max_depth,
            )
        except Exception as exc:
            logger.exception(f"[Automation] Discovery crashed: {exc}")
            result.errors.append(f"Automation error: {exc}")
            return result

        if outcome.error:
            logger.warning(f"[Automation] {outcome.error}")
            result.errors.append(outcome.error)
            return result

        quota = int(daily_quota or limit or 1)
        for file in outcome.candidates:
            result.processed += 1
            stop = self._process_one(
                file,
                result,
                owner=owner,
                upload_hour=upload_hour,
                draft_only=draft_only,
                explicit_schedule_time=explicit_schedule_time,
                immediate=immediate,
                job_id=job_id,
                daily_quota=quota,
            )
            if stop:
                logger.error("[Automation] Upload quota exhausted, stopping this batch")
                break

        logger.info(
            f"[Automation] Done: processed={result.processed} uploaded={result.uploaded} "
            f"failed={result.failed} errors={len(result.errors)}"
        )
        return result

    # ── Per-candidate ──────────────────────────────────────────────────────

    def _schedule_for(
        self,
        owner: str,
        upload_hour: int,
        daily_quota: int,
        job_id: str | None,
        explicit_schedule_time: datetime | None,
        immediate: bool,
    ) -> datetime | None:
        if immediate:
            return None
        if explicit_schedule_time is not None:
            explicit = as_utc(explicit_schedule_time)
            if explicit > self._now():
                return explicit
            logger.warning(
                f"[Automation] Requested schedule {explicit.isoformat()} is not in the future, using the next free slot"
            )
        return get_next_schedule_time(
            self._store,
            owner,
            upload_hour,
            daily_quota,
            job_id=job_id,
            now=self._now,
        )

    def _process_one(
        self,
        file: DriveFile,
        result: AutomationResult,
        *,
        owner: str,
        upload_hour: int,
        draft_only: bool,
        explicit_schedule_time: datetime | None,
        immediate: bool,
        job_id: str | None,
        daily_quota: int,
    ) -> bool:
        """Handle one candidate. Returns True when the batch must stop."""
        record_id: str | None = None
        try:
            existing = self._store.find_by_drive_id(file.id)
            if existing is not None:
                upgradable = existing.status == VideoStatus.DRAFT and existing.user_id == owner and not draft_only
                if not upgradable:
                    logger.info(f"[Automation] '{file.name}' already tracked as {existing.status.value}, skipping")
                    result.details.append(
                        FileDetail(file.name, "skipped", existing.youtube_id, f"Already {existing.status.value.lower()}")
                    )
                    return False
                record_id = existing.id

            status = VideoStatus.DRAFT if draft_only else VideoStatus.PROCESSING
            if record_id is None:
                record = self._store.create_video(
                    VideoRecord(drive_id=file.id, user_id=owner, file_name=file.name, job_id=job_id, status=status)
                )
                record_id = record.id
            else:
                self._store.update_video(record_id, status=status, error=None)
                logger.info(f"[Automation] Promoting draft '{file.name}' ({record_id})")

            scheduled_for = None
            if not draft_only:
                scheduled_for = self._schedule_for(
                    owner, upload_hour, daily_quota, job_id, explicit_schedule_time, immediate
                )

            meta = self._selector.select(MetadataContext(drive_id=file.id, file_name=file.name, drive=self._drive))
            record = self._store.update_video(
                record_id,
                title=meta.title,
                description=meta.description,
                tags=",".join(meta.tags),
                transcript=meta.transcript,
                scheduled_for=scheduled_for,
                job_id=job_id,
            )

            if draft_only:
                logger.info(f"[Automation] Draft saved for '{file.name}'")
                result.details.append(FileDetail(file.name, "skipped", error="Saved as draft"))
                return False

            return self._upload(record, file, result, immediate)

        except Exception as exc:
            logger.exception(f"[Automation] Error processing '{file.name}': {exc}")
            if record_id is not None:
                try:
                    self._store.update_video(
                        record_id, status=VideoStatus.FAILED, scheduled_for=None, error=str(exc)
                    )
                except Exception as store_exc:
                    logger.error(f"[Automation] Could not mark {record_id} as failed: {store_exc}")
            result.failed += 1
            result.details.append(FileDetail(file.name, "failed", error=str(exc)))
            result.errors.append(f"Error processing {file.name}: {exc}")
            return False

    def _upload(self, record: VideoRecord, file: DriveFile, result: AutomationResult, immediate: bool) -> bool:
        privacy = Visibility.PUBLIC if immediate else Visibility.PRIVATE
        with closing(self._drive.open_stream(file.id)) as stream:
            upload = self._uploader.upload(
                stream,
                record.title,
                record.description,
                record.tag_list(),
                privacy=privacy,
                publish_at=record.scheduled_for,
            )

        if not upload.success:
            self._store.update_video(record.id, status=VideoStatus.FAILED, scheduled_for=None, error=upload.error)
            result.failed += 1
            result.details.append(FileDetail(file.name, "failed", error=upload.error))
            result.errors.append(f"Failed to upload {file.name}: {upload.error}")
            return upload.is_quota_error

        self._store.update_video(record.id, youtube_id=upload.video_id)
        outcome = self._safety.check(upload.video_id)
        now = self._now()

        if outcome.restricted:
            if outcome.visibility_error is None:
                self._store.update_video(
                    record.id,
                    status=VideoStatus.RESTRICTED,
                    visibility=Visibility.PRIVATE,
                    copyright_status=CopyrightStatus.CLAIMED,
                    copyright_checked_at=now,
                    scheduled_for=None,
                    uploaded_at=now,
                )
                note = "Restricted after upload; kept private"
            else:
                # copyright PENDING leaves the privacy switch to the next copyright check
                self._store.update_video(
                    record.id,
                    status=VideoStatus.RESTRICTED,
                    scheduled_for=None,
                    uploaded_at=now,
                    error=f"Could not make video private: {outcome.visibility_error}",
                )
                note = f"Restricted after upload; making it private failed: {outcome.visibility_error}"
                result.errors.append(f"Failed to make {file.name} private: {outcome.visibility_error}")
            result.uploaded += 1
            result.details.append(FileDetail(file.name, "uploaded", upload.video_id, note))
            return False

        visibility = Visibility.PRIVATE if record.scheduled_for is not None else privacy
        self._store.update_video(record.id, status=VideoStatus.UPLOADED, uploaded_at=now, visibility=visibility)
        result.uploaded += 1
        result.details.append(FileDetail(file.name, "uploaded", upload.video_id))
        logger.success(f"[Automation] '{file.name}' uploaded as {upload.video_id}")
        return False


# ── Wiring ────────────────────────────────────────────────────────────────────

def build_runner(store, credentials, config: AppConfig, now: Callable[[], datetime] = now_utc) -> AutomationRunner:
    drive = DriveClient(credentials=credentials)
    uploader = YouTubeUploader(credentials=credentials, category_id=config.youtube_category_id)
    ai = GeminiClient(config.gemini_api_key, model=config.gemini_model)
    transcriber = AssemblyAITranscriber(config.assemblyai_api_key)
    selector = build_selector(config.transcript_prefix_bytes, config.frame_count, transcriber, ai)
    safety = SafetyChecker(
        uploader,
        poll_interval=config.safety_poll_interval,
        max_attempts=config.safety_poll_attempts,
    )
    return AutomationRunner(store, drive, uploader, selector, safety, now=now, max_depth=config.drive_max_depth)


def run_automation(
    owner: str,
    credentials,
    link: str,
    limit: int = 1,
    upload_hour: int = 10,
    draft_only: bool = False,
    explicit_schedule_time: datetime | None = None,
    immediate: bool = False,
    job_id: str | None = None,
    *,
    store,
    config: AppConfig,
) -> AutomationResult:
    runner = build_runner(store, credentials, config)
    return runner.run(
        owner,
        link,
        limit=limit,
        upload_hour=upload_hour,
        draft_only=draft_only,
        explicit_schedule_time=explicit_schedule_time,
        immediate=immediate,
        job_id=job_id,
    )
