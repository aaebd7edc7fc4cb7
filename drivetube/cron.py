from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from loguru import logger

from drivetube.automation import build_runner
from drivetube.utils.config import AppConfig


@dataclass
class JobRunSummary:
    job_id: str | None
    job_name: str
    user_id: str = ""
    result: dict[str, Any] | None = None
    error: str | None = None


@dataclass
class CronReport:
    jobs: list[JobRunSummary] = field(default_factory=list)

    @property
    def total_uploaded(self) -> int:
        return sum(int((j.result or {}).get("uploaded", 0)) for j in self.jobs)

    def to_dict(self) -> dict[str, Any]:
        return {
            "jobsProcessed": len(self.jobs),
            "totalUploaded": self.total_uploaded,
            "results": [
                {"jobId": j.job_id, "jobName": j.job_name, "userId": j.user_id, "result": j.result, "error": j.error}
                for j in self.jobs
            ],
        }


def _run_one(
    summary: JobRunSummary,
    runner_factory: Callable[..., Any],
    store,
    credentials_for: Callable[[str], Any],
    config: AppConfig,
    link: str,
    upload_hour: int,
    videos_per_day: int,
) -> None:
    try:
        runner = runner_factory(store, credentials_for(summary.user_id), config)
        result = runner.run(
            summary.user_id,
            link,
            limit=videos_per_day,
            upload_hour=upload_hour,
            job_id=summary.job_id,
            daily_quota=videos_per_day,
        )
        summary.result = result.to_dict()
        logger.info(f"[Cron] '{summary.job_name}': uploaded={result.uploaded} failed={result.failed}")
    except Exception as exc:
        logger.exception(f"[Cron] '{summary.job_name}' failed: {exc}")
        summary.error = str(exc)


def run_scheduled_jobs(
    store,
    credentials_for: Callable[[str], Any],
    config: AppConfig,
    runner_factory: Callable[..., Any] = build_runner,
) -> CronReport:
    """
    Run every enabled automation job once, then every user's own settings
    that carry a Drive link.

    Each job uploads up to its ``videos_per_day`` at its ``upload_hour``,
    with schedule slots counted per job. Settings runs count slots per user.
    A run that blows up is recorded and the remaining runs still go ahead.
    """
    report = CronReport()
    jobs = store.list_jobs(enabled_only=True)
    linked = store.list_linked_settings()
    logger.info(f"[Cron] {len(jobs)} enabled job(s), {len(linked)} user setting(s) with a Drive link")

    for job in jobs:
        summary = JobRunSummary(job_id=job.id, job_name=job.name, user_id=job.user_id)
        _run_one(
            summary, runner_factory, store, credentials_for, config,
            job.drive_folder_link, job.upload_hour, job.videos_per_day,
        )
        report.jobs.append(summary)

    for settings in linked:
        summary = JobRunSummary(job_id=None, job_name=f"settings:{settings.user_id}", user_id=settings.user_id)
        _run_one(
            summary, runner_factory, store, credentials_for, config,
            settings.drive_folder_link, settings.upload_hour, settings.videos_per_day,
        )
        report.jobs.append(summary)

    return report
