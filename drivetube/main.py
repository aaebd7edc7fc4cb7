"""
main.py – drivetube command line
================================
Entry point for manual runs and for the cron / GitHub Actions workflows.

Usage:
    drivetube run [--link <drive link>] [--limit 3] [--hour 10] [--immediate | --schedule 2026-01-01T10:00:00Z]
    drivetube scan [--link <drive link>]        # save drafts only, no upload
    drivetube preview [--link <drive link>]     # list what a run would pick up
    drivetube cron                              # run every enabled automation job
    drivetube copyright-check                   # second-pass claim review
    drivetube add-job --name daily --link <drive link> --hour 10 --per-day 2
    drivetube jobs
    drivetube settings [--link <drive link>] [--hour 10] [--per-day 2]
    drivetube videos [--status UPLOADED]

All secrets are read from environment variables (a .env file is honoured).
"""
from __future__ import annotations

import argparse
import json
import sys
from datetime import timedelta
from typing import Any

from loguru import logger

from drivetube.automation import build_runner
from drivetube.core.drive_client import DriveClient
from drivetube.core.ingestion import preview_candidates
from drivetube.cron import run_scheduled_jobs
from drivetube.models import AutomationJob, UserSettings, VideoStatus
from drivetube.publishing.auth import credentials_from_config
from drivetube.publishing.copyright_monitor import check_pending_copyright, copyright_summary
from drivetube.publishing.youtube_uploader import YouTubeUploader
from drivetube.utils.config import AppConfig, ConfigError
from drivetube.utils.database import VideoStore
from drivetube.utils.helpers import iso_utc, parse_iso_utc
from drivetube.utils.logger import configure_logger


def _print(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


# ─────────────────────────────────────────────────────────────────────────────
#  Commands
# ─────────────────────────────────────────────────────────────────────────────

def _owner_settings(args: argparse.Namespace, cfg: AppConfig, store: VideoStore) -> UserSettings:
    return store.get_settings(
        args.owner, upload_hour=cfg.default_upload_hour, videos_per_day=cfg.default_videos_per_day
    )


def _link(args: argparse.Namespace, settings: UserSettings) -> str:
    link = args.link or settings.drive_folder_link
    if not link:
        raise ConfigError(f"No --link given and no Drive link saved for {args.owner} (see the settings command)")
    return link


def cmd_run(args: argparse.Namespace, cfg: AppConfig, store: VideoStore, draft_only: bool = False) -> int:
    settings = _owner_settings(args, cfg, store)
    link = _link(args, settings)
    runner = build_runner(store, credentials_from_config(cfg), cfg)
    result = runner.run(
        args.owner,
        link,
        limit=args.limit,
        upload_hour=args.hour if args.hour is not None else settings.upload_hour,
        draft_only=draft_only,
        explicit_schedule_time=parse_iso_utc(getattr(args, "schedule", None)),
        immediate=bool(getattr(args, "immediate", False)),
        job_id=getattr(args, "job", None),
        daily_quota=getattr(args, "per_day", None) or settings.videos_per_day,
    )
    _print(result.to_dict())
    return 1 if result.errors and not result.processed else 0


def cmd_scan(args: argparse.Namespace, cfg: AppConfig, store: VideoStore) -> int:
    return cmd_run(args, cfg, store, draft_only=True)


def cmd_preview(args: argparse.Namespace, cfg: AppConfig, store: VideoStore) -> int:
    drive = DriveClient(credentials=credentials_from_config(cfg))
    link = _link(args, _owner_settings(args, cfg, store))
    outcome = preview_candidates(drive, store, args.owner, link, max_depth=cfg.drive_max_depth)
    _print(
        {
            "discovered": outcome.discovered,
            "pending": len(outcome.candidates),
            "error": outcome.error,
            "files": [
                {"id": f.id, "name": f.name, "size": f.size, "createdTime": f.created_time, "url": f.drive_url}
                for f in outcome.candidates
            ],
        }
    )
    return 0


def cmd_cron(args: argparse.Namespace, cfg: AppConfig, store: VideoStore) -> int:
    credentials = credentials_from_config(cfg)
    report = run_scheduled_jobs(store, lambda _user_id: credentials, cfg)
    _print(report.to_dict())
    return 0 if all(j.error is None for j in report.jobs) else 1


def cmd_copyright(args: argparse.Namespace, cfg: AppConfig, store: VideoStore) -> int:
    uploader = YouTubeUploader(credentials=credentials_from_config(cfg), category_id=cfg.youtube_category_id)
    report = check_pending_copyright(store, uploader, older_than=timedelta(hours=args.hours), limit=args.limit)
    _print({**report.to_dict(), "summary": copyright_summary(store)})
    return 0


def cmd_add_job(args: argparse.Namespace, cfg: AppConfig, store: VideoStore) -> int:
    job = store.create_job(
        AutomationJob(
            user_id=args.owner,
            name=args.name,
            drive_folder_link=args.link,
            upload_hour=args.hour if args.hour is not None else cfg.default_upload_hour,
            videos_per_day=args.per_day or cfg.default_videos_per_day,
        )
    )
    logger.success(f"[CLI] Job '{job.name}' created ({job.id})")
    _print({"id": job.id, "name": job.name})
    return 0


def cmd_settings(args: argparse.Namespace, cfg: AppConfig, store: VideoStore) -> int:
    current = _owner_settings(args, cfg, store)
    if args.link is not None or args.hour is not None or args.per_day is not None:
        current = store.upsert_settings(
            UserSettings(
                user_id=args.owner,
                drive_folder_link=args.link if args.link is not None else current.drive_folder_link,
                upload_hour=args.hour if args.hour is not None else current.upload_hour,
                videos_per_day=args.per_day or current.videos_per_day,
            )
        )
        logger.success(f"[CLI] Settings saved for {args.owner}")
    _print(
        {
            "owner": current.user_id,
            "link": current.drive_folder_link,
            "uploadHour": current.upload_hour,
            "videosPerDay": current.videos_per_day,
        }
    )
    return 0


def cmd_jobs(args: argparse.Namespace, cfg: AppConfig, store: VideoStore) -> int:
    _print(
        [
            {
                "id": j.id,
                "owner": j.user_id,
                "name": j.name,
                "link": j.drive_folder_link,
                "uploadHour": j.upload_hour,
                "videosPerDay": j.videos_per_day,
                "enabled": j.enabled,
            }
            for j in store.list_jobs(user_id=args.owner)
        ]
    )
    return 0


def cmd_videos(args: argparse.Namespace, cfg: AppConfig, store: VideoStore) -> int:
    status = VideoStatus(args.status) if args.status else None
    _print(
        [
            {
                "id": v.id,
                "fileName": v.file_name,
                "title": v.title,
                "status": v.status.value,
                "youtubeId": v.youtube_id,
                "scheduledFor": iso_utc(v.scheduled_for),
                "visibility": v.visibility.value,
                "copyrightStatus": v.copyright_status.value,
            }
            for v in store.list_videos(user_id=args.owner, status=status, limit=args.limit)
        ]
    )
    return 0


COMMANDS = {
    "run": cmd_run,
    "scan": cmd_scan,
    "preview": cmd_preview,
    "cron": cmd_cron,
    "copyright-check": cmd_copyright,
    "add-job": cmd_add_job,
    "jobs": cmd_jobs,
    "settings": cmd_settings,
    "videos": cmd_videos,
}


# ─────────────────────────────────────────────────────────────────────────────
#  Argument parsing
# ─────────────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="drivetube", description="Google Drive → YouTube automation")
    parser.add_argument("--owner", default="default", help="Owner / user id the videos belong to")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Upload the next eligible videos")
    p_run.add_argument("--link", default=None, help="Defaults to the owner's saved Drive link")
    p_run.add_argument("--limit", type=int, default=1)
    p_run.add_argument("--hour", type=int, default=None)
    p_run.add_argument("--per-day", type=int, default=None)
    p_run.add_argument("--job", default=None)
    mode = p_run.add_mutually_exclusive_group()
    mode.add_argument("--immediate", action="store_true", help="Publish now as public")
    mode.add_argument("--schedule", default=None, help="Explicit publish time (ISO 8601, UTC if naive)")

    p_scan = sub.add_parser("scan", help="Generate metadata and save drafts, no upload")
    p_scan.add_argument("--link", default=None)
    p_scan.add_argument("--limit", type=int, default=10)
    p_scan.set_defaults(hour=None, per_day=None)

    p_preview = sub.add_parser("preview", help="List files an upload run could pick up")
    p_preview.add_argument("--link", default=None)

    sub.add_parser("cron", help="Run every enabled automation job")

    p_copy = sub.add_parser("copyright-check", help="Review uploads for late copyright claims")
    p_copy.add_argument("--hours", type=float, default=24.0)
    p_copy.add_argument("--limit", type=int, default=10)

    p_job = sub.add_parser("add-job", help="Create an automation job")
    p_job.add_argument("--name", required=True)
    p_job.add_argument("--link", required=True)
    p_job.add_argument("--hour", type=int, default=None)
    p_job.add_argument("--per-day", type=int, default=None)

    sub.add_parser("jobs", help="List automation jobs")

    p_settings = sub.add_parser("settings", help="Show or update the owner's default link, hour and daily quota")
    p_settings.add_argument("--link", default=None)
    p_settings.add_argument("--hour", type=int, default=None, choices=range(24), metavar="HOUR")
    p_settings.add_argument("--per-day", type=int, default=None)

    p_videos = sub.add_parser("videos", help="List tracked videos")
    p_videos.add_argument("--status", default=None, type=str.upper, choices=[s.value for s in VideoStatus])
    p_videos.add_argument("--limit", type=int, default=50)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    cfg = AppConfig.from_env()
    configure_logger(cfg.log_level, cfg.log_dir)
    logger.info(f"━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━")
    logger.info(f"  drivetube | Command: {args.cmd} | Owner: {args.owner}")
    logger.info(f"━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━")

    try:
        with VideoStore(cfg.database_path) as store:
            return COMMANDS[args.cmd](args, cfg, store)
    except ConfigError as exc:
        logger.error(f"Configuration error: {exc}")
        return 2
    except KeyboardInterrupt:
        logger.warning("Interrupted by user.")
        return 130
    except Exception as exc:
        logger.exception(f"FATAL ERROR in '{args.cmd}': {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
