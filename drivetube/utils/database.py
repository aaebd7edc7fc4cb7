"""
utils/database.py – drivetube SQLite store
==========================================
Single repository object for video records, automation jobs, per-user
settings and copyright check logs. It is constructed explicitly and passed
to the services that need it; nothing in the package holds a global handle.
"""
from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from loguru import logger

from drivetube.models import (
    AutomationJob,
    CopyrightLog,
    CopyrightStatus,
    ScheduleScope,
    UserSettings,
    VideoRecord,
    VideoStatus,
    Visibility,
)
from drivetube.utils.helpers import as_utc, day_bounds, ensure_dir, now_utc


_VIDEO_COLUMNS = (
    "id",
    "drive_id",
    "user_id",
    "job_id",
    "file_name",
    "title",
    "description",
    "tags",
    "transcript",
    "status",
    "youtube_id",
    "uploaded_at",
    "scheduled_for",
    "visibility",
    "copyright_status",
    "copyright_checked_at",
    "error",
    "created_at",
    "updated_at",
)

_VIDEO_DATETIME_COLUMNS = {"uploaded_at", "scheduled_for", "copyright_checked_at", "created_at", "updated_at"}

_JOB_COLUMNS = ("name", "drive_folder_link", "upload_hour", "videos_per_day", "enabled")


def _ts(dt: datetime | None) -> str | None:
    # fixed-width so that string comparison in SQL matches time order
    if dt is None:
        return None
    return as_utc(dt).isoformat(timespec="microseconds")


def _dt(s: str | None) -> datetime | None:
    if not s:
        return None
    return as_utc(datetime.fromisoformat(s))


def _to_db(column: str, value: Any) -> Any:
    if column in _VIDEO_DATETIME_COLUMNS:
        return _ts(value)
    if isinstance(value, (VideoStatus, Visibility, CopyrightStatus)):
        return value.value
    return value


class VideoStore:
    def __init__(self, db_path: Path) -> None:
        ensure_dir(db_path.parent)
        self._path = db_path
        self._conn = sqlite3.connect(str(db_path))
        self._conn.row_factory = sqlite3.Row
        self._migrate()

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "VideoStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _migrate(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS videos (
              id TEXT PRIMARY KEY,
              drive_id TEXT UNIQUE NOT NULL,
              user_id TEXT NOT NULL,
              job_id TEXT,
              file_name TEXT NOT NULL,
              title TEXT NOT NULL DEFAULT '',
              description TEXT NOT NULL DEFAULT '',
              tags TEXT NOT NULL DEFAULT '',
              transcript TEXT,
              status TEXT NOT NULL,
              youtube_id TEXT,
              uploaded_at TEXT,
              scheduled_for TEXT,
              visibility TEXT NOT NULL DEFAULT 'private',
              copyright_status TEXT NOT NULL DEFAULT 'PENDING',
              copyright_checked_at TEXT,
              error TEXT,
              created_at TEXT NOT NULL,
              updated_at TEXT NOT NULL
            )
            """
        )
        cur.execute("CREATE INDEX IF NOT EXISTS idx_videos_user_status ON videos(user_id, status)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_videos_scheduled ON videos(scheduled_for)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_videos_job ON videos(job_id)")
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS automation_jobs (
              id TEXT PRIMARY KEY,
              user_id TEXT NOT NULL,
              name TEXT NOT NULL,
              drive_folder_link TEXT NOT NULL,
              upload_hour INTEGER NOT NULL,
              videos_per_day INTEGER NOT NULL,
              enabled INTEGER NOT NULL DEFAULT 1,
              created_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS user_settings (
              user_id TEXT PRIMARY KEY,
              drive_folder_link TEXT,
              upload_hour INTEGER NOT NULL DEFAULT 10,
              videos_per_day INTEGER NOT NULL DEFAULT 1
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS copyright_logs (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              video_id TEXT NOT NULL,
              youtube_id TEXT NOT NULL,
              claim_type TEXT,
              claim_status TEXT,
              claim_details TEXT NOT NULL,
              checked_at TEXT NOT NULL,
              FOREIGN KEY(video_id) REFERENCES videos(id)
            )
            """
        )
        self._conn.commit()

    # ── Videos ─────────────────────────────────────────────────────────────

    @staticmethod
    def _row_to_video(row: sqlite3.Row) -> VideoRecord:
        return VideoRecord(
            id=row["id"],
            drive_id=row["drive_id"],
            user_id=row["user_id"],
            job_id=row["job_id"],
            file_name=row["file_name"],
            title=row["title"],
            description=row["description"],
            tags=row["tags"],
            transcript=row["transcript"],
            status=VideoStatus(row["status"]),
            youtube_id=row["youtube_id"],
            uploaded_at=_dt(row["uploaded_at"]),
            scheduled_for=_dt(row["scheduled_for"]),
            visibility=Visibility(row["visibility"]),
            copyright_status=CopyrightStatus(row["copyright_status"]),
            copyright_checked_at=_dt(row["copyright_checked_at"]),
            error=row["error"],
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
        )

    def create_video(self, record: VideoRecord) -> VideoRecord:
        """Insert a new record. A second record for the same drive_id raises sqlite3.IntegrityError."""
        now = now_utc()
        record.created_at = record.created_at or now
        record.updated_at = now
        values = [_to_db(col, getattr(record, col)) for col in _VIDEO_COLUMNS]
        placeholders = ",".join("?" for _ in _VIDEO_COLUMNS)
        self._conn.execute(
            f"INSERT INTO videos ({','.join(_VIDEO_COLUMNS)}) VALUES ({placeholders})",
            values,
        )
        self._conn.commit()
        logger.debug(f"[Store] Created video {record.id} drive_id={record.drive_id} status={record.status.value}")
        return record

    def update_video(self, video_id: str, **fields: Any) -> VideoRecord:
        bad = (set(fields) - set(_VIDEO_COLUMNS)) | ({"id", "drive_id", "created_at"} & set(fields))
        if bad:
            raise ValueError(f"Cannot update video fields: {sorted(bad)}")
        fields["updated_at"] = now_utc()
        assignments = ", ".join(f"{col} = ?" for col in fields)
        values = [_to_db(col, value) for col, value in fields.items()]
        cur = self._conn.execute(f"UPDATE videos SET {assignments} WHERE id = ?", [*values, video_id])
        self._conn.commit()
        if cur.rowcount == 0:
            raise KeyError(f"Unknown video id: {video_id}")
        record = self.get_video(video_id)
        assert record is not None
        return record

    def get_video(self, video_id: str) -> VideoRecord | None:
        row = self._conn.execute("SELECT * FROM videos WHERE id = ?", (video_id,)).fetchone()
        return self._row_to_video(row) if row else None

    def find_by_drive_id(self, drive_id: str) -> VideoRecord | None:
        row = self._conn.execute("SELECT * FROM videos WHERE drive_id = ?", (drive_id,)).fetchone()
        return self._row_to_video(row) if row else None

    def list_videos(
        self,
        user_id: str | None = None,
        status: VideoStatus | None = None,
        limit: int = 100,
    ) -> list[VideoRecord]:
        clauses: list[str] = []
        params: list[Any] = []
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._conn.execute(
            f"SELECT * FROM videos {where} ORDER BY created_at DESC LIMIT ?",
            [*params, int(limit)],
        ).fetchall()
        return [self._row_to_video(r) for r in rows]

    def known_drive_ids(self, user_id: str, statuses: Iterable[VideoStatus]) -> set[str]:
        status_values = [s.value for s in statuses]
        if not status_values:
            return set()
        placeholders = ",".join("?" for _ in status_values)
        rows = self._conn.execute(
            f"SELECT drive_id FROM videos WHERE user_id = ? AND status IN ({placeholders})",
            [user_id, *status_values],
        ).fetchall()
        return {str(r["drive_id"]) for r in rows}

    def foreign_drive_ids(self, user_id: str) -> set[str]:
        """Drive ids already tracked under some other user."""
        rows = self._conn.execute("SELECT drive_id FROM videos WHERE user_id != ?", (user_id,)).fetchall()
        return {str(r["drive_id"]) for r in rows}

    @staticmethod
    def _scope_clause(scope: ScheduleScope) -> tuple[str, str]:
        if scope.job_id:
            return "job_id = ?", scope.job_id
        return "user_id = ?", scope.user_id

    def find_last_scheduled(self, scope: ScheduleScope) -> VideoRecord | None:
        clause, param = self._scope_clause(scope)
        row = self._conn.execute(
            f"SELECT * FROM videos WHERE {clause} AND scheduled_for IS NOT NULL ORDER BY scheduled_for DESC LIMIT 1",
            (param,),
        ).fetchone()
        return self._row_to_video(row) if row else None

    def count_scheduled_on_day(self, scope: ScheduleScope, day: datetime) -> int:
        clause, param = self._scope_clause(scope)
        start, end = day_bounds(day)
        row = self._conn.execute(
            f"SELECT COUNT(1) AS c FROM videos WHERE {clause} AND scheduled_for >= ? AND scheduled_for < ?",
            (param, _ts(start), _ts(end)),
        ).fetchone()
        return int(row["c"] or 0)

    def videos_due_for_copyright_check(self, uploaded_before: datetime, limit: int = 10) -> list[VideoRecord]:
        """
        UPLOADED videos older than *uploaded_before*, plus RESTRICTED videos
        of any age that were never confirmed private.
        """
        rows = self._conn.execute(
            """
            SELECT * FROM videos
            WHERE copyright_status = ? AND youtube_id IS NOT NULL
              AND ((status = ? AND uploaded_at < ?) OR status = ?)
            ORDER BY uploaded_at ASC
            LIMIT ?
            """,
            (
                CopyrightStatus.PENDING.value,
                VideoStatus.UPLOADED.value,
                _ts(uploaded_before),
                VideoStatus.RESTRICTED.value,
                int(limit),
            ),
        ).fetchall()
        return [self._row_to_video(r) for r in rows]

    def count_by_copyright_status(self) -> dict[str, int]:
        out = {s.value: 0 for s in CopyrightStatus}
        rows = self._conn.execute(
            "SELECT copyright_status, COUNT(1) AS c FROM videos WHERE status IN (?, ?) GROUP BY copyright_status",
            (VideoStatus.UPLOADED.value, VideoStatus.RESTRICTED.value),
        ).fetchall()
        for r in rows:
            out[str(r["copyright_status"])] = int(r["c"] or 0)
        return out

    # ── Copyright logs ─────────────────────────────────────────────────────

    def add_copyright_log(self, entry: CopyrightLog) -> None:
        entry.checked_at = entry.checked_at or now_utc()
        self._conn.execute(
            """
            INSERT INTO copyright_logs (video_id, youtube_id, claim_type, claim_status, claim_details, checked_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (entry.video_id, entry.youtube_id, entry.claim_type, entry.claim_status, entry.claim_details, _ts(entry.checked_at)),
        )
        self._conn.commit()

    def copyright_logs_for(self, video_id: str) -> list[CopyrightLog]:
        rows = self._conn.execute(
            "SELECT * FROM copyright_logs WHERE video_id = ? ORDER BY id ASC",
            (video_id,),
        ).fetchall()
        return [
            CopyrightLog(
                video_id=r["video_id"],
                youtube_id=r["youtube_id"],
                claim_type=r["claim_type"],
                claim_status=r["claim_status"],
                claim_details=r["claim_details"],
                checked_at=_dt(r["checked_at"]),
            )
            for r in rows
        ]

    # ── Automation jobs ────────────────────────────────────────────────────

    @staticmethod
    def _row_to_job(row: sqlite3.Row) -> AutomationJob:
        return AutomationJob(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            drive_folder_link=row["drive_folder_link"],
            upload_hour=int(row["upload_hour"]),
            videos_per_day=int(row["videos_per_day"]),
            enabled=bool(row["enabled"]),
            created_at=_dt(row["created_at"]),
        )

    def create_job(self, job: AutomationJob) -> AutomationJob:
        job.created_at = job.created_at or now_utc()
        self._conn.execute(
            """
            INSERT INTO automation_jobs (id, user_id, name, drive_folder_link, upload_hour, videos_per_day, enabled, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                job.id,
                job.user_id,
                job.name,
                job.drive_folder_link,
                int(job.upload_hour),
                int(job.videos_per_day),
                1 if job.enabled else 0,
                _ts(job.created_at),
            ),
        )
        self._conn.commit()
        return job

    def get_job(self, job_id: str) -> AutomationJob | None:
        row = self._conn.execute("SELECT * FROM automation_jobs WHERE id = ?", (job_id,)).fetchone()
        return self._row_to_job(row) if row else None

    def list_jobs(self, user_id: str | None = None, enabled_only: bool = False) -> list[AutomationJob]:
        clauses: list[str] = []
        params: list[Any] = []
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)
        if enabled_only:
            clauses.append("enabled = 1")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._conn.execute(f"SELECT * FROM automation_jobs {where} ORDER BY created_at ASC", params).fetchall()
        return [self._row_to_job(r) for r in rows]

    def update_job(self, job_id: str, **fields: Any) -> AutomationJob:
        unknown = set(fields) - set(_JOB_COLUMNS)
        if unknown:
            raise ValueError(f"Cannot update job fields: {sorted(unknown)}")
        current = self.get_job(job_id)
        if current is None:
            raise KeyError(f"Unknown job id: {job_id}")
        # re-validate hour/quota through the dataclass
        merged = AutomationJob(
            id=current.id,
            user_id=current.user_id,
            created_at=current.created_at,
            **{col: fields.get(col, getattr(current, col)) for col in _JOB_COLUMNS},
        )
        self._conn.execute(
            """
            UPDATE automation_jobs
            SET name = ?, drive_folder_link = ?, upload_hour = ?, videos_per_day = ?, enabled = ?
            WHERE id = ?
            """,
            (
                merged.name,
                merged.drive_folder_link,
                int(merged.upload_hour),
                int(merged.videos_per_day),
                1 if merged.enabled else 0,
                job_id,
            ),
        )
        self._conn.commit()
        return merged

    # ── User settings ──────────────────────────────────────────────────────

    @staticmethod
    def _row_to_settings(row: sqlite3.Row) -> UserSettings:
        return UserSettings(
            user_id=row["user_id"],
            drive_folder_link=row["drive_folder_link"],
            upload_hour=int(row["upload_hour"]),
            videos_per_day=int(row["videos_per_day"]),
        )

    def get_settings(self, user_id: str, upload_hour: int = 10, videos_per_day: int = 1) -> UserSettings:
        """Settings for *user_id*; a first read stores the given defaults."""
        row = self._conn.execute("SELECT * FROM user_settings WHERE user_id = ?", (user_id,)).fetchone()
        if not row:
            return self.upsert_settings(
                UserSettings(user_id=user_id, upload_hour=upload_hour, videos_per_day=videos_per_day)
            )
        return self._row_to_settings(row)

    def list_linked_settings(self) -> list[UserSettings]:
        rows = self._conn.execute(
            "SELECT * FROM user_settings WHERE drive_folder_link IS NOT NULL AND drive_folder_link != '' ORDER BY user_id"
        ).fetchall()
        return [self._row_to_settings(r) for r in rows]

    def upsert_settings(self, settings: UserSettings) -> UserSettings:
        self._conn.execute(
            """
            INSERT INTO user_settings (user_id, drive_folder_link, upload_hour, videos_per_day)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
              drive_folder_link = excluded.drive_folder_link,
              upload_hour = excluded.upload_hour,
              videos_per_day = excluded.videos_per_day
            """,
            (settings.user_id, settings.drive_folder_link, int(settings.upload_hour), int(settings.videos_per_day)),
        )
        self._conn.commit()
        return settings
