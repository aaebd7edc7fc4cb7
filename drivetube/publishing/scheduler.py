"""
publishing/scheduler.py – drivetube Publish Scheduler
=====================================================
Allocates the next public-release slot for an owner (or one of its jobs).
Guarantees:
  - At most `daily_quota` videos share one UTC calendar day per scope
  - Every slot sits exactly on `upload_hour`:00 UTC
  - Returned slots are strictly in the future and never move backwards
    relative to slots already persisted for the same scope
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

from loguru import logger

from drivetube.models import ScheduleScope
from drivetube.utils.helpers import as_utc, day_start, now_utc


def _at_hour(day: datetime, hour: int) -> datetime:
    return day_start(day).replace(hour=hour)


def get_next_schedule_time(
    store,
    owner: str,
    upload_hour: int,
    daily_quota: int,
    job_id: str | None = None,
    now: datetime | Callable[[], datetime] | None = None,
) -> datetime:
    """
    Return the next publish instant for *owner* (scoped to *job_id* when given).

    Args:
        store: Repository exposing find_last_scheduled / count_scheduled_on_day.
        owner: User id owning the videos.
        upload_hour: Preferred publish hour, 0-23, UTC.
        daily_quota: Maximum videos per calendar day for the scope (>= 1).
        job_id: Optional automation job scope.
        now: Reference "now" (datetime or zero-arg callable); defaults to the wall clock.

    Raises:
        ValueError: On an hour outside 0-23 or a non-positive quota.
    """
    if not 0 <= int(upload_hour) <= 23:
        raise ValueError(f"upload_hour must be within 0-23, got {upload_hour}")
    if int(daily_quota) < 1:
        raise ValueError(f"daily_quota must be positive, got {daily_quota}")

    if callable(now):
        now = now()
    current = as_utc(now) if now is not None else now_utc()
    today = day_start(current)
    scope = ScheduleScope(user_id=owner, job_id=job_id)

    last = store.find_last_scheduled(scope)
    if last is not None and last.scheduled_for is not None:
        last_day = day_start(last.scheduled_for)
        used = store.count_scheduled_on_day(scope, last_day)
        candidate_day = last_day if used < daily_quota else last_day + timedelta(days=1)
        logger.debug(
            f"[Scheduler] Last slot {last.scheduled_for.isoformat()} ({used}/{daily_quota} used that day)"
        )
    else:
        candidate_day = today

    if candidate_day < today:
        candidate_day = today

    slot = _at_hour(candidate_day, int(upload_hour))
    while slot <= current:
        slot += timedelta(days=1)

    logger.info(f"[Scheduler] Next slot for {scope.job_id or scope.user_id}: {slot.isoformat()}")
    return slot
