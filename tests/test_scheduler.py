from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from conftest import NOW
from drivetube.models import VideoRecord, VideoStatus
from drivetube.publishing.scheduler import get_next_schedule_time
from drivetube.utils.helpers import UTC


def _scheduled(store, when: datetime, n: int, user: str = "u1", job_id: str | None = None) -> None:
    store.create_video(
        VideoRecord(
            drive_id=f"d-{user}-{job_id}-{n}",
            user_id=user,
            file_name=f"{n}.mp4",
            job_id=job_id,
            status=VideoStatus.UPLOADED,
            scheduled_for=when,
        )
    )


def test_first_slot_is_today_when_hour_is_ahead(store):
    slot = get_next_schedule_time(store, "u1", 10, 1, now=NOW)
    assert slot == datetime(2026, 3, 1, 10, 0, tzinfo=UTC)


def test_first_slot_moves_to_tomorrow_once_hour_passed(store):
    slot = get_next_schedule_time(store, "u1", 10, 1, now=NOW.replace(hour=11))
    assert slot == datetime(2026, 3, 2, 10, 0, tzinfo=UTC)


def test_exact_hour_is_not_in_the_future(store):
    slot = get_next_schedule_time(store, "u1", 8, 1, now=NOW)
    assert slot == datetime(2026, 3, 2, 8, 0, tzinfo=UTC)


def test_same_day_reused_while_quota_left(store):
    _scheduled(store, datetime(2026, 3, 3, 10, tzinfo=UTC), 1)
    slot = get_next_schedule_time(store, "u1", 10, 2, now=NOW)
    assert slot == datetime(2026, 3, 3, 10, tzinfo=UTC)


def test_full_day_rolls_over(store):
    _scheduled(store, datetime(2026, 3, 3, 10, tzinfo=UTC), 1)
    _scheduled(store, datetime(2026, 3, 3, 10, tzinfo=UTC), 2)
    slot = get_next_schedule_time(store, "u1", 10, 2, now=NOW)
    assert slot == datetime(2026, 3, 4, 10, tzinfo=UTC)


def test_stale_history_starts_from_today(store):
    _scheduled(store, datetime(2026, 1, 15, 10, tzinfo=UTC), 1)
    slot = get_next_schedule_time(store, "u1", 10, 1, now=NOW)
    assert slot == datetime(2026, 3, 1, 10, tzinfo=UTC)


def test_job_scope_is_independent_of_owner(store):
    _scheduled(store, datetime(2026, 3, 5, 10, tzinfo=UTC), 1, job_id="job-a")
    assert get_next_schedule_time(store, "u1", 10, 1, job_id="job-b", now=NOW).day == 1
    assert get_next_schedule_time(store, "u1", 10, 1, job_id="job-a", now=NOW).day == 6


def test_sequential_slots_are_monotonic_and_respect_quota(store):
    slots = []
    for n in range(5):
        slot = get_next_schedule_time(store, "u1", 14, 2, now=lambda: NOW)
        _scheduled(store, slot, n)
        slots.append(slot)

    assert slots == sorted(slots)
    per_day: dict = {}
    for s in slots:
        per_day[s.date()] = per_day.get(s.date(), 0) + 1
        assert s.hour == 14 and s.minute == 0
    assert max(per_day.values()) <= 2
    assert slots[2] - slots[0] == timedelta(days=1)


@pytest.mark.parametrize("hour, quota", [(-1, 1), (24, 1), (10, 0)])
def test_invalid_arguments(store, hour, quota):
    with pytest.raises(ValueError):
        get_next_schedule_time(store, "u1", hour, quota, now=NOW)
