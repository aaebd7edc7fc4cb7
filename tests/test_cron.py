from __future__ import annotations

from conftest import FOLDER_LINK
from drivetube.cron import run_scheduled_jobs
from drivetube.models import AutomationJob, AutomationResult, UserSettings


class RecordingRunner:
    def __init__(self, calls: list, fail_for: set[str]) -> None:
        self.calls = calls
        self.fail_for = fail_for

    def run(self, owner, link, **kwargs):
        self.calls.append((owner, link, kwargs))
        if kwargs.get("job_id") in self.fail_for:
            raise RuntimeError("drive offline")
        return AutomationResult(processed=1, uploaded=1)


def test_runs_enabled_jobs_with_their_settings(store):
    daily = store.create_job(AutomationJob(user_id="u1", name="daily", drive_folder_link=FOLDER_LINK, upload_hour=7, videos_per_day=2))
    store.create_job(AutomationJob(user_id="u1", name="paused", drive_folder_link=FOLDER_LINK, enabled=False))
    calls: list = []
    seen_credentials: list = []

    def factory(store_, credentials, config):
        seen_credentials.append(credentials)
        return RecordingRunner(calls, fail_for=set())

    report = run_scheduled_jobs(store, lambda user_id: f"creds-{user_id}", config=None, runner_factory=factory)

    assert [j.job_name for j in report.jobs] == ["daily"]
    assert seen_credentials == ["creds-u1"]
    owner, link, kwargs = calls[0]
    assert (owner, link) == ("u1", FOLDER_LINK)
    assert kwargs == {"limit": 2, "upload_hour": 7, "job_id": daily.id, "daily_quota": 2}
    assert report.total_uploaded == 1


def test_one_failing_job_does_not_stop_the_others(store):
    bad = store.create_job(AutomationJob(user_id="u1", name="bad", drive_folder_link=FOLDER_LINK))
    store.create_job(AutomationJob(user_id="u2", name="good", drive_folder_link=FOLDER_LINK))
    calls: list = []

    report = run_scheduled_jobs(
        store,
        lambda user_id: None,
        config=None,
        runner_factory=lambda *_a: RecordingRunner(calls, fail_for={bad.id}),
    )

    data = report.to_dict()
    assert data["jobsProcessed"] == 2
    assert data["totalUploaded"] == 1
    by_name = {r["jobName"]: r for r in data["results"]}
    assert by_name["bad"]["error"] == "drive offline"
    assert by_name["good"]["result"]["uploaded"] == 1


def test_user_settings_with_a_link_are_run_too(store):
    store.upsert_settings(UserSettings(user_id="u3", drive_folder_link=FOLDER_LINK, upload_hour=18, videos_per_day=3))
    store.upsert_settings(UserSettings(user_id="u4"))
    calls: list = []

    report = run_scheduled_jobs(
        store,
        lambda user_id: None,
        config=None,
        runner_factory=lambda *_a: RecordingRunner(calls, fail_for=set()),
    )

    assert calls == [("u3", FOLDER_LINK, {"limit": 3, "upload_hour": 18, "job_id": None, "daily_quota": 3})]
    data = report.to_dict()
    assert data["results"][0]["jobId"] is None
    assert data["results"][0]["userId"] == "u3"
    assert data["totalUploaded"] == 1
