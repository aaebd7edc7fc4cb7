from __future__ import annotations

import pytest

from conftest import FOLDER_LINK
from drivetube import main as cli
from drivetube.models import AutomationResult
from drivetube.utils.database import VideoStore


class CapturingRunner:
    def __init__(self) -> None:
        self.calls: list = []

    def run(self, owner, link, **kwargs):
        self.calls.append((owner, link, kwargs))
        return AutomationResult(processed=1, uploaded=1)


@pytest.fixture
def runner(monkeypatch, tmp_path):
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "cli.sqlite3"))
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("DEFAULT_UPLOAD_HOUR", "9")
    monkeypatch.setenv("DEFAULT_VIDEOS_PER_DAY", "2")
    fake = CapturingRunner()
    monkeypatch.setattr(cli, "credentials_from_config", lambda cfg: None)
    monkeypatch.setattr(cli, "build_runner", lambda store, credentials, cfg: fake)
    return fake


def test_run_uses_saved_settings(runner, tmp_path):
    assert cli.main(["--owner", "u1", "settings", "--link", FOLDER_LINK, "--hour", "18", "--per-day", "3"]) == 0

    assert cli.main(["--owner", "u1", "run", "--limit", "2"]) == 0

    owner, link, kwargs = runner.calls[0]
    assert (owner, link) == ("u1", FOLDER_LINK)
    assert kwargs["upload_hour"] == 18
    assert kwargs["daily_quota"] == 3
    assert kwargs["limit"] == 2


def test_flags_override_settings_and_config_seeds_them(runner, tmp_path):
    assert cli.main(["--owner", "u2", "run", "--link", FOLDER_LINK, "--hour", "6"]) == 0

    _, _, kwargs = runner.calls[0]
    assert kwargs["upload_hour"] == 6
    assert kwargs["daily_quota"] == 2
    with VideoStore(tmp_path / "cli.sqlite3") as store:
        assert store.get_settings("u2").upload_hour == 9


def test_run_without_any_link_is_a_config_error(runner):
    assert cli.main(["--owner", "nobody", "run"]) == 2
    assert runner.calls == []
