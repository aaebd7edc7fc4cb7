from __future__ import annotations

import json
import os
import shlex
import subprocess
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any


UTC = timezone.utc


def now_utc() -> datetime:
    return datetime.now(tz=UTC)


def as_utc(dt: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def day_start(dt: datetime) -> datetime:
    return as_utc(dt).replace(hour=0, minute=0, second=0, microsecond=0)


def day_bounds(dt: datetime) -> tuple[datetime, datetime]:
    start = day_start(dt)
    return start, start + timedelta(days=1)


def rfc3339(dt: datetime) -> str:
    d = as_utc(dt).replace(microsecond=0)
    return d.isoformat().replace("+00:00", "Z")


def iso_utc(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return as_utc(dt).isoformat()


def parse_iso_utc(s: str | None) -> datetime | None:
    if not s:
        return None
    s = s.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(s))


def ensure_dir(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def json_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))


def run_cmd(cmd: list[str], timeout: int | None = None, retries: int = 0, retry_sleep: float = 1.0) -> str:
    last_err: Exception | None = None
    last_stderr: str = ""
    for attempt in range(retries + 1):
        try:
            p = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=timeout,
                check=True,
                text=True,
            )
            return p.stdout
        except subprocess.CalledProcessError as e:
            last_err = e
            if e.stderr:
                last_stderr = e.stderr
            if attempt >= retries:
                break
            time.sleep(retry_sleep * (1.5 ** attempt))
        except (OSError, subprocess.TimeoutExpired) as e:
            last_err = e
            if attempt >= retries:
                break
            time.sleep(retry_sleep * (1.5 ** attempt))

    msg = f"Command failed: {shlex.join(cmd)}"
    if last_stderr:
        tail = last_stderr[-4000:]
        msg += f"\n--- STDERR (last 4000 chars) ---\n{tail}\n"
    raise RuntimeError(msg) from last_err


def env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or "").strip() or default


def env_int(name: str, default: int, min_value: int | None = None, max_value: int | None = None) -> int:
    v = os.getenv(name)
    if v is None or not v.strip():
        x = default
    else:
        try:
            x = int(v.strip())
        except ValueError:
            x = default
    if min_value is not None:
        x = max(min_value, x)
    if max_value is not None:
        x = min(max_value, x)
    return x

