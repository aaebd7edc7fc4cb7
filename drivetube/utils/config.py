from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

from dotenv import load_dotenv

from drivetube.utils.helpers import env_int, env_str


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class AppConfig:
    database_path: Path
    log_level: str
    log_dir: Path

    gemini_api_key: str
    gemini_model: str
    assemblyai_api_key: str

    google_client_id: str
    google_client_secret: str
    google_refresh_token: str
    google_access_token: str

    default_upload_hour: int
    default_videos_per_day: int

    safety_poll_interval: int
    safety_poll_attempts: int

    transcript_prefix_bytes: int
    frame_count: int
    drive_max_depth: int

    youtube_category_id: str

    @staticmethod
    def from_env() -> "AppConfig":
        load_dotenv()
        root = Path(env_str("PROJECT_ROOT", ".")).resolve()

        return AppConfig(
            database_path=Path(env_str("DATABASE_PATH", str(root / "data" / "drivetube.sqlite3"))),
            log_level=env_str("LOG_LEVEL", "INFO").upper(),
            log_dir=Path(env_str("LOG_DIR", str(root / "data" / "logs"))),
            gemini_api_key=env_str("GEMINI_API_KEY"),
            gemini_model=env_str("GEMINI_MODEL", "gemini-1.5-flash"),
            assemblyai_api_key=env_str("ASSEMBLYAI_API_KEY"),
            google_client_id=env_str("GOOGLE_CLIENT_ID"),
            google_client_secret=env_str("GOOGLE_CLIENT_SECRET"),
            google_refresh_token=env_str("GOOGLE_REFRESH_TOKEN"),
            google_access_token=env_str("GOOGLE_ACCESS_TOKEN"),
            default_upload_hour=env_int("DEFAULT_UPLOAD_HOUR", 10, 0, 23),
            default_videos_per_day=env_int("DEFAULT_VIDEOS_PER_DAY", 1, 1, 50),
            safety_poll_interval=env_int("SAFETY_POLL_INTERVAL", 5, 1, 60),
            safety_poll_attempts=env_int("SAFETY_POLL_ATTEMPTS", 24, 1, 240),
            transcript_prefix_bytes=env_int("TRANSCRIPT_PREFIX_MB", 10, 1, 200) * 1024 * 1024,
            frame_count=env_int("FRAME_COUNT", 3, 1, 10),
            drive_max_depth=env_int("DRIVE_MAX_DEPTH", 5, 0, 20),
            youtube_category_id=env_str("YOUTUBE_CATEGORY_ID", "22"),
        )

    def with_overrides(self, **kwargs) -> "AppConfig":
        return replace(self, **kwargs)

    def require_google_oauth(self) -> None:
        if self.google_access_token:
            return
        missing = [
            name
            for name, value in (
                ("GOOGLE_CLIENT_ID", self.google_client_id),
                ("GOOGLE_CLIENT_SECRET", self.google_client_secret),
                ("GOOGLE_REFRESH_TOKEN", self.google_refresh_token),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"Missing Google OAuth settings: {', '.join(missing)}")
