from __future__ import annotations

from datetime import timedelta

import requests
from google.oauth2.credentials import Credentials
from loguru import logger

from drivetube.utils.config import AppConfig
from drivetube.utils.helpers import now_utc

TOKEN_URI = "https://oauth2.googleapis.com/token"

SCOPES = [
    "https://www.googleapis.com/auth/drive.readonly",
    "https://www.googleapis.com/auth/youtube.upload",
    "https://www.googleapis.com/auth/youtube",
]


class TokenManager:
    """Refreshes OAuth2 access tokens in memory; nothing is written to disk."""

    def __init__(self, client_id: str, client_secret: str, refresh_token: str) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._access_token: str | None = None
        self._expires_at = None

    def get_access_token(self) -> str:
        if self._access_token and self._expires_at and now_utc() < self._expires_at:
            return self._access_token
        return self._do_refresh()

    def _do_refresh(self) -> str:
        resp = requests.post(
            TOKEN_URI,
            data={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "refresh_token": self._refresh_token,
                "grant_type": "refresh_token",
            },
            timeout=15,
        )
        resp.raise_for_status()
        d = resp.json()
        self._access_token = d["access_token"]
        expires_in = int(d.get("expires_in", 3600))
        self._expires_at = now_utc() + timedelta(seconds=expires_in - 60)
        logger.debug("[TokenManager] Access token refreshed.")
        return self._access_token

    def as_credentials(self) -> Credentials:
        return Credentials(
            token=self.get_access_token(),
            refresh_token=self._refresh_token,
            token_uri=TOKEN_URI,
            client_id=self._client_id,
            client_secret=self._client_secret,
            scopes=SCOPES,
        )


def credentials_from_config(config: AppConfig) -> Credentials:
    """
    Build Google credentials for Drive and YouTube.

    A refresh-token trio is preferred; a bare access token is accepted for
    short-lived runs.
    """
    config.require_google_oauth()
    if config.google_refresh_token and config.google_client_id and config.google_client_secret:
        return TokenManager(
            config.google_client_id,
            config.google_client_secret,
            config.google_refresh_token,
        ).as_credentials()
    return Credentials(token=config.google_access_token, scopes=SCOPES)
