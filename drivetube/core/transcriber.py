"""
core/transcriber.py – drivetube speech-to-text
==============================================
Uploads raw media bytes to AssemblyAI, requests a transcript with language
detection and polls until it is ready. Returns a TranscriptionResult and
never raises to the caller; a missing API key is reported as a failure.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

import requests
from loguru import logger
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

API_BASE = "https://api.assemblyai.com/v2"


class TranscriptionError(RuntimeError):
    pass


@dataclass(frozen=True)
class TranscriptionResult:
    success: bool
    transcript: str | None = None
    error: str | None = None


_retry_http = retry(
    retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=20),
    reraise=True,
)


class AssemblyAITranscriber:

    def __init__(
        self,
        api_key: str,
        poll_interval: float = 3.0,
        max_polls: int = 200,
        sleep: Callable[[float], None] = time.sleep,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = api_key
        self._poll_interval = poll_interval
        self._max_polls = max_polls
        self._sleep = sleep
        self._http = session or requests.Session()

    @property
    def _headers(self) -> dict[str, str]:
        return {"authorization": self._api_key}

    @_retry_http
    def _upload(self, data: bytes) -> str:
        r = self._http.post(f"{API_BASE}/upload", headers=self._headers, data=data, timeout=300)
        r.raise_for_status()
        url = r.json().get("upload_url")
        if not url:
            raise TranscriptionError("Upload response has no upload_url")
        return str(url)

    @_retry_http
    def _create(self, audio_url: str) -> str:
        r = self._http.post(
            f"{API_BASE}/transcript",
            headers=self._headers,
            json={"audio_url": audio_url, "language_detection": True},
            timeout=60,
        )
        r.raise_for_status()
        return str(r.json()["id"])

    @_retry_http
    def _fetch(self, transcript_id: str) -> dict:
        r = self._http.get(f"{API_BASE}/transcript/{transcript_id}", headers=self._headers, timeout=60)
        r.raise_for_status()
        return r.json()

    def _wait_for(self, transcript_id: str) -> str:
        for _ in range(self._max_polls):
            doc = self._fetch(transcript_id)
            status = doc.get("status")
            if status == "completed":
                text = (doc.get("text") or "").strip()
                if not text:
                    raise TranscriptionError("No text in transcript")
                return text
            if status == "error":
                raise TranscriptionError(doc.get("error") or "Transcription failed")
            self._sleep(self._poll_interval)
        raise TranscriptionError(f"Transcript {transcript_id} not ready after {self._max_polls} polls")

    def transcribe(self, data: bytes) -> TranscriptionResult:
        if not self._api_key:
            logger.info("[Transcriber] No ASSEMBLYAI_API_KEY set, skipping transcription")
            return TranscriptionResult(success=False, error="ASSEMBLYAI_API_KEY not configured")
        if not data:
            return TranscriptionResult(success=False, error="No media bytes to transcribe")

        try:
            logger.info(f"[Transcriber] Uploading {len(data) / 1024 / 1024:.1f} MB for transcription")
            audio_url = self._upload(data)
            transcript_id = self._create(audio_url)
            text = self._wait_for(transcript_id)
        except (requests.RequestException, TranscriptionError, KeyError, ValueError) as exc:
            logger.warning(f"[Transcriber] Transcription failed: {exc}")
            return TranscriptionResult(success=False, error=str(exc))

        logger.success(f"[Transcriber] Transcript ready ({len(text)} chars)")
        return TranscriptionResult(success=True, transcript=text)
