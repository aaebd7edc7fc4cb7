"""
core/drive_client.py – drivetube Google Drive access
=====================================================
Responsibilities:
  1. Turn a user-supplied sharing link into a Drive object id
  2. Read object metadata (folder or file)
  3. List video files under a folder, recursing into sub-folders up to a depth limit
  4. Stream a file into a seekable spooled buffer for the YouTube upload
  5. Read a bounded byte prefix (HTTP Range) for transcription
  6. Download a full file to a local path for frame extraction
"""
from __future__ import annotations

import re
import tempfile
from pathlib import Path
from typing import IO, Any

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload
from loguru import logger
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from drivetube.models import DriveFile

FOLDER_MIME = "application/vnd.google-apps.folder"

# Downloads are 8 MB per request; the spooled buffer stays in memory up to 64 MB
CHUNK_SIZE = 8 * 1024 * 1024
SPOOL_MAX_BYTES = 64 * 1024 * 1024

_FILE_FIELDS = "id, name, mimeType, size, createdTime"

_FOLDER_RE = re.compile(r"/folders/([a-zA-Z0-9_-]+)")
_FILE_RE = re.compile(r"/file/d/([a-zA-Z0-9_-]+)")
_ID_PARAM_RE = re.compile(r"[?&]id=([a-zA-Z0-9_-]+)")
_BARE_ID_RE = re.compile(r"^[a-zA-Z0-9_-]{20,}$")


class DriveError(RuntimeError):
    pass


def resolve_drive_target(link: str | None) -> str | None:
    """
    Extract the Drive object id from a sharing link.

    Handles:
        https://drive.google.com/drive/folders/<id>?usp=sharing
        https://drive.google.com/file/d/<id>/view
        https://drive.google.com/open?id=<id>
        <id>  (bare ids of 20+ characters)

    Returns None for anything else.
    """
    if not link:
        return None
    link = link.strip()
    for rx in (_FOLDER_RE, _FILE_RE, _ID_PARAM_RE):
        m = rx.search(link)
        if m:
            return m.group(1)
    if _BARE_ID_RE.match(link):
        return link
    return None


def _to_drive_file(item: dict[str, Any]) -> DriveFile:
    size = item.get("size")
    return DriveFile(
        id=str(item["id"]),
        name=str(item.get("name") or item["id"]),
        mime_type=str(item.get("mimeType") or ""),
        size=int(size) if size not in (None, "") else None,
        created_time=item.get("createdTime"),
    )


class DriveClient:
    """Thin wrapper around the Drive v3 API for the calls the pipeline needs."""

    def __init__(self, credentials=None, service=None) -> None:
        if service is None:
            service = build("drive", "v3", credentials=credentials, cache_discovery=False)
        self._service = service

    # ── Metadata & listing ─────────────────────────────────────────────────

    def get_metadata(self, object_id: str) -> DriveFile:
        try:
            item = (
                self._service.files()
                .get(fileId=object_id, fields=_FILE_FIELDS, supportsAllDrives=True)
                .execute()
            )
        except HttpError as exc:
            raise DriveError(f"Cannot read Drive object {object_id}: {exc}") from exc
        return _to_drive_file(item)

    @retry(
        retry=retry_if_exception_type(HttpError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    def _list_children(self, folder_id: str) -> list[DriveFile]:
        out: list[DriveFile] = []
        page_token = None
        while True:
            resp = (
                self._service.files()
                .list(
                    q=(
                        f"'{folder_id}' in parents and trashed = false and "
                        f"(mimeType contains 'video/' or mimeType = '{FOLDER_MIME}')"
                    ),
                    fields=f"nextPageToken, files({_FILE_FIELDS})",
                    orderBy="createdTime desc",
                    pageSize=100,
                    pageToken=page_token,
                    supportsAllDrives=True,
                    includeItemsFromAllDrives=True,
                )
                .execute()
            )
            out.extend(_to_drive_file(item) for item in resp.get("files") or [])
            page_token = resp.get("nextPageToken")
            if not page_token:
                return out

    def list_videos(self, folder_id: str, max_depth: int = 5) -> list[DriveFile]:
        """
        Recursively list video files under *folder_id*.

        Sub-folders deeper than *max_depth* are not visited and each folder is
        visited once, so shortcut cycles cannot loop. Result is ordered by
        creation time, newest first.
        """
        videos: list[DriveFile] = []
        visited: set[str] = set()
        pending: list[tuple[str, int]] = [(folder_id, 0)]

        while pending:
            current, depth = pending.pop(0)
            if current in visited:
                continue
            visited.add(current)
            try:
                children = self._list_children(current)
            except HttpError as exc:
                raise DriveError(f"Cannot list Drive folder {current}: {exc}") from exc

            for child in children:
                if child.is_folder:
                    if depth < max_depth:
                        pending.append((child.id, depth + 1))
                    else:
                        logger.warning(f"[Drive] Depth limit {max_depth} reached, skipping folder '{child.name}'")
                elif child.is_video:
                    videos.append(child)

        videos.sort(key=lambda f: f.created_time or "", reverse=True)
        logger.info(f"[Drive] Found {len(videos)} video(s) under {folder_id} ({len(visited)} folder(s) scanned)")
        return videos

    # ── Content ────────────────────────────────────────────────────────────

    def _download_into(self, file_id: str, fh: IO[bytes]) -> None:
        request = self._service.files().get_media(fileId=file_id, supportsAllDrives=True)
        downloader = MediaIoBaseDownload(fh, request, chunksize=CHUNK_SIZE)
        done = False
        while not done:
            status, done = downloader.next_chunk()
            if status:
                logger.debug(f"[Drive] Download {file_id}: {int(status.progress() * 100)}%")

    def open_stream(self, file_id: str) -> IO[bytes]:
        """
        Download *file_id* into a seekable spooled buffer positioned at 0.
        The caller owns the buffer and must close it.
        """
        buf = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_BYTES)
        try:
            self._download_into(file_id, buf)
        except HttpError as exc:
            buf.close()
            raise DriveError(f"Cannot download {file_id}: {exc}") from exc
        except BaseException:
            buf.close()
            raise
        buf.seek(0)
        return buf

    def read_prefix(self, file_id: str, max_bytes: int) -> bytes:
        """Read at most *max_bytes* from the start of the file."""
        request = self._service.files().get_media(fileId=file_id, supportsAllDrives=True)
        request.headers["Range"] = f"bytes=0-{int(max_bytes) - 1}"
        try:
            data = request.execute()
        except HttpError as exc:
            raise DriveError(f"Cannot read prefix of {file_id}: {exc}") from exc
        return bytes(data[:max_bytes])

    def download_to(self, file_id: str, path: Path) -> Path:
        try:
            with open(path, "wb") as fh:
                self._download_into(file_id, fh)
        except HttpError as exc:
            raise DriveError(f"Cannot download {file_id}: {exc}") from exc
        return path
