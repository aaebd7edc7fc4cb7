from __future__ import annotations

import io
import json
from datetime import datetime
from unittest import mock

import httplib2
from googleapiclient.errors import HttpError

from drivetube.publishing.youtube_uploader import YouTubeUploader, is_quota_error
from drivetube.utils.helpers import UTC


def _http_error(status: int, reason: str) -> HttpError:
    content = json.dumps({"error": {"code": status, "message": reason, "errors": [{"reason": reason}]}})
    return HttpError(httplib2.Response({"status": status}), content.encode())


def _uploader(next_chunk=None, side_effect=None):
    service = mock.MagicMock()
    request = service.videos.return_value.insert.return_value
    if side_effect is not None:
        request.next_chunk.side_effect = side_effect
    else:
        request.next_chunk.return_value = next_chunk
    return YouTubeUploader(service=service), service


def test_successful_upload_with_schedule_forces_private():
    uploader, service = _uploader(next_chunk=(None, {"id": "abc123"}))
    result = uploader.upload(
        io.BytesIO(b"data"),
        "Title",
        "Desc",
        ["a", "b"],
        privacy="public",
        publish_at=datetime(2026, 3, 2, 10, tzinfo=UTC),
    )

    assert result.success and result.video_id == "abc123"
    body = service.videos.return_value.insert.call_args.kwargs["body"]
    assert body["status"]["privacyStatus"] == "private"
    assert body["status"]["publishAt"] == "2026-03-02T10:00:00Z"
    assert body["status"]["selfDeclaredMadeForKids"] is False
    assert body["snippet"]["categoryId"] == "22"
    assert body["snippet"]["tags"] == ["a", "b"]


def test_public_upload_without_schedule():
    uploader, service = _uploader(next_chunk=(None, {"id": "x"}))
    uploader.upload(io.BytesIO(b"data"), "T", "D", [], privacy="public")
    body = service.videos.return_value.insert.call_args.kwargs["body"]
    assert body["status"]["privacyStatus"] == "public"
    assert "publishAt" not in body["status"]


def test_quota_error_is_flagged_and_not_retried():
    uploader, service = _uploader(side_effect=_http_error(403, "quotaExceeded"))
    result = uploader.upload(io.BytesIO(b"data"), "T", "D", [])

    assert result.success is False
    assert result.is_quota_error is True
    assert service.videos.return_value.insert.return_value.next_chunk.call_count == 1


def test_client_error_is_a_plain_failure():
    uploader, _ = _uploader(side_effect=_http_error(400, "invalidTitle"))
    result = uploader.upload(io.BytesIO(b"data"), "T", "D", [])
    assert result.success is False
    assert result.is_quota_error is False
    assert result.error


def test_quota_reasons():
    assert is_quota_error(_http_error(403, "uploadLimitExceeded"))
    assert is_quota_error(_http_error(403, "dailyLimitExceeded"))
    assert not is_quota_error(_http_error(403, "forbidden"))
    assert not is_quota_error(ValueError("quotaExceeded"))


def test_upload_status_parsing():
    service = mock.MagicMock()
    service.videos.return_value.list.return_value.execute.return_value = {
        "items": [
            {
                "status": {"uploadStatus": "processed", "privacyStatus": "private"},
                "contentDetails": {"regionRestriction": {"blocked": ["DE"]}},
            }
        ]
    }
    status = YouTubeUploader(service=service).get_upload_status("v1")
    assert status.upload_status == "processed"
    assert status.region_restricted is True
    assert status.has_restrictions is False


def test_rejected_upload_is_restricted():
    service = mock.MagicMock()
    service.videos.return_value.list.return_value.execute.return_value = {
        "items": [{"status": {"uploadStatus": "rejected", "rejectionReason": "copyright"}}]
    }
    status = YouTubeUploader(service=service).get_upload_status("v1")
    assert status.has_restrictions is True
    assert status.rejection_reason == "copyright"


def test_missing_video_status():
    service = mock.MagicMock()
    service.videos.return_value.list.return_value.execute.return_value = {"items": []}
    assert YouTubeUploader(service=service).get_upload_status("gone").upload_status == "notFound"


def test_set_visibility_sends_status_update():
    service = mock.MagicMock()
    YouTubeUploader(service=service).set_visibility("v1", "public")
    body = service.videos.return_value.update.call_args.kwargs["body"]
    assert body == {"id": "v1", "status": {"privacyStatus": "public", "selfDeclaredMadeForKids": False}}


def test_channel_info():
    service = mock.MagicMock()
    service.channels.return_value.list.return_value.execute.return_value = {
        "items": [
            {
                "id": "UC1",
                "snippet": {"title": "My channel", "thumbnails": {"default": {"url": "http://img"}}},
                "statistics": {"subscriberCount": "10", "videoCount": "4"},
            }
        ]
    }
    info = YouTubeUploader(service=service).get_channel_info()
    assert info == {
        "id": "UC1",
        "title": "My channel",
        "thumbnail": "http://img",
        "subscriber_count": "10",
        "video_count": "4",
    }


def test_delete_video():
    service = mock.MagicMock()
    assert YouTubeUploader(service=service).delete_video("v1") is True
    service.videos.return_value.delete.assert_called_once_with(id="v1")
