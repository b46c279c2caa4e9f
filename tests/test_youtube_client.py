from __future__ import annotations

import io
from datetime import UTC, datetime
from typing import Any
from urllib.error import HTTPError, URLError

import pytest

from backend.app.services.errors import (
    InvalidVideoReferenceError,
    ResourceNotFoundError,
    YouTubeApiError,
    YouTubeDecodeError,
    YouTubeServiceError,
    YouTubeTransportError,
)
from backend.app.services.video_reference import parse_video_id
from backend.app.services.youtube_client import (
    YouTubeDataClient,
    _fetch_youtube_json,  # pyright: ignore[reportPrivateUsage]
    format_published_at,
    parse_published_at,
)
from tests.fake_youtube_api import (
    TEST_BASE_URL,
    TEST_CHANNEL_ID,
    TEST_UPLOADS_PLAYLIST_ID,
    FakeYouTubeApi,
    upload_video_id,
)


def _client(page_size: int = 50) -> YouTubeDataClient:
    return YouTubeDataClient("test-api-key", base_url=TEST_BASE_URL, page_size=page_size)


def _install_payload(
    monkeypatch: pytest.MonkeyPatch,
    status_code: int,
    payload: dict[str, Any],
) -> None:
    def _fake_fetch(
        *, url: str, params: dict[str, str], timeout_seconds: float
    ) -> tuple[int, dict[str, Any]]:
        _ = (url, params, timeout_seconds)
        return status_code, payload

    monkeypatch.setattr("backend.app.services.youtube_client._fetch_youtube_json", _fake_fetch)


def test_parse_video_id_accepts_bare_ids_and_watch_urls() -> None:
    assert parse_video_id("dQw4w9WgXcQ") == "dQw4w9WgXcQ"
    assert parse_video_id("  dQw4w9WgXcQ  ") == "dQw4w9WgXcQ"
    assert parse_video_id("https://www.youtube.com/watch?v=dQw4w9WgXcQ") == "dQw4w9WgXcQ"
    assert parse_video_id("http://youtube.com/watch/?v=dQw4w9WgXcQ") == "dQw4w9WgXcQ"
    assert (
        parse_video_id("https://www.youtube.com/watch?list=PL123&v=dQw4w9WgXcQ&t=42s")
        == "dQw4w9WgXcQ"
    )
    assert parse_video_id("https://youtu.be/dQw4w9WgXcQ?si=abc") == "dQw4w9WgXcQ"
    assert parse_video_id("HTTPS://WWW.YouTube.com/Watch?v=dQw4w9WgXcQ") == "dQw4w9WgXcQ"
    assert parse_video_id("https://YOUTU.BE/dQw4w9WgXcQ") == "dQw4w9WgXcQ"


def test_parse_video_id_rejects_unusable_references() -> None:
    with pytest.raises(InvalidVideoReferenceError, match="unrecognized"):
        parse_video_id("https://vimeo.com/12345")
    with pytest.raises(InvalidVideoReferenceError, match="not found in URL"):
        parse_video_id("https://www.youtube.com/watch?list=PL123")
    with pytest.raises(InvalidVideoReferenceError, match="not found in URL"):
        parse_video_id("https://youtu.be/")
    with pytest.raises(InvalidVideoReferenceError):
        parse_video_id("   ")

    assert InvalidVideoReferenceError.category == "input"


def test_published_at_parsing_is_utc_and_round_trips() -> None:
    parsed = parse_published_at("2025-03-04T05:06:07Z")
    assert parsed == datetime(2025, 3, 4, 5, 6, 7, tzinfo=UTC)
    assert format_published_at(parsed) == "2025-03-04T05:06:07Z"

    offset = parse_published_at("2025-03-04T07:06:07+02:00")
    assert offset == parsed

    naive = parse_published_at("2025-03-04T05:06:07")
    assert naive.tzinfo is UTC


def test_client_requires_api_key() -> None:
    with pytest.raises(YouTubeServiceError):
        YouTubeDataClient("   ")


def test_resolve_uploads_playlist_and_count(fake_youtube_api: FakeYouTubeApi) -> None:
    client = _client()

    assert client.resolve_uploads_playlist(TEST_CHANNEL_ID) == TEST_UPLOADS_PLAYLIST_ID
    assert client.fetch_total_count(TEST_UPLOADS_PLAYLIST_ID) == 30

    count_call = fake_youtube_api.calls_to("playlistItems")[-1]
    assert count_call["maxResults"] == "1"
    assert count_call["key"] == "test-api-key"

    with pytest.raises(ResourceNotFoundError):
        client.resolve_uploads_playlist("UCunknown")


def test_fetch_page_round_trips_continuation_tokens(fake_youtube_api: FakeYouTubeApi) -> None:
    client = _client(page_size=12)

    first = client.fetch_page(TEST_UPLOADS_PLAYLIST_ID, None)
    assert len(first.entries) == 12
    assert first.entries[0].video_id == upload_video_id(29)
    assert first.next_page_token == "page-12"

    second = client.fetch_page(TEST_UPLOADS_PLAYLIST_ID, first.next_page_token)
    third = client.fetch_page(TEST_UPLOADS_PLAYLIST_ID, second.next_page_token)
    assert len(third.entries) == 6
    assert third.next_page_token is None

    page_calls = fake_youtube_api.calls_to("playlistItems")
    assert "pageToken" not in page_calls[0]
    assert page_calls[1]["pageToken"] == "page-12"
    assert all(call["maxResults"] == "12" for call in page_calls)


def test_page_size_is_capped_at_listing_maximum(fake_youtube_api: FakeYouTubeApi) -> None:
    _client(page_size=500).fetch_page(TEST_UPLOADS_PLAYLIST_ID, None)
    _client(page_size=0).fetch_page(TEST_UPLOADS_PLAYLIST_ID, None)

    requested = [call["maxResults"] for call in fake_youtube_api.calls_to("playlistItems")]
    assert requested == ["50", "1"]


def test_non_ascii_digit_count_is_decode_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_payload(monkeypatch, 200, {"pageInfo": {"totalResults": "\u00b2"}})

    with pytest.raises(YouTubeDecodeError) as exc_info:
        _client().fetch_total_count("UUplaylist")

    assert exc_info.value.field_path == "pageInfo.totalResults"


def test_fetch_page_rejects_malformed_next_page_token(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_payload(monkeypatch, 200, {"items": [], "nextPageToken": 123})
    with pytest.raises(YouTubeDecodeError) as exc_info:
        _client().fetch_page("UUplaylist", None)
    assert exc_info.value.field_path == "nextPageToken"

    _install_payload(monkeypatch, 200, {"items": [], "nextPageToken": ""})
    with pytest.raises(YouTubeDecodeError, match="nextPageToken"):
        _client().fetch_page("UUplaylist", None)

    _install_payload(monkeypatch, 200, {"items": []})
    assert _client().fetch_page("UUplaylist", None).next_page_token is None


def test_fetch_page_missing_field_is_decode_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_payload(
        monkeypatch,
        200,
        {"items": [{"contentDetails": {"videoId": "abc"}}]},
    )

    with pytest.raises(YouTubeDecodeError) as exc_info:
        _client().fetch_page("UUplaylist", None)

    assert exc_info.value.field_path == "items[0].contentDetails.videoPublishedAt"
    assert exc_info.value.category == "upstream"


def test_fetch_detail_composes_video_and_channel(fake_youtube_api: FakeYouTubeApi) -> None:
    metadata = _client().fetch_detail(f"https://youtu.be/{upload_video_id(4)}")

    assert metadata.video_id == upload_video_id(4)
    assert metadata.title == f"Video {upload_video_id(4)}"
    assert metadata.thumbnail_url == f"https://img.test/{upload_video_id(4)}.jpg"
    assert metadata.view_count == 42
    assert metadata.published_at == datetime(2025, 1, 5, 12, 0, 0, tzinfo=UTC)
    assert metadata.channel_id == TEST_CHANNEL_ID
    assert metadata.channel_custom_url == "@testchannel"
    assert metadata.channel_thumbnail_url == "https://img.test/channel.jpg"
    assert metadata.subscriber_count == 1200
    assert metadata.video_count == 30

    endpoints = [name for name, _ in fake_youtube_api.calls]
    assert endpoints == ["videos", "channels"]


def test_fetch_detail_unknown_video_is_not_found(fake_youtube_api: FakeYouTubeApi) -> None:
    with pytest.raises(ResourceNotFoundError, match="no results found"):
        _client().fetch_detail("missing_video")
    assert fake_youtube_api.calls_to("channels") == []


def test_fetch_video_without_standard_thumbnail_fails_fast(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _install_payload(
        monkeypatch,
        200,
        {
            "items": [
                {
                    "id": "abc",
                    "snippet": {
                        "title": "t",
                        "publishedAt": "2025-01-01T00:00:00Z",
                        "channelId": "UCx",
                        "channelTitle": "c",
                        "thumbnails": {"default": {"url": "https://img.test/d.jpg"}},
                    },
                    "statistics": {"viewCount": "1"},
                }
            ]
        },
    )

    with pytest.raises(YouTubeDecodeError) as exc_info:
        _client().fetch_video("abc")
    assert exc_info.value.field_path == "snippet.thumbnails.standard"


def test_fetch_channel_hidden_subscriber_count_is_decode_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _install_payload(
        monkeypatch,
        200,
        {
            "items": [
                {
                    "id": "UCx",
                    "snippet": {
                        "title": "c",
                        "customUrl": "@c",
                        "thumbnails": {"medium": {"url": "https://img.test/c.jpg"}},
                    },
                    "statistics": {"videoCount": "3", "hiddenSubscriberCount": True},
                }
            ]
        },
    )

    with pytest.raises(YouTubeDecodeError, match="subscriberCount"):
        _client().fetch_channel("UCx")


def test_non_success_status_raises_api_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _install_payload(monkeypatch, 403, {"error": {"message": "quotaExceeded"}})

    with pytest.raises(YouTubeApiError) as exc_info:
        _client().fetch_total_count("UUplaylist")

    assert exc_info.value.status_code == 403
    assert exc_info.value.endpoint == "playlistItems"
    assert "quotaExceeded" in str(exc_info.value)


def test_fetch_json_maps_http_and_network_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    def _http_error(request: Any, timeout: float) -> Any:
        _ = timeout
        raise HTTPError(
            request.full_url,
            400,
            "Bad Request",
            hdrs=None,  # pyright: ignore[reportArgumentType]
            fp=io.BytesIO(b'{"error": {"message": "invalid key"}}'),
        )

    monkeypatch.setattr("backend.app.services.youtube_client.urlopen", _http_error)
    status_code, payload = _fetch_youtube_json(
        url=f"{TEST_BASE_URL}/videos",
        params={"key": "k", "id": "abc"},
        timeout_seconds=1.0,
    )
    assert status_code == 400
    assert payload["error"]["message"] == "invalid key"

    def _network_error(request: Any, timeout: float) -> Any:
        _ = (request, timeout)
        raise URLError("connection refused")

    monkeypatch.setattr("backend.app.services.youtube_client.urlopen", _network_error)
    with pytest.raises(YouTubeTransportError, match="connection refused"):
        _fetch_youtube_json(url=f"{TEST_BASE_URL}/videos", params={}, timeout_seconds=1.0)
