from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, cast
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from backend.app.services.errors import (
    ResourceNotFoundError,
    YouTubeApiError,
    YouTubeDecodeError,
    YouTubeServiceError,
    YouTubeTransportError,
)
from backend.app.services.video_reference import parse_video_id

LOGGER = logging.getLogger("yt_search.youtube")

DEFAULT_BASE_URL = "https://www.googleapis.com/youtube/v3"
MAX_PAGE_SIZE = 50
VIDEO_THUMBNAIL_QUALITY = "standard"
CHANNEL_THUMBNAIL_QUALITY = "medium"


@dataclass(frozen=True)
class UploadEntry:
    video_id: str
    published_at: datetime


@dataclass(frozen=True)
class PlaylistPage:
    entries: tuple[UploadEntry, ...]
    next_page_token: str | None


@dataclass(frozen=True)
class ChannelSummary:
    channel_id: str
    title: str
    custom_url: str
    thumbnail_url: str
    subscriber_count: int
    video_count: int


@dataclass(frozen=True)
class VideoMetadata:
    video_id: str
    title: str
    thumbnail_url: str
    view_count: int
    published_at: datetime
    channel_id: str
    channel_title: str
    channel_thumbnail_url: str
    channel_custom_url: str
    subscriber_count: int
    video_count: int


@dataclass(frozen=True)
class VideoResource:
    video_id: str
    title: str
    thumbnail_url: str
    view_count: int
    published_at: datetime
    channel_id: str
    channel_title: str


class YouTubeDataClient:
    """
    Thin API-key client for the YouTube Data API v3.

    Each public method issues exactly the remote calls it names and decodes
    the response strictly: a missing or mistyped field raises
    `YouTubeDecodeError` instead of falling back to a default.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 10.0,
        page_size: int = MAX_PAGE_SIZE,
    ) -> None:
        normalized_key = api_key.strip()
        if not normalized_key:
            raise YouTubeServiceError("A YouTube Data API key is required.")
        self._api_key = normalized_key
        self._base_url = base_url.strip().rstrip("/")
        self._timeout_seconds = max(0.1, timeout_seconds)
        self._page_size = max(1, min(MAX_PAGE_SIZE, page_size))

    def resolve_uploads_playlist(self, channel_id: str) -> str:
        payload = self._get("channels", {"id": channel_id, "part": "contentDetails"})
        item = _first_item(payload, not_found=f"no channel found for id {channel_id}")
        return _require_str(item, "contentDetails", "relatedPlaylists", "uploads")

    def fetch_total_count(self, playlist_id: str) -> int:
        payload = self._get(
            "playlistItems",
            {"maxResults": "1", "part": "contentDetails", "playlistId": playlist_id},
        )
        return _require_int(payload, "pageInfo", "totalResults")

    def fetch_page(self, playlist_id: str, page_token: str | None) -> PlaylistPage:
        params = {
            "maxResults": str(self._page_size),
            "part": "contentDetails",
            "playlistId": playlist_id,
        }
        if page_token:
            params["pageToken"] = page_token
        payload = self._get("playlistItems", params)

        entries: list[UploadEntry] = []
        for index, raw_item in enumerate(_require_list(payload, "items")):
            item = _as_dict(raw_item)
            video_id = _require_str(item, "contentDetails", "videoId", prefix=f"items[{index}]")
            published_at = _require_timestamp(
                item, "contentDetails", "videoPublishedAt", prefix=f"items[{index}]"
            )
            entries.append(UploadEntry(video_id=video_id, published_at=published_at))

        next_page_token: str | None = None
        if "nextPageToken" in payload:
            next_page_token = _require_str(payload, "nextPageToken")
            if not next_page_token:
                raise YouTubeDecodeError(
                    "error in YouTube Data API response: nextPageToken is empty",
                    field_path="nextPageToken",
                )
        return PlaylistPage(entries=tuple(entries), next_page_token=next_page_token)

    def fetch_video(self, id_or_url: str) -> VideoResource:
        video_id = parse_video_id(id_or_url)
        payload = self._get(
            "videos",
            {"part": "snippet,statistics", "id": video_id, "maxResults": "1"},
        )
        item = _first_item(payload, not_found=f"no results found for {id_or_url}")
        return VideoResource(
            video_id=_require_str(item, "id"),
            title=_require_str(item, "snippet", "title"),
            thumbnail_url=_require_str(
                item, "snippet", "thumbnails", VIDEO_THUMBNAIL_QUALITY, "url"
            ),
            view_count=_require_int(item, "statistics", "viewCount"),
            published_at=_require_timestamp(item, "snippet", "publishedAt"),
            channel_id=_require_str(item, "snippet", "channelId"),
            channel_title=_require_str(item, "snippet", "channelTitle"),
        )

    def fetch_channel(self, channel_id: str) -> ChannelSummary:
        payload = self._get(
            "channels",
            {"part": "snippet,statistics", "id": channel_id, "maxResults": "1"},
        )
        item = _first_item(payload, not_found=f"no channels found for {channel_id}")
        return ChannelSummary(
            channel_id=_require_str(item, "id"),
            title=_require_str(item, "snippet", "title"),
            custom_url=_require_str(item, "snippet", "customUrl"),
            thumbnail_url=_require_str(
                item, "snippet", "thumbnails", CHANNEL_THUMBNAIL_QUALITY, "url"
            ),
            subscriber_count=_require_int(item, "statistics", "subscriberCount"),
            video_count=_require_int(item, "statistics", "videoCount"),
        )

    def fetch_detail(self, id_or_url: str) -> VideoMetadata:
        video = self.fetch_video(id_or_url)
        channel = self.fetch_channel(video.channel_id)
        return VideoMetadata(
            video_id=video.video_id,
            title=video.title,
            thumbnail_url=video.thumbnail_url,
            view_count=video.view_count,
            published_at=video.published_at,
            channel_id=video.channel_id,
            channel_title=video.channel_title,
            channel_thumbnail_url=channel.thumbnail_url,
            channel_custom_url=channel.custom_url,
            subscriber_count=channel.subscriber_count,
            video_count=channel.video_count,
        )

    def _get(self, endpoint: str, params: dict[str, str]) -> dict[str, Any]:
        url = f"{self._base_url}/{endpoint}"
        status_code, payload = _fetch_youtube_json(
            url=url,
            params={"key": self._api_key, **params},
            timeout_seconds=self._timeout_seconds,
        )
        if status_code != 200:
            message = _extract_api_error_message(payload)
            LOGGER.debug(
                "youtube api call failed endpoint=%s status=%s message=%s",
                endpoint,
                status_code,
                message,
            )
            raise YouTubeApiError(
                f"call to YouTube API endpoint {endpoint} failed with status {status_code}"
                + (f": {message}" if message else ""),
                endpoint=endpoint,
                status_code=status_code,
            )
        return payload


def parse_published_at(raw_value: str) -> datetime:
    normalized = raw_value.strip().replace("Z", "+00:00")
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def format_published_at(value: datetime) -> str:
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def _fetch_youtube_json(
    *,
    url: str,
    params: dict[str, str],
    timeout_seconds: float,
) -> tuple[int, dict[str, Any]]:
    request = Request(
        f"{url}?{urlencode(params)}",
        headers={
            "accept": "application/json",
            "user-agent": "yt-search-server/1.0",
        },
        method="GET",
    )

    try:
        with urlopen(request, timeout=timeout_seconds) as response:
            status_code = int(response.getcode() or 0)
            raw_body = response.read().decode("utf-8", errors="replace")
    except HTTPError as exc:
        status_code = int(exc.code)
        raw_body = exc.read().decode("utf-8", errors="replace")
    except (URLError, TimeoutError, OSError) as exc:
        raise YouTubeTransportError(f"YouTube API request failed: {exc}") from exc

    return status_code, _parse_json_dict(raw_body)


def _parse_json_dict(raw_body: str) -> dict[str, Any]:
    if not raw_body.strip():
        return {}
    try:
        parsed = json.loads(raw_body)
    except json.JSONDecodeError:
        return {}
    return _as_dict(parsed)


def _extract_api_error_message(payload: dict[str, Any]) -> str | None:
    error = _as_dict(payload.get("error"))
    message = error.get("message")
    if isinstance(message, str) and message.strip():
        return message.strip()
    return None


def _first_item(payload: dict[str, Any], *, not_found: str) -> dict[str, Any]:
    items = _require_list(payload, "items")
    if not items:
        raise ResourceNotFoundError(not_found)
    return _as_dict(items[0])


def _field_path(keys: tuple[str, ...], prefix: str | None) -> str:
    return ".".join((prefix, *keys) if prefix else keys)


def _lookup(payload: dict[str, Any], keys: tuple[str, ...], prefix: str | None) -> object:
    current: object = payload
    for depth, key in enumerate(keys):
        if not isinstance(current, dict) or key not in current:
            path = _field_path(keys[: depth + 1], prefix)
            raise YouTubeDecodeError(
                f"error in YouTube Data API response: key {path} not found",
                field_path=path,
            )
        current = cast(dict[str, object], current)[key]
    return current


def _require_str(payload: dict[str, Any], *keys: str, prefix: str | None = None) -> str:
    value = _lookup(payload, keys, prefix)
    if not isinstance(value, str):
        path = _field_path(keys, prefix)
        raise YouTubeDecodeError(
            f"error in YouTube Data API response: {path} is not a string",
            field_path=path,
        )
    return value


def _require_int(payload: dict[str, Any], *keys: str, prefix: str | None = None) -> int:
    value = _lookup(payload, keys, prefix)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        return int(value)
    path = _field_path(keys, prefix)
    raise YouTubeDecodeError(
        f"error in YouTube Data API response: {path} is not an integer",
        field_path=path,
    )


def _require_timestamp(
    payload: dict[str, Any], *keys: str, prefix: str | None = None
) -> datetime:
    raw_value = _require_str(payload, *keys, prefix=prefix)
    try:
        return parse_published_at(raw_value)
    except ValueError as exc:
        path = _field_path(keys, prefix)
        raise YouTubeDecodeError(
            f"error in YouTube Data API response: {path} is not a timestamp ({raw_value!r})",
            field_path=path,
        ) from exc


def _require_list(payload: dict[str, Any], key: str) -> list[Any]:
    value = _lookup(payload, (key,), None)
    if not isinstance(value, list):
        raise YouTubeDecodeError(
            f"error in YouTube Data API response: {key} is not a list",
            field_path=key,
        )
    return list(cast(list[Any], value))


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, object], value)
        converted: dict[str, Any] = {}
        for key, item in raw_dict.items():
            if isinstance(key, str):
                converted[key] = item
        return converted
    return {}
