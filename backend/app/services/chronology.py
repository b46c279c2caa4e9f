from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime

from backend.app.services.errors import TargetNotInUploadsError
from backend.app.services.youtube_client import UploadEntry, VideoMetadata


def chronological_key(item: UploadEntry | VideoMetadata) -> tuple[datetime, str]:
    # Equal publish instants fall back to video id order.
    return (item.published_at, item.video_id)


def order_uploads(entries: Iterable[UploadEntry]) -> list[UploadEntry]:
    return sorted(entries, key=chronological_key)


def order_videos(videos: Iterable[VideoMetadata]) -> list[VideoMetadata]:
    return sorted(videos, key=chronological_key)


def locate_target(ordered: Sequence[UploadEntry], video_id: str) -> int:
    for offset, entry in enumerate(ordered):
        if entry.video_id == video_id:
            return offset
    raise TargetNotInUploadsError(f"video {video_id} not found in uploads playlist")


def window_offsets(offset: int, radius: int) -> range:
    """Every offset within `radius` of `offset`, before clipping to the list bounds."""
    radius = max(0, radius)
    return range(offset - radius, offset + radius + 1)


def clip_window(offset: int, total: int, radius: int) -> range:
    candidates = window_offsets(offset, radius)
    return range(max(0, candidates.start), min(total, candidates.stop))
