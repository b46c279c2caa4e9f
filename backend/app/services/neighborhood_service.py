from __future__ import annotations

import logging
import queue
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Literal, Protocol

from backend.app.services.chronology import (
    clip_window,
    locate_target,
    order_uploads,
    order_videos,
    window_offsets,
)
from backend.app.services.errors import YouTubeServiceError
from backend.app.services.playlist_enumerator import PlaylistEnumerator, PlaylistPageSource
from backend.app.services.video_reference import parse_video_id
from backend.app.services.youtube_client import UploadEntry, VideoMetadata
from backend.app.telemetry import TelemetryClient

LOGGER = logging.getLogger("yt_search.neighborhood")

DEFAULT_NEIGHBORHOOD_RADIUS = 10

NeighborStatus = Literal["ok", "absent", "failed"]


class VideoDetailSource(Protocol):
    def fetch_detail(self, id_or_url: str) -> VideoMetadata:
        ...


class UploadsListingSource(PlaylistPageSource, Protocol):
    def resolve_uploads_playlist(self, channel_id: str) -> str:
        ...

    def fetch_total_count(self, playlist_id: str) -> int:
        ...


@dataclass(frozen=True)
class NeighborResult:
    offset: int
    status: NeighborStatus
    video: VideoMetadata | None = None


@dataclass(frozen=True)
class VideoList:
    count: int
    videos: tuple[VideoMetadata, ...]
    # Neighbors dropped because the fetch failed or missed the deadline.
    failed_count: int = 0
    # Window offsets beyond either end of the uploads list.
    absent_count: int = 0


class NeighborhoodEnricher:
    def __init__(
        self,
        source: VideoDetailSource,
        *,
        radius: int = DEFAULT_NEIGHBORHOOD_RADIUS,
        timeout_seconds: float = 30.0,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._source = source
        self._radius = max(0, radius)
        self._timeout_seconds = max(0.0, timeout_seconds)
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()

    @property
    def radius(self) -> int:
        return self._radius

    def enrich(self, ordered: Sequence[UploadEntry], offset: int) -> VideoList:
        offsets = window_offsets(offset, self._radius)
        # Sized so every offset can report exactly once without blocking.
        results: queue.Queue[NeighborResult] = queue.Queue(maxsize=len(offsets))
        in_range = clip_window(offset, len(ordered), self._radius)

        executor = ThreadPoolExecutor(
            max_workers=max(1, len(in_range)),
            thread_name_prefix="neighbor-fetch",
        )
        try:
            for candidate in offsets:
                if candidate in in_range:
                    executor.submit(
                        self._fetch_neighbor,
                        candidate,
                        ordered[candidate].video_id,
                        results,
                    )
                else:
                    results.put_nowait(NeighborResult(offset=candidate, status="absent"))
            collected = self._drain(results, expected=len(offsets))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        videos = order_videos(
            result.video
            for result in collected
            if result.status == "ok" and result.video is not None
        )
        failed = sum(1 for result in collected if result.status == "failed")
        absent = sum(1 for result in collected if result.status == "absent")
        return VideoList(
            count=len(videos),
            videos=tuple(videos),
            failed_count=failed + len(offsets) - len(collected),
            absent_count=absent,
        )

    def _fetch_neighbor(
        self,
        offset: int,
        video_id: str,
        results: queue.Queue[NeighborResult],
    ) -> None:
        try:
            video = self._source.fetch_detail(video_id)
        except Exception as exc:
            LOGGER.warning(
                "neighbor detail fetch failed video_id=%s offset=%s error_type=%s error=%s",
                video_id,
                offset,
                type(exc).__name__,
                exc,
                exc_info=not isinstance(exc, YouTubeServiceError),
            )
            self._telemetry.emit(
                "neighborhood.neighbor.failed",
                video_id=video_id,
                offset=offset,
                error_type=type(exc).__name__,
            )
            results.put_nowait(NeighborResult(offset=offset, status="failed"))
            return
        results.put_nowait(NeighborResult(offset=offset, status="ok", video=video))

    def _drain(
        self,
        results: queue.Queue[NeighborResult],
        *,
        expected: int,
    ) -> list[NeighborResult]:
        deadline = time.monotonic() + self._timeout_seconds
        collected: list[NeighborResult] = []
        while len(collected) < expected:
            remaining = max(0.0, deadline - time.monotonic())
            try:
                collected.append(results.get(timeout=remaining))
            except queue.Empty:
                LOGGER.warning(
                    "neighbor fan-out deadline reached; omitting %s pending neighbors "
                    "timeout_seconds=%s",
                    expected - len(collected),
                    self._timeout_seconds,
                )
                break
        return collected


class NeighborhoodService:
    """
    Resolves the window of uploads surrounding one video in its channel.

    Required steps (uploads playlist lookup, count, page walk, locating the
    target) fail the whole call; individual neighbor detail fetches only
    drop that neighbor from the result.
    """

    def __init__(
        self,
        listing: UploadsListingSource,
        details: VideoDetailSource,
        *,
        radius: int = DEFAULT_NEIGHBORHOOD_RADIUS,
        playlist_walk_timeout_seconds: float = 60.0,
        neighborhood_fetch_timeout_seconds: float = 30.0,
        enumerator_queue_capacity: int = 100,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._listing = listing
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()
        self._playlist_walk_timeout_seconds = playlist_walk_timeout_seconds
        self._enumerator = PlaylistEnumerator(
            listing,
            queue_capacity=enumerator_queue_capacity,
            telemetry=self._telemetry,
        )
        self._enricher = NeighborhoodEnricher(
            details,
            radius=radius,
            timeout_seconds=neighborhood_fetch_timeout_seconds,
            telemetry=self._telemetry,
        )

    def resolve_neighborhood(self, channel_id: str, target_video_id: str) -> VideoList:
        started_at = time.monotonic()
        self._telemetry.emit(
            "neighborhood.resolve.start",
            channel_id=channel_id,
            video_id=target_video_id,
            radius=self._enricher.radius,
        )
        try:
            target_id = parse_video_id(target_video_id)
            playlist_id = self._listing.resolve_uploads_playlist(channel_id)
            expected_count = self._listing.fetch_total_count(playlist_id)
            walk = self._enumerator.collect(
                playlist_id,
                timeout_seconds=self._playlist_walk_timeout_seconds,
                expected_count=expected_count,
            )
            ordered = order_uploads(walk.entries)
            offset = locate_target(ordered, target_id)
            video_list = self._enricher.enrich(ordered, offset)
        except YouTubeServiceError as exc:
            self._telemetry.emit(
                "neighborhood.resolve.error",
                channel_id=channel_id,
                video_id=target_video_id,
                error_type=type(exc).__name__,
                error_category=exc.category,
                duration_ms=int((time.monotonic() - started_at) * 1000),
            )
            raise

        LOGGER.info(
            "resolved neighborhood channel_id=%s video_id=%s uploads=%s offset=%s returned=%s "
            "failed=%s",
            channel_id,
            target_id,
            len(ordered),
            offset,
            video_list.count,
            video_list.failed_count,
        )
        self._telemetry.emit(
            "neighborhood.resolve.finish",
            channel_id=channel_id,
            video_id=target_id,
            uploads_count=len(ordered),
            target_offset=offset,
            returned_count=video_list.count,
            failed_count=video_list.failed_count,
            absent_count=video_list.absent_count,
            duration_ms=int((time.monotonic() - started_at) * 1000),
        )
        return video_list
