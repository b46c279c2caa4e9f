from __future__ import annotations

import logging
import queue
import threading
import time
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Protocol

from backend.app.services.errors import (
    PlaylistWalkError,
    PlaylistWalkTimeoutError,
    YouTubeServiceError,
)
from backend.app.services.youtube_client import PlaylistPage, UploadEntry
from backend.app.telemetry import TelemetryClient

LOGGER = logging.getLogger("yt_search.playlist")

_DELIVERY_POLL_SECONDS = 0.1


class PlaylistPageSource(Protocol):
    def fetch_page(self, playlist_id: str, page_token: str | None) -> PlaylistPage:
        ...


@dataclass(frozen=True)
class _WalkFailed:
    error: YouTubeServiceError


@dataclass(frozen=True)
class _WalkCompleted:
    pages_fetched: int


_WalkEvent = UploadEntry | _WalkFailed | _WalkCompleted


@dataclass(frozen=True)
class PlaylistWalkResult:
    entries: tuple[UploadEntry, ...]
    pages_fetched: int
    expected_count: int | None = None

    @property
    def count_matches(self) -> bool:
        return self.expected_count is None or self.expected_count == len(self.entries)


class PlaylistEnumerator:
    """
    Walks every page of a playlist on a background driver thread.

    The driver keeps at most one page request in flight and pushes each
    decoded entry onto a bounded queue as soon as the page arrives, so the
    consumer can work while the next page is being fetched. Failures and the
    end-of-list signal travel on the same queue as entries, which means the
    consumer always learns how the walk ended. The walk terminates on the
    listing's own end-of-list marker; an expected count is only checked
    afterwards.
    """

    def __init__(
        self,
        source: PlaylistPageSource,
        *,
        queue_capacity: int = 100,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._source = source
        self._queue_capacity = max(1, queue_capacity)
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()

    def iter_entries(self, playlist_id: str, *, timeout_seconds: float) -> Iterator[UploadEntry]:
        for event in self._events(playlist_id, timeout_seconds=timeout_seconds):
            if isinstance(event, UploadEntry):
                yield event

    def collect(
        self,
        playlist_id: str,
        *,
        timeout_seconds: float,
        expected_count: int | None = None,
    ) -> PlaylistWalkResult:
        started_at = time.monotonic()
        entries: list[UploadEntry] = []
        pages_fetched = 0
        for event in self._events(playlist_id, timeout_seconds=timeout_seconds):
            if isinstance(event, UploadEntry):
                entries.append(event)
            else:
                pages_fetched = event.pages_fetched

        result = PlaylistWalkResult(
            entries=tuple(entries),
            pages_fetched=pages_fetched,
            expected_count=expected_count,
        )
        if not result.count_matches:
            LOGGER.warning(
                "playlist walk count mismatch playlist_id=%s expected=%s observed=%s",
                playlist_id,
                expected_count,
                len(entries),
            )
        self._telemetry.emit(
            "playlist.walk.finish",
            playlist_id=playlist_id,
            pages_fetched=pages_fetched,
            observed_count=len(entries),
            expected_count=expected_count,
            count_matches=result.count_matches,
            duration_ms=int((time.monotonic() - started_at) * 1000),
        )
        return result

    def _events(
        self,
        playlist_id: str,
        *,
        timeout_seconds: float,
    ) -> Iterator[UploadEntry | _WalkCompleted]:
        deadline = time.monotonic() + max(0.0, timeout_seconds)
        events: queue.Queue[_WalkEvent] = queue.Queue(maxsize=self._queue_capacity)
        abandoned = threading.Event()
        driver = threading.Thread(
            target=self._drive,
            args=(playlist_id, events, abandoned),
            name=f"playlist-walk-{playlist_id}",
            daemon=True,
        )
        driver.start()

        try:
            while True:
                remaining = max(0.0, deadline - time.monotonic())
                try:
                    event = events.get(timeout=remaining)
                except queue.Empty:
                    raise PlaylistWalkTimeoutError(
                        f"playlist walk for {playlist_id} did not finish within "
                        f"{timeout_seconds:g}s"
                    ) from None

                if isinstance(event, _WalkFailed):
                    raise event.error
                yield event
                if isinstance(event, _WalkCompleted):
                    return
        finally:
            abandoned.set()

    def _drive(
        self,
        playlist_id: str,
        events: queue.Queue[_WalkEvent],
        abandoned: threading.Event,
    ) -> None:
        page_tokens: deque[str] = deque([""])
        seen_tokens: set[str] = set()
        pages_fetched = 0

        while page_tokens:
            page_token = page_tokens.popleft()
            try:
                page = self._source.fetch_page(playlist_id, page_token or None)
            except YouTubeServiceError as exc:
                self._deliver(events, _WalkFailed(exc), abandoned)
                return
            except Exception as exc:
                wrapped = PlaylistWalkError(f"playlist page fetch failed unexpectedly: {exc}")
                wrapped.__cause__ = exc
                self._deliver(events, _WalkFailed(wrapped), abandoned)
                return
            pages_fetched += 1

            for entry in page.entries:
                if not self._deliver(events, entry, abandoned):
                    return

            next_token = page.next_page_token
            if next_token is None:
                continue
            if next_token in seen_tokens:
                failure = PlaylistWalkError(
                    f"playlist {playlist_id} returned a repeated page token"
                )
                self._deliver(events, _WalkFailed(failure), abandoned)
                return
            seen_tokens.add(next_token)
            page_tokens.append(next_token)

        self._deliver(events, _WalkCompleted(pages_fetched=pages_fetched), abandoned)

    def _deliver(
        self,
        events: queue.Queue[_WalkEvent],
        event: _WalkEvent,
        abandoned: threading.Event,
    ) -> bool:
        while not abandoned.is_set():
            try:
                events.put(event, timeout=_DELIVERY_POLL_SECONDS)
            except queue.Full:
                continue
            return True

        if isinstance(event, _WalkFailed):
            LOGGER.warning(
                "playlist walk failed after consumer stopped listening error=%s",
                event.error,
            )
        return False
