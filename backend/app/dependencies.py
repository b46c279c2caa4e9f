from __future__ import annotations

from functools import lru_cache

from backend.app.config import AppSettings, load_settings
from backend.app.services.neighborhood_service import NeighborhoodService
from backend.app.services.youtube_client import YouTubeDataClient
from backend.app.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_youtube_client() -> YouTubeDataClient:
    settings = get_settings()
    assert settings.youtube_api_key is not None
    return YouTubeDataClient(
        settings.youtube_api_key,
        base_url=settings.youtube_base_url,
        timeout_seconds=settings.http_timeout_seconds,
        page_size=settings.listing_page_size,
    )


@lru_cache(maxsize=1)
def get_neighborhood_service() -> NeighborhoodService:
    settings = get_settings()
    client = get_youtube_client()
    return NeighborhoodService(
        client,
        client,
        radius=settings.neighborhood_radius,
        playlist_walk_timeout_seconds=settings.playlist_walk_timeout_seconds,
        neighborhood_fetch_timeout_seconds=settings.neighborhood_fetch_timeout_seconds,
        enumerator_queue_capacity=settings.enumerator_queue_capacity,
        telemetry=get_telemetry(),
    )


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


def reset_cached_dependencies() -> None:
    get_neighborhood_service.cache_clear()
    get_youtube_client.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
