from __future__ import annotations

import logging
from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import PlainTextResponse
from structlog.contextvars import bind_contextvars, reset_contextvars

from backend.app.dependencies import get_neighborhood_service, get_youtube_client
from backend.app.models.video_contracts import (
    ChannelSummaryResponse,
    ErrorResponse,
    VideoListResponse,
    VideoMetadataResponse,
)
from backend.app.services.errors import (
    PlaylistWalkTimeoutError,
    ResourceNotFoundError,
    TargetNotInUploadsError,
    YouTubeServiceError,
)
from backend.app.services.neighborhood_service import NeighborhoodService
from backend.app.services.youtube_client import YouTubeDataClient

LOGGER = logging.getLogger("yt_search.api")

WELCOME_MESSAGE = "Welcome to the YouTube Search Server!"
_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}

router = APIRouter()


def _require_query_param(name: str, value: str | None) -> str:
    if value is None or not value.strip():
        raise HTTPException(
            status_code=400,
            detail=f"Bad Request. Query parameter '{name}' missing.",
        )
    return value.strip()


def _status_code_for(exc: YouTubeServiceError) -> int:
    if isinstance(exc, ResourceNotFoundError | TargetNotInUploadsError):
        return 404
    if exc.category == "input":
        return 400
    if isinstance(exc, PlaylistWalkTimeoutError):
        return 504
    return 502


def _raise_http_error(action: str, exc: YouTubeServiceError) -> NoReturn:
    status_code = _status_code_for(exc)
    if status_code >= 500:
        LOGGER.warning(
            "upstream failure while %s error_type=%s error=%s",
            action,
            type(exc).__name__,
            exc,
        )
    raise HTTPException(
        status_code=status_code,
        detail=f"Error while {action}: {exc}",
        headers={"X-Error-Category": exc.category},
    ) from exc


@router.get(
    "/",
    response_class=PlainTextResponse,
    tags=["system"],
    operation_id="home",
)
def home() -> str:
    return WELCOME_MESSAGE


@router.get(
    "/metadata/",
    response_model=VideoMetadataResponse,
    responses=_ERROR_RESPONSES,
    tags=["videos"],
    operation_id="get_video_metadata",
)
def get_video_metadata(
    client: Annotated[YouTubeDataClient, Depends(get_youtube_client)],
    idorurl: Annotated[str | None, Query(description="Video id or watch URL.")] = None,
) -> VideoMetadataResponse:
    id_or_url = _require_query_param("idorurl", idorurl)
    try:
        metadata = client.fetch_detail(id_or_url)
    except YouTubeServiceError as exc:
        _raise_http_error("fetching video metadata", exc)
    return VideoMetadataResponse.from_metadata(metadata)


@router.get(
    "/channel/",
    response_model=ChannelSummaryResponse,
    responses=_ERROR_RESPONSES,
    tags=["channels"],
    operation_id="get_channel_summary",
)
def get_channel_summary(
    client: Annotated[YouTubeDataClient, Depends(get_youtube_client)],
    channel_id: Annotated[str | None, Query(alias="id", description="Channel id.")] = None,
) -> ChannelSummaryResponse:
    resolved_channel_id = _require_query_param("id", channel_id)
    try:
        summary = client.fetch_channel(resolved_channel_id)
    except YouTubeServiceError as exc:
        _raise_http_error("fetching channel", exc)
    return ChannelSummaryResponse.from_summary(summary)


@router.get(
    "/videos/",
    response_model=VideoListResponse,
    responses=_ERROR_RESPONSES,
    tags=["videos"],
    operation_id="get_channel_neighborhood",
)
def get_channel_neighborhood(
    service: Annotated[NeighborhoodService, Depends(get_neighborhood_service)],
    channel_id: Annotated[
        str | None, Query(alias="channelId", description="Channel whose uploads are walked.")
    ] = None,
    video_id: Annotated[
        str | None, Query(alias="videoId", description="Target video id or watch URL.")
    ] = None,
) -> VideoListResponse:
    resolved_channel_id = _require_query_param("channelId", channel_id)
    resolved_video_id = _require_query_param("videoId", video_id)
    context_tokens = bind_contextvars(
        channel_id=resolved_channel_id,
        target_video_id=resolved_video_id,
    )
    try:
        video_list = service.resolve_neighborhood(resolved_channel_id, resolved_video_id)
    except YouTubeServiceError as exc:
        _raise_http_error("fetching videos", exc)
    finally:
        reset_contextvars(**context_tokens)
    return VideoListResponse.from_video_list(video_list)
