from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from backend.app.services.neighborhood_service import VideoList
from backend.app.services.youtube_client import (
    ChannelSummary,
    VideoMetadata,
    format_published_at,
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class VideoMetadataResponse(_CamelModel):
    video_id: str
    title: str
    thumbnail_url: str
    view_count: int
    published_at: str
    channel_id: str
    channel_title: str
    channel_thumbnail_url: str
    channel_custom_url: str
    subscriber_count: int
    video_count: int

    @classmethod
    def from_metadata(cls, metadata: VideoMetadata) -> VideoMetadataResponse:
        return cls(
            video_id=metadata.video_id,
            title=metadata.title,
            thumbnail_url=metadata.thumbnail_url,
            view_count=metadata.view_count,
            published_at=format_published_at(metadata.published_at),
            channel_id=metadata.channel_id,
            channel_title=metadata.channel_title,
            channel_thumbnail_url=metadata.channel_thumbnail_url,
            channel_custom_url=metadata.channel_custom_url,
            subscriber_count=metadata.subscriber_count,
            video_count=metadata.video_count,
        )


class VideoListResponse(_CamelModel):
    count: int
    videos: list[VideoMetadataResponse]

    @classmethod
    def from_video_list(cls, video_list: VideoList) -> VideoListResponse:
        return cls(
            count=video_list.count,
            videos=[VideoMetadataResponse.from_metadata(video) for video in video_list.videos],
        )


class ChannelSummaryResponse(_CamelModel):
    channel_id: str
    title: str
    custom_url: str
    thumbnail_url: str
    subscriber_count: int
    video_count: int

    @classmethod
    def from_summary(cls, summary: ChannelSummary) -> ChannelSummaryResponse:
        return cls(
            channel_id=summary.channel_id,
            title=summary.title,
            custom_url=summary.custom_url,
            thumbnail_url=summary.thumbnail_url,
            subscriber_count=summary.subscriber_count,
            video_count=summary.video_count,
        )


class ErrorResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    detail: str
