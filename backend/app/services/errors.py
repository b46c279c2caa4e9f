from __future__ import annotations

from typing import ClassVar, Literal

ErrorCategory = Literal["input", "upstream"]


class YouTubeServiceError(Exception):
    category: ClassVar[ErrorCategory] = "upstream"


class InvalidVideoReferenceError(YouTubeServiceError):
    category: ClassVar[ErrorCategory] = "input"


class ResourceNotFoundError(YouTubeServiceError):
    category: ClassVar[ErrorCategory] = "input"


class TargetNotInUploadsError(YouTubeServiceError):
    category: ClassVar[ErrorCategory] = "input"


class YouTubeApiError(YouTubeServiceError):
    def __init__(self, message: str, *, endpoint: str, status_code: int) -> None:
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code


class YouTubeTransportError(YouTubeServiceError):
    pass


class YouTubeDecodeError(YouTubeServiceError):
    def __init__(self, message: str, *, field_path: str) -> None:
        super().__init__(message)
        self.field_path = field_path


class PlaylistWalkError(YouTubeServiceError):
    pass


class PlaylistWalkTimeoutError(PlaylistWalkError):
    pass
