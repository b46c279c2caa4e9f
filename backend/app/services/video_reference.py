from __future__ import annotations

import re

from backend.app.services.errors import InvalidVideoReferenceError

WATCH_URL_PATTERN = re.compile(
    r"^(?:www\.)?youtube\.com/watch/?\?(?:[^&]*&)*v=([a-zA-Z0-9_!-]+)(?:&[^&]*)*$",
    re.IGNORECASE,
)
SHORT_URL_PATTERN = re.compile(r"^youtu\.be/([^?/]+)(?:\?.*)?$", re.IGNORECASE)


def parse_video_id(id_or_url: str) -> str:
    """
    Accepts a bare video id or a watch/short YouTube URL and returns the id.

    Anything that does not look like a URL is passed through untouched so
    callers can hand over ids they already extracted.
    """
    candidate = id_or_url.strip()
    if not candidate:
        raise InvalidVideoReferenceError("video id or URL must not be empty")

    lowered = candidate.lower()
    if not lowered.startswith(("http://", "https://")):
        return candidate

    without_scheme = candidate.split("://", 1)[1]
    host = without_scheme.split("/", 1)[0].lower()

    if host in {"www.youtube.com", "youtube.com"}:
        matched = WATCH_URL_PATTERN.match(without_scheme)
    elif host == "youtu.be":
        matched = SHORT_URL_PATTERN.match(without_scheme)
    else:
        raise InvalidVideoReferenceError(f"unrecognized youtube URL format: {id_or_url}")

    if matched is None:
        raise InvalidVideoReferenceError(f"video ID not found in URL: {id_or_url}")
    return matched.group(1)
