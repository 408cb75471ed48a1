#!/usr/bin/env python3
"""
Error types and caller-facing error handling for the transcript pipeline.

Only exhaustion of every candidate surfaces as one of these errors; single
candidate failures are logged and skipped inside the pipeline.
"""
import logging
from typing import Any, Dict, List, Optional

from log_events import evt


class YoutubeTranscriptError(Exception):
    """Base class for terminal transcript fetch failures."""

    kind = "transcript_error"
    user_message = "Error loading transcript"

    def __init__(self, message: str = "", video_id: Optional[str] = None,
                 attempts: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message or self.user_message)
        self.video_id = video_id
        self.attempts = attempts or []


class InvalidUrl(YoutubeTranscriptError):
    """Malformed or non-YouTube URL."""
    kind = "invalid_url"
    user_message = "Invalid YouTube URL"


class NoVideoId(YoutubeTranscriptError):
    """The watch page did not expose a recognizable video identifier."""
    kind = "no_video_id"
    user_message = "Could not find a video ID on the page"


class NoCaptionsAvailable(YoutubeTranscriptError):
    """Every candidate request returned an empty transcript."""
    kind = "no_captions"
    user_message = "No transcript found"

    def __init__(self, message: str = "", video_id: Optional[str] = None,
                 attempts: Optional[List[Dict[str, Any]]] = None, title: str = ""):
        super().__init__(message, video_id=video_id, attempts=attempts)
        self.title = title


class TransportFailure(YoutubeTranscriptError):
    """The underlying HTTP call failed (for every attempted candidate)."""
    kind = "transport_failure"
    user_message = "Error loading transcript"

    def __init__(self, message: str = "", video_id: Optional[str] = None,
                 attempts: Optional[List[Dict[str, Any]]] = None,
                 status_code: Optional[int] = None):
        super().__init__(message, video_id=video_id, attempts=attempts)
        self.status_code = status_code


class MalformedPageData(YoutubeTranscriptError):
    """Embedded page JSON was present but unparsable in every form."""
    kind = "malformed_page_data"
    user_message = "Error loading transcript"


def get_user_friendly_error_message(error: Exception) -> str:
    """Short human readable message for a terminal error. Never a traceback."""
    if isinstance(error, YoutubeTranscriptError):
        return error.user_message
    return "Error loading transcript"


def http_status_for_error(error: Exception) -> int:
    """HTTP status the web surface answers with for a terminal error."""
    if isinstance(error, InvalidUrl):
        return 400
    if isinstance(error, (NoVideoId, NoCaptionsAvailable)):
        return 404
    return 502


def handle_transcript_error(error: Exception, video_id: Optional[str] = None) -> str:
    """Log a terminal transcript error with context and return the user message."""
    video_id = video_id or getattr(error, "video_id", None)
    kind = getattr(error, "kind", "unexpected")
    level = logging.WARNING if isinstance(error, NoCaptionsAvailable) else logging.ERROR

    evt("transcript_error",
        level=level,
        video_id=video_id,
        error_kind=kind,
        error_type=type(error).__name__,
        detail=str(error)[:200],
        attempt_count=len(getattr(error, "attempts", []) or []))

    return get_user_friendly_error_message(error)
