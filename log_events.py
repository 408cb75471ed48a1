"""
Event helper functions for structured JSON logging.

This module provides consistent event emission and stage timing utilities
for the transcript pipeline. Events go to the ``transcript.events`` logger
at INFO, which carries a NullHandler and inherits the root WARNING level
until a host entry point calls ``configure_logging``. Importing the
pipeline (tests, CI, embedding in another app) therefore prints nothing.
"""

import logging
import os
import time
from typing import Optional


logger = logging.getLogger("transcript.events")
logger.addHandler(logging.NullHandler())

_enabled = os.getenv("TRANSCRIPT_LOG_EVENTS", "true").lower() in ("1", "true", "yes", "on")


def set_events_enabled(enabled: bool) -> None:
    """Globally switch structured pipeline events on or off."""
    global _enabled  # pylint: disable=global-statement
    _enabled = enabled


def events_enabled() -> bool:
    return _enabled


def evt(event: str, level: int = logging.INFO, **fields) -> None:
    """
    Emit a structured event with consistent field naming.

    Args:
        event: The event type/name
        level: Logging level, INFO unless the event signals degradation
        **fields: Additional fields to include in the event

    Example:
        evt("page_fetch_start", video_id="abc123")
        evt("stage_result", stage="extract", outcome="success", dur_ms=12)
    """
    if not _enabled or not logger.isEnabledFor(level):
        return

    event_data = {"event": event}
    event_data.update(fields)

    logger.log(level, "", extra=event_data)


class StageTimer:
    """
    Context manager for automatic stage timing with structured logging.

    Emits stage_start event on entry and stage_result event on exit,
    with automatic duration calculation and exception handling.

    Example:
        with StageTimer("extract", strategy="player_response"):
            extract_page_data(html, config)
    """

    def __init__(self, stage: str, **context_fields):
        self.stage = stage
        self.context_fields = context_fields
        self.start_time: Optional[float] = None
        self.duration_ms: int = 0

    def __enter__(self):
        self.start_time = time.time()
        evt("stage_start", stage=self.stage, **self.context_fields)
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if self.start_time is not None:
            self.duration_ms = int((time.time() - self.start_time) * 1000)

        event_fields = {
            "stage": self.stage,
            "outcome": "success" if exc_type is None else "error",
            "dur_ms": self.duration_ms,
            **self.context_fields
        }

        if exc_type is not None:
            event_fields["detail"] = f"{exc_type.__name__}: {exc_value}"

        evt("stage_result", **event_fields)

        # Never suppress the exception
        return False


def time_stage(stage: str, **context_fields) -> StageTimer:
    """
    Create a StageTimer context manager for the given stage.

    Example:
        with time_stage("fetch_page", url=url):
            await client.fetch_page(url)
    """
    return StageTimer(stage, **context_fields)
