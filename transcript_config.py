#!/usr/bin/env python3
"""
Configuration management for the transcript pipeline.

Settings that the pipeline reads (language, country, block size, timeouts,
candidate ordering) live in one immutable dataclass that is passed
explicitly through every call. Values load from environment variables
(and a local .env file) with sensible defaults and validation.
"""

import os
from dataclasses import dataclass, field, replace, asdict
from typing import Optional, Dict, Any, Tuple

from dotenv import load_dotenv

from logging_setup import get_logger

# Don't override variables already present in the environment
load_dotenv(override=False)

logger = get_logger(__name__)


# (asr_style, flag) pairs in the order the synthesized params are tried
DEFAULT_CANDIDATE_ORDER: Tuple[Tuple[bool, int], ...] = (
    (True, 1),
    (False, 0),
    (True, 0),
    (False, 1),
)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/127.0.0.0 Safari/537.36"
)

# Used when the watch page does not expose visitorData
DEFAULT_VISITOR_DATA = "CgtQUXFnRnNxbUVRZyi2qbm2BjIKCgJVUxIEGgAgSQ%3D%3D"

DEFAULT_CLIENT_VERSION = "2.20240801.01.00"


@dataclass(frozen=True)
class TranscriptConfig:
    """Configuration threaded through one fetch_transcript call."""

    # Caption preferences
    lang: str = "en"
    country: str = "US"

    # Formatter: lines per rendered block
    timestamp_mod: int = 5

    # Timeouts (seconds)
    page_timeout: float = 15.0
    transcript_timeout: float = 15.0

    # The watch page GET is retried on transport errors; transcript
    # candidates never are.
    page_fetch_attempts: int = 3

    # Bound for the recursive getTranscriptEndpoint search
    max_search_depth: int = 64

    candidate_order: Tuple[Tuple[bool, int], ...] = field(default=DEFAULT_CANDIDATE_ORDER)

    user_agent: str = DEFAULT_USER_AGENT
    visitor_data_fallback: str = DEFAULT_VISITOR_DATA
    client_version: str = DEFAULT_CLIENT_VERSION

    @classmethod
    def from_env(cls) -> 'TranscriptConfig':
        """Load configuration from environment variables with validation."""
        try:
            config = cls(
                lang=os.getenv("TRANSCRIPT_LANG", "en").strip() or "en",
                country=os.getenv("TRANSCRIPT_COUNTRY", "US").strip() or "US",
                timestamp_mod=cls._parse_int_env("TRANSCRIPT_TIMESTAMP_MOD", 5, min_val=1, max_val=100),
                page_timeout=float(cls._parse_int_env("TRANSCRIPT_PAGE_TIMEOUT", 15, min_val=1, max_val=120)),
                transcript_timeout=float(cls._parse_int_env("TRANSCRIPT_REQUEST_TIMEOUT", 15, min_val=1, max_val=120)),
                page_fetch_attempts=cls._parse_int_env("TRANSCRIPT_PAGE_FETCH_ATTEMPTS", 3, min_val=1, max_val=5),
                max_search_depth=cls._parse_int_env("TRANSCRIPT_MAX_SEARCH_DEPTH", 64, min_val=8, max_val=512),
                candidate_order=cls._parse_candidate_order_env("TRANSCRIPT_CANDIDATE_ORDER", DEFAULT_CANDIDATE_ORDER),
                user_agent=os.getenv("TRANSCRIPT_USER_AGENT", DEFAULT_USER_AGENT),
                visitor_data_fallback=os.getenv("TRANSCRIPT_VISITOR_DATA", DEFAULT_VISITOR_DATA),
                client_version=os.getenv("TRANSCRIPT_CLIENT_VERSION", DEFAULT_CLIENT_VERSION),
            )

            config._validate_config()
            return config

        except ValueError as e:
            logger.error(f"Failed to load transcript configuration: {e}")
            logger.warning("Using default transcript configuration")
            return cls()

    @staticmethod
    def _parse_int_env(env_var: str, default: int, min_val: Optional[int] = None, max_val: Optional[int] = None) -> int:
        """Parse integer environment variable with clamping."""
        try:
            value = int(os.getenv(env_var, str(default)))
        except (ValueError, TypeError):
            logger.error(f"Invalid value for {env_var}: {os.getenv(env_var)}, using default {default}")
            return default

        if min_val is not None and value < min_val:
            logger.warning(f"{env_var}={value} is below minimum {min_val}, using {min_val}")
            return min_val

        if max_val is not None and value > max_val:
            logger.warning(f"{env_var}={value} is above maximum {max_val}, using {max_val}")
            return max_val

        return value

    @staticmethod
    def _parse_candidate_order_env(env_var: str, default: Tuple[Tuple[bool, int], ...]) -> Tuple[Tuple[bool, int], ...]:
        """
        Parse a candidate ordering such as ``asr:1,plain:0,asr:0,plain:1``.

        Falls back to the default on any malformed entry.
        """
        raw = os.getenv(env_var, "").strip()
        if not raw:
            return default

        order = []
        for item in raw.split(","):
            style, _, flag = item.strip().partition(":")
            if style not in ("asr", "plain") or flag not in ("0", "1"):
                logger.error(f"Invalid entry '{item}' in {env_var}, using default ordering")
                return default
            order.append((style == "asr", int(flag)))

        if len(set(order)) != len(order):
            logger.error(f"Duplicate entries in {env_var}, using default ordering")
            return default

        return tuple(order)

    def _validate_config(self) -> None:
        """Log warnings for problematic combinations."""
        warnings = []

        if len(self.lang) < 2:
            warnings.append(f"Language code '{self.lang}' looks too short")

        if len(self.country) != 2:
            warnings.append(f"Country code '{self.country}' is not a two-letter region")

        if not self.candidate_order:
            warnings.append("Empty candidate ordering: only page-supplied params will be tried")

        for warning in warnings:
            logger.warning(f"Configuration warning: {warning}")

    def with_overrides(self, lang: Optional[str] = None, country: Optional[str] = None,
                       timestamp_mod: Optional[int] = None) -> 'TranscriptConfig':
        """Return a copy with per-call overrides applied."""
        changes: Dict[str, Any] = {}
        if lang:
            changes["lang"] = lang
        if country:
            changes["country"] = country
        if timestamp_mod is not None:
            changes["timestamp_mod"] = max(1, int(timestamp_mod))
        return replace(self, **changes) if changes else self

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for serialization."""
        data = asdict(self)
        data["candidate_order"] = [
            f"{'asr' if asr else 'plain'}:{flag}" for asr, flag in self.candidate_order
        ]
        return data


# Global configuration instance
_config: Optional[TranscriptConfig] = None


def get_transcript_config() -> TranscriptConfig:
    """Get the global configuration loaded from the environment."""
    global _config  # pylint: disable=global-statement
    if _config is None:
        _config = TranscriptConfig.from_env()
    return _config


def reload_transcript_config() -> TranscriptConfig:
    """Reload configuration from environment variables."""
    global _config  # pylint: disable=global-statement
    _config = TranscriptConfig.from_env()
    return _config
