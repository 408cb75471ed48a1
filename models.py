"""
Data model for one transcript fetch.

Everything here is immutable and produced fresh per fetch; nothing is
cached or persisted.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


# PageData.kind values
KIND_CAPTION_TRACKS = "caption_tracks"
KIND_TRANSCRIPT_TOKEN = "transcript_token"
KIND_VIDEO_ONLY = "video_only"


@dataclass(frozen=True)
class VideoReference:
    """A watch page's video id (11 chars, [A-Za-z0-9_-]) and title."""
    video_id: str
    title: str = ""


@dataclass(frozen=True)
class CaptionTrack:
    """One caption track listed in ytInitialPlayerResponse."""
    base_url: str
    language_code: str
    display_name: str = ""
    is_translatable: bool = False
    kind: str = ""  # "asr" for auto-generated tracks

    @property
    def is_asr(self) -> bool:
        return self.kind.lower() == "asr"


@dataclass(frozen=True)
class PageData:
    """
    What the watch page gave us.

    ``kind`` tells which fields are meaningful: caption_tracks carries at
    least one track, transcript_token carries the page-supplied params,
    video_only carries neither and the caller synthesizes params.
    """
    video: VideoReference
    kind: str
    caption_tracks: Tuple[CaptionTrack, ...] = ()
    transcript_token: Optional[str] = None
    visitor_data: Optional[str] = None
    # Embedded blobs that were present but could not be parsed
    malformed_sources: Tuple[str, ...] = ()

    @property
    def selected_track(self) -> Optional[CaptionTrack]:
        return self.caption_tracks[0] if self.caption_tracks else None


@dataclass(frozen=True)
class TranscriptLine:
    """One caption line. Offsets and durations are non-negative milliseconds."""
    text: str
    offset_ms: int
    duration_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "offset_ms": self.offset_ms,
            "duration_ms": self.duration_ms,
        }


@dataclass(frozen=True)
class TranscriptResult:
    """
    Result of one fetch. ``lines`` may be empty: a caption-less video is a
    valid outcome, distinct from a fetch error.
    """
    title: str
    lines: Tuple[TranscriptLine, ...] = field(default_factory=tuple)
    video_id: Optional[str] = None
    source: Optional[str] = None  # "caption_track", "page_params", "synthesized_params"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "video_id": self.video_id,
            "source": self.source,
            "lines": [line.to_dict() for line in self.lines],
        }

    @classmethod
    def from_lines(cls, title: str, lines: List[TranscriptLine], **kwargs) -> 'TranscriptResult':
        return cls(title=title, lines=tuple(lines), **kwargs)
