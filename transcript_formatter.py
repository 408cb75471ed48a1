"""
Rendering of transcript lines for display and note insertion.

Lines are grouped into blocks of ``timestamp_mod`` lines, each anchored at
its first line's offset, and rendered as a timestamp link followed by the
block text.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Sequence

from models import TranscriptLine, TranscriptResult
from timestamp_utils import format_timestamp
from url_utils import build_timestamp_url

TEMPLATE_MINIMAL = "minimal"
TEMPLATE_STANDARD = "standard"
TEMPLATE_RICH = "rich"
TEMPLATES = (TEMPLATE_MINIMAL, TEMPLATE_STANDARD, TEMPLATE_RICH)

DEFAULT_TITLE = "YouTube Transcript"
HIGHLIGHT_TEMPLATE = '<span class="yt-transcript__highlight">{}</span>'


@dataclass(frozen=True)
class TranscriptBlock:
    quote: str
    offset_ms: int


def normalize_timestamp_mod(timestamp_mod) -> int:
    try:
        value = int(timestamp_mod)
    except (TypeError, ValueError):
        return 1
    return value if value > 0 else 1


def get_transcript_blocks(lines: Sequence[TranscriptLine], timestamp_mod: int) -> List[TranscriptBlock]:
    """Group every ``timestamp_mod`` lines into one block."""
    timestamp_mod = normalize_timestamp_mod(timestamp_mod)
    blocks = []
    for start in range(0, len(lines), timestamp_mod):
        chunk = lines[start:start + timestamp_mod]
        blocks.append(TranscriptBlock(
            quote=" ".join(line.text for line in chunk),
            offset_ms=chunk[0].offset_ms,
        ))
    return blocks


def filter_blocks(blocks: Iterable[TranscriptBlock], query: Optional[str]) -> List[TranscriptBlock]:
    """Blocks whose text contains ``query``, case-insensitively. Empty query keeps all."""
    blocks = list(blocks)
    if not query:
        return blocks
    needle = query.lower()
    return [block for block in blocks if needle in block.quote.lower()]


def highlight_text(text: str, query: Optional[str], template: str = HIGHLIGHT_TEMPLATE) -> str:
    """Wrap each case-insensitive occurrence of ``query`` in ``template``."""
    if not query:
        return text
    return re.sub(re.escape(query), lambda m: template.format(m.group(0)), text, flags=re.IGNORECASE)


class TranscriptFormatter:
    """Text renderings of a TranscriptResult."""

    @classmethod
    def format(cls, result: Optional[TranscriptResult], url: str,
               template: str = TEMPLATE_STANDARD, timestamp_mod: int = 5) -> str:
        if result is None or not result.lines:
            return ""

        timestamp_mod = normalize_timestamp_mod(timestamp_mod)

        if template == TEMPLATE_MINIMAL:
            return cls.format_minimal(result)
        if template == TEMPLATE_RICH:
            return cls.format_rich(result, url, timestamp_mod)
        # Unknown templates render as standard
        return cls.format_standard(result, url, timestamp_mod)

    @staticmethod
    def format_minimal(result: TranscriptResult) -> str:
        texts = (line.text.strip() for line in result.lines)
        return " ".join(text for text in texts if text)

    @staticmethod
    def format_standard(result: TranscriptResult, url: str, timestamp_mod: int = 5) -> str:
        rendered = []
        for block in get_transcript_blocks(result.lines, timestamp_mod):
            link = build_timestamp_url(url, block.offset_ms) if url else "#"
            rendered.append(f"[{format_timestamp(block.offset_ms)}]({link}) {block.quote.strip()}")
        return "\n".join(rendered)

    @classmethod
    def format_rich(cls, result: TranscriptResult, url: str, timestamp_mod: int = 5,
                    today: Optional[date] = None) -> str:
        title = (result.title or "").strip() or DEFAULT_TITLE
        today = today or datetime.now(timezone.utc).date()
        header = "\n".join([
            f"## {title}",
            f"**Source**: {url or 'Unknown'}",
            f"**Retrieved**: {today.isoformat()}",
            "",
        ])
        return header + cls.format_standard(result, url, timestamp_mod)
