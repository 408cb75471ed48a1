"""
YouTube URL detection, validation and timestamp links.
"""

import re
from typing import Optional, Tuple
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

YOUTUBE_DOMAINS = {
    "youtube.com",
    "www.youtube.com",
    "m.youtube.com",
    "mobile.youtube.com",
    "music.youtube.com",
    "youtu.be",
    "www.youtu.be",
}

VIDEO_ID_RE = re.compile(r'^[A-Za-z0-9_-]{11}$')

_URL_IN_TEXT_RE = re.compile(r'https?://[^\s<>"{}|\\^`\[\]]+', re.IGNORECASE)

_URL_BODY = (
    r'https?://(?:www\.|(?!www))[a-zA-Z0-9][a-zA-Z0-9-]+[a-zA-Z0-9]\.[^\s)]{2,}'
    r'|www\.[a-zA-Z0-9][a-zA-Z0-9-]+[a-zA-Z0-9]\.[^\s)]{2,}'
    r'|https?://(?:www\.|(?!www))[a-zA-Z0-9]+\.[^\s)]{2,}'
    r'|www\.[a-zA-Z0-9]+\.[^\s)]{2,}'
)
_MARKDOWN_URL_RE = re.compile(r'\[([^\[\]]*)\]\((' + _URL_BODY + r')\)', re.IGNORECASE)
_BARE_URL_RE = re.compile(r'(' + _URL_BODY + r')', re.IGNORECASE)


def is_plausible_video_id(value: Optional[str]) -> bool:
    """True for an 11 character [A-Za-z0-9_-] identifier."""
    return bool(value) and bool(VIDEO_ID_RE.match(value))


def is_valid_youtube_url(url: Optional[str]) -> bool:
    """Check that a URL points at a single YouTube video."""
    if not url or not isinstance(url, str):
        return False

    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False

    if parsed.scheme not in ("http", "https"):
        return False

    hostname = (parsed.hostname or "").lower()
    if hostname not in YOUTUBE_DOMAINS:
        return False

    if "youtube.com" in hostname:
        return parsed.path == "/watch" and bool(parse_qs(parsed.query).get("v"))

    # youtu.be/<id>
    path_parts = parsed.path.split("/")
    return len(path_parts) >= 2 and len(path_parts[1]) > 0


def extract_youtube_url_from_text(text: Optional[str]) -> Optional[str]:
    """Return the first valid YouTube URL found in free text."""
    if not text or not isinstance(text, str):
        return None

    for match in _URL_IN_TEXT_RE.findall(text):
        # Closing paren of a markdown link, sentence punctuation
        match = match.rstrip(").,;:!?'")
        if is_valid_youtube_url(match):
            return match
    return None


def extract_video_id_from_url(url: Optional[str]) -> Optional[str]:
    """Video id from watch, youtu.be, embed and shorts URLs."""
    if not url:
        return None

    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None

    hostname = (parsed.hostname or "").lower()
    if hostname not in YOUTUBE_DOMAINS:
        return None

    candidate = None
    if hostname.endswith("youtu.be"):
        candidate = parsed.path.lstrip("/").split("/")[0]
    elif parsed.path == "/watch":
        candidate = (parse_qs(parsed.query).get("v") or [None])[0]
    else:
        match = re.match(r'^/(?:embed|shorts|live|v)/([^/?#]+)', parsed.path)
        if match:
            candidate = match.group(1)

    return candidate if is_plausible_video_id(candidate) else None


def build_watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def build_timestamp_url(url: Optional[str], offset_ms: float) -> str:
    """Set ``t=<seconds>`` on a video URL. Unparsable URLs come back unchanged."""
    if not url or not isinstance(url, str):
        return ""

    try:
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            return url
        seconds = max(0, int(offset_ms // 1000))
        query = parse_qs(parsed.query, keep_blank_values=True)
        query["t"] = [str(seconds)]
        return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))
    except ValueError:
        return url


def _cursor_within_boundaries(cursor: int, start: int, length: int) -> bool:
    return start <= cursor <= start + length


def get_url_from_text(line_text: str, cursor_position: int) -> Tuple[int, int]:
    """
    Span of the markdown link or bare URL under the cursor.

    Returns ``(cursor_position, cursor_position)`` when the cursor is not on a URL.
    """
    for pattern in (_MARKDOWN_URL_RE, _BARE_URL_RE):
        for match in pattern.finditer(line_text):
            if _cursor_within_boundaries(cursor_position, match.start(), len(match.group(0))):
                return match.start(), match.end()

    return cursor_position, cursor_position
