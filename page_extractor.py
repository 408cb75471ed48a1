"""
Watch page data extraction.

Recovers the video title, video id and either the caption track list
(from ytInitialPlayerResponse) or the transcript endpoint params token
(from ytInitialData) out of the raw HTML of a YouTube watch page.

Page shapes change often, so every step is a heuristic with a fallback:
- Extraction strategies are plain functions tried in a fixed priority
  order, each returning an optional PageData.
- Embedded JSON is located by brace counting rather than a regex, since
  the objects are hundreds of KB and nest arbitrarily.
- A parse failure in one blob is logged and the next strategy runs; no
  extraction step raises on malformed page content.
"""

import html
import json
import logging
import re
from dataclasses import replace
from typing import Any, Callable, Iterator, List, Optional, Tuple

from error_handler import NoVideoId
from log_events import evt
from logging_setup import get_logger
from models import (
    CaptionTrack, PageData, VideoReference,
    KIND_CAPTION_TRACKS, KIND_TRANSCRIPT_TOKEN, KIND_VIDEO_ONLY,
)
from transcript_config import TranscriptConfig
from url_utils import is_plausible_video_id

logger = get_logger(__name__)

YOUTUBE_ORIGIN = "https://www.youtube.com"

# Page tokens shorter than this are placeholders, not usable params
MIN_PARAMS_LENGTH = 50

TITLE_RE = re.compile(r'<meta\s+name="title"\s+content="([^"]*)"\s*/?>')
CANONICAL_RE = re.compile(r'<link\s+rel="canonical"\s+href="([^"]*)"\s*/?>')
CANONICAL_VIDEO_ID_RE = re.compile(r'[?&]v=([^&#"]+)')

# Tried in order after the canonical link
VIDEO_ID_PATTERNS = (
    re.compile(r'"videoId"\s*:\s*"([^"]+)"'),
    re.compile(r'watch\?v=([a-zA-Z0-9_-]{11})'),
    re.compile(r'embed/([a-zA-Z0-9_-]{11})'),
    re.compile(r'youtu\.be/([a-zA-Z0-9_-]{11})'),
)

VISITOR_DATA_PATTERNS = (
    re.compile(r'"visitorData"\s*:\s*"([^"]+)"'),
    re.compile(r'"VISITOR_DATA"\s*:\s*"([^"]+)"'),
)

UNICODE_ESCAPE_RE = re.compile(r'\\u([0-9a-fA-F]{4})')

_BARE_KEY_RE = re.compile(r'[A-Za-z_$][\w$]*')


# --- Title and video id ---

def extract_video_title(html_content: str) -> str:
    """Title from <meta name="title">; empty string when absent."""
    match = TITLE_RE.search(html_content or "")
    return html.unescape(match.group(1)) if match else ""


def extract_video_id(html_content: str) -> Optional[str]:
    """
    Video id from the page, first plausible match wins:
    canonical link, then "videoId" JSON field, then watch?v= / embed/ /
    youtu.be/ path patterns anywhere in the page.
    """
    html_content = html_content or ""

    canonical = CANONICAL_RE.search(html_content)
    if canonical:
        id_match = CANONICAL_VIDEO_ID_RE.search(html.unescape(canonical.group(1)))
        if id_match and is_plausible_video_id(id_match.group(1)):
            evt("extract_video_id", rule="canonical", level=logging.DEBUG)
            return id_match.group(1)

    for rule_index, pattern in enumerate(VIDEO_ID_PATTERNS):
        for match in pattern.finditer(html_content):
            if is_plausible_video_id(match.group(1)):
                evt("extract_video_id", rule=pattern.pattern, rule_index=rule_index, level=logging.DEBUG)
                return match.group(1)

    return None


def extract_visitor_data(html_content: str, fallback: Optional[str] = None) -> Optional[str]:
    """visitorData for the X-Goog-Visitor-Id header, else the fallback."""
    for pattern in VISITOR_DATA_PATTERNS:
        match = pattern.search(html_content or "")
        if match:
            return _unescape_unicode(match.group(1))
    return fallback


def _unescape_unicode(value: str) -> str:
    """Decode literal \\uXXXX escapes such as \\u0026 left in page strings."""
    if not value:
        return value
    return UNICODE_ESCAPE_RE.sub(lambda m: chr(int(m.group(1), 16)), value)


# --- Embedded JSON location and parsing ---

def _balanced_object_end(text: str, start: int) -> Optional[int]:
    """
    Index one past the '}' closing the object that opens at ``start``.

    Braces inside string literals are ignored. Returns None when the text
    ends before the object closes.
    """
    depth = 0
    in_string: Optional[str] = None
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == in_string:
                in_string = None
            continue

        if ch in ('"', "'"):
            in_string = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1

    return None


def iter_json_assignments(html_content: str, name: str) -> Iterator[str]:
    """
    Yield the object text of every ``name = {...}`` assignment in the page,
    including the ``var name =`` and ``window["name"] =`` spellings.
    """
    pattern = re.compile(
        r'(?:\b' + re.escape(name) + r'|\[\s*["\']' + re.escape(name) + r'["\']\s*\])\s*=\s*(?=\{)'
    )
    for match in pattern.finditer(html_content or ""):
        start = match.end()
        end = _balanced_object_end(html_content, start)
        if end is None:
            evt("embedded_json_unterminated", blob=name, offset=start, level=logging.DEBUG)
            continue
        yield html_content[start:end]


def find_json_assignment(html_content: str, name: str) -> Optional[str]:
    """First ``name = {...}`` object text in the page, or None."""
    return next(iter_json_assignments(html_content, name), None)


def _loose_js_to_json(text: str) -> str:
    """
    Rewrite a JavaScript object literal as JSON: quote bare keys, turn
    single-quoted strings into double-quoted ones and drop trailing commas.
    String contents are copied through untouched.
    """
    out: List[str] = []
    i = 0
    n = len(text)
    last_significant = ""

    while i < n:
        ch = text[i]

        if ch in ('"', "'"):
            quote = ch
            j = i + 1
            buf = []
            while j < n and text[j] != quote:
                if text[j] == "\\" and j + 1 < n:
                    buf.append(text[j:j + 2])
                    j += 2
                    continue
                buf.append(text[j])
                j += 1
            body = "".join(buf)
            if quote == "'":
                body = body.replace("\\'", "'").replace('"', '\\"')
            out.append('"' + body + '"')
            last_significant = '"'
            i = j + 1
            continue

        if ch == ",":
            k = i + 1
            while k < n and text[k].isspace():
                k += 1
            if k < n and text[k] in "}]":
                i += 1
                continue

        if last_significant in ("{", ",") and _BARE_KEY_RE.match(text, i):
            key_match = _BARE_KEY_RE.match(text, i)
            k = key_match.end()
            while k < n and text[k].isspace():
                k += 1
            if k < n and text[k] == ":":
                out.append('"' + key_match.group(0) + '"')
                last_significant = '"'
                i = key_match.end()
                continue

        out.append(ch)
        if not ch.isspace():
            last_significant = ch
        i += 1

    return "".join(out)


def parse_loose_json(text: str) -> Optional[Any]:
    """
    Parse an embedded object: loose JavaScript-object parse first, strict
    JSON second. None when neither works.
    """
    if not text:
        return None

    try:
        return json.loads(_loose_js_to_json(text))
    except (ValueError, RecursionError) as e:
        evt("loose_json_parse_failed", error=str(e)[:100], level=logging.DEBUG)

    try:
        return json.loads(text)
    except (ValueError, RecursionError) as e:
        evt("strict_json_parse_failed", error=str(e)[:100], level=logging.DEBUG)
        return None


def _load_embedded_object(html_content: str, name: str, loose: bool, notes: List[str]) -> Optional[dict]:
    """First parseable ``name`` assignment as a dict. Records name in notes if every one is malformed."""
    seen = False
    for blob in iter_json_assignments(html_content, name):
        seen = True
        if loose:
            data = parse_loose_json(blob)
        else:
            try:
                data = json.loads(blob)
            except (ValueError, RecursionError) as e:
                evt("embedded_json_parse_failed", blob=name, error=str(e)[:100], level=logging.DEBUG)
                data = None
        if isinstance(data, dict):
            return data

    if seen:
        notes.append(name)
        evt("embedded_json_malformed", blob=name, level=logging.WARNING)
    return None


# --- Caption tracks (ytInitialPlayerResponse) ---

def _absolute_url(url: str) -> str:
    url = _unescape_unicode(url or "")
    if url.startswith("//"):
        return "https:" + url
    if url.startswith("/"):
        return YOUTUBE_ORIGIN + url
    return url


def _track_display_name(track: dict) -> str:
    name = track.get("name") or {}
    if not isinstance(name, dict):
        return str(name)
    if isinstance(name.get("simpleText"), str) and name["simpleText"]:
        return name["simpleText"]
    runs = name.get("runs")
    if isinstance(runs, list) and runs and isinstance(runs[0], dict):
        return _str_field(runs[0], "text")
    return ""


def _str_field(data: dict, key: str) -> str:
    """String value of ``key``; empty for missing, null or non-string values."""
    value = data.get(key)
    return value if isinstance(value, str) else ""


def _order_tracks(tracks: List[CaptionTrack], preferred_lang: Optional[str]) -> List[CaptionTrack]:
    """Exact language matches first, then prefix matches, then the rest, each in page order."""
    if not preferred_lang:
        return tracks

    lang = preferred_lang.lower()

    def rank(track: CaptionTrack) -> int:
        code = track.language_code.lower()
        if code == lang:
            return 0
        if code and (code.startswith(lang) or lang.startswith(code)):
            return 1
        return 2

    return sorted(tracks, key=rank)


def get_caption_tracks_from_player(player_data: Any, preferred_lang: Optional[str] = None) -> List[CaptionTrack]:
    """Map captions.playerCaptionsTracklistRenderer.captionTracks[] to CaptionTrack."""
    if not isinstance(player_data, dict):
        return []

    captions = player_data.get("captions")
    renderer = captions.get("playerCaptionsTracklistRenderer") if isinstance(captions, dict) else None
    raw_tracks = renderer.get("captionTracks") if isinstance(renderer, dict) else None
    if not isinstance(raw_tracks, list):
        return []

    tracks = []
    for raw in raw_tracks:
        if not isinstance(raw, dict) or not isinstance(raw.get("baseUrl"), str) or not raw["baseUrl"]:
            continue
        tracks.append(CaptionTrack(
            base_url=_absolute_url(raw["baseUrl"]),
            language_code=_str_field(raw, "languageCode"),
            display_name=_track_display_name(raw),
            is_translatable=bool(raw.get("isTranslatable", False)),
            kind=_str_field(raw, "kind"),
        ))

    return _order_tracks(tracks, preferred_lang)


# --- Transcript params (ytInitialData) ---

def find_transcript_params(node: Any, max_depth: int = 64) -> Optional[str]:
    """
    Depth-first search of a JSON value for the first
    ``getTranscriptEndpoint.params`` string longer than 50 characters.

    Iterative, pre-order, children visited in document order. Nodes deeper
    than ``max_depth`` are skipped.
    """
    stack: List[Tuple[Any, int]] = [(node, 0)]

    while stack:
        current, depth = stack.pop()
        if depth > max_depth:
            continue

        if isinstance(current, dict):
            endpoint = current.get("getTranscriptEndpoint")
            if isinstance(endpoint, dict):
                params = endpoint.get("params")
                if isinstance(params, str) and len(params) > MIN_PARAMS_LENGTH:
                    evt("transcript_params_found", depth=depth, length=len(params), level=logging.DEBUG)
                    return params
            children = list(current.values())
        elif isinstance(current, list):
            children = current
        else:
            continue

        for child in reversed(children):
            if isinstance(child, (dict, list)):
                stack.append((child, depth + 1))

    return None


# --- Strategies ---

Strategy = Callable[[str, VideoReference, TranscriptConfig, List[str]], Optional[PageData]]


def caption_tracks_strategy(html_content: str, video: VideoReference,
                            config: TranscriptConfig, notes: List[str]) -> Optional[PageData]:
    """ytInitialPlayerResponse with at least one caption track."""
    player_data = _load_embedded_object(html_content, "ytInitialPlayerResponse", loose=False, notes=notes)
    if player_data is None:
        return None

    tracks = get_caption_tracks_from_player(player_data, config.lang)
    if not tracks:
        evt("caption_tracks_absent", video_id=video.video_id, level=logging.DEBUG)
        return None

    evt("caption_tracks_found", video_id=video.video_id, count=len(tracks),
        selected_lang=tracks[0].language_code)
    return PageData(
        video=video,
        kind=KIND_CAPTION_TRACKS,
        caption_tracks=tuple(tracks),
        visitor_data=extract_visitor_data(html_content, config.visitor_data_fallback),
    )


def transcript_token_strategy(html_content: str, video: VideoReference,
                              config: TranscriptConfig, notes: List[str]) -> Optional[PageData]:
    """getTranscriptEndpoint.params somewhere inside ytInitialData."""
    initial_data = _load_embedded_object(html_content, "ytInitialData", loose=True, notes=notes)
    if initial_data is None:
        return None

    params = find_transcript_params(initial_data, config.max_search_depth)
    if not params:
        evt("transcript_params_absent", video_id=video.video_id, level=logging.DEBUG)
        return None

    return PageData(
        video=video,
        kind=KIND_TRANSCRIPT_TOKEN,
        transcript_token=params,
        visitor_data=extract_visitor_data(html_content, config.visitor_data_fallback),
    )


PAGE_STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    ("player_response", caption_tracks_strategy),
    ("initial_data", transcript_token_strategy),
)


def extract_page_data(html_content: str, config: Optional[TranscriptConfig] = None) -> PageData:
    """
    Run the extraction strategies against a watch page.

    Raises:
        NoVideoId: the page exposes no plausible video id
    """
    config = config or TranscriptConfig()

    video_id = extract_video_id(html_content)
    if not video_id:
        evt("extract_no_video_id", level=logging.WARNING, page_length=len(html_content or ""))
        raise NoVideoId("Could not find a video ID in the page")

    video = VideoReference(video_id=video_id, title=extract_video_title(html_content))
    notes: List[str] = []

    for name, strategy in PAGE_STRATEGIES:
        result = strategy(html_content, video, config, notes)
        if result is not None:
            evt("extract_strategy_hit", strategy=name, kind=result.kind, video_id=video_id)
            return replace(result, malformed_sources=tuple(notes)) if notes else result

    evt("extract_video_only", video_id=video_id, malformed=",".join(notes) or None)
    return PageData(
        video=video,
        kind=KIND_VIDEO_ONLY,
        visitor_data=extract_visitor_data(html_content, config.visitor_data_fallback),
        malformed_sources=tuple(notes),
    )

