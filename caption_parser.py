"""
Caption payload parsing.

A transcript response comes back in one of several shapes depending on
which request produced it:

- timedtext XML with ``<text start dur>`` elements (seconds)
- timedtext XML with ``<p t d>`` elements (milliseconds)
- get_transcript JSON, engagement panel segment list
- get_transcript JSON, transcriptBodyRenderer cue groups
- timedtext ``fmt=json3`` events

Each shape has its own pure parser. ``parse_transcript_payload`` tries them
in that order and returns the first non-empty result.
"""

import html
import json
import logging
import math
import re
from typing import Any, Callable, List, Optional, Tuple, Union

from log_events import evt
from models import TranscriptLine

TEXT_ELEMENT_RE = re.compile(r'<text\b([^>]*)>([\s\S]*?)</text>')
P_ELEMENT_RE = re.compile(r'<p\b([^>]*)>([\s\S]*?)</p>')
ATTRIBUTE_RE = re.compile(r'([\w:-]+)\s*=\s*"([^"]*)"')
TAG_RE = re.compile(r'<[^>]+>')
NEWLINE_RE = re.compile(r'\r?\n')

JsonPayload = Union[str, dict, list, None]


def clean_caption_text(raw: str) -> str:
    """Strip nested markup, decode entities, fold newlines, trim."""
    text = TAG_RE.sub("", raw or "")
    text = html.unescape(text)
    return NEWLINE_RE.sub(" ", text).strip()


def _attributes(raw: str) -> dict:
    return dict(ATTRIBUTE_RE.findall(raw or ""))


def _invalid_line(parser: str, reason: str, **fields) -> None:
    evt("caption_line_invalid", level=logging.DEBUG, parser=parser, reason=reason, **fields)


def _to_ms(value: Any, scale: float = 1.0) -> Optional[int]:
    """Non-negative milliseconds, or None when the value is not usable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < 0:
        return None
    return int(round(number * scale))


def _as_json(payload: JsonPayload) -> Any:
    if isinstance(payload, (dict, list)):
        return payload
    if not payload:
        return None
    try:
        return json.loads(payload)
    except (ValueError, RecursionError):
        return None


def _dig(data: Any, *path) -> Any:
    """Follow dict keys / list indexes, None as soon as a step is missing."""
    for step in path:
        if isinstance(step, int):
            if not isinstance(data, list) or len(data) <= step:
                return None
        elif not isinstance(data, dict) or step not in data:
            return None
        data = data[step]
    return data


# --- XML ---

def _parse_xml_elements(xml_content: str, pattern, start_attr: str, dur_attr: str,
                        scale: float, parser: str) -> List[TranscriptLine]:
    lines = []
    for match in pattern.finditer(xml_content or ""):
        attrs = _attributes(match.group(1))
        text = clean_caption_text(match.group(2))
        if not text:
            continue

        offset = _to_ms(attrs.get(start_attr), scale)
        duration = _to_ms(attrs.get(dur_attr, "0"), scale)
        if offset is None or duration is None:
            _invalid_line(parser, "bad_timing", start=attrs.get(start_attr), dur=attrs.get(dur_attr))
            continue

        lines.append(TranscriptLine(text=text, offset_ms=offset, duration_ms=duration))
    return lines


def parse_text_xml(xml_content: str) -> List[TranscriptLine]:
    """``<text start="1.5" dur="2.0">``: seconds, rounded to milliseconds."""
    return _parse_xml_elements(xml_content, TEXT_ELEMENT_RE, "start", "dur", 1000.0, "text_xml")


def parse_p_xml(xml_content: str) -> List[TranscriptLine]:
    """``<p t="1500" d="2000">``: already milliseconds."""
    return _parse_xml_elements(xml_content, P_ELEMENT_RE, "t", "d", 1.0, "p_xml")


# --- get_transcript JSON ---

def parse_engagement_panel_json(payload: JsonPayload) -> List[TranscriptLine]:
    """
    ``actions[0].updateEngagementPanelAction...initialSegments[]``.

    A segment without snippet, startMs or endMs becomes an empty
    ``("", 0, 0)`` line rather than being skipped, so line indexes match the
    segment list. Callers that only want text filter those out.
    """
    segments = _dig(
        _as_json(payload),
        "actions", 0, "updateEngagementPanelAction", "content", "transcriptRenderer",
        "content", "transcriptSearchPanelRenderer", "body",
        "transcriptSegmentListRenderer", "initialSegments",
    )
    if not isinstance(segments, list):
        return []

    lines = []
    for segment in segments:
        cue = segment.get("transcriptSegmentRenderer") if isinstance(segment, dict) else None
        if not isinstance(cue, dict) or not cue.get("snippet") or \
                cue.get("startMs") in (None, "") or cue.get("endMs") in (None, ""):
            lines.append(TranscriptLine(text="", offset_ms=0, duration_ms=0))
            continue

        start = _to_ms(cue["startMs"])
        end = _to_ms(cue["endMs"])
        if start is None or end is None or end < start:
            _invalid_line("engagement_panel", "bad_timing", start=cue.get("startMs"), end=cue.get("endMs"))
            continue

        snippet = cue["snippet"]
        text = _dig(snippet, "runs", 0, "text") or _dig(snippet, "simpleText") or ""
        if not isinstance(text, str):
            text = ""
        lines.append(TranscriptLine(text=text, offset_ms=start, duration_ms=end - start))
    return lines


def _cue_text(cue: Any) -> str:
    if isinstance(cue, str):
        return cue
    if not isinstance(cue, dict):
        return ""
    simple = cue.get("simpleText")
    if isinstance(simple, str):
        return simple
    runs = cue.get("runs") or _dig(simple, "runs")
    if not isinstance(runs, list):
        return ""
    return "".join(run["text"] for run in runs if isinstance(run, dict) and isinstance(run.get("text"), str))


def parse_cue_group_json(payload: JsonPayload) -> List[TranscriptLine]:
    """``transcriptBodyRenderer.cueGroups[]`` with startOffsetMs/durationMs."""
    groups = _dig(
        _as_json(payload),
        "actions", 0, "updateEngagementPanelAction", "content", "transcriptRenderer",
        "body", "transcriptBodyRenderer", "cueGroups",
    )
    if not isinstance(groups, list):
        return []

    lines = []
    for group in groups:
        renderer = _dig(group, "transcriptCueGroupRenderer", "cues", 0, "transcriptCueRenderer") or \
            _dig(group, "transcriptCueGroupRenderer", "cue", "transcriptCueRenderer")
        if not isinstance(renderer, dict):
            continue

        text = clean_caption_text(_cue_text(renderer.get("cue")))
        if not text:
            continue

        offset = _to_ms(renderer.get("startOffsetMs"))
        duration = _to_ms(renderer.get("durationMs", "0"))
        if offset is None or duration is None:
            _invalid_line("cue_group", "bad_timing", start=renderer.get("startOffsetMs"))
            continue

        lines.append(TranscriptLine(text=text, offset_ms=offset, duration_ms=duration))
    return lines


def parse_json3(payload: JsonPayload) -> List[TranscriptLine]:
    """timedtext ``fmt=json3``: ``events[].segs[].utf8`` with tStartMs/dDurationMs."""
    data = _as_json(payload)
    events = data.get("events") if isinstance(data, dict) else None
    if not isinstance(events, list):
        return []

    lines = []
    for event in events:
        if not isinstance(event, dict) or not event.get("segs"):
            continue

        segs = event["segs"] if isinstance(event["segs"], list) else []
        text = clean_caption_text("".join(
            seg["utf8"] for seg in segs if isinstance(seg, dict) and isinstance(seg.get("utf8"), str)))
        if not text:
            continue

        offset = _to_ms(event.get("tStartMs"))
        duration = _to_ms(event.get("dDurationMs", 0))
        if offset is None or duration is None:
            _invalid_line("json3", "bad_timing", start=event.get("tStartMs"))
            continue

        lines.append(TranscriptLine(text=text, offset_ms=offset, duration_ms=duration))
    return lines


PAYLOAD_PARSERS: Tuple[Tuple[str, Callable[[Any], List[TranscriptLine]]], ...] = (
    ("text_xml", parse_text_xml),
    ("p_xml", parse_p_xml),
    ("engagement_panel", parse_engagement_panel_json),
    ("cue_groups", parse_cue_group_json),
    ("json3", parse_json3),
)


def parse_transcript_payload(payload: str) -> List[TranscriptLine]:
    """
    Lines from a raw response body; empty when no parser recognizes it.

    A result consisting only of empty placeholder lines counts as empty.
    """
    if not payload or not payload.strip():
        return []

    is_xml = payload.lstrip().startswith("<")
    data = None if is_xml else _as_json(payload)

    for name, parser in PAYLOAD_PARSERS:
        if name in ("text_xml", "p_xml"):
            if not is_xml:
                continue
            lines = parser(payload)
        else:
            if data is None:
                continue
            lines = parser(data)

        if any(line.text for line in lines):
            evt("caption_payload_parsed", level=logging.DEBUG, parser=name, line_count=len(lines))
            return lines

    return []
