"""
Request descriptors for transcript fetches.

Two paths:
- Caption track known: one GET against the track's baseUrl.
- Otherwise: one POST per params token against youtubei get_transcript,
  page-supplied token first, synthesized candidates after it.

Descriptors are plain immutable values; http_client.py executes them.
"""

import json
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from log_events import evt
from models import (
    CaptionTrack, PageData, VideoReference,
    KIND_CAPTION_TRACKS, KIND_TRANSCRIPT_TOKEN,
)
from transcript_config import TranscriptConfig
from transcript_params import synthesize_transcript_params
from url_utils import build_watch_url

GET_TRANSCRIPT_URL = "https://www.youtube.com/youtubei/v1/get_transcript?prettyPrint=false"

WEB_CLIENT_NAME = "WEB"
WEB_CLIENT_NAME_ID = "1"

# Request sources, reported on TranscriptResult.source
SOURCE_CAPTION_TRACK = "caption_track"
SOURCE_PAGE_PARAMS = "page_params"
SOURCE_SYNTHESIZED_PARAMS = "synthesized_params"


@dataclass(frozen=True)
class TranscriptRequest:
    """One HTTP attempt. Ordering within a list is significant."""
    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    source: str = SOURCE_CAPTION_TRACK
    label: str = ""


def build_client_context(config: TranscriptConfig, visitor_data: Optional[str]) -> Dict:
    """
    The WEB client context a desktop Chrome session sends.

    None of it affects caption content; it only makes the request look
    like browser traffic.
    """
    return {
        "client": {
            "hl": config.lang,
            "gl": config.country,
            "visitorData": visitor_data or config.visitor_data_fallback,
            "userAgent": config.user_agent + ",gzip(gfe)",
            "clientName": WEB_CLIENT_NAME,
            "clientVersion": config.client_version,
            "osName": "Windows",
            "osVersion": "10.0",
            "platform": "DESKTOP",
            "clientFormFactor": "UNKNOWN_FORM_FACTOR",
            "browserName": "Chrome",
            "browserVersion": "127.0.0.0",
            "acceptHeader": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "screenWidthPoints": 1920,
            "screenHeightPoints": 1080,
            "screenPixelDensity": 1,
            "screenDensityFloat": 1,
            "utcOffsetMinutes": 0,
            "userInterfaceTheme": "USER_INTERFACE_THEME_LIGHT",
            "timeZone": "UTC",
            "originalUrl": "https://www.youtube.com/",
            "mainAppWebInfo": {
                "graftUrl": "https://www.youtube.com/",
                "webDisplayMode": "WEB_DISPLAY_MODE_BROWSER",
                "isWebNativeShareAvailable": False,
            },
        },
        "user": {"lockedSafetyMode": False},
        "request": {
            "useSsl": True,
            "internalExperimentFlags": [],
            "consistencyTokenJars": [],
        },
    }


def _transcript_headers(video: VideoReference, visitor_data: Optional[str], config: TranscriptConfig) -> Dict[str, str]:
    return {
        "Content-Type": "application/json",
        "User-Agent": config.user_agent,
        "Accept-Language": f"{config.lang}-{config.country},{config.lang};q=0.9",
        "X-Goog-Visitor-Id": visitor_data or config.visitor_data_fallback,
        "X-Youtube-Client-Name": WEB_CLIENT_NAME_ID,
        "X-Youtube-Client-Version": config.client_version,
        "Origin": "https://www.youtube.com",
        "Referer": build_watch_url(video.video_id),
    }


def candidate_tokens(page_token: Optional[str], video_id: str, config: TranscriptConfig) -> List[str]:
    """Page token first when present, then synthesized tokens, without duplicates."""
    tokens: List[str] = [page_token] if page_token else []
    for token in synthesize_transcript_params(video_id, config.lang, config.candidate_order):
        if token not in tokens:
            tokens.append(token)
    return tokens


def build_transcript_requests(video: VideoReference, tokens: Sequence[str],
                              visitor_data: Optional[str], config: TranscriptConfig,
                              page_token: Optional[str] = None) -> List[TranscriptRequest]:
    """One get_transcript POST per token, in token order."""
    context = build_client_context(config, visitor_data)
    headers = _transcript_headers(video, visitor_data, config)

    requests = []
    for index, token in enumerate(tokens):
        body = json.dumps({
            "context": context,
            "params": token,
            "externalVideoId": video.video_id,
        }, separators=(",", ":"))
        source = SOURCE_PAGE_PARAMS if page_token and token == page_token else SOURCE_SYNTHESIZED_PARAMS
        requests.append(TranscriptRequest(
            url=GET_TRANSCRIPT_URL,
            method="POST",
            headers=dict(headers),
            body=body,
            source=source,
            label=f"{source}#{index}",
        ))
    return requests


def build_caption_track_request(track: CaptionTrack, config: TranscriptConfig) -> TranscriptRequest:
    """Direct GET of a timed-text track URL; no params, no body."""
    return TranscriptRequest(
        url=track.base_url,
        method="GET",
        headers={
            "User-Agent": config.user_agent,
            "Accept-Language": f"{config.lang}-{config.country},{config.lang};q=0.9",
        },
        source=SOURCE_CAPTION_TRACK,
        label=f"{SOURCE_CAPTION_TRACK}:{track.language_code}",
    )


def build_requests_for_page(page: PageData, config: TranscriptConfig) -> List[TranscriptRequest]:
    """Requests to try for an extracted page, in preference order."""
    if page.kind == KIND_CAPTION_TRACKS and page.selected_track:
        requests = [build_caption_track_request(page.selected_track, config)]
    else:
        page_token = page.transcript_token if page.kind == KIND_TRANSCRIPT_TOKEN else None
        tokens = candidate_tokens(page_token, page.video.video_id, config)
        requests = build_transcript_requests(page.video, tokens, page.visitor_data, config, page_token=page_token)

    evt("requests_built", video_id=page.video.video_id, kind=page.kind, count=len(requests))
    return requests
