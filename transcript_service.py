"""
Transcript fetch pipeline.

    watch page -> extract_page_data -> build_requests_for_page
               -> fetch_with_fallback -> TranscriptResult

Candidates are tried strictly one after another; the first one whose
payload parses to at least one line wins and nothing after it is sent.
Single candidate failures are logged and skipped. Only exhaustion of the
whole list surfaces to the caller, as one aggregated error.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional, Sequence

import httpx

from caption_parser import parse_transcript_payload
from error_handler import (
    InvalidUrl, MalformedPageData, NoCaptionsAvailable, TransportFailure,
    YoutubeTranscriptError,
)
from http_client import HttpClient
from log_events import evt, time_stage
from logging_setup import clear_fetch_ctx, get_logger, set_fetch_ctx
from models import KIND_VIDEO_ONLY, PageData, TranscriptResult, VideoReference
from page_extractor import extract_page_data
from request_builder import TranscriptRequest, build_requests_for_page
from transcript_config import TranscriptConfig, get_transcript_config
from url_utils import build_watch_url, extract_video_id_from_url, is_plausible_video_id, is_valid_youtube_url

logger = get_logger(__name__)

# Attempt outcomes recorded on the aggregated error
OUTCOME_LINES = "lines"
OUTCOME_EMPTY = "empty"
OUTCOME_TRANSPORT = "transport_failure"


async def fetch_with_fallback(client: HttpClient, requests: Sequence[TranscriptRequest],
                              video: VideoReference, page: Optional[PageData] = None) -> TranscriptResult:
    """
    Try each request in order until one yields transcript lines.

    Raises:
        NoCaptionsAvailable: at least one response arrived, none had lines
        TransportFailure: every attempt failed at the transport level
        MalformedPageData: nothing worked and the page's embedded data was
            unparsable, so the candidates were guesses
    """
    attempts: List[Dict[str, Any]] = []

    for index, request in enumerate(requests):
        attempt: Dict[str, Any] = {"candidate": request.label, "source": request.source}
        try:
            body = await client.fetch_text(request)
        except TransportFailure as e:
            attempt.update(outcome=OUTCOME_TRANSPORT, status_code=e.status_code, detail=str(e)[:200])
            attempts.append(attempt)
            evt("candidate_result", level=logging.WARNING, attempt=index + 1,
                candidate=request.label, outcome=OUTCOME_TRANSPORT, status_code=e.status_code)
            continue

        try:
            lines = parse_transcript_payload(body)
        except Exception as e:  # pylint: disable=broad-except
            evt("candidate_parse_error", level=logging.WARNING, attempt=index + 1, candidate=request.label,
                error_type=type(e).__name__, error=str(e)[:100])
            lines = []
        if lines:
            attempt.update(outcome=OUTCOME_LINES, line_count=len(lines))
            attempts.append(attempt)
            evt("candidate_result", attempt=index + 1, candidate=request.label,
                outcome=OUTCOME_LINES, line_count=len(lines))
            return TranscriptResult.from_lines(video.title, lines, video_id=video.video_id,
                                               source=request.source)

        attempt.update(outcome=OUTCOME_EMPTY, content_length=len(body or ""))
        attempts.append(attempt)
        evt("candidate_result", attempt=index + 1, candidate=request.label, outcome=OUTCOME_EMPTY)

    raise _exhausted_error(video, attempts, page)


def _exhausted_error(video: VideoReference, attempts: List[Dict[str, Any]],
                     page: Optional[PageData]) -> YoutubeTranscriptError:
    responded = any(a["outcome"] != OUTCOME_TRANSPORT for a in attempts)

    evt("candidates_exhausted", level=logging.WARNING, video_id=video.video_id,
        attempt_count=len(attempts), responded=responded)

    if page is not None and page.kind == KIND_VIDEO_ONLY and page.malformed_sources and responded:
        return MalformedPageData(
            f"Embedded page data unparsable ({', '.join(page.malformed_sources)}) "
            f"and {len(attempts)} synthesized candidates returned nothing",
            video_id=video.video_id, attempts=attempts,
        )
    if responded or not attempts:
        return NoCaptionsAvailable(
            f"No transcript lines after {len(attempts)} candidates",
            video_id=video.video_id, attempts=attempts, title=video.title,
        )

    last_status = attempts[-1].get("status_code")
    return TransportFailure(
        f"All {len(attempts)} candidates failed at transport level",
        video_id=video.video_id, attempts=attempts, status_code=last_status,
    )


def _page_url(url: str) -> str:
    video_id = extract_video_id_from_url(url)
    return build_watch_url(video_id) if is_plausible_video_id(video_id) else url


async def _fetch_with_client(client: HttpClient, url: str, config: TranscriptConfig) -> TranscriptResult:
    with time_stage("fetch_page"):
        html_content = await client.fetch_page(_page_url(url))

    with time_stage("extract"):
        page = extract_page_data(html_content, config)
    set_fetch_ctx(video_id=page.video.video_id)

    requests = build_requests_for_page(page, config)

    with time_stage("candidates", kind=page.kind, count=len(requests)):
        return await fetch_with_fallback(client, requests, page.video, page)


async def fetch_transcript(url: str, config: Optional[TranscriptConfig] = None,
                           client: Optional[httpx.AsyncClient] = None,
                           allow_empty: bool = False) -> TranscriptResult:
    """
    Fetch the transcript of one YouTube video.

    Args:
        url: watch or youtu.be URL
        config: per-call configuration, env-derived defaults when omitted
        client: httpx client to send through, left open afterwards
        allow_empty: return a zero-line result instead of raising
            NoCaptionsAvailable for caption-less videos

    Raises:
        InvalidUrl, NoVideoId, NoCaptionsAvailable, TransportFailure,
        MalformedPageData
    """
    config = config or get_transcript_config()

    if not is_valid_youtube_url(url):
        evt("invalid_url", level=logging.WARNING, url=(url or "")[:200])
        raise InvalidUrl(f"Not a YouTube video URL: {url!r}")

    set_fetch_ctx(fetch_id=uuid.uuid4().hex[:12], video_id=extract_video_id_from_url(url))
    try:
        async with HttpClient(config, client=client) as http:
            with time_stage("fetch_transcript", lang=config.lang):
                return await _fetch_with_client(http, url, config)
    except NoCaptionsAvailable as e:
        if not allow_empty:
            raise
        evt("transcript_empty", video_id=e.video_id)
        return TranscriptResult(title=e.title, lines=(), video_id=e.video_id)
    finally:
        clear_fetch_ctx()


class TranscriptService:
    """
    Convenience facade over fetch_transcript.

    Holds a base configuration and optionally a shared httpx client. Each
    call is independent; per-call language/country overrides never touch
    the stored configuration.
    """

    def __init__(self, config: Optional[TranscriptConfig] = None,
                 client: Optional[httpx.AsyncClient] = None):
        self.config = config or get_transcript_config()
        self.client = client

    async def get_transcript(self, url: str, lang: Optional[str] = None, country: Optional[str] = None,
                             allow_empty: bool = False) -> TranscriptResult:
        config = self.config.with_overrides(lang=lang, country=country)
        return await fetch_transcript(url, config=config, client=self.client, allow_empty=allow_empty)

    def get_transcript_sync(self, url: str, lang: Optional[str] = None, country: Optional[str] = None,
                            allow_empty: bool = False) -> TranscriptResult:
        """Blocking variant for WSGI and CLI callers. Uses a fresh client per call."""
        config = self.config.with_overrides(lang=lang, country=country)
        return asyncio.run(fetch_transcript(url, config=config, allow_empty=allow_empty))
