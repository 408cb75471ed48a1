"""
Async HTTP capability for the transcript pipeline.

Wraps an httpx.AsyncClient so the pipeline never sees httpx exceptions:
every failure surfaces as TransportFailure. Only the watch page GET is
retried; transcript candidates are tried once each and the orchestrator
moves on to the next candidate instead.
"""

import logging
from typing import Optional

import httpx
from tenacity import (
    AsyncRetrying, RetryError, retry_if_exception_type,
    stop_after_attempt, wait_exponential_jitter,
)

from error_handler import TransportFailure
from log_events import evt
from logging_setup import get_logger
from request_builder import TranscriptRequest
from transcript_config import TranscriptConfig

logger = get_logger(__name__)

PAGE_BACKOFF_MIN = 0.5
PAGE_BACKOFF_MAX = 4.0


class HttpClient:
    """
    Thin async HTTP wrapper.

    Pass ``client`` to share or stub the transport (tests use
    ``httpx.AsyncClient(transport=httpx.MockTransport(handler))``). A client
    created here is closed by ``aclose``; an injected one is left open.
    """

    def __init__(self, config: Optional[TranscriptConfig] = None,
                 client: Optional[httpx.AsyncClient] = None, retry_wait=None):
        self.config = config or TranscriptConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.transcript_timeout),
            follow_redirects=True,
        )
        self._retry_wait = retry_wait or wait_exponential_jitter(initial=PAGE_BACKOFF_MIN, max=PAGE_BACKOFF_MAX)

    async def __aenter__(self) -> 'HttpClient':
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.aclose()
        return False

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _send(self, method: str, url: str, headers=None, content: Optional[str] = None,
                    timeout: Optional[float] = None) -> httpx.Response:
        return await self._client.request(
            method, url,
            headers=headers,
            content=content.encode("utf-8") if content is not None else None,
            timeout=timeout,
        )

    async def fetch_text(self, request: TranscriptRequest) -> str:
        """
        Execute one request descriptor and return the response body.

        Raises:
            TransportFailure: timeout, connection error or non-2xx status
        """
        try:
            response = await self._send(
                request.method, request.url,
                headers=request.headers,
                content=request.body,
                timeout=self.config.transcript_timeout,
            )
        except httpx.TimeoutException as e:
            evt("http_timeout", level=logging.WARNING, candidate=request.label)
            raise TransportFailure(f"Timeout fetching {request.label}: {e}") from e
        except httpx.HTTPError as e:
            evt("http_error", level=logging.WARNING, candidate=request.label,
                error_type=type(e).__name__, error=str(e)[:100])
            raise TransportFailure(f"Transport error fetching {request.label}: {e}") from e

        if not response.is_success:
            evt("http_status", level=logging.WARNING, candidate=request.label,
                status_code=response.status_code)
            raise TransportFailure(
                f"HTTP {response.status_code} for {request.label}",
                status_code=response.status_code,
            )

        evt("http_success", level=logging.DEBUG, candidate=request.label,
            status_code=response.status_code, content_length=len(response.text))
        return response.text

    async def fetch_page(self, url: str) -> str:
        """
        GET a watch page, retrying transport errors with jittered backoff.

        HTTP error statuses are not retried.

        Raises:
            TransportFailure: the page could not be fetched
        """
        headers = {
            "User-Agent": self.config.user_agent,
            "Accept-Language": f"{self.config.lang}-{self.config.country},{self.config.lang};q=0.9",
        }

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.config.page_fetch_attempts),
                wait=self._retry_wait,
                retry=retry_if_exception_type(httpx.TransportError),
                before_sleep=lambda s: logger.info(
                    f"Watch page fetch failed, retrying in {s.next_action.sleep:.2f}s..."),
            ):
                with attempt:
                    response = await self._send("GET", url, headers=headers,
                                                timeout=self.config.page_timeout)
        except RetryError as e:
            cause = e.last_attempt.exception()
            raise TransportFailure(f"Watch page unreachable: {cause}") from cause
        except httpx.TransportError as e:
            raise TransportFailure(f"Watch page unreachable: {e}") from e
        except httpx.HTTPError as e:
            raise TransportFailure(f"Watch page request failed: {e}") from e

        if not response.is_success:
            evt("page_fetch_status", level=logging.WARNING, status_code=response.status_code)
            raise TransportFailure(f"HTTP {response.status_code} for watch page",
                                   status_code=response.status_code)

        evt("page_fetch_success", content_length=len(response.text))
        return response.text
