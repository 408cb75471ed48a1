"""
Core logging infrastructure for the transcript service.

Provides minimal JSON logging with per-fetch context management,
rate limiting, and third-party library noise suppression.
"""

import json
import logging
import threading
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Set
from collections import defaultdict


# Per-task context for fetch correlation. A ContextVar keeps concurrent
# asyncio fetches from seeing each other's ids.
_fetch_ctx: ContextVar[Optional[Dict[str, str]]] = ContextVar("fetch_ctx", default=None)


def set_fetch_ctx(fetch_id: str = None, video_id: str = None):
    """
    Set context for fetch correlation.

    Args:
        fetch_id: Unique identifier of one fetch_transcript call
        video_id: YouTube video ID being processed
    """
    context = dict(_fetch_ctx.get() or {})

    if fetch_id is not None:
        context['fetch_id'] = fetch_id
    if video_id is not None:
        context['video_id'] = video_id

    _fetch_ctx.set(context)


def clear_fetch_ctx():
    """Clear fetch context."""
    _fetch_ctx.set(None)


def get_fetch_ctx() -> Dict[str, str]:
    """Get current fetch context."""
    return dict(_fetch_ctx.get() or {})


class JsonFormatter(logging.Formatter):
    """
    JSON formatter with standardized field order and context injection.

    Produces single-line JSON with stable schema:
    ts, lvl, fetch_id, video_id, stage, event, outcome, dur_ms, detail
    """

    _STANDARD_FIELDS = {
        'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
        'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
        'thread', 'threadName', 'processName', 'process', 'getMessage', 'exc_info',
        'exc_text', 'stack_info', 'taskName', 'message', 'ts', 'lvl', 'fetch_id',
        'video_id', 'stage', 'event', 'outcome', 'dur_ms', 'detail', 'attempt',
        'candidate', 'strategy',
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as single-line JSON."""
        try:
            dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
            timestamp = dt.strftime('%Y-%m-%dT%H:%M:%S') + f'.{int(dt.microsecond / 1000):03d}Z'

            log_data = {
                'ts': timestamp,
                'lvl': record.levelname
            }

            context = get_fetch_ctx()
            for field in ['fetch_id', 'video_id']:
                value = context.get(field) or getattr(record, field, None)
                if value is not None:
                    log_data[field] = value

            # Record attributes in stable order
            for field in ['stage', 'event', 'outcome', 'dur_ms', 'detail']:
                if getattr(record, field, None) is not None:
                    log_data[field] = getattr(record, field)

            for field in ['attempt', 'candidate', 'strategy']:
                if getattr(record, field, None) is not None:
                    log_data[field] = getattr(record, field)

            # Remaining extras passed via logger.info(extra=...)
            for attr_name, attr_value in record.__dict__.items():
                if (attr_name.startswith('_') or
                        attr_name in self._STANDARD_FIELDS or
                        attr_value is None):
                    continue
                log_data[attr_name] = attr_value

            if 'detail' not in log_data and record.getMessage():
                log_data['detail'] = record.getMessage()

            if record.exc_info:
                log_data['exc_info'] = self.formatException(record.exc_info)

            return json.dumps(log_data, separators=(',', ':'), ensure_ascii=False, default=str)

        except Exception:
            return json.dumps({
                'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
                'lvl': record.levelname,
                'detail': str(record.msg),
            })


class RateLimitFilter(logging.Filter):
    """
    Rate limiting filter to prevent log spam.

    Limits messages to `per_key` per key per sliding window and emits a
    single suppression marker when the limit is exceeded.
    """

    def __init__(self, per_key: int = 5, window_sec: int = 60):
        super().__init__()
        self.per_key = per_key
        self.window_sec = window_sec
        self.counts: Dict[str, list] = defaultdict(list)
        self.suppressed: Set[str] = set()
        self._lock = threading.Lock()

    def _get_message_key(self, record: logging.LogRecord) -> str:
        """Key on level, event name and the first 100 chars of the message."""
        event = getattr(record, 'event', '') or ''
        message = record.getMessage()[:100]
        return f"{record.levelname}:{event}:{message}"

    def _cleanup_old_entries(self, key: str, now: float):
        cutoff = now - self.window_sec
        self.counts[key] = [ts for ts in self.counts[key] if ts > cutoff]

    def filter(self, record: logging.LogRecord) -> bool:
        key = self._get_message_key(record)
        now = time.time()

        with self._lock:
            self._cleanup_old_entries(key, now)

            if len(self.counts[key]) < self.per_key:
                self.counts[key].append(now)
                self.suppressed.discard(key)
                return True

            if key not in self.suppressed:
                self.suppressed.add(key)
                record.msg = f"{record.getMessage()} [suppressed]"
                record.args = ()
                return True

            return False


def configure_logging(log_level: str = "INFO", use_json: bool = True) -> logging.Logger:
    """
    Configure application logging with JSON formatting and noise suppression.

    Library code never calls this; only entry points (main.py, cli.py) do.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        use_json: Whether to use JSON formatting (True) or basic formatting (False)

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    handler = logging.StreamHandler()

    if use_json:
        formatter = JsonFormatter()
        handler.addFilter(RateLimitFilter())
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    _suppress_library_noise()

    return root_logger


def _suppress_library_noise():
    """Suppress verbose logging from third-party libraries."""
    library_levels = {
        'httpx': logging.WARNING,
        'httpcore': logging.WARNING,
        'asyncio': logging.WARNING,
        'werkzeug': logging.WARNING,
    }

    for library, level in library_levels.items():
        logging.getLogger(library).setLevel(level)


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (defaults to calling module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
