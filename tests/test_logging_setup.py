"""
Unit tests for logging_setup.py core logging infrastructure.

Tests JsonFormatter field order, context management, rate limiting,
and library noise suppression.
"""

import asyncio
import json
import logging
import time
import unittest
from unittest.mock import patch

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from logging_setup import (
    JsonFormatter, RateLimitFilter, set_fetch_ctx, clear_fetch_ctx, get_fetch_ctx,
    configure_logging, get_logger
)


def _record(msg='test message', level=logging.INFO):
    return logging.LogRecord(
        name='test', level=level, pathname='', lineno=0,
        msg=msg, args=(), exc_info=None
    )


class TestJsonFormatter(unittest.TestCase):
    """Test JsonFormatter field order and context injection."""

    def setUp(self):
        self.formatter = JsonFormatter()
        clear_fetch_ctx()

    def tearDown(self):
        clear_fetch_ctx()

    def test_field_order_consistency(self):
        record = _record()
        record.stage = 'extract'
        record.event = 'stage_result'
        record.outcome = 'success'
        record.dur_ms = 12
        record.detail = 'ok'
        record.attempt = 2
        record.candidate = 'page_params#0'
        record.line_count = 40

        parsed = json.loads(self.formatter.format(record))

        expected_order = ['ts', 'lvl', 'stage', 'event', 'outcome', 'dur_ms', 'detail',
                          'attempt', 'candidate', 'line_count']
        self.assertEqual(list(parsed.keys()), expected_order)

    def test_timestamp_format(self):
        parsed = json.loads(self.formatter.format(_record()))
        self.assertRegex(parsed['ts'], r'^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$')

    def test_context_injection(self):
        set_fetch_ctx(fetch_id='abc123', video_id='dQw4w9WgXcQ')

        parsed = json.loads(self.formatter.format(_record()))

        self.assertEqual(parsed['fetch_id'], 'abc123')
        self.assertEqual(parsed['video_id'], 'dQw4w9WgXcQ')
        self.assertEqual(list(parsed.keys())[:4], ['ts', 'lvl', 'fetch_id', 'video_id'])

    def test_video_id_from_record_without_context(self):
        record = _record()
        record.video_id = 'kNNGOrJDdO8'

        parsed = json.loads(self.formatter.format(record))

        self.assertEqual(parsed['video_id'], 'kNNGOrJDdO8')

    def test_null_value_omission(self):
        record = _record()
        record.outcome = None
        record.status_code = None

        parsed = json.loads(self.formatter.format(record))

        self.assertNotIn('outcome', parsed)
        self.assertNotIn('status_code', parsed)

    def test_message_becomes_detail(self):
        parsed = json.loads(self.formatter.format(_record('plain message')))
        self.assertEqual(parsed['detail'], 'plain message')

    def test_exception_info_included(self):
        try:
            raise ValueError('boom')
        except ValueError:
            record = logging.LogRecord(
                name='test', level=logging.ERROR, pathname='', lineno=0,
                msg='failed', args=(), exc_info=sys.exc_info()
            )

        parsed = json.loads(self.formatter.format(record))

        self.assertIn('ValueError: boom', parsed['exc_info'])


class TestRateLimitFilter(unittest.TestCase):
    """Test RateLimitFilter suppression."""

    def test_allows_messages_within_limit(self):
        rate_filter = RateLimitFilter(per_key=3, window_sec=60)
        results = [rate_filter.filter(_record('same')) for _ in range(3)]
        self.assertEqual(results, [True, True, True])

    def test_suppresses_messages_over_limit(self):
        rate_filter = RateLimitFilter(per_key=2, window_sec=60)

        self.assertTrue(rate_filter.filter(_record('same')))
        self.assertTrue(rate_filter.filter(_record('same')))

        marker = _record('same')
        self.assertTrue(rate_filter.filter(marker))
        self.assertIn('[suppressed]', marker.getMessage())

        self.assertFalse(rate_filter.filter(_record('same')))

    def test_window_reset(self):
        rate_filter = RateLimitFilter(per_key=1, window_sec=60)

        with patch('logging_setup.time.time', return_value=1000.0):
            self.assertTrue(rate_filter.filter(_record('same')))
            rate_filter.filter(_record('same'))
            self.assertFalse(rate_filter.filter(_record('same')))

        with patch('logging_setup.time.time', return_value=1061.0):
            self.assertTrue(rate_filter.filter(_record('same')))

    def test_different_keys_separate_limits(self):
        rate_filter = RateLimitFilter(per_key=1, window_sec=60)

        self.assertTrue(rate_filter.filter(_record('first')))
        self.assertTrue(rate_filter.filter(_record('second')))


class TestFetchContext(unittest.TestCase):
    """Test per-fetch context handling."""

    def setUp(self):
        clear_fetch_ctx()

    def tearDown(self):
        clear_fetch_ctx()

    def test_set_and_get_context(self):
        set_fetch_ctx(fetch_id='f1', video_id='v1')
        self.assertEqual(get_fetch_ctx(), {'fetch_id': 'f1', 'video_id': 'v1'})

    def test_partial_context_setting(self):
        set_fetch_ctx(fetch_id='f1')
        set_fetch_ctx(video_id='v1')
        self.assertEqual(get_fetch_ctx(), {'fetch_id': 'f1', 'video_id': 'v1'})

    def test_context_clearing(self):
        set_fetch_ctx(fetch_id='f1')
        clear_fetch_ctx()
        self.assertEqual(get_fetch_ctx(), {})

    def test_task_isolation(self):
        """Concurrent asyncio tasks each see only their own context."""

        async def worker(name):
            set_fetch_ctx(fetch_id=name, video_id=f"{name}-video")
            await asyncio.sleep(0.01)
            return get_fetch_ctx()

        async def run_all():
            return await asyncio.gather(worker('a'), worker('b'), worker('c'))

        results = asyncio.run(run_all())

        self.assertEqual([r['fetch_id'] for r in results], ['a', 'b', 'c'])
        self.assertEqual([r['video_id'] for r in results], ['a-video', 'b-video', 'c-video'])
        self.assertEqual(get_fetch_ctx(), {})


class TestConfigureLogging(unittest.TestCase):
    """Test configure_logging setup."""

    def setUp(self):
        self.root = logging.getLogger()
        self.saved_handlers = self.root.handlers[:]
        self.saved_level = self.root.level

    def tearDown(self):
        for handler in self.root.handlers[:]:
            self.root.removeHandler(handler)
        for handler in self.saved_handlers:
            self.root.addHandler(handler)
        self.root.setLevel(self.saved_level)

    def test_configure_logging_json(self):
        logger = configure_logging(log_level='DEBUG', use_json=True)

        self.assertEqual(logger.level, logging.DEBUG)
        self.assertEqual(len(logger.handlers), 1)
        self.assertIsInstance(logger.handlers[0].formatter, JsonFormatter)
        self.assertTrue(any(isinstance(f, RateLimitFilter) for f in logger.handlers[0].filters))

    def test_configure_logging_basic(self):
        logger = configure_logging(log_level='WARNING', use_json=False)

        self.assertEqual(logger.level, logging.WARNING)
        self.assertNotIsInstance(logger.handlers[0].formatter, JsonFormatter)

    def test_library_noise_suppression(self):
        configure_logging(log_level='DEBUG')

        for name in ('httpx', 'httpcore', 'werkzeug'):
            self.assertEqual(logging.getLogger(name).level, logging.WARNING)

    def test_get_logger(self):
        self.assertEqual(get_logger('transcript.test').name, 'transcript.test')


if __name__ == '__main__':
    unittest.main()
