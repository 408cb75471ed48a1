import logging
import unittest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from error_handler import (
    InvalidUrl, MalformedPageData, NoCaptionsAvailable, NoVideoId, TransportFailure,
    YoutubeTranscriptError, get_user_friendly_error_message, handle_transcript_error,
    http_status_for_error,
)
from log_events import set_events_enabled


class TestErrorTypes(unittest.TestCase):

    def test_hierarchy_and_kinds(self):
        kinds = {
            InvalidUrl: "invalid_url",
            NoVideoId: "no_video_id",
            NoCaptionsAvailable: "no_captions",
            TransportFailure: "transport_failure",
            MalformedPageData: "malformed_page_data",
        }
        for cls, kind in kinds.items():
            with self.subTest(cls=cls.__name__):
                error = cls("detail")
                self.assertIsInstance(error, YoutubeTranscriptError)
                self.assertEqual(error.kind, kind)
                self.assertEqual(error.attempts, [])

    def test_no_captions_carries_title(self):
        error = NoCaptionsAvailable("none", video_id="dQw4w9WgXcQ", title="Silent Film")
        self.assertEqual(error.title, "Silent Film")
        self.assertEqual(NoCaptionsAvailable().title, "")

    def test_default_message(self):
        self.assertEqual(str(NoCaptionsAvailable()), "No transcript found")

    def test_transport_failure_status(self):
        error = TransportFailure("boom", video_id="dQw4w9WgXcQ", status_code=503,
                                 attempts=[{"outcome": "transport_failure"}])
        self.assertEqual(error.status_code, 503)
        self.assertEqual(error.video_id, "dQw4w9WgXcQ")
        self.assertEqual(len(error.attempts), 1)


class TestUserFacing(unittest.TestCase):

    def test_messages(self):
        self.assertEqual(get_user_friendly_error_message(InvalidUrl("x")), "Invalid YouTube URL")
        self.assertEqual(get_user_friendly_error_message(NoCaptionsAvailable("x")), "No transcript found")
        self.assertEqual(get_user_friendly_error_message(TransportFailure("Traceback ...")),
                         "Error loading transcript")
        self.assertEqual(get_user_friendly_error_message(RuntimeError("internal")), "Error loading transcript")

    def test_http_status(self):
        self.assertEqual(http_status_for_error(InvalidUrl()), 400)
        self.assertEqual(http_status_for_error(NoVideoId()), 404)
        self.assertEqual(http_status_for_error(NoCaptionsAvailable()), 404)
        self.assertEqual(http_status_for_error(TransportFailure()), 502)
        self.assertEqual(http_status_for_error(MalformedPageData()), 502)


class TestHandleTranscriptError(unittest.TestCase):

    def setUp(self):
        set_events_enabled(True)

    def test_logs_event_and_returns_message(self):
        error = NoCaptionsAvailable("none left", video_id="dQw4w9WgXcQ", attempts=[{}, {}])

        with self.assertLogs("transcript.events", level="WARNING") as logs:
            message = handle_transcript_error(error)

        self.assertEqual(message, "No transcript found")
        record = logs.records[0]
        self.assertEqual(record.levelno, logging.WARNING)
        self.assertEqual(record.video_id, "dQw4w9WgXcQ")
        self.assertEqual(record.attempt_count, 2)

    def test_transport_failures_log_at_error(self):
        with self.assertLogs("transcript.events", level="ERROR") as logs:
            handle_transcript_error(TransportFailure("down"), video_id="sLgHqZSe2o0")

        self.assertEqual(logs.records[0].levelno, logging.ERROR)
        self.assertEqual(logs.records[0].video_id, "sLgHqZSe2o0")


if __name__ == "__main__":
    unittest.main()
