"""
Tests for watch page extraction.
"""

import json
import unittest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from error_handler import NoVideoId
from models import KIND_CAPTION_TRACKS, KIND_TRANSCRIPT_TOKEN, KIND_VIDEO_ONLY
from page_extractor import (
    extract_page_data, extract_video_id, extract_video_title, extract_visitor_data,
    find_json_assignment, find_transcript_params, get_caption_tracks_from_player,
    parse_loose_json,
)
from transcript_config import DEFAULT_VISITOR_DATA, TranscriptConfig

FIXTURES = os.path.join(os.path.dirname(os.path.abspath(__file__)), "fixtures")

PAGE_TOKEN = ("CgtrTk5HT3JKRGRPOBIPcGFnZS1zdXBwbGllZC1wYXJhbXMYASozZW5nYWdlbWVudC1wYW5lbC1zZWFyY2hh"
              "YmxlLXRyYW5zY3JpcHQ%3D")


def load_fixture(name):
    with open(os.path.join(FIXTURES, name), encoding="utf-8") as f:
        return f.read()


class TestTitleAndVideoId(unittest.TestCase):

    def test_title_entities_decoded(self):
        html = load_fixture("watch_page_token.html")
        self.assertEqual(extract_video_title(html), 'Tom & Jerry: The "Classic" Chase')

    def test_missing_title(self):
        self.assertEqual(extract_video_title("<html></html>"), "")

    def test_canonical_link_wins_over_video_id_field(self):
        html = ('<link rel="canonical" href="https://www.youtube.com/watch?v=kNNGOrJDdO8">'
                '<script>var x = {"videoId":"rOSZOCoqOo8"};</script>')
        self.assertEqual(extract_video_id(html), "kNNGOrJDdO8")

    def test_video_id_field_before_path_patterns(self):
        html = ('<a href="/watch?v=sLgHqZSe2o0">next</a>'
                '<script>var x = {"videoId":"rOSZOCoqOo8"};</script>')
        self.assertEqual(extract_video_id(html), "rOSZOCoqOo8")

    def test_implausible_candidate_falls_through(self):
        html = ('<link rel="canonical" href="https://www.youtube.com/watch?v=tooshort">'
                '<iframe src="https://www.youtube.com/embed/sLgHqZSe2o0"></iframe>')
        self.assertEqual(extract_video_id(html), "sLgHqZSe2o0")

    def test_youtu_be_pattern(self):
        self.assertEqual(extract_video_id("share: https://youtu.be/dQw4w9WgXcQ"), "dQw4w9WgXcQ")

    def test_no_video_id(self):
        self.assertIsNone(extract_video_id("<html><body>nothing</body></html>"))


class TestEmbeddedJson(unittest.TestCase):

    def test_brace_counting_ignores_braces_in_strings(self):
        html = load_fixture("watch_page_token.html")
        blob = find_json_assignment(html, "ytInitialPlayerResponse")

        data = json.loads(blob)
        self.assertEqual(data["videoDetails"]["videoId"], "kNNGOrJDdO8")
        self.assertIn("{ should not }", data["videoDetails"]["shortDescription"])

    def test_window_bracket_assignment(self):
        html = '<script>window["ytInitialData"] = {"a": {"b": 1}};</script>'
        self.assertEqual(find_json_assignment(html, "ytInitialData"), '{"a": {"b": 1}}')

    def test_unterminated_object(self):
        self.assertIsNone(find_json_assignment("var ytInitialData = {\"a\": {", "ytInitialData"))

    def test_loose_parse_quotes_bare_keys_and_drops_trailing_commas(self):
        text = "{contents: {items: [1, 2, ], label: 'it\\'s'}, flag: true,}"
        self.assertEqual(parse_loose_json(text),
                         {"contents": {"items": [1, 2], "label": "it's"}, "flag": True})

    def test_loose_parse_leaves_strings_alone(self):
        text = '{"url": "https://x.test/a?b=1,c:2", note: "key: value, }"}'
        self.assertEqual(parse_loose_json(text),
                         {"url": "https://x.test/a?b=1,c:2", "note": "key: value, }"})

    def test_unparsable(self):
        self.assertIsNone(parse_loose_json("{not json at all"))
        self.assertIsNone(parse_loose_json(""))


class TestCaptionTracks(unittest.TestCase):

    def setUp(self):
        html = load_fixture("watch_page_tracks.html")
        self.player = json.loads(find_json_assignment(html, "ytInitialPlayerResponse"))

    def test_urls_made_absolute(self):
        tracks = get_caption_tracks_from_player(self.player)
        self.assertEqual([t.base_url.split("?")[0] for t in tracks], [
            "https://www.youtube.com/api/timedtext",
            "https://www.youtube.com/api/timedtext",
            "https://www.youtube.com/api/timedtext",
        ])

    def test_page_order_without_preference(self):
        tracks = get_caption_tracks_from_player(self.player)
        self.assertEqual([t.language_code for t in tracks], ["de", "en-US", "en"])

    def test_exact_match_then_prefix_match(self):
        tracks = get_caption_tracks_from_player(self.player, "en")
        self.assertEqual([t.language_code for t in tracks], ["en", "en-US", "de"])

    def test_track_fields(self):
        asr = get_caption_tracks_from_player(self.player, "en-US")[0]
        self.assertEqual(asr.display_name, "English (United States) (auto-generated)")
        self.assertTrue(asr.is_asr)
        self.assertTrue(asr.is_translatable)

    def test_unicode_escapes_decoded(self):
        player = {"captions": {"playerCaptionsTracklistRenderer": {"captionTracks": [
            {"baseUrl": "/api/timedtext?v=rOSZOCoqOo8\\u0026lang=en", "languageCode": "en"},
        ]}}}
        track = get_caption_tracks_from_player(player)[0]
        self.assertEqual(track.base_url, "https://www.youtube.com/api/timedtext?v=rOSZOCoqOo8&lang=en")

    def test_null_and_odd_fields_tolerated(self):
        player = {"captions": {"playerCaptionsTracklistRenderer": {"captionTracks": [
            {"baseUrl": "/api/timedtext?v=1", "languageCode": None, "kind": None, "name": {"runs": [{"text": None}]}},
            {"baseUrl": None, "languageCode": "en"},
            {"baseUrl": "/api/timedtext?v=2", "languageCode": "en"},
        ]}}}
        tracks = get_caption_tracks_from_player(player, "en")

        self.assertEqual([t.language_code for t in tracks], ["en", ""])
        self.assertEqual((tracks[1].kind, tracks[1].display_name), ("", ""))
        self.assertEqual(get_caption_tracks_from_player({"captions": ["unexpected"]}), [])

    def test_no_captions(self):
        self.assertEqual(get_caption_tracks_from_player({"videoDetails": {}}), [])
        self.assertEqual(get_caption_tracks_from_player(None), [])


class TestFindTranscriptParams(unittest.TestCase):

    LONG_A = "A" * 60
    LONG_B = "B" * 60

    def test_first_match_in_document_order(self):
        data = {"panels": [
            {"x": {"getTranscriptEndpoint": {"params": self.LONG_A}}},
            {"getTranscriptEndpoint": {"params": self.LONG_B}},
        ]}
        self.assertEqual(find_transcript_params(data), self.LONG_A)

    def test_short_params_skipped(self):
        data = [{"getTranscriptEndpoint": {"params": "short"}},
                {"getTranscriptEndpoint": {"params": self.LONG_B}}]
        self.assertEqual(find_transcript_params(data), self.LONG_B)

    def test_depth_bound(self):
        node = {"getTranscriptEndpoint": {"params": self.LONG_A}}
        for _ in range(10):
            node = {"child": node}

        self.assertIsNone(find_transcript_params(node, max_depth=5))
        self.assertEqual(find_transcript_params(node, max_depth=64), self.LONG_A)

    def test_very_deep_input_does_not_recurse(self):
        node = {"leaf": True}
        for _ in range(5000):
            node = [node]
        self.assertIsNone(find_transcript_params(node, max_depth=10000))


class TestVisitorData(unittest.TestCase):

    def test_from_page(self):
        html = load_fixture("watch_page_token.html")
        self.assertEqual(extract_visitor_data(html), "CgtBQkNERUZHSElKSyiAgICABjIKCgJVUxIEGgAgOA%3D%3D")

    def test_fallback(self):
        self.assertEqual(extract_visitor_data("<html></html>", DEFAULT_VISITOR_DATA), DEFAULT_VISITOR_DATA)


class TestExtractPageData(unittest.TestCase):

    def test_transcript_token_page(self):
        page = extract_page_data(load_fixture("watch_page_token.html"), TranscriptConfig())

        self.assertEqual(page.kind, KIND_TRANSCRIPT_TOKEN)
        self.assertEqual(page.video.video_id, "kNNGOrJDdO8")
        self.assertEqual(page.video.title, 'Tom & Jerry: The "Classic" Chase')
        self.assertEqual(page.transcript_token, PAGE_TOKEN)
        self.assertEqual(page.caption_tracks, ())
        self.assertEqual(page.malformed_sources, ())

    def test_caption_tracks_page(self):
        page = extract_page_data(load_fixture("watch_page_tracks.html"), TranscriptConfig(lang="de"))

        self.assertEqual(page.kind, KIND_CAPTION_TRACKS)
        self.assertEqual(page.video.video_id, "rOSZOCoqOo8")
        self.assertEqual(page.selected_track.language_code, "de")
        self.assertEqual(page.visitor_data, "CgtYWVpBQkNERUZHSCiAgICABjIKCgJERRIEGgAgMw%3D%3D")

    def test_video_only_page(self):
        html = '<link rel="canonical" href="https://www.youtube.com/watch?v=sLgHqZSe2o0">'
        page = extract_page_data(html, TranscriptConfig())

        self.assertEqual(page.kind, KIND_VIDEO_ONLY)
        self.assertEqual(page.video.video_id, "sLgHqZSe2o0")
        self.assertEqual(page.visitor_data, DEFAULT_VISITOR_DATA)

    def test_malformed_blobs_recorded_not_raised(self):
        html = ('<link rel="canonical" href="https://www.youtube.com/watch?v=sLgHqZSe2o0">'
                '<script>var ytInitialPlayerResponse = {"captions": [oops};</script>'
                '<script>var ytInitialData = {contents: {: 1}};</script>')
        page = extract_page_data(html, TranscriptConfig())

        self.assertEqual(page.kind, KIND_VIDEO_ONLY)
        self.assertEqual(page.malformed_sources, ("ytInitialPlayerResponse", "ytInitialData"))

    def test_null_language_code_does_not_raise(self):
        html = ('<link rel="canonical" href="https://www.youtube.com/watch?v=sLgHqZSe2o0">'
                '<script>var ytInitialPlayerResponse = {"captions": {"playerCaptionsTracklistRenderer": '
                '{"captionTracks": [{"baseUrl": "/api/timedtext?v=1", "languageCode": null}]}}};</script>')
        page = extract_page_data(html, TranscriptConfig())

        self.assertEqual(page.kind, KIND_CAPTION_TRACKS)
        self.assertEqual(page.selected_track.language_code, "")

    def test_no_video_id_raises(self):
        with self.assertRaises(NoVideoId):
            extract_page_data("<html><body>nothing here</body></html>", TranscriptConfig())


if __name__ == "__main__":
    unittest.main()
