"""
Command line transcript fetcher.

Prints a YouTube video's transcript rendered the same way it would be
inserted into a note.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from error_handler import YoutubeTranscriptError, handle_transcript_error
from logging_setup import configure_logging
from transcript_config import get_transcript_config
from transcript_formatter import TEMPLATE_STANDARD, TEMPLATES, TranscriptFormatter
from transcript_service import fetch_transcript
from url_utils import extract_youtube_url_from_text


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fetch and format a YouTube video transcript",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python cli.py https://www.youtube.com/watch?v=dQw4w9WgXcQ
  python cli.py https://youtu.be/dQw4w9WgXcQ --template rich --timestamp-mod 10
  python cli.py "see [this](https://youtu.be/dQw4w9WgXcQ)" --json
        """
    )
    parser.add_argument("url", help="Video URL, or text containing one")
    parser.add_argument("--lang", help="Preferred caption language (default from TRANSCRIPT_LANG)")
    parser.add_argument("--country", help="Region code sent with requests (default from TRANSCRIPT_COUNTRY)")
    parser.add_argument("--template", choices=TEMPLATES, default=TEMPLATE_STANDARD,
                        help="Output template (default: standard)")
    parser.add_argument("--timestamp-mod", type=int, default=None,
                        help="Lines per timestamped block")
    parser.add_argument("--json", action="store_true", help="Print the raw result as JSON")
    parser.add_argument("--log-level", default="WARNING",
                        help="Log level for diagnostics on stderr (default: WARNING)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    configure_logging(log_level=args.log_level, use_json=True)

    url = extract_youtube_url_from_text(args.url) or args.url
    config = get_transcript_config().with_overrides(
        lang=args.lang, country=args.country, timestamp_mod=args.timestamp_mod,
    )

    try:
        result = asyncio.run(fetch_transcript(url, config=config))
    except YoutubeTranscriptError as e:
        print(handle_transcript_error(e), file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(TranscriptFormatter.format(result, url, template=args.template,
                                         timestamp_mod=config.timestamp_mod))
    return 0


if __name__ == "__main__":
    sys.exit(main())
