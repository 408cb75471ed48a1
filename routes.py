import logging

from flask import Blueprint, current_app, jsonify, request

from error_handler import YoutubeTranscriptError, handle_transcript_error, http_status_for_error
from transcript_formatter import TEMPLATES, TranscriptFormatter
from url_utils import extract_youtube_url_from_text

transcript_routes = Blueprint("transcript_routes", __name__)

FORMAT_JSON = "json"


def _service():
    return current_app.config["TRANSCRIPT_SERVICE"]


@transcript_routes.route("/api/transcript", methods=["GET"])
def get_transcript():
    """
    Fetch a transcript.

    Query: url (required), lang, country, format (json|minimal|standard|rich),
    timestamp_mod.
    """
    raw_url = (request.args.get("url") or "").strip()
    # Accept pasted text containing a link as well as a bare URL
    url = extract_youtube_url_from_text(raw_url) or raw_url
    output_format = (request.args.get("format") or FORMAT_JSON).lower()

    if not url:
        return jsonify({"error": "url is required", "kind": "invalid_url"}), 400

    if output_format != FORMAT_JSON and output_format not in TEMPLATES:
        return jsonify({"error": f"Unknown format '{output_format}'", "kind": "invalid_format"}), 400

    timestamp_mod = request.args.get("timestamp_mod", type=int)
    service = _service()

    try:
        result = service.get_transcript_sync(
            url,
            lang=request.args.get("lang") or None,
            country=request.args.get("country") or None,
        )
    except YoutubeTranscriptError as e:
        message = handle_transcript_error(e)
        return jsonify({"error": message, "kind": e.kind}), http_status_for_error(e)

    response = {
        "title": result.title,
        "video_id": result.video_id,
        "video_url": url,
        "source": result.source,
    }

    if output_format == FORMAT_JSON:
        response["lines"] = [line.to_dict() for line in result.lines]
    else:
        if timestamp_mod is None:
            timestamp_mod = service.config.timestamp_mod
        response["text"] = TranscriptFormatter.format(result, url, template=output_format,
                                                      timestamp_mod=timestamp_mod)

    logging.info(f"api_transcript_response video_id={result.video_id} lines={len(result.lines)} "
                 f"format={output_format}")
    return jsonify(response)


@transcript_routes.route("/health")
@transcript_routes.route("/healthz")
def health_check():
    """Liveness plus the effective configuration."""
    return jsonify({
        "status": "healthy",
        "message": "Transcript API is running",
        "config": _service().config.to_dict(),
    })
