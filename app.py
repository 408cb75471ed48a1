from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from routes import transcript_routes
from transcript_config import get_transcript_config
from transcript_service import TranscriptService


def create_app(service=None) -> Flask:
    """
    Build the Flask app.

    ``service`` is anything with ``config`` and ``get_transcript_sync``;
    defaults to a TranscriptService over the env-derived configuration.
    """
    app = Flask(__name__)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)
    app.json.sort_keys = False

    app.config["TRANSCRIPT_SERVICE"] = service or TranscriptService(get_transcript_config())
    app.register_blueprint(transcript_routes)
    return app


app = create_app()
