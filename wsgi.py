"""
WSGI entrypoint for the transcript API
"""

import logging
import os

from logging_setup import configure_logging

configure_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    use_json=os.getenv("USE_MINIMAL_LOGGING", "true").lower() == "true"
)

# Align with gunicorn handlers if present
_guni = logging.getLogger('gunicorn.error')
if _guni.handlers:
    logging.root.setLevel(_guni.level)

from app import app  # noqa: E402

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 8080)))
