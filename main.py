import os

from dotenv import load_dotenv

from logging_setup import configure_logging

# .env first so LOG_LEVEL and TRANSCRIPT_* settings are visible below
load_dotenv(override=False)

configure_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    use_json=os.getenv("USE_MINIMAL_LOGGING", "true").lower() == "true"
)

from app import app  # noqa: E402,F401

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    debug = os.environ.get("FLASK_DEBUG", "false").lower() == "true"
    app.run(host="0.0.0.0", port=port, debug=debug, use_reloader=False)
