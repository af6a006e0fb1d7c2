"""Application entry point for the lesson assessment service."""

from __future__ import annotations

from assessment_app.config.settings import get_settings
from assessment_app.constants.about import APP_NAME, APP_VERSION
from assessment_app.core.assessment_manager import AssessmentManager
from assessment_app.server.api_server import run_api_server
from assessment_app.utils.logging_config import configure_logging


def main() -> None:
    """Initialize logging, build the assessment manager, and serve the API."""
    settings = get_settings()
    logger = configure_logging(settings.log_level, settings.log_format)
    logger.info("Starting %s %s…", APP_NAME, APP_VERSION)

    manager = AssessmentManager(enforce_deadlines=settings.enforce_deadlines)
    if not settings.api_tokens:
        logger.warning("No API tokens configured; every API request will be rejected.")
    logger.info(
        "API available at http://%s:%s%s/", settings.host, settings.port, settings.api_prefix.rstrip("/")
    )
    run_api_server(manager, settings)


if __name__ == "__main__":
    main()
