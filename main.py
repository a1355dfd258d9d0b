"""Main entry point for the On-Call Alert Service."""

import logging
import sys

import uvicorn
from oncall_alert_service.api.app import create_app
from oncall_alert_service.config.settings import ConfigError, load_service_config, load_settings
from oncall_alert_service.config.logging import setup_logging

logger = logging.getLogger("oncall_alert_service.main")


def main():
    """Validate configuration and run the FastAPI application."""
    try:
        settings = load_settings()
    except ConfigError as e:
        # Logging settings are unreadable too, fall back to the defaults
        setup_logging()
        logger.error("Failed parsing config", extra={"error": str(e)})
        sys.exit(1)

    setup_logging(settings.log_level, settings.log_format)

    try:
        config = load_service_config(settings)
    except ConfigError as e:
        logger.error("Failed parsing config", extra={"error": str(e)})
        sys.exit(1)

    logger.info("Starting server on [%s:%s]", config.bind_address, config.bind_port)
    uvicorn.run(
        create_app(config, http_timeout=settings.http_timeout, debug=settings.api_debug),
        host=config.bind_address,
        port=config.bind_port,
        log_config=None,  # Use our custom logging configuration
    )


if __name__ == "__main__":
    main()
