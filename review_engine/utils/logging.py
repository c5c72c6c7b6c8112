"""Logging and observability setup using Pydantic Logfire."""

import logging
import sys

import logfire

from review_engine.config.settings import settings


def setup_logging() -> None:
    """Configure application logging.

    Sets up a single stdout handler at the configured level and quiets
    verbose third-party libraries.
    """
    log_level = getattr(logging, settings.log_level)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
        force=True,  # Reconfigure if already setup
    )

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("github").setLevel(logging.WARNING)
    if not settings.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def setup_observability() -> None:
    """Setup logging and, when a token is configured, Logfire tracing.

    SQLAlchemy is instrumented so every store query shows up as a span.
    A Logfire failure is logged and the process keeps running.
    """
    setup_logging()

    logger = logging.getLogger(__name__)

    if not settings.logfire_token:
        logger.info("Logfire token not configured, skipping observability setup")
        return

    try:
        from review_engine.database.db import engine

        logfire.configure(
            token=settings.logfire_token,
            service_name=settings.bot_name,
            environment=settings.environment,
        )
        logfire.instrument_sqlalchemy(engine=engine)

        logger.info(
            f"Logfire observability enabled for {settings.environment} environment"
        )
    except Exception as e:
        logger.error(f"Failed to setup Logfire observability: {e}")
