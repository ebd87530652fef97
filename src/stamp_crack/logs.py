import logging
import sys

import structlog


def _stderr_logger(*args) -> structlog.PrintLogger:
    # Resolved per call so a swapped sys.stderr is honoured.
    return structlog.PrintLogger(sys.stderr)


def configure_logging(level: int = logging.INFO, *, json: bool = False) -> None:
    """Send structlog output to stderr so stdout only carries recovered plaintext."""
    renderer = (
        structlog.processors.JSONRenderer(indent=2)
        if json
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )
