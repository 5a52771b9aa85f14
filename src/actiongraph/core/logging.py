"""Structured logging configuration for actiongraph.

Modules log through structlog.get_logger(__name__). configure_logging()
routes those events, and stdlib records from SQLAlchemy and Dynaconf,
through one ProcessorFormatter on stderr so both share a format.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

# Third-party loggers kept at WARNING or above even when running at DEBUG
_NOISY_LOGGERS: tuple[str, ...] = ("sqlalchemy", "dynaconf")


def configure_logging(*, json_output: bool = False, level: str = "WARNING") -> None:
    """Configure structlog and stdlib logging.

    Safe to call more than once; the last call wins.
    """
    log_level = logging.getLevelNamesMapping()[level.upper()]

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
    ]
    renderer: Any = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    final_processors: list[Any] = [ProcessorFormatter.remove_processors_meta]
    if json_output:
        final_processors.append(structlog.processors.format_exc_info)
    final_processors.append(renderer)

    structlog.configure(
        processors=[*shared_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfiguration (tests, CLI settings) must reach loggers created earlier
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ProcessorFormatter(processors=final_processors, foreign_pre_chain=shared_processors))
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(log_level, logging.WARNING))
