"""Structured logging setup using structlog.

Same shared processor chain (context vars, log level, timestamps, stack
info) feeds either a coloured ConsoleRenderer for local development or a
JSONRenderer for production.  The renderer is picked from the
``QUERYCACHE_ENV`` environment variable (default ``"development"``), or
forced via ``json_output``.

Importing the package leaves structlog alone; nothing is configured until
the application calls :func:`configure_logging`.  With ``bridge_stdlib``
standard-library ``logging`` is rewired through the same formatter so the
application gets one consistent log stream.
"""

import logging
import os
import sys

import structlog


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    bridge_stdlib: bool = True,
) -> structlog.BoundLogger:
    """Configure structlog with environment-appropriate rendering.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON output. When False, JSON is still used if
                     ``QUERYCACHE_ENV`` is ``"production"``.
        bridge_stdlib: Replace the root logger's handlers with one that
                       renders through the structlog processors.

    Returns:
        A configured structlog BoundLogger.
    """
    cache_env = os.environ.get("QUERYCACHE_ENV", "development")
    use_json = json_output or cache_env == "production"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if use_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            renderer,
        ],
        # Drops events below log_level before the processor chain runs;
        # cache_hit/cache_miss are emitted on every lookup.
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if not bridge_stdlib:
        return structlog.get_logger()

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *shared_processors,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structlog logger.

    Never configures structlog.  The returned proxy resolves against
    whatever configuration is active when it first logs.

    Args:
        name: Logger name, typically the module name.

    Returns:
        A structlog BoundLogger bound with the given name.
    """
    return structlog.get_logger(logger_name=name)
