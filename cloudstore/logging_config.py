"""Opt-in log output for the ``cloudstore`` logger namespace.

The package itself only attaches a ``NullHandler``; applications call
``setup_logging`` to get operation-tagged records on stdout and, optionally,
shipped to Loki. The root logger is never touched.
"""

import logging
import os
import sys
from typing import Protocol

from loki_logger_handler.loki_logger_handler import LokiLoggerHandler

from cloudstore.services.operation_id_service import current_operation


LOGGER_NAME = "cloudstore"

LOG_FORMAT = "%(asctime)s - [%(operation_id)s] %(operation)s %(target)s - %(name)s - %(levelname)s - %(message)s"

# Handlers installed by setup_logging, replaced on the next call
_installed_handlers: list[logging.Handler] = []


class LoggingConfig(Protocol):
    log_level: str
    loki_enabled: bool
    loki_url: str
    environment: str


class OperationContextFilter(logging.Filter):
    """Stamp records with the active operation: ID, name and ``bucket/object``.

    Values passed through ``extra=`` win over the context.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        context = current_operation()
        for attr, value in (
            ("operation_id", context.operation_id),
            ("operation", context.operation),
            ("target", context.target),
        ):
            if not hasattr(record, attr):
                setattr(record, attr, value)
        return True


def _loki_handler(config: LoggingConfig, service_name: str) -> LokiLoggerHandler:
    return LokiLoggerHandler(
        url=config.loki_url,
        labels={
            "service": service_name,
            "library": LOGGER_NAME,
            "environment": config.environment,
            "host": os.getenv("HOSTNAME", "unknown"),
        },
        timeout=10,
        compressed=True,
    )


def setup_logging(config: LoggingConfig, service_name: str = LOGGER_NAME) -> logging.Logger:
    """
    Route ``cloudstore`` log records to stdout and, when enabled, to Loki.

    Calling it again replaces the handlers from the previous call. Records
    stop propagating to the root logger so they are not printed twice.

    Args:
        config: Client configuration
        service_name: Loki ``service`` label of the calling application

    Returns:
        The ``cloudstore`` logger
    """
    logger = logging.getLogger(LOGGER_NAME)

    while _installed_handlers:
        handler = _installed_handlers.pop()
        logger.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.loki_enabled and config.loki_url:
        handlers.append(_loki_handler(config, service_name))

    formatter = logging.Formatter(LOG_FORMAT)
    context_filter = OperationContextFilter()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        logger.addHandler(handler)
        _installed_handlers.append(handler)

    logger.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
    logger.propagate = False
    return logger
