"""
Structured JSON logging for the stock ledger client.

Usage:
    from stockledger.core.logging import configure_logging, get_logger

    # Once, at application start-up
    configure_logging("stockledger", log_level="INFO")

    # In any module
    logger = get_logger(__name__)
    logger.info("stock_adjusted", inventory_id=12, quantity=15)
"""

import logging
import sys

import structlog


def configure_logging(service_name: str, log_level: str = "INFO") -> None:
    """
    Configure structured JSON logging.

    Args:
        service_name: Value of the ``service`` field on every entry
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Every entry carries the service name, log level, logger name, an ISO
    timestamp and whatever is bound in ``structlog.contextvars`` (for
    example the ``trace_id`` forwarded to the backend).
    """

    level = getattr(logging, log_level.upper(), logging.INFO)

    def add_service_name(logger, method_name, event_dict):
        event_dict["service"] = service_name
        return event_dict

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.StackInfoRenderer(),
            add_service_name,
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.dict_tracebacks,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger = logging.getLogger()

    for h in root_logger.handlers[:]:
        root_logger.removeHandler(h)

    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # httpx logs every request at INFO; our event hooks already do that
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))


def get_logger(name: str):
    """
    Get a structured logger for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        structlog logger instance
    """
    return structlog.get_logger(name)
