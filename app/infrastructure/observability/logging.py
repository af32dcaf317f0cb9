"""
Structured logging setup for the integration proxy.
Provides JSON-formatted logs with consistent fields and secret redaction.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory

# Keys whose values must never reach the log stream
REDACTED_KEYS = {
    "access_token",
    "authorization",
    "client_secret",
    "auth_token",
    "integration_key",
    "storage_key",
    "password",
}


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _redact_secrets,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _redact_secrets(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask credential-bearing fields before rendering."""
    for key in event_dict:
        if key.lower() in REDACTED_KEYS and event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_upstream_call(
    api: str,
    action: str,
    status_code: int | None,
    duration_ms: float,
    error: str | None = None,
):
    """Log one outbound call to a third-party API with consistent fields."""
    logger = get_logger("upstream")

    log_data = {
        "api": api,
        "action": action,
        "status_code": status_code,
        "duration_ms": duration_ms,
        "event_type": "upstream_call",
    }

    if error:
        log_data["error"] = error
        logger.error("Upstream call failed", **log_data)
    elif status_code is not None and status_code >= 400:
        logger.warning("Upstream call rejected", **log_data)
    else:
        logger.info("Upstream call completed", **log_data)


def log_request(method: str, path: str, status_code: int, duration_ms: float):
    """Log HTTP requests with consistent fields."""
    logger = get_logger("http")

    log_data = {
        "method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": duration_ms,
        "event_type": "http_request",
    }

    if status_code >= 400:
        logger.warning("HTTP request failed", **log_data)
    else:
        logger.info("HTTP request completed", **log_data)
