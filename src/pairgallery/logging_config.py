"""
Structured logging for pairgallery.

All modules log snake_case event names with keyword context through
structlog. Events are rendered for the console while developing and as JSON
lines in production. Credentials never reach the output: values under
sensitive keys are masked before rendering.
"""

import logging
import os
import sys
from collections.abc import Mapping
from typing import Any

import structlog

SENSITIVE_KEYS = frozenset(
    {
        "access_token",
        "refresh_token",
        "password",
        "password_hash",
        "signature",
        "token",
        "apikey",
        "authorization",
    }
)
REDACTED = "***"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _mask(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: REDACTED if str(key).lower() in SENSITIVE_KEYS else _mask(item) for key, item in value.items()}
    return value


def redact_sensitive(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask credentials, including ones nested in context dictionaries."""
    for key, value in list(event_dict.items()):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, Mapping):
            event_dict[key] = _mask(value)
    return event_dict


def _log_level() -> int:
    # Read before config is importable; config logs through this module
    return _LEVELS.get(os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)


def _is_development() -> bool:
    return os.getenv("ENVIRONMENT", "development").lower() in ("development", "dev", "local", "test", "testing")


def configure_structured_logging() -> None:
    """
    Configure structlog and the stdlib root logger once per process.

    Streamlit re-executes the entry script on every interaction, so repeated
    calls only adjust the level.
    """
    log_level = _log_level()
    logging.getLogger().setLevel(log_level)
    if structlog.is_configured():
        return

    logging.basicConfig(level=log_level, format="%(message)s", stream=sys.stderr)
    is_dev = _is_development()

    renderer: Any
    if is_dev:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_sensitive,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.get_logger("pairgallery.logging").info(
        "logging_configured",
        log_level=logging.getLevelName(log_level),
        environment="development" if is_dev else "production",
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structlog logger; modules pass ``__name__``."""
    return structlog.get_logger(name or "pairgallery")


def log_performance(operation: str, duration: float, **context: Any) -> None:
    """Log how long an upload or inspection took, in seconds."""
    get_logger("pairgallery.performance").info(
        "performance_metric", operation=operation, duration_seconds=round(duration, 4), **context
    )


def log_user_action(user_id: str, action: str, **context: Any) -> None:
    """Audit trail of what a partner did (sent, uploaded, reacted, deleted)."""
    get_logger("pairgallery.user_actions").info("user_action", user_id=user_id, action=action, **context)


def log_error(error: Exception, context: dict[str, Any] | None = None) -> None:
    """Log an exception with its type and structured context."""
    error_context = {"error_type": type(error).__name__, "error_message": str(error), **(context or {})}
    get_logger("pairgallery.errors").error("error_occurred", **error_context, exc_info=error)


def log_security_event(event_type: str, user_id: str | None = None, **context: Any) -> None:
    """Log sign-in failures, vault password changes and authorization errors."""
    get_logger("pairgallery.security").warning("security_event", event_type=event_type, user_id=user_id, **context)
