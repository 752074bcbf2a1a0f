"""
Structured JSON logging configuration using structlog.

Logs go to stderr so operator output from the CLI stays clean on stdout.
Credential-bearing keys are masked before rendering.
"""
import logging
import sys
from typing import Any, Dict, Optional

import structlog
from structlog.types import FilteringBoundLogger

REDACTED = "***"
SECRET_KEYS = frozenset({"password", "auth_secret", "secret", "token"})


def redact_secrets(_logger: Any, _method: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Mask values whose key names a credential."""
    for key in event_dict:
        if key.lower() in SECRET_KEYS and event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Log level name; defaults to the LOG_LEVEL setting
    """
    if level is None:
        from provisioner.config.settings import get_settings
        level = get_settings().log_level

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_secrets,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    return structlog.get_logger(name)


def log_setup_event(
    logger: FilteringBoundLogger,
    step: str,
    success: bool,
    **extra: Any,
) -> None:
    """Log a wizard step outcome as ``setup_<step>``; failures at warning level."""
    log_func = logger.info if success else logger.warning
    log_func(f"setup_{step}", success=success, **extra)
