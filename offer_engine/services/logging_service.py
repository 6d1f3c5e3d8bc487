"""Structured logging configuration with credential and phone number redaction."""

import logging
import sys
from typing import Any, Dict

import structlog

SENSITIVE_KEYS = {
    "api_key",
    "authorization",
    "token",
    "secret",
    "password",
}

PHONE_KEYS = {"to", "phone", "phone_number", "whatsapp_number"}


def mask_phone(value: Any) -> Any:
    """Keep only the last four digits of a phone number."""
    if not isinstance(value, str):
        return value
    digits = [c for c in value if c.isdigit()]
    if len(digits) <= 4:
        return "***"
    return "***" + "".join(digits[-4:])


def redact_sensitive(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Redact credentials and mask phone numbers in log entries.

    Redacts any key containing token, secret, password, api_key or
    authorization (case-insensitive). Phone-number keys are masked to their
    last four digits.
    """
    for key in list(event_dict.keys()):
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_KEYS):
            event_dict[key] = "REDACTED"
        elif key_lower in PHONE_KEYS:
            event_dict[key] = mask_phone(event_dict[key])

    return event_dict


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog for JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_sensitive,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
