"""
Structured Logging

structlog configuration for chartsync. Modules log through
`structlog.get_logger(__name__)`; applications call `configure_logging()`
once at startup.
"""

from typing import Any, Iterable, Optional
import logging
import sys

import structlog

REDACTED = "***"


def _redact(value: Any, fields: frozenset) -> Any:
    if isinstance(value, dict):
        return {
            k: (REDACTED if k in fields and "resourceType" in value else _redact(v, fields))
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_redact(v, fields) for v in value]
    return value


def resource_redaction_processor(fields: Iterable[str]):
    """
    Build a processor that masks identifying fields of any FHIR resource
    logged as an event value (e.g. a failed transaction bundle).
    """
    masked = frozenset(fields)

    def processor(logger, method_name, event_dict):
        for key, value in event_dict.items():
            if isinstance(value, (dict, list)):
                event_dict[key] = _redact(value, masked)
        return event_dict

    return processor


def configure_logging(
    level: Optional[str] = None,
    json: Optional[bool] = None,
    redact_fields: Optional[Iterable[str]] = None,
) -> None:
    """
    Configure structlog on top of the stdlib logging module.

    Unset arguments are read from settings.
    """
    if level is None or json is None or redact_fields is None:
        from chartsync.config import get_settings
        app = get_settings().app
        level = level or app.log_level
        json = app.log_json if json is None else json
        redact_fields = app.redact_fields if redact_fields is None else redact_fields

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            resource_redaction_processor(redact_fields),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
