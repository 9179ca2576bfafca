"""
Shared logging configuration for the tenant access service.

Events are rendered as JSON (console output for local runs) with the logger
name, level, ISO timestamp and the current correlation context (request id,
tenant profile id). Session emails are masked before rendering.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
profile_id_var: ContextVar[Optional[str]] = ContextVar("profile_id", default=None)

EMAIL_FIELDS = ("email", "session_email", "privileged_email")


def configure_logging(service_name: str, log_level: str = "info", json_logs: bool = True) -> None:
    """Configure structured logging for a service."""
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_service_context,
            add_correlation_context,
            mask_emails,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )
    structlog.get_logger(service_name).debug("Logging configured", level=log_level)


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    # "access.department_lock" -> service "access", component "department_lock"
    service, _, component = event_dict.get("logger", "").partition(".")
    if component:
        event_dict["service"] = service
        event_dict["component"] = component
    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    request_id = request_id_var.get()
    if request_id:
        event_dict.setdefault("request_id", request_id)

    profile_id = profile_id_var.get()
    if profile_id:
        event_dict.setdefault("profile_id", profile_id)

    return event_dict


def mask_email(value: str) -> str:
    """``castro.massimo@yahoo.com`` -> ``c***@yahoo.com``."""
    local, at, domain = value.partition("@")
    if not at or not local:
        return "***"
    return f"{local[0]}***@{domain}"


def mask_emails(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for field in EMAIL_FIELDS:
        value = event_dict.get(field)
        if isinstance(value, str):
            event_dict[field] = mask_email(value)
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set request ID in context, generating one when the caller sent none."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def bind_profile(profile_id: Optional[str]) -> None:
    """Attach the tenant profile id to every event logged in this context."""
    profile_id_var.set(profile_id)


def clear_context():
    request_id_var.set(None)
    profile_id_var.set(None)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
