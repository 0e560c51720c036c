"""
Shared logging configuration for the Jenkins attestation provider.
"""

import sys
import structlog
import logging
import time
import uuid
from typing import Any, Dict, Optional, TextIO
from contextvars import ContextVar

# Context variables for correlation IDs
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
instance_domain_var: ContextVar[Optional[str]] = ContextVar('instance_domain', default=None)
instance_service_var: ContextVar[Optional[str]] = ContextVar('instance_service', default=None)


def configure_logging(service_name: str, log_level: str = "info", stream: TextIO = sys.stdout) -> None:
    """Configure structured logging for a service."""

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
            add_timestamp,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=getattr(logging, log_level.upper()),
    )


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to log events."""
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        event_dict["service"] = logger_name.split(".")[0]

    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add request and instance identity to log events."""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id

    domain = instance_domain_var.get()
    if domain:
        event_dict["domain"] = domain

    service = instance_service_var.get()
    if service:
        event_dict["instance_service"] = service

    return event_dict


def add_timestamp(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add high-precision timestamp to log events."""
    event_dict["timestamp"] = time.time()
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set request ID in context."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_instance_context(domain: Optional[str] = None, service: Optional[str] = None):
    """Set the requesting instance identity in logging."""
    if domain:
        instance_domain_var.set(domain)
    if service:
        instance_service_var.set(service)


def clear_context():
    """Clear all context variables."""
    request_id_var.set(None)
    instance_domain_var.set(None)
    instance_service_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
