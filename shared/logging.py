"""
Shared logging configuration for the restaurant access core.
"""

import sys
import structlog
import logging
import time
from typing import Any, Dict, Optional
from contextvars import ContextVar

# Context variables for correlation IDs
actor_id_var: ContextVar[Optional[str]] = ContextVar('actor_id', default=None)
tenant_id_var: ContextVar[Optional[str]] = ContextVar('tenant_id', default=None)
terminal_id_var: ContextVar[Optional[str]] = ContextVar('terminal_id', default=None)


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a service."""

    # Configure structlog
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

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to log events."""
    # Extract service name from logger name
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        service_name = logger_name.split(".")[0]
        event_dict["service"] = service_name

    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add actor, tenant and terminal correlation to log events."""
    actor_id = actor_id_var.get()
    if actor_id:
        event_dict.setdefault("actor_id", actor_id)

    tenant_id = tenant_id_var.get()
    if tenant_id:
        event_dict.setdefault("tenant_id", tenant_id)

    terminal_id = terminal_id_var.get()
    if terminal_id:
        event_dict.setdefault("terminal_id", terminal_id)

    return event_dict


def add_timestamp(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add high-precision timestamp to log events."""
    event_dict["timestamp"] = time.time()
    return event_dict


def set_actor_context(actor_id: Optional[str] = None, tenant_id: Optional[str] = None):
    """Set actor context in logging."""
    if actor_id:
        actor_id_var.set(actor_id)
    if tenant_id:
        tenant_id_var.set(tenant_id)


def set_terminal_context(terminal_id: Optional[str]):
    """Set the POS terminal in logging."""
    terminal_id_var.set(terminal_id)


def clear_actor_context():
    """Forget the actor and tenant; the terminal stays."""
    actor_id_var.set(None)
    tenant_id_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
