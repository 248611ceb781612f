# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# EPOCH: 1 - JOB TREES
# STATUS: Core - Structured logging with context
# PURPOSE: Consistent, queryable logging across tree and result operations
# CREATED: 18 OCT 2026
# ============================================================================
"""
Structured Logging

Provides structured, JSON-formatted or human-readable logging.

Features:
- Component-based loggers
- Contextual fields (job_id, root_id, parent_id, schema)
- JSON output for log aggregation
- Context survives across awaits (contextvars, not thread-locals)

Usage:
    from core.logging import get_logger, log_context

    logger = get_logger("services.job_tree")

    with log_context(root_id=42, operation="materialize"):
        logger.info("Inserted batch", extra={"rows": 5})
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union


class ComponentType(str, Enum):
    """Component types for logging categorization."""
    SERVICE = "service"
    REPOSITORY = "repository"
    WORKER = "worker"
    INFRASTRUCTURE = "infrastructure"


@dataclass(frozen=True)
class LogContext:
    """Context fields attached to every record logged inside log_context()."""
    job_id: Optional[int] = None
    root_id: Optional[int] = None
    parent_id: Optional[int] = None
    schema: Optional[str] = None
    component: Optional[str] = None
    operation: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        result = {}
        for key, value in asdict(self).items():
            if value is not None and key != "extra":
                result[key] = value
        if self.extra:
            result.update(self.extra)
        return result


_current_context: ContextVar[LogContext] = ContextVar(
    "jobtree_log_context", default=LogContext()
)


def get_current_context() -> LogContext:
    """Get current logging context."""
    return _current_context.get()


@contextmanager
def log_context(**kwargs):
    """
    Context manager for adding logging context.

    Fields not given are inherited from the enclosing context.

    Example:
        with log_context(job_id=17):
            logger.info("Reading child results")
    """
    parent = get_current_context()
    new_context = LogContext(
        job_id=kwargs.get("job_id", parent.job_id),
        root_id=kwargs.get("root_id", parent.root_id),
        parent_id=kwargs.get("parent_id", parent.parent_id),
        schema=kwargs.get("schema", parent.schema),
        component=kwargs.get("component", parent.component),
        operation=kwargs.get("operation", parent.operation),
        extra={**parent.extra, **kwargs.get("extra", {})},
    )

    token = _current_context.set(new_context)
    try:
        yield new_context
    finally:
        _current_context.reset(token)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON for easy parsing by log aggregators.
    """

    def __init__(self, include_context: bool = True):
        super().__init__()
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_context:
            context_dict = get_current_context().to_dict()
            if context_dict:
                log_data["context"] = context_dict

        if getattr(record, "extra", None):
            log_data["data"] = record.extra

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data["source"] = {
            "file": record.filename,
            "line": record.lineno,
            "function": record.funcName,
        }

        return json.dumps(log_data, default=str)


class HumanFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for human reading."""
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname.ljust(8)

        context = get_current_context()
        context_parts = []
        if context.root_id is not None:
            context_parts.append(f"root={context.root_id}")
        if context.job_id is not None:
            context_parts.append(f"job={context.job_id}")
        if context.parent_id is not None:
            context_parts.append(f"parent={context.parent_id}")

        context_str = f" [{', '.join(context_parts)}]" if context_parts else ""

        extra_str = ""
        if getattr(record, "extra", None):
            extra_str = f" {record.extra}"

        result = f"{timestamp} {level} {record.name}{context_str}: {record.getMessage()}{extra_str}"

        if record.exc_info:
            result += f"\n{self.formatException(record.exc_info)}"

        return result


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that folds the current context into record extras."""

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra", {}))
        extra.update(get_current_context().to_dict())
        if self.extra and self.extra.get("component"):
            extra.setdefault("component", self.extra["component"])

        # Stored as a single attribute for formatter access
        kwargs["extra"] = {"extra": extra}
        return msg, kwargs


def get_logger(
    name: str,
    component: Optional[ComponentType] = None,
) -> ContextLogger:
    """
    Get a context-aware logger.

    Args:
        name: Logger name (e.g., "services.job_tree")
        component: Optional component type for categorization

    Returns:
        ContextLogger instance
    """
    return ContextLogger(
        logging.getLogger(name),
        {"component": component.value if component else None},
    )


def configure_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure root logging for scripts and hosts.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Use JSON format (also enabled by LOG_FORMAT=json)
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if json_output or os.getenv("LOG_FORMAT", "").lower() == "json":
        formatter = StructuredFormatter(include_context=True)
    else:
        formatter = HumanFormatter()

    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root.addHandler(handler)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ComponentType",
    "LogContext",
    "StructuredFormatter",
    "HumanFormatter",
    "ContextLogger",
    "get_logger",
    "configure_logging",
    "log_context",
    "get_current_context",
]
