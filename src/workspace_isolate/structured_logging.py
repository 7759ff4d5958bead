"""
Structured logging configuration for workspace-isolate.

Emits one JSON object per event so isolated installs can be audited:
which siblings were found, which requests were injected, how patterns
were aliased and where each sibling was folded.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

_RESERVED_RECORD_KEYS = frozenset(
    [
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "getMessage",
        "exc_info",
        "exc_text",
        "stack_info",
        "taskName",
    ]
)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class EventLogger:
    """Structured logger for isolation events."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(f"workspace_isolate.{name}")
        self._setup_logger()
        self.run_context: Dict[str, Any] = {}

    def _setup_logger(self) -> None:
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.WARNING)
            self.logger.propagate = False

    def set_run_context(
        self, workspace: Optional[str] = None, root: Optional[str] = None
    ) -> None:
        """Set install-run context for logging."""
        self.run_context = {}
        if workspace:
            self.run_context["workspace"] = workspace
        if root:
            self.run_context["root"] = root

    def clear_run_context(self) -> None:
        self.run_context.clear()

    def _log(self, level: str, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **self.run_context, **kwargs}
        getattr(self.logger, level)(event_type, extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        self._log("info", event_type, **kwargs)

    def warning(self, event_type: str, **kwargs) -> None:
        self._log("warning", event_type, **kwargs)

    def error(self, event_type: str, **kwargs) -> None:
        self._log("error", event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        self._log("debug", event_type, **kwargs)


# Global logger instances
_discovery_logger = EventLogger("discovery")
_injector_logger = EventLogger("injector")
_rewriter_logger = EventLogger("rewriter")
_lifecycle_logger = EventLogger("lifecycle")

_ALL_LOGGERS = [_discovery_logger, _injector_logger, _rewriter_logger, _lifecycle_logger]


def get_discovery_logger() -> EventLogger:
    """Get sibling discovery logger."""
    return _discovery_logger


def get_injector_logger() -> EventLogger:
    """Get request injection logger."""
    return _injector_logger


def get_rewriter_logger() -> EventLogger:
    """Get pattern and manifest rewriting logger."""
    return _rewriter_logger


def get_lifecycle_logger() -> EventLogger:
    """Get install lifecycle logger."""
    return _lifecycle_logger


def log_siblings_discovered(workspace: str, registry: str, patterns: List[str]) -> None:
    get_discovery_logger().info(
        "siblings_discovered",
        current_workspace=workspace,
        registry=registry,
        sibling_count=len(patterns),
        siblings=patterns,
    )


def log_requests_injected(base_count: int, injected: List[str]) -> None:
    get_injector_logger().debug(
        "requests_injected",
        base_count=base_count,
        injected_count=len(injected),
        injected=injected,
    )


def log_pattern_aliased(provisional: str, canonical: str) -> None:
    get_rewriter_logger().debug(
        "pattern_aliased", provisional=provisional, canonical=canonical
    )


def log_sibling_folded(
    target: str, sibling: str, dependency_type: str, version: str, added: bool
) -> None:
    """Log the outcome of folding one sibling into the target manifest."""
    get_rewriter_logger().debug(
        "sibling_folded" if added else "sibling_already_declared",
        target=target,
        sibling=sibling,
        dependency_type=dependency_type,
        version=version,
    )


def log_state_transition(previous: str, current: str) -> None:
    get_lifecycle_logger().debug("state_transition", previous=previous, current=current)


def set_run_context(workspace: Optional[str] = None, root: Optional[str] = None) -> None:
    """Set global run context for all loggers."""
    for logger in _ALL_LOGGERS:
        logger.set_run_context(workspace, root)


def clear_run_context() -> None:
    """Clear global run context."""
    for logger in _ALL_LOGGERS:
        logger.clear_run_context()


def configure_logging(log_level: str = "WARNING") -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.WARNING)
    for logger in _ALL_LOGGERS:
        logger.logger.setLevel(level)
