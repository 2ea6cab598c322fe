"""
Logging configuration with GELF support for structured theme logging.
Extends the standard Python logging to automatically include tenant and theme context.
"""

import logging
import json
import socket
from typing import Optional, Dict
from contextvars import ContextVar

# Context variables for theme operations
current_tenant: ContextVar[Optional[str]] = ContextVar('current_tenant', default=None)
current_theme_id: ContextVar[Optional[str]] = ContextVar('current_theme_id', default=None)
current_operation: ContextVar[Optional[str]] = ContextVar('current_operation', default=None)


class GELFFormatter(logging.Formatter):
    """Formatter that creates GELF-compatible JSON messages with theme context."""

    def __init__(self, container_name: str = None, facility: str = "storethemes"):
        super().__init__()
        self.hostname = socket.gethostname()
        self.container_name = container_name
        self.facility = facility

    def format(self, record):
        gelf_message = {
            "version": "1.1",
            "host": self.hostname,
            "short_message": record.getMessage(),
            "timestamp": record.created,
            "level": self._level_to_gelf(record.levelno),
            "facility": self.facility,
            "_logger": record.name,
            "_filename": record.filename,
            "_line": record.lineno,
            "_thread": record.thread,
        }

        if self.container_name:
            gelf_message["container_name"] = self.container_name

        if current_tenant.get():
            gelf_message["_tenant"] = current_tenant.get()
        if current_theme_id.get():
            gelf_message["_theme_id"] = current_theme_id.get()
        if current_operation.get():
            gelf_message["_operation"] = current_operation.get()

        # Extra fields passed through ThemeLogger(**extra)
        for key, value in record.__dict__.items():
            if key.startswith('theme_') or key.startswith('tenant_') or key.startswith('archive_'):
                gelf_message[f"_{key}"] = str(value)

        if record.exc_info:
            gelf_message["_exception"] = self.formatException(record.exc_info)

        return json.dumps(gelf_message)

    def _level_to_gelf(self, level):
        """Convert Python log level to GELF (syslog) level."""
        mapping = {
            logging.DEBUG: 7,
            logging.INFO: 6,
            logging.WARNING: 4,
            logging.ERROR: 3,
            logging.CRITICAL: 2
        }
        return mapping.get(level, 6)


class GELFHandler(logging.Handler):
    """Handler that sends GELF messages directly to Graylog via UDP."""

    def __init__(self, graylog_host: str = "graylog", graylog_port: int = 12201, container_name: str = None):
        super().__init__()
        self.graylog_host = graylog_host
        self.graylog_port = graylog_port
        self.setFormatter(GELFFormatter(container_name))

    def emit(self, record):
        try:
            gelf_json = self.format(record)
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                sock.sendto(gelf_json.encode('utf-8'), (self.graylog_host, self.graylog_port))
        except Exception:
            self.handleError(record)


def set_theme_context(tenant: str = None, theme_id: str = None, operation: str = None):
    """Set theme context for subsequent log messages."""
    if tenant is not None:
        current_tenant.set(tenant)
    if theme_id is not None:
        current_theme_id.set(theme_id)
    if operation is not None:
        current_operation.set(operation)


def clear_theme_context():
    """Clear all theme context."""
    current_tenant.set(None)
    current_theme_id.set(None)
    current_operation.set(None)


def get_theme_context() -> Dict[str, Optional[str]]:
    """Get current theme context."""
    return {
        "tenant": current_tenant.get(),
        "theme_id": current_theme_id.get(),
        "operation": current_operation.get()
    }


class ThemeLogger:
    """Wrapper around standard logger that accepts structured keyword fields."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def with_context(self, **context):
        """Temporarily set context for a series of log calls."""
        old_context = get_theme_context()
        set_theme_context(**context)
        return ContextualLogger(self.logger, old_context)

    def info(self, message, **extra):
        self.logger.info(message, extra=extra)

    def debug(self, message, **extra):
        self.logger.debug(message, extra=extra)

    def warning(self, message, **extra):
        self.logger.warning(message, extra=extra)

    def error(self, message, **extra):
        self.logger.error(message, extra=extra)

    def exception(self, message, **extra):
        self.logger.exception(message, extra=extra)


class ContextualLogger:
    """Context manager restoring the previous theme context on exit."""

    def __init__(self, logger, old_context):
        self.logger = logger
        self.old_context = old_context

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        current_tenant.set(self.old_context["tenant"])
        current_theme_id.set(self.old_context["theme_id"])
        current_operation.set(self.old_context["operation"])

    def info(self, message, **extra):
        self.logger.info(message, extra=extra)

    def debug(self, message, **extra):
        self.logger.debug(message, extra=extra)

    def warning(self, message, **extra):
        self.logger.warning(message, extra=extra)

    def error(self, message, **extra):
        self.logger.error(message, extra=extra)


def setup_logging(
    level: str = "INFO",
    gelf_enabled: bool = False,
    graylog_host: str = "graylog",
    graylog_port: int = 12201,
    container_name: str = None
):
    """Setup console logging and, optionally, GELF shipping for all loggers."""
    root_logger = logging.getLogger()

    if gelf_enabled and not any(isinstance(h, GELFHandler) for h in root_logger.handlers):
        gelf_handler = GELFHandler(graylog_host, graylog_port, container_name)
        gelf_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(gelf_handler)

    # Ensure we don't lose console output
    if not any(type(h) is logging.StreamHandler for h in root_logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        root_logger.addHandler(console_handler)

    root_logger.setLevel(level.upper())


def get_theme_logger(name: str) -> ThemeLogger:
    """Get a theme-aware logger instance."""
    return ThemeLogger(name)
