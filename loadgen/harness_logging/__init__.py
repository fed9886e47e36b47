"""Logging configuration for the harness."""

from .context import ContextFilter, LogContext, log_context, log_vu_context
from .setup import setup_logging

__all__ = ["ContextFilter", "LogContext", "log_context", "log_vu_context", "setup_logging"]
