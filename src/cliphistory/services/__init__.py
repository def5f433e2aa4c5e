"""Service layer for ClipHistory."""

from .monitor_service import ClipboardMonitor

__all__ = ["ClipboardMonitor"]
