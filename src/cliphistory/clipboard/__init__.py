"""
Cross-platform clipboard access and content classification.
"""

from cliphistory.clipboard.base import ClipboardBackend
from cliphistory.clipboard.classifier import Classification, classify
from cliphistory.clipboard.factory import get_clipboard_backend, get_clipboard_class

__all__ = [
    'ClipboardBackend',
    'Classification',
    'classify',
    'get_clipboard_backend',
    'get_clipboard_class',
]
