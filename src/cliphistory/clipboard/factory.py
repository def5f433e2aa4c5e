import importlib
import logging
import platform
from typing import Dict, Optional, Tuple, Type

from cliphistory.clipboard.base import ClipboardBackend
from cliphistory.errors import ConfigurationError

logger = logging.getLogger(__name__)

# platform.system() -> (module, class); imported lazily so that pywin32 and
# AppKit are only needed on their own OS
BACKENDS: Dict[str, Tuple[str, str]] = {
    "Windows": ("cliphistory.clipboard.windows", "WindowsClipboard"),
    "Linux": ("cliphistory.clipboard.linux", "LinuxClipboard"),
    "Darwin": ("cliphistory.clipboard.macos", "MacOSClipboard"),
}


def get_clipboard_class(system: Optional[str] = None) -> Type[ClipboardBackend]:
    system = system or platform.system()
    try:
        module_name, class_name = BACKENDS[system]
    except KeyError:
        raise ConfigurationError(f"No clipboard backend for platform '{system}'")

    module = importlib.import_module(module_name)
    return getattr(module, class_name)


def get_clipboard_backend() -> ClipboardBackend:
    backend_class = get_clipboard_class()
    logger.debug("Using clipboard backend %s", backend_class.__name__)
    return backend_class()
