import logging
import os
import shutil
import subprocess
from typing import List, Optional

from cliphistory.clipboard.base import ClipboardBackend, to_portable_image

logger = logging.getLogger(__name__)


def sniff_image_mime(data: bytes) -> str:
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return "image/png"


class LinuxClipboard(ClipboardBackend):
    """Clipboard access through wl-clipboard (Wayland) or xclip (X11)."""

    # ordered by preference
    _IMAGE_TARGETS = (
        "image/png",
        "image/jpeg",
        "image/jpg",
        "image/gif",
        "image/bmp",
    )

    def __init__(self) -> None:
        self._wayland = bool(os.environ.get("WAYLAND_DISPLAY")) and bool(shutil.which("wl-paste"))
        self._xclip = bool(shutil.which("xclip"))
        if not self._wayland and not self._xclip:
            logger.warning("Neither wl-clipboard nor xclip found; clipboard will read as empty")

    def read_text(self) -> Optional[str]:
        if self._wayland:
            data = self._run_command(["wl-paste", "--no-newline"], timeout=1.5)
        elif self._xclip:
            data = self._run_command(["xclip", "-selection", "clipboard", "-o"], timeout=1.5)
        else:
            return None

        if data is None:
            return None
        return data.decode("utf-8", errors="ignore")

    def read_image(self) -> Optional[bytes]:
        types = self._list_types()
        for target in self._IMAGE_TARGETS:
            if target not in types:
                continue
            data = self._read_target(target)
            if not data:
                continue
            try:
                return to_portable_image(data)
            except (OSError, ValueError):
                return data
        return None

    def write_text(self, text: str) -> None:
        payload = text.encode("utf-8")
        if shutil.which("wl-copy"):
            self._pipe(["wl-copy"], payload)
        elif self._xclip:
            self._pipe(["xclip", "-selection", "clipboard"], payload)
        else:
            raise OSError("No clipboard tool available (install wl-clipboard or xclip)")

    def write_image(self, data: bytes) -> None:
        mime = sniff_image_mime(data)
        if shutil.which("wl-copy"):
            self._pipe(["wl-copy", "--type", mime], data)
        elif self._xclip:
            self._pipe(["xclip", "-selection", "clipboard", "-t", mime], data)
        else:
            raise OSError("No clipboard tool available (install wl-clipboard or xclip)")

    def clear_image(self) -> None:
        if shutil.which("wl-copy"):
            self._pipe(["wl-copy", "--clear"], b"")
        elif self._xclip:
            self._pipe(["xclip", "-selection", "clipboard"], b"")

    def _list_types(self) -> List[str]:
        if self._wayland:
            raw = self._run_command(["wl-paste", "--list-types"], timeout=1.5)
        elif self._xclip:
            raw = self._run_command(
                ["xclip", "-selection", "clipboard", "-t", "TARGETS", "-o"],
                timeout=1.5,
            )
        else:
            return []
        return self._parse_type_list(raw)

    def _read_target(self, target: str) -> Optional[bytes]:
        if self._wayland:
            return self._run_command(["wl-paste", "--type", target], timeout=1.5)
        return self._run_command(
            ["xclip", "-selection", "clipboard", "-t", target, "-o"],
            timeout=1.5,
        )

    def _parse_type_list(self, data: Optional[bytes]) -> List[str]:
        if not data:
            return []
        text = data.decode("utf-8", errors="ignore")
        return [line.strip().lower() for line in text.splitlines() if line.strip()]

    def _run_command(self, command: List[str], timeout: float) -> Optional[bytes]:
        try:
            result = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=True,
                timeout=timeout,
            )
            return result.stdout
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError):
            return None

    def _pipe(self, command: List[str], data: bytes) -> None:
        try:
            subprocess.run(command, input=data, check=True, timeout=2.0)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as e:
            raise OSError(f"Clipboard command failed: {' '.join(command)}") from e
