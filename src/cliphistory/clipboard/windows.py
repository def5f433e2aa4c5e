import io
import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional

import win32clipboard as wc
import win32con
from PIL import Image, ImageGrab

from cliphistory.clipboard.base import ClipboardBackend, flatten_image

logger = logging.getLogger(__name__)


class WindowsClipboard(ClipboardBackend):

    @contextmanager
    def _opened(self) -> Iterator[None]:
        # another process may hold the clipboard for a few ms
        for attempt in range(3):
            try:
                wc.OpenClipboard()
                break
            except Exception:
                if attempt == 2:
                    raise OSError("Could not open the Windows clipboard")
                time.sleep(0.05)
        try:
            yield
        finally:
            try:
                wc.CloseClipboard()
            except Exception:
                logger.debug("CloseClipboard failed", exc_info=True)

    def read_text(self) -> Optional[str]:
        with self._opened():
            if wc.IsClipboardFormatAvailable(wc.CF_UNICODETEXT):
                return wc.GetClipboardData(wc.CF_UNICODETEXT)

            # Explorer copies files as CF_HDROP only; expose them as a path list
            if wc.IsClipboardFormatAvailable(win32con.CF_HDROP):
                files = wc.GetClipboardData(win32con.CF_HDROP)
                if isinstance(files, str):
                    files = [files]
                return "\r\n".join(files or [])
        return None

    def read_image(self) -> Optional[bytes]:
        clipboard_data = ImageGrab.grabclipboard()
        if clipboard_data is None or isinstance(clipboard_data, (list, tuple)):
            return None

        output = io.BytesIO()
        clipboard_data.save(output, format="PNG")
        return output.getvalue()

    def write_text(self, text: str) -> None:
        with self._opened():
            wc.EmptyClipboard()
            wc.SetClipboardData(wc.CF_UNICODETEXT, text)

    def write_image(self, data: bytes) -> None:
        with Image.open(io.BytesIO(data)) as image:
            flat = flatten_image(image)

        output = io.BytesIO()
        flat.save(output, "BMP")
        # CF_DIB is a BMP without its 14 byte file header
        dib_data = output.getvalue()[14:]

        with self._opened():
            wc.EmptyClipboard()
            wc.SetClipboardData(win32con.CF_DIB, dib_data)

    def clear_image(self) -> None:
        with self._opened():
            wc.EmptyClipboard()
