from typing import Optional

try:
    from AppKit import NSPasteboard, NSPasteboardTypeFileURL, NSPasteboardTypePNG, NSPasteboardTypeString, NSPasteboardTypeTIFF
    from Foundation import NSURL, NSData
    HAS_APPKIT = True
except ImportError:
    HAS_APPKIT = False

from cliphistory.clipboard.base import ClipboardBackend, to_portable_image


class MacOSClipboard(ClipboardBackend):

    def __init__(self) -> None:
        if not HAS_APPKIT:
            raise OSError("pyobjc is required for clipboard access on macOS")
        self._pasteboard = NSPasteboard.generalPasteboard()

    def read_text(self) -> Optional[str]:
        types = self._pasteboard.types() or []

        if NSPasteboardTypeFileURL in types:
            paths = []
            for entry in self._pasteboard.pasteboardItems() or []:
                url_string = entry.stringForType_(NSPasteboardTypeFileURL)
                if not url_string:
                    continue
                url = NSURL.URLWithString_(url_string)
                if url is not None and url.path():
                    paths.append(str(url.path()))
            if paths:
                return "\n".join(paths)

        if NSPasteboardTypeString in types:
            text = self._pasteboard.stringForType_(NSPasteboardTypeString)
            return str(text) if text is not None else None
        return None

    def read_image(self) -> Optional[bytes]:
        types = self._pasteboard.types() or []
        for pb_type in (NSPasteboardTypePNG, NSPasteboardTypeTIFF):
            if pb_type in types:
                data = self._pasteboard.dataForType_(pb_type)
                if data:
                    return to_portable_image(bytes(data))
        return None

    def write_text(self, text: str) -> None:
        self._pasteboard.clearContents()
        if not self._pasteboard.setString_forType_(text, NSPasteboardTypeString):
            raise OSError("Pasteboard rejected text")

    def write_image(self, data: bytes) -> None:
        pb_type = NSPasteboardTypePNG if data.startswith(b"\x89PNG") else NSPasteboardTypeTIFF
        if pb_type == NSPasteboardTypeTIFF:
            data = _to_tiff(data)
        self._pasteboard.clearContents()
        ns_data = NSData.dataWithBytes_length_(data, len(data))
        if not self._pasteboard.setData_forType_(ns_data, pb_type):
            raise OSError("Pasteboard rejected image")

    def clear_image(self) -> None:
        self._pasteboard.clearContents()


def _to_tiff(data: bytes) -> bytes:
    import io
    from PIL import Image

    output = io.BytesIO()
    Image.open(io.BytesIO(data)).save(output, format="TIFF")
    return output.getvalue()
