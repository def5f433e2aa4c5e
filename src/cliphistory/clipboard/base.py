import io
from abc import ABC, abstractmethod
from typing import Optional

from PIL import Image

PORTABLE_FORMATS = {"PNG", "JPEG", "GIF"}


def flatten_image(image: Image.Image) -> Image.Image:
    """RGB copy of ``image`` with any transparency composited onto white."""
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[3])
        return background
    return image.convert("RGB")


def to_portable_image(data: bytes) -> bytes:
    """Re-encode BMP/TIFF style clipboard payloads as PNG."""
    with Image.open(io.BytesIO(data)) as image:
        if image.format in PORTABLE_FORMATS:
            return data
        output = io.BytesIO()
        image.save(output, format="PNG")
        return output.getvalue()


class ClipboardBackend(ABC):
    """Access to one operating system clipboard.

    Readers return ``None`` when the requested format is not on the
    clipboard. Images travel as PNG, JPEG or GIF bytes.
    """

    @abstractmethod
    def read_text(self) -> Optional[str]:
        pass

    @abstractmethod
    def read_image(self) -> Optional[bytes]:
        pass

    @abstractmethod
    def write_text(self, text: str) -> None:
        pass

    @abstractmethod
    def write_image(self, data: bytes) -> None:
        pass

    @abstractmethod
    def clear_image(self) -> None:
        """Drop image data from the clipboard so it is not detected again."""
