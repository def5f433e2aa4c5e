import errno
import hashlib
import io
import logging
import os
import platform
import subprocess
import time
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

from cliphistory.clipboard.base import ClipboardBackend, flatten_image
from cliphistory.errors import DecodeError, EmptyFileError, IntegrityError, UnsupportedFormatError

logger = logging.getLogger(__name__)

# Pillow format name -> file extension
SUPPORTED_FORMATS = {
    "PNG": "png",
    "JPEG": "jpeg",
    "GIF": "gif",
}


def payload_digest(data: bytes) -> str:
    """Digest that survives the OS clipboard re-encoding an image.

    Decodable images are hashed by pixels and size; anything else by its raw
    bytes.
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            flat = flatten_image(image)
            pixels = flat.tobytes()
            size = flat.size
    except (UnidentifiedImageError, OSError, ValueError):
        return hashlib.md5(data).hexdigest()
    return hashlib.md5(f"{size[0]}x{size[1]}:".encode("ascii") + pixels).hexdigest()


class ImageCodec:
    """Moves image payloads between the clipboard and the image directory."""

    def __init__(
        self,
        image_dir: Union[str, Path],
        backend: Optional[ClipboardBackend] = None,
        settle_delay: float = 0.2,
    ) -> None:
        self.image_dir = Path(image_dir)
        self.image_dir.mkdir(parents=True, exist_ok=True)
        self.settle_delay = settle_delay
        self._backend = backend

    @property
    def backend(self) -> ClipboardBackend:
        if self._backend is None:
            from cliphistory.clipboard.factory import get_clipboard_backend

            self._backend = get_clipboard_backend()
        return self._backend

    def save(self, raw: bytes) -> str:
        """Decode clipboard image bytes and write them to the image directory.

        Returns the absolute path of the new file.

        Raises:
            DecodeError: ``raw`` is not a readable image.
            UnsupportedFormatError: the image is not PNG, JPEG or GIF.
            OSError: the file could not be written.
        """
        try:
            image = Image.open(io.BytesIO(raw))
            image.load()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise DecodeError("Failed to decode clipboard image", e)

        image_format = (image.format or "").upper()
        extension = SUPPORTED_FORMATS.get(image_format)
        if extension is None:
            raise UnsupportedFormatError(f"Unsupported image format: {image_format or 'unknown'}")

        file_path = self._unique_path(extension)
        try:
            self._encode(image, image_format, file_path)
        except OSError:
            file_path.unlink(missing_ok=True)
            raise

        logger.info("Saved clipboard image to %s", file_path)
        return str(file_path)

    def load_and_publish(self, image_path: Union[str, Path]) -> None:
        """Put an image file on the OS clipboard and verify it arrived.

        Raises:
            FileNotFoundError: no such file.
            EmptyFileError: the file has no content.
            IntegrityError: the clipboard does not hold the written image.
        """
        file_path = Path(image_path)
        if not file_path.exists():
            raise FileNotFoundError(errno.ENOENT, "Image file not found", str(file_path))
        if file_path.is_dir():
            raise IsADirectoryError(errno.EISDIR, "Image path is a directory", str(file_path))
        if file_path.stat().st_size == 0:
            raise EmptyFileError(f"Image file is empty: {file_path}")

        data = file_path.read_bytes()
        expected = payload_digest(data)

        self.backend.write_image(data)
        time.sleep(self.settle_delay)

        written = self.backend.read_image()
        if not written:
            raise IntegrityError(f"Clipboard holds no image after writing {file_path}")
        actual = payload_digest(written)
        if actual != expected:
            raise IntegrityError(
                f"Clipboard image does not match {file_path} (expected {expected}, got {actual})"
            )

        logger.info("Image written to clipboard (path: %s, %d KB, digest: %s)",
                    file_path, len(data) // 1024, expected)

    def preview(self, image_path: Union[str, Path]) -> None:
        file_path = Path(image_path)
        if not file_path.exists():
            raise FileNotFoundError(errno.ENOENT, "Image file not found", str(file_path))

        system = platform.system()
        if system == "Windows":
            os.startfile(str(file_path))
        elif system == "Darwin":
            subprocess.Popen(["open", str(file_path)])
        else:
            subprocess.Popen(["xdg-open", str(file_path)])

    def _unique_path(self, extension: str) -> Path:
        stamp = datetime.now().strftime("%Y%m%d%H%M%S_%f")
        file_path = self.image_dir / f"clip_{stamp}.{extension}"

        counter = 1
        while file_path.exists():
            file_path = self.image_dir / f"clip_{stamp}_{counter}.{extension}"
            counter += 1
        return file_path.resolve()

    def _encode(self, image: Image.Image, image_format: str, file_path: Path) -> None:
        if image_format == "PNG":
            image.save(file_path, "PNG")
        elif image_format == "JPEG":
            image.convert("RGB").save(file_path, "JPEG", quality=90)
        elif image_format == "GIF":
            # GIF holds at most 256 colours
            paletted = image.convert("RGB").convert("P", palette=Image.Palette.ADAPTIVE, colors=256)
            paletted.save(file_path, "GIF")
