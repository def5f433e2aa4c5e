"""Decide what kind of content the clipboard holds and fingerprint it.

Exactly one type wins per poll: an image beats a file list, a file list
beats plain text. Fingerprints are compared by the monitor against the last
value seen for the same type only.
"""

import hashlib
import io
import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from PIL import Image, UnidentifiedImageError

from cliphistory.errors import DecodeError
from cliphistory.models import ItemType

logger = logging.getLogger(__name__)

# tried in order, first one that actually splits the text wins
PATH_SEPARATORS = ("\r\n", "\n", ";", "\t")


@dataclass(frozen=True)
class Classification:
    type: ItemType
    fingerprint: str
    payload: Union[str, bytes]
    size: Optional[Tuple[int, int]] = None


def image_fingerprint(data: bytes) -> Tuple[str, Tuple[int, int]]:
    """Return ``("<md5>_<w>_<h>", (w, h))`` for encoded image bytes.

    Raises:
        DecodeError: ``data`` is not an image Pillow can read.
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeError("Clipboard image could not be decoded", e)

    digest = hashlib.md5(data).hexdigest()
    return f"{digest}_{width}_{height}", (width, height)


def split_candidates(text: str) -> List[str]:
    for separator in PATH_SEPARATORS:
        parts = [part for part in text.split(separator) if part.strip()]
        if len(parts) > 1:
            return parts
    return [text]


def path_exists(path: str) -> bool:
    if not path:
        return False
    return os.path.exists(os.path.abspath(path))


def detect_file_list(text: Optional[str]) -> Optional[str]:
    """Return the ``;``-joined existing paths named in ``text``, if any."""
    if not text:
        return None

    valid_paths = []
    for candidate in split_candidates(text):
        candidate = candidate.strip()
        if path_exists(candidate):
            valid_paths.append(candidate)

    if not valid_paths:
        return None
    return ";".join(valid_paths)


def classify(text: Optional[str], image_bytes: Optional[bytes]) -> Optional[Classification]:
    """Pick the winning content type for one clipboard snapshot.

    Returns ``None`` when the clipboard holds nothing worth recording.
    """
    if image_bytes:
        try:
            fingerprint, size = image_fingerprint(image_bytes)
            return Classification(ItemType.IMAGE, fingerprint, image_bytes, size)
        except DecodeError as e:
            logger.debug("Ignoring clipboard image: %s", e)

    file_list = detect_file_list(text)
    if file_list:
        return Classification(ItemType.FILE, file_list, file_list)

    if text:
        return Classification(ItemType.TEXT, text, text)

    return None
