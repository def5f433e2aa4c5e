import io
from datetime import datetime, timedelta
from typing import List, Optional

import pytest
from PIL import Image

from cliphistory.clipboard.base import ClipboardBackend
from cliphistory.config import StorageConfig
from cliphistory.database.json_store import JsonHistoryStore
from cliphistory.models import ClipboardItem, ItemType
from cliphistory.utils.image_codec import ImageCodec

BASE_TIME = datetime(2024, 5, 1, 12, 0, 0)


class FakeClipboard(ClipboardBackend):
    """In-memory clipboard; ``drop_image_writes`` imitates an OS ignoring us."""

    def __init__(self) -> None:
        self.text: Optional[str] = None
        self.image: Optional[bytes] = None
        self.cleared = 0
        self.written_images: List[bytes] = []
        self.drop_image_writes = False
        self.fail_reads = False

    def read_text(self) -> Optional[str]:
        if self.fail_reads:
            raise OSError("clipboard busy")
        return self.text

    def read_image(self) -> Optional[bytes]:
        if self.fail_reads:
            raise OSError("clipboard busy")
        return self.image

    def write_text(self, text: str) -> None:
        self.text = text

    def write_image(self, data: bytes) -> None:
        self.written_images.append(data)
        if not self.drop_image_writes:
            self.image = data

    def clear_image(self) -> None:
        self.image = None
        self.cleared += 1


def make_image_bytes(color=(255, 0, 0), size=(8, 6), fmt="PNG") -> bytes:
    output = io.BytesIO()
    Image.new("RGB", size, color).save(output, format=fmt)
    return output.getvalue()


def make_item(content: str, offset: int = 0, item_type: ItemType = ItemType.TEXT,
              image_path: str = "", favorite: bool = False) -> ClipboardItem:
    return ClipboardItem(
        type=item_type,
        content=content,
        image_path=image_path,
        timestamp=BASE_TIME + timedelta(seconds=offset),
        is_favorite=favorite,
    )


@pytest.fixture
def fake_clipboard() -> FakeClipboard:
    return FakeClipboard()


@pytest.fixture
def storage_config(tmp_path) -> StorageConfig:
    return StorageConfig(json_path=tmp_path / "history", custom_path=True, max_items=100)


@pytest.fixture
def store(storage_config):
    with JsonHistoryStore(storage_config) as history:
        yield history


@pytest.fixture
def small_store(tmp_path):
    config = StorageConfig(json_path=tmp_path / "small", custom_path=True, max_items=2)
    with JsonHistoryStore(config) as history:
        yield history


@pytest.fixture
def codec(store, fake_clipboard) -> ImageCodec:
    return ImageCodec(store.get_image_dir(), backend=fake_clipboard, settle_delay=0)
