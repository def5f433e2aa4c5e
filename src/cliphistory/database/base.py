"""History store interface and the rules every backing shares.

Ordering: favorites first, then newest first. Capacity: at most
``max_items`` non-favorites; favorites are never evicted. Removing an image
item removes its file in the same call.
"""

import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Iterable, List, Tuple

from cliphistory.config import StorageConfig
from cliphistory.models import ClipboardItem, ItemType

logger = logging.getLogger(__name__)


def sort_items(items: Iterable[ClipboardItem]) -> List[ClipboardItem]:
    return sorted(items, key=lambda item: (item.is_favorite, item.timestamp), reverse=True)


def split_overflow(items: Iterable[ClipboardItem], max_items: int) -> Tuple[List[ClipboardItem], List[ClipboardItem]]:
    """Split ``items`` into ``(kept, evicted)`` under the capacity rule."""
    kept: List[ClipboardItem] = []
    evicted: List[ClipboardItem] = []
    regular = 0
    for item in sort_items(items):
        if item.is_favorite:
            kept.append(item)
        elif regular < max_items:
            kept.append(item)
            regular += 1
        else:
            evicted.append(item)
    return kept, evicted


def remove_image_file(item: ClipboardItem) -> None:
    if item.type != ItemType.IMAGE or not item.image_path:
        return
    try:
        os.remove(item.image_path)
        logger.debug("Removed image file %s", item.image_path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove image file %s: %s", item.image_path, e)


def filter_items(items: Iterable[ClipboardItem], keyword: str) -> List[ClipboardItem]:
    needle = keyword.lower()
    return [item for item in items if needle in item.content.lower()]


class HistoryStore(ABC):
    """Bounded, ordered, favorite-aware clipboard history.

    Every listing method returns a fresh ordered list; callers may keep or
    modify it without affecting the store. Mutations on one instance are
    serialised by ``self._lock``.
    """

    def __init__(self, config: StorageConfig) -> None:
        self.config = config
        self.max_items = config.max_items
        self._lock = threading.RLock()

    @abstractmethod
    def save_items(self, items: List[ClipboardItem]) -> None:
        pass

    @abstractmethod
    def load_items(self) -> List[ClipboardItem]:
        pass

    @abstractmethod
    def add_item(self, item: ClipboardItem) -> List[ClipboardItem]:
        """Record ``item``; a duplicate only refreshes the existing timestamp."""

    @abstractmethod
    def delete_item(self, item_id: str) -> List[ClipboardItem]:
        """Raises NotFoundError when no item has ``item_id``."""

    @abstractmethod
    def toggle_favorite(self, item_id: str) -> List[ClipboardItem]:
        """Raises NotFoundError when no item has ``item_id``."""

    @abstractmethod
    def search(self, keyword: str) -> List[ClipboardItem]:
        pass

    @abstractmethod
    def get_image_dir(self) -> str:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def __enter__(self) -> "HistoryStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
