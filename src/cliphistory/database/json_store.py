import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from cliphistory.config import StorageConfig
from cliphistory.database.base import (
    HistoryStore,
    filter_items,
    remove_image_file,
    sort_items,
    split_overflow,
)
from cliphistory.errors import NotFoundError, StorageError
from cliphistory.models import ClipboardItem

logger = logging.getLogger(__name__)


class JsonHistoryStore(HistoryStore):
    """History kept in one JSON document.

    Every operation re-reads the document first and every change rewrites
    it in full, so edits made by another process (the CLI while a watcher
    runs) are not overwritten with a stale copy.
    """

    FILE_NAME = "history.json"

    def __init__(self, config: StorageConfig) -> None:
        super().__init__(config)
        data_dir = config.data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        self.file_path: Path = data_dir / self.FILE_NAME

        self.image_dir: Path = config.resolved_image_dir()
        self.image_dir.mkdir(parents=True, exist_ok=True)

        self._items: List[ClipboardItem] = self._read()
        logger.info("Loaded %d history items from %s", len(self._items), self.file_path)

    def save_items(self, items: List[ClipboardItem]) -> None:
        with self._lock:
            ordered = sort_items(item.model_copy() for item in items)
            self._write(ordered)
            self._items = ordered

    def load_items(self) -> List[ClipboardItem]:
        with self._lock:
            self._refresh()
            return self._snapshot()

    def add_item(self, item: ClipboardItem) -> List[ClipboardItem]:
        with self._lock:
            self._refresh()
            items = self._snapshot()
            existing = self._find(items, key=item.key)

            if existing is not None:
                existing.timestamp = item.timestamp
                kept, evicted = sort_items(items), []
            else:
                items.insert(0, item.model_copy())
                kept, evicted = split_overflow(items, self.max_items)

            self._write(kept)
            self._items = kept
            for old in evicted:
                logger.debug("Evicting history item %s", old.id)
                remove_image_file(old)
            return self._snapshot()

    def delete_item(self, item_id: str) -> List[ClipboardItem]:
        with self._lock:
            self._refresh()
            target = self._find(self._items, item_id=item_id)
            if target is None:
                raise NotFoundError(f"No history item with id {item_id}")

            remaining = [item for item in self._snapshot() if item.id != item_id]
            self._write(remaining)
            self._items = remaining
            remove_image_file(target)
            return self._snapshot()

    def toggle_favorite(self, item_id: str) -> List[ClipboardItem]:
        with self._lock:
            self._refresh()
            items = self._snapshot()
            target = self._find(items, item_id=item_id)
            if target is None:
                raise NotFoundError(f"No history item with id {item_id}")

            target.is_favorite = not target.is_favorite
            ordered = sort_items(items)
            self._write(ordered)
            self._items = ordered
            logger.info("Item %s favorite=%s", item_id, target.is_favorite)
            return self._snapshot()

    def search(self, keyword: str) -> List[ClipboardItem]:
        with self._lock:
            self._refresh()
            items = self._snapshot()
        if not keyword:
            return items
        return filter_items(items, keyword)

    def get_image_dir(self) -> str:
        return str(self.image_dir)

    def close(self) -> None:
        logger.debug("Closing JSON history store %s", self.file_path)

    def _refresh(self) -> None:
        self._items = self._read()

    def _snapshot(self) -> List[ClipboardItem]:
        return [item.model_copy() for item in self._items]

    @staticmethod
    def _find(items: List[ClipboardItem], *, item_id: Optional[str] = None, key=None) -> Optional[ClipboardItem]:
        for item in items:
            if item_id is not None and item.id == item_id:
                return item
            if key is not None and item.key == key:
                return item
        return None

    def _read(self) -> List[ClipboardItem]:
        if not self.file_path.exists():
            return []
        try:
            raw = self.file_path.read_text(encoding="utf-8")
            if not raw.strip():
                return []
            records = json.loads(raw)
            if not isinstance(records, list):
                raise StorageError(f"History file {self.file_path} does not hold a list")
            return sort_items(ClipboardItem.model_validate(record) for record in records)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise StorageError(f"Failed to read history file {self.file_path}", e)

    def _write(self, items: List[ClipboardItem]) -> None:
        records = [item.to_record() for item in items]
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.file_path.parent,
                prefix=".history-",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_path = handle.name
                json.dump(records, handle, ensure_ascii=False, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.file_path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageError(f"Failed to write history file {self.file_path}", e)
