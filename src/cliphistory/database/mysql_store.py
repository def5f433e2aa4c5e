import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Sequence

import mysql.connector
from mysql.connector import Error

from cliphistory.config import StorageConfig
from cliphistory.database.base import HistoryStore, remove_image_file
from cliphistory.errors import NotFoundError, StorageError
from cliphistory.models import ClipboardItem, ItemType

logger = logging.getLogger(__name__)

COLUMNS = "id, type, content, image_path, timestamp, is_favorite"

# MySQL has no OFFSET without LIMIT
_NO_LIMIT = 18446744073709551615

CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS clipboard_items (
        id VARCHAR(32) NOT NULL PRIMARY KEY,
        type TINYINT NOT NULL,
        content LONGTEXT CHARACTER SET utf8mb4 COLLATE utf8mb4_bin NOT NULL,
        image_path VARCHAR(1024) CHARACTER SET utf8mb4 COLLATE utf8mb4_bin NOT NULL DEFAULT '',
        timestamp DATETIME(6) NOT NULL,
        is_favorite TINYINT(1) NOT NULL DEFAULT 0,
        INDEX idx_clipboard_items_order (is_favorite, timestamp)
    ) CHARACTER SET utf8mb4
"""

# byte-exact, whatever collation an existing table was created with
DEDUP_SQL = (
    "SELECT id FROM clipboard_items "
    "WHERE CAST(content AS BINARY) = CAST(%s AS BINARY) AND type = %s "
    "AND CAST(image_path AS BINARY) = CAST(%s AS BINARY) LIMIT 1"
)


def _row_to_item(row: Sequence) -> ClipboardItem:
    item_id, item_type, content, image_path, timestamp, is_favorite = row
    return ClipboardItem(
        id=item_id,
        type=ItemType(int(item_type)),
        content=content,
        image_path=image_path or "",
        timestamp=timestamp,
        is_favorite=bool(is_favorite),
    )


def _item_params(item: ClipboardItem) -> tuple:
    return (
        item.id,
        int(item.type),
        item.content,
        item.image_path,
        item.timestamp,
        int(item.is_favorite),
    )


def _escape_like(keyword: str) -> str:
    return keyword.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class MySQLHistoryStore(HistoryStore):
    """History kept in the ``clipboard_items`` table of a MySQL database."""

    def __init__(self, config: StorageConfig) -> None:
        super().__init__(config)
        self.image_dir: Path = config.resolved_image_dir()
        self.image_dir.mkdir(parents=True, exist_ok=True)

        settings = config.mysql
        try:
            self.conn = mysql.connector.connect(
                host=settings.host,
                user=settings.user,
                password=settings.password,
                database=settings.database,
                port=settings.port,
                charset="utf8mb4",
            )
        except Error as e:
            raise StorageError(f"Could not connect to MySQL at {settings.host}:{settings.port}", e)
        self.cursor = self.conn.cursor(buffered=True)

        with self._transaction() as cursor:
            cursor.execute(CREATE_TABLE_SQL)
        logger.info("Connected to MySQL history store %s@%s/%s",
                    settings.user, settings.host, settings.database)

    @contextmanager
    def _transaction(self) -> Iterator:
        try:
            yield self.cursor
            self.conn.commit()
        except Error as e:
            self.conn.rollback()
            raise StorageError("MySQL operation failed", e)
        except Exception:
            self.conn.rollback()
            raise

    def _select_ordered(self, where: str = "", params: tuple = ()) -> List[ClipboardItem]:
        sql = f"SELECT {COLUMNS} FROM clipboard_items {where} ORDER BY is_favorite DESC, timestamp DESC"
        try:
            self.cursor.execute(sql, params)
            rows = self.cursor.fetchall()
        except Error as e:
            raise StorageError("MySQL query failed", e)
        return [_row_to_item(row) for row in rows]

    def save_items(self, items: List[ClipboardItem]) -> None:
        with self._lock, self._transaction() as cursor:
            cursor.execute("DELETE FROM clipboard_items")
            if items:
                cursor.executemany(
                    f"INSERT INTO clipboard_items ({COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s)",
                    [_item_params(item) for item in items],
                )

    def load_items(self) -> List[ClipboardItem]:
        with self._lock:
            return self._select_ordered()

    def add_item(self, item: ClipboardItem) -> List[ClipboardItem]:
        with self._lock:
            with self._transaction() as cursor:
                cursor.execute(
                    DEDUP_SQL,
                    (item.content, int(item.type), item.image_path),
                )
                existing = cursor.fetchone()
                if existing:
                    cursor.execute(
                        "UPDATE clipboard_items SET timestamp = %s WHERE id = %s",
                        (item.timestamp, existing[0]),
                    )
                    evicted: List[ClipboardItem] = []
                else:
                    cursor.execute(
                        f"INSERT INTO clipboard_items ({COLUMNS}) VALUES (%s, %s, %s, %s, %s, %s)",
                        _item_params(item),
                    )
                    evicted = self._evict_overflow(cursor)

            for old in evicted:
                remove_image_file(old)
            return self._select_ordered()

    def _evict_overflow(self, cursor) -> List[ClipboardItem]:
        cursor.execute(
            f"SELECT {COLUMNS} FROM clipboard_items WHERE is_favorite = 0 "
            f"ORDER BY timestamp DESC LIMIT {_NO_LIMIT} OFFSET %s",
            (self.max_items,),
        )
        evicted = [_row_to_item(row) for row in cursor.fetchall()]
        if evicted:
            placeholders = ", ".join(["%s"] * len(evicted))
            cursor.execute(
                f"DELETE FROM clipboard_items WHERE id IN ({placeholders})",
                tuple(old.id for old in evicted),
            )
            logger.debug("Evicted %d history items", len(evicted))
        return evicted

    def delete_item(self, item_id: str) -> List[ClipboardItem]:
        with self._lock:
            with self._transaction() as cursor:
                cursor.execute(f"SELECT {COLUMNS} FROM clipboard_items WHERE id = %s", (item_id,))
                row = cursor.fetchone()
                if row is None:
                    raise NotFoundError(f"No history item with id {item_id}")
                target = _row_to_item(row)
                cursor.execute("DELETE FROM clipboard_items WHERE id = %s", (item_id,))

            remove_image_file(target)
            return self._select_ordered()

    def toggle_favorite(self, item_id: str) -> List[ClipboardItem]:
        with self._lock:
            with self._transaction() as cursor:
                cursor.execute(
                    "UPDATE clipboard_items SET is_favorite = NOT is_favorite WHERE id = %s",
                    (item_id,),
                )
                if cursor.rowcount == 0:
                    raise NotFoundError(f"No history item with id {item_id}")
            return self._select_ordered()

    def search(self, keyword: str) -> List[ClipboardItem]:
        with self._lock:
            if not keyword:
                return self._select_ordered()
            pattern = f"%{_escape_like(keyword.lower())}%"
            return self._select_ordered("WHERE LOWER(content) COLLATE utf8mb4_bin LIKE %s", (pattern,))

    def get_image_dir(self) -> str:
        return str(self.image_dir)

    def close(self) -> None:
        try:
            if self.cursor:
                self.cursor.close()
            if self.conn:
                self.conn.close()
        except Error as e:
            logger.warning("Error while closing MySQL connection: %s", e)
