#!/usr/bin/env python3

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from cliphistory.config import AppConfig, StorageType, load_config
from cliphistory.database import HistoryStore, create_store
from cliphistory.errors import ClipHistoryError, NotFoundError
from cliphistory.models import ClipboardItem, ItemType
from cliphistory.services import ClipboardMonitor
from cliphistory.utils import ImageCodec, format_relative_time, preview_text, split_by_favorite

logger = logging.getLogger(__name__)


class ClipHistoryApp:
    """Terminal front end: runs the monitor and renders history updates."""

    def __init__(self, config: AppConfig):
        self.config = config
        self.store: Optional[HistoryStore] = None
        self.monitor: Optional[ClipboardMonitor] = None
        self.running = False

    def open_store(self) -> HistoryStore:
        if self.store is None:
            self.store = create_store(self.config.storage)
        return self.store

    def open_monitor(self) -> ClipboardMonitor:
        if self.monitor is None:
            self.monitor = ClipboardMonitor(
                self.open_store(),
                poll_interval=self.config.poll_interval,
                queue_size=self.config.queue_size,
            )
        return self.monitor

    def find_item(self, item_id: str) -> Optional[ClipboardItem]:
        for item in self.open_store().load_items():
            if item.id == item_id:
                return item
        return None

    def render(self, items: List[ClipboardItem]) -> None:
        if not items:
            print("(history is empty)")
            return
        for item in items:
            marker = "*" if item.is_favorite else " "
            age = format_relative_time(item.timestamp)
            print(f"{marker} {item.id}  {age:>17}  {preview_text(item)}")

    def list_items(self, favorites_only: bool = False) -> None:
        favorites, everything = split_by_favorite(self.open_store().load_items())
        self.render(favorites if favorites_only else everything)

    def watch(self) -> None:
        monitor = self.open_monitor()
        self.render(self.open_store().load_items())
        monitor.start()
        self.running = True
        logger.info("Watching the clipboard. Ctrl+C to exit")

        try:
            while self.running:
                items = monitor.get_update(timeout=self.config.poll_interval)
                if items is None:
                    continue
                # collapse a backlog into the newest snapshot
                items = monitor.latest_update() or items
                print()
                self.render(items)
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
        finally:
            self.running = False
            monitor.stop()

    def restore(self, item_id: str) -> None:
        item = self.find_item(item_id)
        if item is None:
            raise NotFoundError(f"No history item with id {item_id}")
        self.open_monitor().set_content(item)

    def preview(self, item_id: str) -> None:
        item = self.find_item(item_id)
        if item is None or item.type != ItemType.IMAGE:
            raise ClipHistoryError(f"No image item with id {item_id}")
        ImageCodec(self.open_store().get_image_dir()).preview(item.image_path)

    def close(self) -> None:
        if self.monitor is not None:
            self.monitor.stop()
        if self.store is not None:
            self.store.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cliphistory", description="Clipboard history manager")
    parser.add_argument("--config", type=Path, help="Path to config.json")
    parser.add_argument("--storage", choices=[t.value for t in StorageType], help="History backing")
    parser.add_argument("--data-dir", type=Path, help="Directory for history.json and images")
    parser.add_argument("--max-items", type=int, help="Maximum number of non-favorite items")
    parser.add_argument("--poll-interval", type=float, help="Clipboard poll interval in seconds")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("watch", help="Monitor the clipboard (default)")
    history = sub.add_parser("list", help="Print the history")
    history.add_argument("--favorites", action="store_true", help="Only show favorite items")
    search = sub.add_parser("search", help="Search history content")
    search.add_argument("keyword")
    for name, help_text in (
        ("delete", "Delete an item"),
        ("favorite", "Toggle favorite on an item"),
        ("restore", "Copy an item back to the clipboard"),
        ("preview", "Open an image item in the default viewer"),
    ):
        command = sub.add_parser(name, help=help_text)
        command.add_argument("item_id")
    return parser


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    if args.storage:
        config.storage.type = StorageType(args.storage)
    if args.data_dir:
        config.storage.json_path = args.data_dir
        config.storage.custom_path = True
    if args.max_items is not None and args.max_items > 0:
        config.storage.max_items = args.max_items
    if args.poll_interval is not None and args.poll_interval > 0:
        config.poll_interval = args.poll_interval
    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        config = apply_overrides(load_config(args.config), args)
    except ClipHistoryError as e:
        logger.error("%s", e)
        return 1

    app = ClipHistoryApp(config)
    command = args.command or "watch"
    try:
        if command == "watch":
            app.watch()
        elif command == "list":
            app.list_items(favorites_only=args.favorites)
        elif command == "search":
            app.render(app.open_store().search(args.keyword))
        elif command == "delete":
            app.render(app.open_store().delete_item(args.item_id))
        elif command == "favorite":
            app.render(app.open_store().toggle_favorite(args.item_id))
        elif command == "restore":
            app.restore(args.item_id)
        elif command == "preview":
            app.preview(args.item_id)
    except (ClipHistoryError, OSError) as e:
        logger.error("%s", e)
        return 1
    finally:
        app.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
