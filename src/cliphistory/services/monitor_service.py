"""Clipboard monitor for ClipHistory.

A background thread samples the OS clipboard every ``poll_interval``
seconds, records new content in the history store and publishes the
resulting ordered history on a bounded queue. The UI drains that queue on
its own thread; nothing here ever touches UI state.
"""

import logging
import queue
import threading
from typing import List, Optional

from cliphistory.clipboard import ClipboardBackend, Classification, classify, get_clipboard_backend
from cliphistory.database.base import HistoryStore, remove_image_file
from cliphistory.errors import (
    AlreadyRunningError,
    ClipHistoryError,
    DecodeError,
    EmptyPathError,
    InvalidItemError,
    UnsupportedFormatError,
    UnsupportedTypeError,
)
from cliphistory.models import ClipboardItem, ItemType
from cliphistory.utils.image_codec import ImageCodec

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_QUEUE_SIZE = 10


class ClipboardMonitor:
    """Polls the clipboard and feeds changes into a ``HistoryStore``.

    The three ``last_*`` slots hold the fingerprint last recorded for each
    content type. They are only read and written by the polling thread.
    """

    def __init__(
        self,
        store: HistoryStore,
        backend: Optional[ClipboardBackend] = None,
        codec: Optional[ImageCodec] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        stop_grace: float = 1.0,
    ) -> None:
        self.store = store
        self.backend = backend or get_clipboard_backend()
        self.codec = codec or ImageCodec(store.get_image_dir(), backend=self.backend)
        self.poll_interval = poll_interval
        self.stop_grace = stop_grace

        self._changes: "queue.Queue[List[ClipboardItem]]" = queue.Queue(maxsize=queue_size)
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._poll_thread: Optional[threading.Thread] = None
        self._is_running = False

        self.last_text = ""
        self.last_image_fingerprint = ""
        self.last_file_list = ""

    # ---------------------------------------------------------------------
    # Lifecycle management
    # ---------------------------------------------------------------------
    def start(self) -> None:
        with self._lock:
            if self._is_running:
                raise AlreadyRunningError("Clipboard monitor is already running")

            previous = self._poll_thread
            if previous is not None and previous.is_alive():
                # stop() timed out; that thread still owns the last_* slots
                previous.join(timeout=self.stop_grace)
                if previous.is_alive():
                    raise AlreadyRunningError("Previous clipboard monitor thread is still stopping")

            logger.info("Starting clipboard monitor (interval=%ss)", self.poll_interval)
            # each run owns its stop event
            self._stop_event = threading.Event()
            self._is_running = True
            self._poll_thread = threading.Thread(
                target=self._poll_loop, args=(self._stop_event,),
                name="clipboard-monitor", daemon=True)
            self._poll_thread.start()

    def stop(self) -> None:
        with self._lock:
            if not self._is_running:
                return

            logger.info("Stopping clipboard monitor")
            self._is_running = False
            self._stop_event.set()
            thread = self._poll_thread

        # join thread outside the lock
        if thread is not None:
            thread.join(timeout=self.stop_grace)
            if thread.is_alive():
                logger.warning("Clipboard monitor did not stop within %ss", self.stop_grace)
            else:
                with self._lock:
                    if self._poll_thread is thread:
                        self._poll_thread = None

    @property
    def is_running(self) -> bool:
        return self._is_running

    # ---------------------------------------------------------------------
    # Notification channel
    # ---------------------------------------------------------------------
    @property
    def changes(self) -> "queue.Queue[List[ClipboardItem]]":
        """Queue of ordered history snapshots, newest last."""
        return self._changes

    def get_update(self, timeout: Optional[float] = None) -> Optional[List[ClipboardItem]]:
        try:
            return self._changes.get(timeout=timeout)
        except queue.Empty:
            return None

    def latest_update(self) -> Optional[List[ClipboardItem]]:
        """Drain the queue and return only the newest snapshot, if any."""
        latest = None
        while True:
            try:
                latest = self._changes.get_nowait()
            except queue.Empty:
                return latest

    def _publish(self, items: List[ClipboardItem]) -> None:
        try:
            self._changes.put_nowait(items)
            return
        except queue.Full:
            pass

        # every snapshot is the full history, so only the newest one matters
        try:
            self._changes.get_nowait()
            logger.warning("Change queue full, dropped the oldest pending update")
        except queue.Empty:
            pass
        try:
            self._changes.put_nowait(items)
        except queue.Full:
            logger.warning("Change queue full, dropped update")

    # ---------------------------------------------------------------------
    # Polling
    # ---------------------------------------------------------------------
    def _poll_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                self.check_clipboard()
            except Exception:
                logger.exception("Unexpected error while checking the clipboard")

            stop_event.wait(self.poll_interval)

    def check_clipboard(self) -> bool:
        """Run one poll cycle. Returns True when a change was published."""
        try:
            image_bytes = self.backend.read_image()
            text = self.backend.read_text()
        except Exception as e:
            logger.warning("Failed to read clipboard: %s", e)
            return False

        classification = classify(text, image_bytes)
        if classification is None:
            return False

        if classification.type == ItemType.IMAGE:
            return self._handle_image(classification)
        elif classification.type == ItemType.FILE:
            return self._handle_file(classification)
        elif classification.type == ItemType.TEXT:
            return self._handle_text(classification)
        else:
            raise UnsupportedTypeError(f"Unknown content type {classification.type!r}")

    def _record(self, item: ClipboardItem) -> Optional[List[ClipboardItem]]:
        try:
            return self.store.add_item(item)
        except (ClipHistoryError, OSError) as e:
            logger.error("Failed to record %s item: %s", item.type.name.lower(), e)
            return None

    def _handle_text(self, classification: Classification) -> bool:
        if classification.fingerprint == self.last_text:
            return False

        logger.info("Detected text change (%d chars)", len(classification.payload))
        items = self._record(ClipboardItem.new(ItemType.TEXT, classification.payload))
        if items is None:
            return False

        self.last_text = classification.fingerprint
        self._publish(items)
        return True

    def _handle_file(self, classification: Classification) -> bool:
        if classification.fingerprint == self.last_file_list:
            return False

        logger.info("Detected file list change: %s", classification.fingerprint)
        items = self._record(ClipboardItem.new(ItemType.FILE, classification.payload))
        if items is None:
            return False

        self.last_file_list = classification.fingerprint
        self._publish(items)
        return True

    def _handle_image(self, classification: Classification) -> bool:
        if classification.fingerprint == self.last_image_fingerprint:
            return False

        logger.info("Detected image change: %s", classification.fingerprint)
        try:
            image_path = self.codec.save(classification.payload)
        except (DecodeError, UnsupportedFormatError) as e:
            # the same bytes would fail the same way next cycle
            logger.warning("Skipping clipboard image: %s", e)
            self.last_image_fingerprint = classification.fingerprint
            return False
        except OSError as e:
            logger.error("Failed to save clipboard image: %s", e)
            return False

        width, height = classification.size or (0, 0)
        item = ClipboardItem.new(ItemType.IMAGE, f"Image {width}x{height}", image_path)
        items = self._record(item)
        if items is None:
            remove_image_file(item)
            return False

        self.last_image_fingerprint = classification.fingerprint
        self._publish(items)

        try:
            self.backend.clear_image()
        except Exception as e:
            logger.warning("Failed to clear clipboard image: %s", e)
        return True

    # ---------------------------------------------------------------------
    # Restoring history
    # ---------------------------------------------------------------------
    def set_content(self, item: Optional[ClipboardItem]) -> None:
        """Put a history item back on the OS clipboard."""
        if item is None:
            raise InvalidItemError("No clipboard item given")

        if item.type in (ItemType.TEXT, ItemType.FILE):
            self.backend.write_text(item.content)
        elif item.type == ItemType.IMAGE:
            if not item.image_path:
                raise EmptyPathError(f"Image item {item.id} has no image path")
            self.codec.load_and_publish(item.image_path)
        else:
            raise UnsupportedTypeError(f"Cannot restore item of type {item.type!r}")
        logger.info("Restored item %s to the clipboard", item.id)

    # ---------------------------------------------------------------------
    # Context manager helpers
    # ---------------------------------------------------------------------
    def __enter__(self) -> "ClipboardMonitor":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
