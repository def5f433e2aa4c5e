import os
import threading
from unittest.mock import patch

import pytest

from cliphistory.errors import (
    AlreadyRunningError,
    EmptyPathError,
    InvalidItemError,
    StorageError,
    UnsupportedTypeError,
)
from cliphistory.models import ClipboardItem, ItemType
from cliphistory.services import ClipboardMonitor

from conftest import FakeClipboard, make_image_bytes, make_item


@pytest.fixture
def monitor(store, fake_clipboard, codec):
    service = ClipboardMonitor(store, backend=fake_clipboard, codec=codec, poll_interval=0.01)
    yield service
    service.stop()


def drain(monitor):
    updates = []
    while True:
        update = monitor.get_update(timeout=0)
        if update is None:
            return updates
        updates.append(update)


def test_text_round_trip_emits_every_change(monitor, fake_clipboard):
    for text in ("x", "y", "x"):
        fake_clipboard.text = text
        assert monitor.check_clipboard() is True

    updates = drain(monitor)
    assert len(updates) == 3
    assert sorted(item.content for item in updates[-1]) == ["x", "y"]


def test_steady_text_is_recorded_once(monitor, fake_clipboard, store):
    fake_clipboard.text = "hello"

    assert monitor.check_clipboard() is True
    assert monitor.check_clipboard() is False
    assert len(drain(monitor)) == 1
    assert len(store.load_items()) == 1


def test_empty_clipboard_is_ignored(monitor):
    assert monitor.check_clipboard() is False
    assert drain(monitor) == []


def test_file_paths_are_recorded_as_file_items(monitor, fake_clipboard, tmp_path):
    first = tmp_path / "a.txt"
    second = tmp_path / "b.txt"
    first.write_text("a")
    second.write_text("b")
    fake_clipboard.text = f"{first}\r\n{second}"

    assert monitor.check_clipboard() is True

    item = drain(monitor)[0][0]
    assert item.type == ItemType.FILE
    assert item.content == f"{first};{second}"
    assert monitor.last_file_list == item.content
    assert monitor.last_text == ""


def test_image_is_saved_recorded_and_cleared(monitor, fake_clipboard, store):
    data = make_image_bytes(size=(12, 7))
    fake_clipboard.image = data
    fake_clipboard.text = "stale text"

    assert monitor.check_clipboard() is True

    item = drain(monitor)[0][0]
    assert item.type == ItemType.IMAGE
    assert item.content == "Image 12x7"
    assert os.path.isfile(item.image_path)
    assert os.path.dirname(item.image_path) == store.get_image_dir()
    assert fake_clipboard.cleared == 1
    assert fake_clipboard.image is None

    # the OS surfaces the same picture again
    fake_clipboard.image = data
    assert monitor.check_clipboard() is False


def test_failed_add_is_retried_next_cycle(monitor, fake_clipboard, store):
    fake_clipboard.text = "retry me"

    with patch.object(store, "add_item", side_effect=StorageError("disk full")):
        assert monitor.check_clipboard() is False
    assert monitor.last_text == ""
    assert drain(monitor) == []

    assert monitor.check_clipboard() is True
    assert [item.content for item in store.load_items()] == ["retry me"]


def test_failed_image_add_leaves_no_file(monitor, fake_clipboard, store, codec):
    fake_clipboard.image = make_image_bytes()

    with patch.object(store, "add_item", side_effect=StorageError("disk full")):
        assert monitor.check_clipboard() is False

    assert list(codec.image_dir.iterdir()) == []
    assert monitor.last_image_fingerprint == ""
    assert fake_clipboard.cleared == 0


def test_unsupported_image_format_is_skipped(monitor, fake_clipboard, store):
    fake_clipboard.image = make_image_bytes(fmt="BMP")

    assert monitor.check_clipboard() is False
    assert monitor.check_clipboard() is False
    assert store.load_items() == []


def test_read_failure_abandons_cycle(monitor, fake_clipboard):
    fake_clipboard.text = "never seen"
    fake_clipboard.fail_reads = True

    assert monitor.check_clipboard() is False
    assert monitor.last_text == ""


def test_full_queue_keeps_newest_snapshot(store, fake_clipboard, codec):
    monitor = ClipboardMonitor(store, backend=fake_clipboard, codec=codec, queue_size=2)

    for text in ("a", "b", "c"):
        fake_clipboard.text = text
        monitor.check_clipboard()

    assert monitor.changes.qsize() == 2
    newest = monitor.latest_update()
    assert sorted(item.content for item in newest) == ["a", "b", "c"]
    assert monitor.latest_update() is None


def test_start_twice_raises(monitor):
    monitor.start()

    with pytest.raises(AlreadyRunningError):
        monitor.start()


def test_stop_is_idempotent(monitor):
    monitor.stop()
    monitor.start()
    monitor.stop()
    monitor.stop()

    assert monitor.is_running is False


def test_background_loop_publishes_changes(monitor, fake_clipboard):
    fake_clipboard.text = "from the loop"

    with monitor:
        update = monitor.get_update(timeout=2.0)

    assert update is not None
    assert update[0].content == "from the loop"
    assert monitor.is_running is False


def test_monitor_can_restart_after_stop(monitor, fake_clipboard):
    monitor.start()
    monitor.stop()
    fake_clipboard.text = "second run"
    monitor.start()

    update = monitor.get_update(timeout=2.0)
    assert update is not None
    assert update[0].content == "second run"


def test_set_content_text(monitor, fake_clipboard):
    monitor.set_content(make_item("restored"))

    assert fake_clipboard.text == "restored"


def test_set_content_file_list(monitor, fake_clipboard):
    monitor.set_content(make_item("/tmp/a;/tmp/b", item_type=ItemType.FILE))

    assert fake_clipboard.text == "/tmp/a;/tmp/b"


def test_set_content_image(monitor, fake_clipboard, codec):
    data = make_image_bytes(color=(9, 9, 9))
    path = codec.save(data)

    monitor.set_content(make_item("Image 8x6", item_type=ItemType.IMAGE, image_path=path))

    assert len(fake_clipboard.written_images) == 1
    assert fake_clipboard.image is not None


def test_set_content_rejects_none(monitor):
    with pytest.raises(InvalidItemError):
        monitor.set_content(None)


def test_set_content_image_without_path(monitor):
    with pytest.raises(EmptyPathError):
        monitor.set_content(make_item("Image 8x6", item_type=ItemType.IMAGE))


def test_set_content_unknown_type(monitor):
    item = ClipboardItem.model_construct(id="x", type=7, content="?", image_path="", is_favorite=False)

    with pytest.raises(UnsupportedTypeError):
        monitor.set_content(item)


class StallingClipboard(FakeClipboard):
    """Blocks the first image read until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def read_image(self):
        self.entered.set()
        self.release.wait(timeout=5)
        return super().read_image()


def poll_threads():
    return [t for t in threading.enumerate() if t.name == "clipboard-monitor" and t.is_alive()]


def test_stop_leaves_no_poll_thread(monitor):
    monitor.start()
    monitor.stop()

    assert poll_threads() == []


def test_restart_after_stalled_stop_keeps_one_poll_thread(store, codec):
    backend = StallingClipboard()
    service = ClipboardMonitor(store, backend=backend, codec=codec, poll_interval=0.01, stop_grace=0.1)

    service.start()
    assert backend.entered.wait(timeout=2)
    service.stop()
    assert service.is_running is False

    # the stalled cycle still owns the monitor state
    with pytest.raises(AlreadyRunningError):
        service.start()

    backend.release.set()
    backend.text = "after restart"
    service.start()
    try:
        assert len(poll_threads()) == 1
        update = service.get_update(timeout=2.0)
        assert update is not None
        assert [item.content for item in update] == ["after restart"]
    finally:
        service.stop()

    assert poll_threads() == []
    assert [item.content for item in store.load_items()] == ["after restart"]
