from pathlib import Path
from unittest.mock import patch

import pytest
from PIL import Image

from cliphistory.errors import DecodeError, EmptyFileError, IntegrityError, UnsupportedFormatError
from cliphistory.utils.image_codec import payload_digest

from conftest import make_image_bytes


@pytest.mark.parametrize("fmt, extension", [
    ("PNG", ".png"),
    ("JPEG", ".jpeg"),
    ("GIF", ".gif"),
])
def test_save_writes_file_in_its_own_format(codec, fmt, extension):
    path = Path(codec.save(make_image_bytes(size=(10, 4), fmt=fmt)))

    assert path.is_absolute()
    assert path.parent == codec.image_dir.resolve()
    assert path.suffix == extension
    assert path.name.startswith("clip_")
    with Image.open(path) as image:
        assert image.size == (10, 4)
        assert image.format == fmt


def test_gif_is_palette_reduced(codec):
    path = codec.save(make_image_bytes(fmt="GIF"))

    with Image.open(path) as image:
        assert image.mode == "P"


def test_save_generates_distinct_names(codec):
    first = codec.save(make_image_bytes())
    second = codec.save(make_image_bytes())

    assert first != second


def test_save_rejects_garbage(codec):
    with pytest.raises(DecodeError):
        codec.save(b"not an image at all")


def test_save_rejects_unsupported_format(codec):
    with pytest.raises(UnsupportedFormatError):
        codec.save(make_image_bytes(fmt="BMP"))

    assert list(codec.image_dir.iterdir()) == []


def test_load_and_publish_writes_to_clipboard(codec, fake_clipboard, tmp_path):
    data = make_image_bytes(color=(10, 200, 30))
    source = tmp_path / "pic.png"
    source.write_bytes(data)

    codec.load_and_publish(source)

    assert fake_clipboard.written_images == [data]
    assert fake_clipboard.image == data


def test_load_and_publish_missing_file(codec, tmp_path):
    with pytest.raises(FileNotFoundError):
        codec.load_and_publish(tmp_path / "gone.png")


def test_load_and_publish_empty_file(codec, tmp_path):
    empty = tmp_path / "empty.png"
    empty.write_bytes(b"")

    with pytest.raises(EmptyFileError):
        codec.load_and_publish(empty)


def test_load_and_publish_detects_dropped_write(codec, fake_clipboard, tmp_path):
    fake_clipboard.image = make_image_bytes(color=(0, 0, 0))
    fake_clipboard.drop_image_writes = True
    source = tmp_path / "pic.png"
    source.write_bytes(make_image_bytes(color=(255, 255, 255)))

    with pytest.raises(IntegrityError):
        codec.load_and_publish(source)


def test_load_and_publish_detects_empty_clipboard(codec, fake_clipboard, tmp_path):
    fake_clipboard.drop_image_writes = True
    source = tmp_path / "pic.png"
    source.write_bytes(make_image_bytes())

    with pytest.raises(IntegrityError):
        codec.load_and_publish(source)


def test_digest_ignores_container_format():
    png = make_image_bytes(color=(1, 2, 3), fmt="PNG")
    bmp = make_image_bytes(color=(1, 2, 3), fmt="BMP")

    assert payload_digest(png) == payload_digest(bmp)
    assert payload_digest(png) != payload_digest(make_image_bytes(color=(3, 2, 1)))


def test_preview_missing_file(codec, tmp_path):
    with pytest.raises(FileNotFoundError):
        codec.preview(tmp_path / "gone.png")


def test_preview_opens_default_viewer(codec):
    path = codec.save(make_image_bytes())

    with patch("cliphistory.utils.image_codec.platform.system", return_value="Linux"), \
            patch("cliphistory.utils.image_codec.subprocess.Popen") as popen:
        codec.preview(path)

    popen.assert_called_once_with(["xdg-open", path])
