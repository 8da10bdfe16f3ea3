import io
import logging

import pytest
from PIL import Image

from squisher.errors import MalformedInputError
from squisher.images import MAX_SIZE, fit_within, prepare_image, probe_image
from squisher.sources import SourceImage


def _source(data, mime_type="image/png"):
    return SourceImage(image_index=0, data=data, mime_type=mime_type, embedded=True)


@pytest.mark.parametrize("size, expected", [
    ((512, 512), (512, 512)),
    ((4096, 4096), (4096, 4096)),
    ((8192, 8192), (4096, 4096)),
    ((8192, 64), (4096, 32)),
    ((1000, 5000), (819, 4096)),
])
def test_fit_within_limits_longest_edge(size, expected):
    assert fit_within(*size, MAX_SIZE) == expected


def test_probe_image_reads_header(make_image):
    assert probe_image(make_image("JPEG", size=(30, 20))) == ("JPEG", 30, 20)


def test_small_image_is_passed_through(make_image):
    data = make_image("JPEG", size=(64, 32))
    prepared = prepare_image(_source(data, "image/jpeg"))
    assert prepared.data == data
    assert prepared.resized is False
    assert prepared.suffix == ".jpg"
    assert (prepared.width, prepared.height) == (64, 32)


def test_oversized_image_is_resized_to_png(make_image, caplog):
    data = make_image("JPEG", size=(8192, 64))
    with caplog.at_level(logging.WARNING):
        prepared = prepare_image(_source(data, "image/jpeg"))

    assert prepared.resized is True
    assert prepared.pil_format == "PNG"
    assert (prepared.width, prepared.height) == (4096, 32)
    with Image.open(io.BytesIO(prepared.data)) as img:
        assert img.format == "PNG"
        assert img.size == (4096, 32)
    assert "too large" in caplog.text


def test_resize_keeps_alpha(make_image):
    data = make_image("PNG", size=(40, 20), channels=4)
    prepared = prepare_image(_source(data), max_size=10)
    assert (prepared.width, prepared.height) == (10, 5)
    with Image.open(io.BytesIO(prepared.data)) as img:
        assert img.mode == "RGBA"


def test_mislabelled_image_uses_actual_format(make_image, caplog):
    data = make_image("JPEG")
    with caplog.at_level(logging.WARNING):
        prepared = prepare_image(_source(data, "image/png"))
    assert prepared.suffix == ".jpg"
    assert "contains JPEG data" in caplog.text


def test_unreadable_image_is_rejected():
    with pytest.raises(MalformedInputError, match="not a readable"):
        prepare_image(_source(b"definitely not an image"))


def test_other_formats_are_rejected(make_image):
    with pytest.raises(MalformedInputError, match="contains BMP"):
        prepare_image(_source(make_image("BMP")))


def test_images_past_pillow_pixel_limit_are_resized(make_image, monkeypatch):
    # shrink the limit so a modest image trips Pillow's decompression-bomb check
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    data = make_image("PNG", size=(8192, 64), channels=1)

    assert probe_image(data) == ("PNG", 8192, 64)
    prepared = prepare_image(_source(data))

    assert prepared.resized is True
    assert (prepared.width, prepared.height) == (4096, 32)
    assert Image.MAX_IMAGE_PIXELS == 1000


def test_oversized_jpeg_past_pixel_limit_is_resized(make_image, monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    data = make_image("JPEG", size=(8192, 64))

    prepared = prepare_image(_source(data, "image/jpeg"))

    assert probe_image(prepared.data) == ("PNG", 4096, 32)
