"""Tests for the Pillow JPEG codec."""

import io

import numpy as np
import pytest
from PIL import Image

from sizefit.fit_size.codec import JpegCodec, SourceImage, flatten, to_8bit, to_pillow_quality
from sizefit.fit_size.errors import DecodeError
from sizefit.fit_size.search import fit_to_range
from sizefit.models.search import SearchStatus, SizeRange
from sizefit.utils.size import estimate_kb

JPEG_MAGIC = b"\xff\xd8"


@pytest.mark.parametrize("quality, expected", [(1.0, 100), (0.7, 70), (0.1, 10), (0.001, 1), (0.0001, 1)])
def test_to_pillow_quality(quality, expected):
    assert to_pillow_quality(quality) == expected


def test_decode_png(make_image_bytes):
    source = JpegCodec().decode(make_image_bytes(width=64, height=32))
    assert (source.width, source.height) == (64, 32)
    assert source.image.mode == "RGB"


def test_decode_flattens_alpha_onto_white():
    img = Image.new("RGBA", (8, 8), (0, 0, 0, 0))
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")

    source = JpegCodec().decode(buffer.getvalue())
    assert source.image.mode == "RGB"
    assert source.image.getpixel((0, 0)) == (255, 255, 255)


def test_flatten_keeps_rgb_as_is():
    img = Image.new("RGB", (4, 4))
    assert flatten(img) is img


def test_decode_applies_exif_orientation():
    img = Image.new("RGB", (40, 20), (200, 10, 10))
    exif = Image.Exif()
    exif[0x0112] = 6  # rotated 90 degrees
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", exif=exif)

    source = JpegCodec().decode(buffer.getvalue())
    assert (source.width, source.height) == (20, 40)


def test_decode_garbage_raises():
    with pytest.raises(DecodeError):
        JpegCodec().decode(b"definitely not an image")


def test_decode_truncated_jpeg_raises(make_image_bytes):
    data = make_image_bytes(width=200, height=200, fmt="JPEG")
    with pytest.raises(DecodeError):
        JpegCodec().decode(data[: len(data) // 2])


def test_encode_resizes_and_writes_jpeg(make_image_bytes):
    codec = JpegCodec()
    source = codec.decode(make_image_bytes(width=100, height=50))

    data = codec.encode(source, 40, 20, 0.8)
    assert data[:2] == JPEG_MAGIC
    assert Image.open(io.BytesIO(data)).size == (40, 20)
    # Source is left untouched
    assert (source.width, source.height) == (100, 50)


def test_encode_size_grows_with_quality(make_image_bytes):
    codec = JpegCodec()
    source = codec.decode(make_image_bytes(width=200, height=200))

    low = codec.encode(source, 200, 200, 0.1)
    high = codec.encode(source, 200, 200, 0.9)
    assert len(low) < len(high)


def test_source_image_rejects_empty_bitmap():
    with pytest.raises(ValueError):
        SourceImage(Image.new("RGB", (0, 0)))


def test_noisy_image_is_fitted_into_range(make_image_bytes):
    size_range = SizeRange(min_kb=20, max_kb=300)
    result = fit_to_range(make_image_bytes(width=600, height=600), size_range)

    assert result.status == SearchStatus.WITHIN_RANGE
    assert 20 <= result.size_kb <= 300
    assert result.data[:2] == JPEG_MAGIC
    assert estimate_kb(result.data) == result.size_kb


def test_tiny_flat_image_reports_below_min(make_image_bytes):
    result = fit_to_range(make_image_bytes(width=32, height=32, noise=False), SizeRange(min_kb=50, max_kb=100))

    assert result.status == SearchStatus.BELOW_MIN
    assert (result.width, result.height) == (96, 96)
    assert result.data[:2] == JPEG_MAGIC
    assert "Could not reach minimum size of 50KB" in result.message


def test_decode_oversized_image_raises(monkeypatch, make_image_bytes):
    # Pillow refuses images over twice this many pixels
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
    with pytest.raises(DecodeError):
        JpegCodec().decode(make_image_bytes(width=64, height=64))


def test_decode_scales_16bit_grayscale():
    gradient = np.tile(np.linspace(0, 65535, 256).astype(np.uint16), (16, 1))
    buffer = io.BytesIO()
    Image.fromarray(gradient).save(buffer, format="PNG")

    source = JpegCodec().decode(buffer.getvalue())
    assert source.image.mode == "RGB"
    assert source.image.getpixel((0, 0)) == (0, 0, 0)
    assert source.image.getpixel((255, 0)) == (255, 255, 255)
    mid, _, _ = source.image.getpixel((128, 0))
    assert 100 < mid < 156


def test_to_8bit_scales_unit_float():
    img = Image.new("F", (4, 4), 0.5)
    assert to_8bit(img).getpixel((0, 0)) in (127, 128)
