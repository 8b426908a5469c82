"""Shared fixtures: synthetic images and a deterministic fake codec."""

import io
from typing import Callable

import numpy as np
import pytest
from PIL import Image

from sizefit.fit_size.codec import SourceImage

SizeModel = Callable[[int, int, float], float]


class FakeCodec:
    """Codec whose output size in KB is given by ``size_model(width, height, quality)``.

    Decoding ignores the input and returns a blank image of the configured
    dimensions. Calls are recorded so tests can assert on codec work.
    """

    def __init__(self, width: int, height: int, size_model: SizeModel):
        self.width = width
        self.height = height
        self.size_model = size_model
        self.decode_calls = 0
        self.encode_calls: list[tuple[int, int, float]] = []

    def decode(self, data: bytes) -> SourceImage:
        self.decode_calls += 1
        return SourceImage(Image.new("L", (self.width, self.height)))

    def encode(self, source: SourceImage, width: int, height: int, quality: float) -> bytes:
        self.encode_calls.append((width, height, quality))
        size_bytes = round(self.size_model(width, height, quality) * 1024)
        return b"\0" * max(1, size_bytes)


def linear_model(width: int, height: int, kb_at_full: float) -> SizeModel:
    """Size proportional to pixel count and quality, ``kb_at_full`` at native size and quality 1."""
    pixels = width * height
    return lambda w, h, q: kb_at_full * (w * h) / pixels * q


@pytest.fixture
def make_fake_codec() -> Callable[..., FakeCodec]:
    def factory(width: int = 1000, height: int = 1000, kb_at_full: float = 500, size_model: SizeModel | None = None) -> FakeCodec:
        return FakeCodec(width, height, size_model or linear_model(width, height, kb_at_full))

    return factory


@pytest.fixture
def make_image_bytes() -> Callable[..., bytes]:
    """Encode a synthetic image. ``noise=True`` gives hard-to-compress random pixels."""

    def factory(width: int = 600, height: int = 600, noise: bool = True, fmt: str = "PNG", mode: str = "RGB") -> bytes:
        if noise:
            rng = np.random.default_rng(0)
            # (h, w, 3) uint8 maps to RGB, (h, w, 4) to RGBA
            pixels = rng.integers(0, 256, size=(height, width, len(mode)), dtype=np.uint8)
            img = Image.fromarray(pixels)
        else:
            img = Image.new(mode, (width, height), color=(120, 130, 140, 255)[:len(mode)])
        buffer = io.BytesIO()
        img.save(buffer, format=fmt)
        return buffer.getvalue()

    return factory
