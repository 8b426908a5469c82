"""Pillow-backed JPEG codec used by the size search."""

import io
import logging
from dataclasses import dataclass
from typing import Protocol

from PIL import Image, ImageOps, UnidentifiedImageError

from sizefit.fit_size.errors import DecodeError

logger = logging.getLogger(__name__)

JPEG_BACKGROUND = (255, 255, 255)


@dataclass(frozen=True)
class SourceImage:
    """A decoded bitmap. Never modified; encodes work on resized copies."""
    image: Image.Image

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image dimensions must be positive, got {self.width}x{self.height}")

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


class Codec(Protocol):
    """Decoder/encoder pair consumed by the search engine."""

    def decode(self, data: bytes) -> SourceImage: ...

    def encode(self, source: SourceImage, width: int, height: int, quality: float) -> bytes: ...


def to_pillow_quality(quality: float) -> int:
    """Map a quality in (0, 1] to Pillow's 1-100 JPEG scale."""
    return max(1, min(100, round(quality * 100)))


def to_8bit(image: Image.Image) -> Image.Image:
    """Scale a 16-bit integer or float image down to 8-bit grayscale."""
    if image.mode.startswith("I;16"):
        image = image.convert("I")
    _, high = image.getextrema()
    if image.mode == "F" and high <= 1.0:
        image = image.point(lambda v: v * 255)
    elif high > 255:
        image = image.point(lambda v: v / 256)
    return image.convert("L")


def flatten(image: Image.Image) -> Image.Image:
    """Return an RGB image, compositing any transparency onto white."""
    if image.mode == "RGB":
        return image
    if image.mode.startswith("I") or image.mode == "F":
        # convert("RGB") clips high bit depths instead of scaling them
        image = to_8bit(image)
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, JPEG_BACKGROUND)
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")


class JpegCodec:
    """Decode any format Pillow reads, encode to baseline JPEG."""

    def decode(self, data: bytes) -> SourceImage:
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
            raise DecodeError(f"Could not decode image: {e}") from e

        logger.debug(f"Decoded {image.format} {image.width}x{image.height} ({image.mode})")
        # Bake EXIF orientation into the pixels, the encoder drops the tag
        image = ImageOps.exif_transpose(image)
        return SourceImage(flatten(image))

    def encode(self, source: SourceImage, width: int, height: int, quality: float) -> bytes:
        image = source.image
        if (width, height) != image.size:
            image = image.resize((width, height), Image.Resampling.LANCZOS)

        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=to_pillow_quality(quality))
        return buffer.getvalue()
