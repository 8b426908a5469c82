"""Exceptions raised by the size search.

An unreachable range is not an error: it is reported through
``SearchResult.status``.
"""


class SizeFitError(Exception):
    """Base class for size search failures."""


class InvalidRangeError(SizeFitError, ValueError):
    """The requested size range is empty or inverted."""

    def __init__(self, min_kb: int, max_kb: int):
        self.min_kb = min_kb
        self.max_kb = max_kb
        super().__init__(
            f"Minimum size must be less than maximum size (got {min_kb}KB >= {max_kb}KB)"
        )


class DecodeError(SizeFitError, ValueError):
    """The input could not be decoded as a raster image."""
