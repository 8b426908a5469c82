"""Encoded size measurement."""

import math

BYTES_PER_KB = 1024


def bytes_to_kb(size: int) -> int:
    """Convert a byte count to kilobytes, rounding half-up."""
    return math.floor(size / BYTES_PER_KB + 0.5)


def estimate_kb(data: bytes) -> int:
    """Return the size of an encoded buffer in kilobytes.

    Always measured on the raw binary buffer, never on a base64 or other
    text form of it.

    Raises:
        ValueError: If the buffer is empty.
    """
    if not data:
        raise ValueError("Cannot measure an empty buffer")
    return bytes_to_kb(len(data))
