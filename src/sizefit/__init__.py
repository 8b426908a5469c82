"""Top-level package for sizefit."""

__version__ = "0.1.0"
