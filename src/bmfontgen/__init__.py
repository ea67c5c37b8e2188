"""Bitmap font atlas generator with effects and incremental builds."""

__version__ = "0.1.0"
