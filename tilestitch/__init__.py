"""Slippy-map tile retrieval and stitching."""

__version__ = "0.1.0"
