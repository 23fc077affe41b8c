"""Scene asset generation and video assembly pipeline."""

__version__ = "1.0.0"
