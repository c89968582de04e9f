"""Two-party file relay over websockets."""

__version__ = "1.0.0"
