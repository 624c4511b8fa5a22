"""Live auction state server."""

__version__ = "1.0.0"
