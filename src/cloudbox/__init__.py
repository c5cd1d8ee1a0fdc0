"""Container job worker with an artifact catalog."""

__version__ = "0.1.0"
