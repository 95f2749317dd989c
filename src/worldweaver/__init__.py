"""WorldWeaver: validated world-state mutations from untrusted storyteller output."""

__version__ = "0.1.0"
