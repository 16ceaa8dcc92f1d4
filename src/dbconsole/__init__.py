"""dbconsole - lifecycle controller for a hosted database operator console."""

__version__ = "0.1.0"
