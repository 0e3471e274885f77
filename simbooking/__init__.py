"""Scheduling and queue-position engine for a racing-simulator venue."""

__version__ = "1.0.0"
