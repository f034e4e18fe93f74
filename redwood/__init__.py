"""Redwood: terminal dashboard for the aircraft nearest to you."""

__version__ = "0.3.0"
