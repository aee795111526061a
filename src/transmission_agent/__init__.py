"""Transmission Agent - keep a Transmission daemon's run state in view and in check."""

__version__ = "0.1.0"
