"""Aurix: turn spoken sessions into structured documents."""

__version__ = "0.1.0"
