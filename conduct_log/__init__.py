"""Conduct & behaviour incident log service."""

__version__ = "0.1.0"
