"""Utility functions for deployhook."""

from deployhook.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
