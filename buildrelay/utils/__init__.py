"""Utility modules for buildrelay."""

from .logging import get_logger, setup_logging

__all__ = [
    "get_logger",
    "setup_logging",
]
