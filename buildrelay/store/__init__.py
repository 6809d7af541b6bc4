"""Persistence for jobs and their registered actions."""

from .jobs import JobStore

__all__ = ["JobStore"]
