"""Duplicate detection across the registry, task tracker and documents."""

from .checker import DuplicateChecker, default_resolutions

__all__ = ["DuplicateChecker", "default_resolutions"]
