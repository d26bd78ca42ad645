"""Provisioning orchestrator application package."""

from .settings import LaunchpadSettings

__all__ = ["LaunchpadSettings"]
