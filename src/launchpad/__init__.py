"""Project Launchpad: provision linked project artifacts across platforms."""

__version__ = "0.1.0"
