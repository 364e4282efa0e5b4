"""Resolve zram device configuration into an activation plan."""

from .__version__ import __version__


__all__ = ["__version__"]
