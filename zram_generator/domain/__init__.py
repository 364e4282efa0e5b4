"""Domain models for zram devices.

This package contains the type-safe records produced by configuration
resolution and handed to unit generation and device setup.
"""

from __future__ import annotations

from .models import (
    Algorithms,
    Device,
    SizeSetting,
    device_number,
    is_device_name,
)


__all__ = [
    "Algorithms",
    "Device",
    "SizeSetting",
    "device_number",
    "is_device_name",
]
