"""Domain model for zram devices and their resolved settings.

A :class:`Device` is created the first time a fragment names its section,
accumulates per-key overrides while fragments are merged, and is finalized once
by the planner, which fills in ``disksize`` and ``mem_limit``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Iterator

from zram_generator.config.settings import DEFAULT_OPTIONS, DEFAULT_SWAP_PRIORITY
from zram_generator.expressions import Expression


DEVICE_NAME_RE = re.compile(r"^zram[0-9]+$")


def is_device_name(name: str) -> bool:
    return DEVICE_NAME_RE.match(name) is not None


def device_number(name: str) -> int:
    """Numeric suffix of a device name (e.g., 12 for "zram12")."""
    return int(name[len("zram"):])


# ==============================================================================
# Compression
# ==============================================================================


@dataclass
class Algorithms:
    """Compression pipeline of one device.

    The first entry of ``compression_algorithms`` is the primary algorithm;
    later entries are recompression stages at increasing priority.
    ``recompression_global`` applies to recompression of the whole device.
    """

    compression_algorithms: list[tuple[str, str]] = field(default_factory=list)
    recompression_global: str = ""

    def stages(self) -> Iterator[tuple[int, str, str]]:
        """Yield (priority, algorithm, params), priority 0 being primary."""
        for priority, (name, params) in enumerate(self.compression_algorithms):
            yield priority, name, params

    def __str__(self) -> str:
        if not self.compression_algorithms and not self.recompression_global:
            return "<default>"
        parts = [
            f"{name}({params})" if params else name
            for name, params in self.compression_algorithms
        ]
        if self.recompression_global:
            parts.append(f"({self.recompression_global})")
        return " ".join(parts)


# ==============================================================================
# Size settings
# ==============================================================================


@dataclass(frozen=True)
class SizeSetting:
    """A size expression as configured, plus the fragment it came from."""

    expression: Expression
    origin: Path | None = None

    @property
    def text(self) -> str:
        return self.expression.text

    def __str__(self) -> str:
        return self.text


# ==============================================================================
# Device
# ==============================================================================


@dataclass
class Device:
    """One zram device section, merged across all fragments."""

    name: str  # e.g., "zram0"
    host_memory_limit_mb: int | None = None  # None means unlimited
    zram_size: SizeSetting | None = None
    zram_resident_limit: SizeSetting | None = None
    compression_algorithms: Algorithms = field(default_factory=Algorithms)
    writeback_dev: PurePosixPath | None = None
    disksize: int = 0  # Bytes; 0 means not active
    mem_limit: int = 0  # Bytes; 0 means no cap
    swap_priority: int = DEFAULT_SWAP_PRIORITY
    mount_point: PurePosixPath | None = None
    fs_type: str | None = None
    options: str = DEFAULT_OPTIONS

    # Deprecated sizing; either one present replaces zram_size entirely.
    zram_fraction: float | None = None
    max_zram_size_mb: float | None = None  # math.inf for "none"

    @property
    def is_swap(self) -> bool:
        return self.mount_point is None and self.fs_type in (None, "swap")

    def effective_fs_type(self) -> str:
        if self.fs_type is not None:
            return self.fs_type
        return "swap" if self.is_swap else "ext2"

    @property
    def uses_legacy_sizing(self) -> bool:
        return self.zram_fraction is not None or self.max_zram_size_mb is not None

    @property
    def is_active(self) -> bool:
        return self.disksize > 0

    @property
    def number(self) -> int:
        return device_number(self.name)

    @property
    def device_path(self) -> str:
        """Device node path (e.g., /dev/zram0)."""
        return f"/dev/{self.name}"

    def __str__(self) -> str:
        limit = (
            "<none>"
            if self.host_memory_limit_mb is None
            else f"{self.host_memory_limit_mb}MB"
        )
        if self.uses_legacy_sizing:
            fraction = self.zram_fraction if self.zram_fraction is not None else "<default>"
            max_size = self.max_zram_size_mb if self.max_zram_size_mb is not None else "<none>"
            size = f"zram-fraction={fraction} max-zram-size={max_size}"
        else:
            size = f"zram-size={self.zram_size or '<default>'}"
        return (
            f"{self.name}: host-memory-limit={limit} {size} "
            f"zram-resident-limit={self.zram_resident_limit or '<default>'} "
            f"compression-algorithm={self.compression_algorithms} "
            f"writeback-device={self.writeback_dev or '<none>'} "
            f"options={self.options}"
        )
