"""Settings that locate configuration and host facts for a resolution run."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping


ROOT_ENV_VAR = "ZRAM_GENERATOR_ROOT"

# Default values - use these constants instead of hardcoding values elsewhere
DEFAULT_UNIT = "systemd/zram-generator"
DEFAULT_BASE_DIRS = ("usr/lib", "usr/local/lib", "etc", "run")
DEFAULT_DROPIN_SUFFIX = ".conf"
DEFAULT_KERNEL_FLAG = "systemd.zram"
DEFAULT_SHELL = "/bin/sh"

DEFAULT_ZRAM_SIZE = "min(ram / 2, 4096)"
DEFAULT_ZRAM_RESIDENT_LIMIT = "0"
DEFAULT_SWAP_PRIORITY = 100
DEFAULT_OPTIONS = "discard"
DEFAULT_ZRAM_FRACTION = 0.5

SWAP_PRIORITY_MIN = -1
SWAP_PRIORITY_MAX = 32767

MEBIBYTE = 1024 * 1024
MAX_SIZE = 2**64 - 1


@dataclass(frozen=True)
class ResolutionSettings:
    """Explicit context threaded through every stage of resolution."""

    root: Path = Path("/")
    unit: str = DEFAULT_UNIT
    base_dirs: tuple[str, ...] = DEFAULT_BASE_DIRS
    dropin_suffix: str = DEFAULT_DROPIN_SUFFIX
    kernel_flag: str = DEFAULT_KERNEL_FLAG
    shell: str = DEFAULT_SHELL

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides
    ) -> ResolutionSettings:
        environ = os.environ if environ is None else environ
        root = Path(environ.get(ROOT_ENV_VAR) or "/")
        return cls(root=root, **overrides)

    @property
    def meminfo_path(self) -> Path:
        return self.root / "proc" / "meminfo"

    @property
    def cmdline_path(self) -> Path:
        return self.root / "proc" / "cmdline"

    def config_file(self, base_dir: str) -> Path:
        return self.root / base_dir / f"{self.unit}.conf"

    def dropin_dir(self, base_dir: str) -> Path:
        return self.root / base_dir / f"{self.unit}.conf.d"
