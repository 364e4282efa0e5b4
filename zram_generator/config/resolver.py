"""Merge configuration fragments into one record per zram device.

Fragments are applied in locator order. Within a device section each
recognized key overwrites one field, so a later fragment that sets only
``options`` leaves every other field as earlier fragments left it. Keys are
dispatched through :data:`KEY_SETTERS`; anything not listed there is reported
and ignored.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, Optional

from zram_generator.config.settings import SWAP_PRIORITY_MAX, SWAP_PRIORITY_MIN
from zram_generator.domain import Algorithms, Device, SizeSetting, device_number, is_device_name
from zram_generator.exceptions import ConfigValueError, DirectiveError, ExpressionError
from zram_generator.expressions import Expression
from zram_generator.logging import LoggerFactory

from .directives import SET_PREFIX, TopLevelDirective
from .fragments import Fragment

NONE_TOKEN = "none"
_UNSIGNED_RE = re.compile(r"^\+?[0-9]+$")
_SIGNED_RE = re.compile(r"^[+-]?[0-9]+$")

log = LoggerFactory.for_config()


# ==============================================================================
# Value parsers
# ==============================================================================


def parse_unsigned(value: str) -> int:
    if not _UNSIGNED_RE.match(value):
        raise ValueError("not a non-negative integer")
    return int(value)


def parse_optional_size(value: str) -> int | None:
    """Parse an MB size where the literal "none" means unlimited."""
    if value == NONE_TOKEN:
        return None
    return parse_unsigned(value)


def parse_swap_priority(value: str) -> int:
    if not _SIGNED_RE.match(value):
        raise ValueError("not an integer")
    priority = int(value)
    if not SWAP_PRIORITY_MIN <= priority <= SWAP_PRIORITY_MAX:
        raise ValueError(
            f"swap priority {priority} out of range "
            f"[{SWAP_PRIORITY_MIN}, {SWAP_PRIORITY_MAX}]"
        )
    return priority


def parse_absolute_path(value: str) -> PurePosixPath:
    """Return *value* as a normalized absolute path.

    Repeated separators and "." components collapse; ".." is rejected.
    """
    if not value.startswith("/"):
        raise ValueError(f"{value!r} is not an absolute path")
    parts = value.split("/")
    if ".." in parts:
        raise ValueError(f"{value!r} is not normalized")
    return PurePosixPath("/", *(part for part in parts if part not in ("", ".")))


def parse_compression_algorithms(value: str) -> Algorithms:
    """Parse ``name`` / ``name(param,param)`` tokens.

    A token with an empty name, like ``(type=idle)``, sets the global
    recompression parameters.
    """
    algorithms = Algorithms()
    for token in value.split():
        name, paren, rest = token.partition("(")
        params = ""
        if paren:
            if not rest.endswith(")"):
                raise ValueError(f"unterminated parameter list in {token!r}")
            params = rest[:-1].replace(",", " ")
        if name:
            algorithms.compression_algorithms.append((name, params))
        else:
            algorithms.recompression_global = params
    return algorithms


def parse_fraction(value: str) -> float:
    try:
        fraction = float(value)
    except ValueError:
        raise ValueError("not a number") from None
    if not math.isfinite(fraction) or fraction < 0:
        raise ValueError("must be a finite non-negative number")
    return fraction


def parse_max_size(value: str) -> float:
    size = parse_optional_size(value)
    return math.inf if size is None else float(size)


# ==============================================================================
# Key dispatch
# ==============================================================================


def _set_host_memory_limit(device: Device, value: str, origin: Path | None) -> None:
    device.host_memory_limit_mb = parse_optional_size(value)


def _set_zram_size(device: Device, value: str, origin: Path | None) -> None:
    device.zram_size = SizeSetting(Expression.compile(value), origin)


def _set_zram_resident_limit(device: Device, value: str, origin: Path | None) -> None:
    device.zram_resident_limit = SizeSetting(Expression.compile(value), origin)


def _set_compression_algorithm(device: Device, value: str, origin: Path | None) -> None:
    device.compression_algorithms = parse_compression_algorithms(value)


def _set_writeback_device(device: Device, value: str, origin: Path | None) -> None:
    device.writeback_dev = parse_absolute_path(value)


def _set_swap_priority(device: Device, value: str, origin: Path | None) -> None:
    device.swap_priority = parse_swap_priority(value)


def _set_mount_point(device: Device, value: str, origin: Path | None) -> None:
    device.mount_point = parse_absolute_path(value)


def _set_fs_type(device: Device, value: str, origin: Path | None) -> None:
    device.fs_type = value


def _set_options(device: Device, value: str, origin: Path | None) -> None:
    device.options = value


def _set_zram_fraction(device: Device, value: str, origin: Path | None) -> None:
    device.zram_fraction = parse_fraction(value)


def _set_max_zram_size(device: Device, value: str, origin: Path | None) -> None:
    device.max_zram_size_mb = parse_max_size(value)


KeySetter = Callable[[Device, str, Optional[Path]], None]

KEY_SETTERS: dict[str, KeySetter] = {
    "host-memory-limit": _set_host_memory_limit,
    "memory-limit": _set_host_memory_limit,  # deprecated alias
    "zram-size": _set_zram_size,
    "zram-resident-limit": _set_zram_resident_limit,
    "compression-algorithm": _set_compression_algorithm,
    "writeback-device": _set_writeback_device,
    "swap-priority": _set_swap_priority,
    "mount-point": _set_mount_point,
    "fs-type": _set_fs_type,
    "options": _set_options,
    "zram-fraction": _set_zram_fraction,
    "max-zram-size": _set_max_zram_size,
}

DEPRECATED_KEYS = {"memory-limit", "zram-fraction", "max-zram-size"}


# ==============================================================================
# Resolver
# ==============================================================================


@dataclass
class ResolvedConfig:
    """Raw per-device records plus the directives to run before sizing."""

    devices: dict[str, Device] = field(default_factory=dict)
    directives: list[TopLevelDirective] = field(default_factory=list)

    def ordered_devices(self) -> list[Device]:
        return sorted(self.devices.values(), key=lambda device: device_number(device.name))


class DeviceResolver:
    """Accumulate fragments, in application order, into device records."""

    def __init__(self) -> None:
        self._config = ResolvedConfig()

    def apply_fragment(self, fragment: Fragment) -> None:
        """Merge one fragment.

        Raises:
            ConfigValueError: A recognized key has an invalid value
            DirectiveError: A top-level ``set!`` has no variable name
        """
        for key, value in fragment.top_level.items():
            self._apply_top_level(fragment.path, key, value)

        for section, values in fragment.sections.items():
            if not is_device_name(section):
                log.warning(f"{fragment.path}: ignoring section [{section}]")
                continue
            device = self._config.devices.get(section)
            if device is None:
                device = self._config.devices[section] = Device(name=section)
            for key, value in values.items():
                self._apply_key(device, fragment.path, key, value)

    def _apply_top_level(self, path: Path, key: str, value: str) -> None:
        prefix, bang, name = key.partition("!")
        if not bang or prefix != SET_PREFIX:
            log.warning(f"{path}: unknown top-level directive {key}, ignoring.")
            return
        if not name:
            raise DirectiveError(path, key, value, "Missing variable name")
        self._config.directives.append(TopLevelDirective(name=name, command=value, origin=path))

    def _apply_key(self, device: Device, path: Path, key: str, value: str) -> None:
        setter = KEY_SETTERS.get(key)
        if setter is None:
            log.warning(f"{path}: [{device.name}] unknown key {key}, ignoring.")
            return
        if key in DEPRECATED_KEYS:
            log.debug(f"{path}: [{device.name}] {key} is deprecated")
        try:
            setter(device, value, path)
        except ExpressionError as error:
            raise ConfigValueError(path, device.name, key, value, error.reason) from error
        except ValueError as error:
            raise ConfigValueError(path, device.name, key, value, str(error)) from error
        log.debug(f"{path}: [{device.name}] {key}={value}")

    def finish(self, kernel_override: bool = False) -> ResolvedConfig:
        """Return the merged configuration.

        With the kernel override active and no configured zram0, a zram0 with
        all defaults is added.
        """
        if kernel_override and "zram0" not in self._config.devices:
            log.info("Kernel option forces zram0, adding it with default settings")
            self._config.devices["zram0"] = Device(name="zram0")
        return self._config


def resolve_fragments(
    fragments: Iterable[Fragment], kernel_override: bool = False
) -> ResolvedConfig:
    resolver = DeviceResolver()
    for fragment in fragments:
        resolver.apply_fragment(fragment)
    return resolver.finish(kernel_override)
