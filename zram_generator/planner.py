"""Decide which zram devices to activate and how large to make them.

This is the top of the resolution pipeline::

    kernel flag -> fragments -> merged devices -> set! directives -> sizing

For every merged device:

1. If ``host-memory-limit`` is below the host's total memory the device is
   disabled; nothing is evaluated for it.
2. If either deprecated key (``zram-fraction``, ``max-zram-size``) is set,
   ``disksize = min(fraction * ram, max) MiB`` and ``zram-size`` is ignored.
   Otherwise ``zram-size`` (default ``min(ram / 2, 4096)``) is evaluated.
3. ``zram-resident-limit`` (default ``0``) is always evaluated.

Devices that end up with a zero ``disksize`` are left out of the plan.
"""

from __future__ import annotations

import dataclasses
import math
from typing import Iterable

from zram_generator.config.directives import apply_directives
from zram_generator.config.fragments import load_fragments
from zram_generator.config.resolver import ResolvedConfig, resolve_fragments
from zram_generator.config.settings import (
    DEFAULT_ZRAM_FRACTION,
    DEFAULT_ZRAM_RESIDENT_LIMIT,
    DEFAULT_ZRAM_SIZE,
    ResolutionSettings,
)
from zram_generator.domain import Device, SizeSetting
from zram_generator.exceptions import DeviceNotFoundError, EvaluationError, SizingError
from zram_generator.expressions import (
    EvaluationContext,
    Expression,
    evaluate_size,
    megabytes_to_bytes,
)
from zram_generator.logging import LoggerFactory, operation_context
from zram_generator.system.facts import get_total_memory_mb, kernel_zram_option

DEFAULT_ZRAM_SIZE_SETTING = SizeSetting(Expression.compile(DEFAULT_ZRAM_SIZE))
DEFAULT_ZRAM_RESIDENT_LIMIT_SETTING = SizeSetting(
    Expression.compile(DEFAULT_ZRAM_RESIDENT_LIMIT)
)

log = LoggerFactory.for_sizing()


def is_enabled(device: Device, memtotal_mb: float) -> bool:
    limit = device.host_memory_limit_mb
    if limit is not None and limit < int(memtotal_mb):
        log.info(
            f"{device.name}: system has too much memory ({memtotal_mb:.1f}MB), "
            f"limit is {limit}MB, ignoring."
        )
        return False
    return True


def _evaluate_setting(
    device: Device,
    key: str,
    setting: SizeSetting,
    context: EvaluationContext,
) -> int:
    try:
        megabytes = evaluate_size(setting.expression, context)
    except EvaluationError as error:
        raise SizingError(device.name, key, setting.text, setting.origin, error.reason) from error
    return megabytes_to_bytes(megabytes)


def legacy_disksize(device: Device, memtotal_mb: float) -> int:
    """Size from the deprecated zram-fraction / max-zram-size pair.

    Products too large for a byte count saturate to MAX_SIZE.
    """
    fraction = device.zram_fraction if device.zram_fraction is not None else DEFAULT_ZRAM_FRACTION
    size_mb = fraction * memtotal_mb
    if math.isfinite(size_mb):
        size_mb = math.floor(size_mb)
    if device.max_zram_size_mb is not None:
        size_mb = min(size_mb, device.max_zram_size_mb)
    return megabytes_to_bytes(size_mb)


def compute_disksize(device: Device, context: EvaluationContext) -> int:
    if device.uses_legacy_sizing:
        if device.zram_size is not None:
            log.warning(
                f"{device.name}: zram-fraction/max-zram-size are set, "
                f"ignoring zram-size={device.zram_size.text}"
            )
        return legacy_disksize(device, context.memtotal_mb)
    setting = device.zram_size or DEFAULT_ZRAM_SIZE_SETTING
    return _evaluate_setting(device, "zram-size", setting, context)


def compute_mem_limit(device: Device, context: EvaluationContext) -> int:
    setting = device.zram_resident_limit or DEFAULT_ZRAM_RESIDENT_LIMIT_SETTING
    return _evaluate_setting(device, "zram-resident-limit", setting, context)


def finalize_device(device: Device, context: EvaluationContext) -> Device:
    """Return a copy of *device* with disksize and mem_limit filled in.

    Raises:
        SizingError: If an expression cannot be evaluated to a valid size
    """
    if not is_enabled(device, context.memtotal_mb):
        return dataclasses.replace(device, disksize=0, mem_limit=0)
    disksize = compute_disksize(device, context)
    mem_limit = compute_mem_limit(device, context)
    log.debug(f"{device.name}: disksize={disksize} mem_limit={mem_limit}")
    return dataclasses.replace(device, disksize=disksize, mem_limit=mem_limit)


def plan_devices(devices: Iterable[Device], context: EvaluationContext) -> list[Device]:
    """Finalize every device and keep the ones with a non-zero size."""
    planned = []
    for device in devices:
        finalized = finalize_device(device, context)
        if finalized.is_active:
            planned.append(finalized)
        else:
            log.debug(f"{device.name}: disksize is zero, skipping.")
    return planned


def build_context(
    config: ResolvedConfig, memtotal_mb: float, settings: ResolutionSettings
) -> EvaluationContext:
    context = EvaluationContext(memtotal_mb=memtotal_mb)
    return apply_directives(config.directives, context, shell=settings.shell)


def read_all_devices(settings: ResolutionSettings) -> list[Device]:
    """Resolve the complete activation plan for the host described by *settings*.

    Raises:
        ZramConfigError: Any fatal configuration, expression or host-fact error
    """
    with operation_context("resolve", root=str(settings.root)):
        kernel_override = kernel_zram_option(settings)
        if kernel_override is False:
            log.info(f"Disabled by kernel option {settings.kernel_flag}=0")
            return []

        memtotal_mb = get_total_memory_mb(settings)
        config = resolve_fragments(load_fragments(settings), kernel_override is True)
        for device in config.ordered_devices():
            log.info(f"Found configuration for {device}")

        context = build_context(config, memtotal_mb, settings)
        return plan_devices(config.ordered_devices(), context)


def find_device(devices: Iterable[Device], name: str) -> Device:
    for device in devices:
        if device.name == name:
            return device
    raise DeviceNotFoundError(name)


def read_device(settings: ResolutionSettings, name: str) -> Device:
    """Resolve the configuration and return the active device *name*.

    Raises:
        DeviceNotFoundError: If *name* is not part of the plan
    """
    return find_device(read_all_devices(settings), name)
