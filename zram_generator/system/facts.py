"""Read host facts: total memory and kernel command line flags.

Both sources are plain text files under the configured root so a test tree
can stand in for the live ``/proc``:

    proc/meminfo   "MemTotal:  8048012 kB" line, value in kilobytes
    proc/cmdline   whitespace separated boot parameters

Only total memory is required; a missing or unreadable command line is
treated as "no flag given".
"""

from __future__ import annotations

from zram_generator.config.settings import ResolutionSettings
from zram_generator.exceptions import SystemFactsError
from zram_generator.logging import LoggerFactory

TRUE_VALUES = {"1", "yes", "true", "on"}
FALSE_VALUES = {"0", "no", "false", "off"}

log = LoggerFactory.for_system()


def parse_memtotal_kb(text: str) -> int | None:
    for line in text.splitlines():
        fields = line.split()
        if len(fields) >= 2 and fields[0] == "MemTotal:":
            return int(fields[1])
    return None


def get_total_memory_kb(settings: ResolutionSettings) -> int:
    """Return MemTotal in kilobytes.

    Raises:
        SystemFactsError: If the file cannot be read or has no usable MemTotal line
    """
    path = settings.meminfo_path
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as error:
        raise SystemFactsError(path, f"Failed to read memory information: {error}") from error
    try:
        memtotal_kb = parse_memtotal_kb(text)
    except ValueError as error:
        raise SystemFactsError(path, f"Malformed MemTotal line: {error}") from error
    if memtotal_kb is None:
        raise SystemFactsError(path, "Couldn't find MemTotal")
    return memtotal_kb


def get_total_memory_mb(settings: ResolutionSettings) -> float:
    return get_total_memory_kb(settings) / 1024


def parse_boolean(value: str) -> bool | None:
    """Match the lowercase literals only; "ON" or "True" are not booleans."""
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    return None


def parse_kernel_flag(cmdline: str, flag: str) -> bool | None:
    """Return the value of *flag* on a kernel command line.

    The last valid occurrence wins. A bare flag means True; ``flag=<bool>``
    takes the given value; an unparseable value is reported and skipped.
    """
    result = None
    prefix = f"{flag}="
    for word in cmdline.split():
        if word == flag:
            result = True
        elif word.startswith(prefix):
            value = parse_boolean(word[len(prefix):])
            if value is None:
                log.warning(f"Ignoring invalid kernel option {word!r}")
                continue
            result = value
    return result


def kernel_zram_option(settings: ResolutionSettings) -> bool | None:
    """Read the kernel override flag from the boot command line.

    Returns:
        True to force zram0, False to disable all devices, None if unspecified
    """
    try:
        cmdline = settings.cmdline_path.read_text(encoding="utf-8")
    except OSError as error:
        log.debug(f"Kernel command line unavailable: {error}")
        return None
    value = parse_kernel_flag(cmdline, settings.kernel_flag)
    if value is not None:
        log.info(f"Kernel option {settings.kernel_flag}={int(value)}")
    return value
