"""Custom exceptions for configuration resolution.

This module defines a hierarchy of exceptions raised while turning configuration
fragments into a device activation plan. Every fatal error carries the fragment
path and key/value that caused it so the message alone is enough to find the
offending line.

Exception Hierarchy:
    ZramConfigError (base)
        ├── FragmentError
        ├── ConfigValueError
        ├── ExpressionError
        │   ├── ExpressionSyntaxError
        │   └── EvaluationError
        ├── DirectiveError
        ├── SizingError
        ├── SystemFactsError
        └── DeviceNotFoundError

Usage:
    from zram_generator.exceptions import ConfigValueError

    if not 0 <= priority <= 32767:
        raise ConfigValueError(path, section, "swap-priority", value, "out of range")
"""

from __future__ import annotations

from pathlib import Path


class ZramConfigError(Exception):
    """Base exception for all resolution failures."""



class FragmentError(ZramConfigError):
    """A configuration fragment could not be read or parsed."""

    def __init__(self, path: Path | str, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Failed to read configuration from {self.path}: {reason}")


class ConfigValueError(ZramConfigError):
    """A recognized key carried a value that does not parse."""

    def __init__(
        self,
        path: Path | str | None,
        section: str,
        key: str,
        value: str,
        reason: str,
    ):
        self.path = Path(path) if path is not None else None
        self.section = section
        self.key = key
        self.value = value
        self.reason = reason
        where = f"{self.path}: " if self.path is not None else ""
        super().__init__(
            f"{where}[{section}] failed to parse {key}={value!r}: {reason}"
        )


class ExpressionError(ZramConfigError):
    """Base exception for size expression failures."""

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"{reason} in expression {expression!r}")


class ExpressionSyntaxError(ExpressionError):
    """The expression text is malformed."""



class EvaluationError(ExpressionError):
    """The expression parsed but could not be evaluated to a valid size."""



class DirectiveError(ZramConfigError):
    """A top-level ``set!`` directive failed."""

    def __init__(self, path: Path | str | None, key: str, command: str, reason: str):
        self.path = Path(path) if path is not None else None
        self.key = key
        self.command = command
        self.reason = reason
        where = f"{self.path}: " if self.path is not None else ""
        super().__init__(f"{where}{key}={command!r}: {reason}")


class SizingError(ZramConfigError):
    """A device size or resident limit could not be computed."""

    def __init__(
        self,
        device: str,
        key: str,
        expression: str,
        origin: Path | str | None,
        reason: str,
    ):
        self.device = device
        self.key = key
        self.expression = expression
        self.origin = Path(origin) if origin is not None else None
        self.reason = reason
        where = f" (set in {self.origin})" if self.origin is not None else ""
        super().__init__(f"{device}: {key}={expression!r}{where}: {reason}")


class SystemFactsError(ZramConfigError):
    """A required fact about the host could not be read."""

    def __init__(self, path: Path | str, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class DeviceNotFoundError(ZramConfigError):
    """Requested device is not part of the resolved configuration."""

    def __init__(self, device_name: str):
        self.device_name = device_name
        super().__init__(f"Device not found: {device_name}")
