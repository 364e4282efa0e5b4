"""
Pytest configuration and shared fixtures for zram-generator-py tests.

This module provides a fake filesystem root with configuration fragments,
/proc/meminfo and /proc/cmdline, plus helpers for capturing log output.
"""

from pathlib import Path
from typing import List
from unittest.mock import Mock

import pytest
from loguru import logger

from zram_generator.config.settings import ResolutionSettings


UNIT = "systemd/zram-generator"


class FakeRoot:
    """Builder for a configuration root under tmp_path."""

    def __init__(self, path: Path) -> None:
        self.path = path

    @property
    def settings(self) -> ResolutionSettings:
        return ResolutionSettings(root=self.path)

    def _write(self, relative: str, text: str) -> Path:
        target = self.path / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
        return target

    def config(self, base_dir: str, text: str) -> Path:
        """Write the main configuration file of a base directory."""
        return self._write(f"{base_dir}/{UNIT}.conf", text)

    def dropin(self, base_dir: str, name: str, text: str) -> Path:
        """Write a drop-in fragment into a base directory's .conf.d."""
        return self._write(f"{base_dir}/{UNIT}.conf.d/{name}", text)

    def meminfo(self, memtotal_mb: int) -> Path:
        return self._write(
            "proc/meminfo",
            f"MemTotal:       {memtotal_mb * 1024} kB\n"
            "MemFree:         1048576 kB\n"
            "MemAvailable:    2097152 kB\n",
        )

    def cmdline(self, text: str) -> Path:
        return self._write("proc/cmdline", text + "\n")


# ==============================================================================
# Filesystem Fixtures
# ==============================================================================


@pytest.fixture
def fake_root(tmp_path) -> FakeRoot:
    """
    Fixture providing an empty configuration root with 1000MB of memory.

    Returns:
        FakeRoot whose files tests add as needed.
    """
    root = FakeRoot(tmp_path / "root")
    root.path.mkdir()
    root.meminfo(1000)
    return root


# ==============================================================================
# Command Fixtures
# ==============================================================================


@pytest.fixture
def mock_runner() -> Mock:
    """
    Fixture providing a stand-in for the shell command runner.

    Returns:
        Mock whose return_value is the command's captured stdout.
    """
    return Mock(return_value="0\n")


# ==============================================================================
# Logging Fixtures
# ==============================================================================


@pytest.fixture
def log_messages() -> List[str]:
    """Fixture capturing every loguru message emitted during the test."""
    messages: List[str] = []
    handler_id = logger.add(
        lambda message: messages.append(message.record["message"]), level="TRACE"
    )
    yield messages
    logger.remove(handler_id)


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop sinks installed by setup_logging() so tests stay independent."""
    yield
    logger.remove()
    logger.configure(extra={"job_id": "-", "tags": [], "source": "APP"})
