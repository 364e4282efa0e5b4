"""Run shell commands whose output feeds size expressions."""

from __future__ import annotations

import subprocess

from zram_generator.logging import LoggerFactory


def run_shell_command(command: str, shell: str = "/bin/sh") -> str:
    """Run *command* through *shell* and return its standard output.

    A non-zero exit status is reported but not fatal: the captured output is
    still returned to the caller. Standard error is passed through. No
    timeout is applied. Output that is not valid UTF-8 is decoded with
    replacement characters.

    Raises:
        OSError: If the shell itself cannot be started
    """
    log = LoggerFactory.for_command(command)
    log.debug(f"Running command: {shell} -c {command!r}")
    result = subprocess.run(
        [shell, "-c", command],
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
        check=False,
    )
    if result.stdout:
        log.trace(f"Command output: {result.stdout.strip()}")
    if result.returncode != 0:
        log.warning(f"Command {command!r} failed with return code {result.returncode}")
    else:
        log.debug(f"Command completed with return code {result.returncode}")
    return result.stdout
