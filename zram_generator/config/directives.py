"""Top-level ``set!`` directives that define expression variables.

A line ``set!name = command`` outside any section runs ``command`` through the
shell once all fragments have been read, evaluates its output as a size
expression against the variables defined so far, and binds the result to
``name`` for every device expression evaluated afterwards. Directives run in
fragment order, so a later directive may use or redefine an earlier one.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

from zram_generator.exceptions import DirectiveError, ExpressionError
from zram_generator.expressions import RAM_VARIABLE, EvaluationContext, Expression
from zram_generator.logging import LoggerFactory
from zram_generator.system.commands import run_shell_command

SET_PREFIX = "set"

log = LoggerFactory.for_expressions()


@dataclass(frozen=True)
class TopLevelDirective:
    name: str
    command: str
    origin: Path | None = None

    @property
    def key(self) -> str:
        return f"{SET_PREFIX}!{self.name}"


def apply_directives(
    directives: Iterable[TopLevelDirective],
    context: EvaluationContext,
    *,
    shell: str = "/bin/sh",
    runner: Callable[[str, str], str] = run_shell_command,
) -> EvaluationContext:
    """Run each directive in order and bind its result into *context*.

    Raises:
        DirectiveError: If the shell cannot start, or the command output is
            not an expression that evaluates to a number
    """
    for directive in directives:
        if directive.name == RAM_VARIABLE:
            log.warning(f"{directive.origin}: {directive.key} cannot override {RAM_VARIABLE}, ignoring.")
            continue
        try:
            output = runner(directive.command, shell)
        except OSError as error:
            raise DirectiveError(
                directive.origin, directive.key, directive.command, f"Failed to run: {error}"
            ) from error
        text = output.strip()
        try:
            value = Expression.compile(text).evaluate(context)
        except ExpressionError as error:
            raise DirectiveError(
                directive.origin, directive.key, directive.command, str(error)
            ) from error
        log.info(f"{directive.key}={value} (from {directive.command!r})")
        context.set_variable(directive.name, value)
    return context
