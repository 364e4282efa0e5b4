"""Evaluate size expressions against the host's memory and directive variables.

Arithmetic follows IEEE-754 float semantics: dividing a non-zero value by zero
yields an infinity and ``0 / 0`` yields NaN. Callers decide what to do with
those; :func:`evaluate_size` rejects NaN and negative results, and
:func:`megabytes_to_bytes` saturates infinities to :data:`MAX_SIZE`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable

from zram_generator.config.settings import MAX_SIZE, MEBIBYTE
from zram_generator.exceptions import EvaluationError

from .parser import BinaryOp, Call, ExprNode, Number, UnaryOp, Variable, parse


RAM_VARIABLE = "ram"


@dataclass
class EvaluationContext:
    """Namespace shared by every expression evaluated in one resolution pass.

    ``ram`` always resolves to total memory in MB. Further names are bound by
    top-level ``set!`` directives before any device is sized.
    """

    memtotal_mb: float
    variables: dict[str, float] = field(default_factory=dict)

    def lookup(self, name: str) -> float | None:
        if name == RAM_VARIABLE:
            return self.memtotal_mb
        return self.variables.get(name)

    def set_variable(self, name: str, value: float) -> None:
        self.variables[name] = value


def _divide(left: float, right: float) -> float:
    if right != 0:
        return left / right
    if math.isnan(left) or left == 0:
        return math.nan
    sign = math.copysign(1.0, left) * math.copysign(1.0, right)
    return math.copysign(math.inf, sign)


def _modulo(left: float, right: float) -> float:
    try:
        return math.fmod(left, right)
    except ValueError:
        return math.nan


def _power(left: float, right: float) -> float:
    try:
        return math.pow(left, right)
    except OverflowError:
        return math.inf
    except ValueError:
        if left == 0:
            return math.inf
        return math.nan


_BINARY: dict[str, Callable[[float, float], float]] = {
    "+": lambda left, right: left + right,
    "-": lambda left, right: left - right,
    "*": lambda left, right: left * right,
    "/": _divide,
    "%": _modulo,
    "^": _power,
}


def _extremum(pick: Callable[..., float]) -> Callable[..., float]:
    def apply(*args: float) -> float:
        if any(math.isnan(arg) for arg in args):
            return math.nan
        return pick(args)

    return apply


def _finite_only(fn: Callable[[float], float]) -> Callable[[float], float]:
    def apply(value: float) -> float:
        if not math.isfinite(value):
            return value
        return float(fn(value))

    return apply


def _round_half_away(value: float) -> float:
    return math.copysign(math.floor(abs(value) + 0.5), value)


# name -> (minimum arity, maximum arity or None for variadic, implementation)
_FUNCTIONS: dict[str, tuple[int, int | None, Callable[..., float]]] = {
    "min": (2, None, _extremum(min)),
    "max": (2, None, _extremum(max)),
    "floor": (1, 1, _finite_only(math.floor)),
    "ceil": (1, 1, _finite_only(math.ceil)),
    "round": (1, 1, _finite_only(_round_half_away)),
    "abs": (1, 1, abs),
}


def evaluate(node: ExprNode, context: EvaluationContext, source: str = "") -> float:
    """Evaluate an expression tree.

    Args:
        node: Parsed expression
        context: Variable namespace
        source: Original text, used in error messages

    Returns:
        The numeric result, which may be an infinity or NaN

    Raises:
        EvaluationError: Unknown variable or function, or wrong argument count
    """
    if isinstance(node, Number):
        return node.value
    if isinstance(node, Variable):
        value = context.lookup(node.name)
        if value is None:
            raise EvaluationError(source, f"Unknown variable {node.name!r}")
        return value
    if isinstance(node, UnaryOp):
        operand = evaluate(node.operand, context, source)
        if node.op == "-":
            return -operand
        raise EvaluationError(source, f"Unknown unary operator {node.op!r}")
    if isinstance(node, BinaryOp):
        left = evaluate(node.left, context, source)
        right = evaluate(node.right, context, source)
        try:
            operator = _BINARY[node.op]
        except KeyError:
            raise EvaluationError(source, f"Unknown operator {node.op!r}") from None
        return operator(left, right)
    if isinstance(node, Call):
        try:
            min_args, max_args, function = _FUNCTIONS[node.name]
        except KeyError:
            raise EvaluationError(source, f"Unknown function {node.name!r}") from None
        count = len(node.args)
        if count < min_args or (max_args is not None and count > max_args):
            raise EvaluationError(
                source, f"Wrong number of arguments ({count}) to {node.name}()"
            )
        return function(*(evaluate(arg, context, source) for arg in node.args))
    raise EvaluationError(source, f"Cannot evaluate {type(node).__name__}")


@dataclass(frozen=True)
class Expression:
    """A compiled expression together with the text it came from."""

    text: str
    root: ExprNode

    @classmethod
    def compile(cls, text: str) -> Expression:
        """Parse *text*; raises ExpressionSyntaxError when malformed."""
        return cls(text=text, root=parse(text))

    def evaluate(self, context: EvaluationContext) -> float:
        return evaluate(self.root, context, self.text)

    def __str__(self) -> str:
        return self.text


def evaluate_size(expression: Expression, context: EvaluationContext) -> float:
    """Evaluate an expression that must produce a size in MB.

    Raises:
        EvaluationError: If the result is NaN or negative
    """
    value = expression.evaluate(context)
    if math.isnan(value):
        raise EvaluationError(expression.text, "Expression evaluates to NaN")
    if value < 0:
        raise EvaluationError(expression.text, f"Expression evaluates to {value} < 0")
    return value


def megabytes_to_bytes(megabytes: float) -> int:
    """Convert MB to bytes, clamping anything unrepresentable to MAX_SIZE."""
    size = megabytes * MEBIBYTE
    if not math.isfinite(size) or size >= MAX_SIZE:
        return MAX_SIZE
    return int(size)
