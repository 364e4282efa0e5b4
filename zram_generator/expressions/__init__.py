"""Arithmetic size expressions over ``ram`` and directive-defined variables."""

from __future__ import annotations

from .evaluator import (
    RAM_VARIABLE,
    EvaluationContext,
    Expression,
    evaluate,
    evaluate_size,
    megabytes_to_bytes,
)
from .parser import parse


__all__ = [
    "RAM_VARIABLE",
    "EvaluationContext",
    "Expression",
    "evaluate",
    "evaluate_size",
    "megabytes_to_bytes",
    "parse",
]
