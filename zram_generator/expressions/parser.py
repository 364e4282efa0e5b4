"""Expression AST nodes and a recursive-descent parser for size expressions.

Grammar (lowest to highest precedence)::

    expression     := additive EOF
    additive       := multiplicative (("+" | "-") multiplicative)*
    multiplicative := unary (("*" | "/" | "%") unary)*
    unary          := ("-" | "+") unary | power
    power          := primary ("^" unary)?
    primary        := NUMBER | IDENT | IDENT "(" arguments ")" | "(" additive ")"
    arguments      := additive ("," additive)*
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass

from zram_generator.exceptions import ExpressionSyntaxError

from .lexer import Token, TokenKind, tokenize


class ExprNode(ABC):
    """Base type for expression nodes. All concrete subclasses are frozen dataclasses."""


@dataclass(frozen=True)
class Number(ExprNode):
    """Numeric literal with any magnitude suffix already applied."""

    value: float


@dataclass(frozen=True)
class Variable(ExprNode):
    """Reference to ``ram`` or a variable bound by a ``set!`` directive."""

    name: str


@dataclass(frozen=True)
class UnaryOp(ExprNode):
    op: str
    operand: ExprNode


@dataclass(frozen=True)
class BinaryOp(ExprNode):
    """Binary operation: left op right. Op is one of +, -, *, /, %, ^."""

    op: str
    left: ExprNode
    right: ExprNode


@dataclass(frozen=True)
class Call(ExprNode):
    """Function call such as ``min(ram / 2, 4096)``."""

    name: str
    args: tuple[ExprNode, ...]


class Parser:
    def __init__(self, source: str) -> None:
        self._source = source
        self._tokens = tokenize(source)
        self._index = 0

    def _peek(self) -> Token:
        return self._tokens[self._index]

    def _advance(self) -> Token:
        token = self._tokens[self._index]
        if token.kind is not TokenKind.EOF:
            self._index += 1
        return token

    def _expect(self, kind: TokenKind) -> Token:
        token = self._peek()
        if token.kind is not kind:
            raise self._unexpected(token, f"expected {kind.value!r}")
        return self._advance()

    def _unexpected(self, token: Token, detail: str = "") -> ExpressionSyntaxError:
        found = token.text or token.kind.value
        reason = f"Unexpected {found!r} at offset {token.position}"
        if detail:
            reason += f", {detail}"
        return ExpressionSyntaxError(self._source, reason)

    def parse(self) -> ExprNode:
        if self._peek().kind is TokenKind.EOF:
            raise ExpressionSyntaxError(self._source, "Empty expression")
        node = self._additive()
        token = self._peek()
        if token.kind is not TokenKind.EOF:
            raise self._unexpected(token)
        return node

    def _additive(self) -> ExprNode:
        node = self._multiplicative()
        while self._peek().kind in (TokenKind.PLUS, TokenKind.MINUS):
            op = self._advance().text
            node = BinaryOp(op, node, self._multiplicative())
        return node

    def _multiplicative(self) -> ExprNode:
        node = self._unary()
        while self._peek().kind in (TokenKind.STAR, TokenKind.SLASH, TokenKind.PERCENT):
            op = self._advance().text
            node = BinaryOp(op, node, self._unary())
        return node

    def _unary(self) -> ExprNode:
        if self._peek().kind is TokenKind.MINUS:
            self._advance()
            return UnaryOp("-", self._unary())
        if self._peek().kind is TokenKind.PLUS:
            self._advance()
            return self._unary()
        return self._power()

    def _power(self) -> ExprNode:
        node = self._primary()
        if self._peek().kind is TokenKind.CARET:
            self._advance()
            # Right-associative: 2^3^2 == 2^(3^2)
            node = BinaryOp("^", node, self._unary())
        return node

    def _primary(self) -> ExprNode:
        token = self._peek()
        if token.kind is TokenKind.NUMBER:
            self._advance()
            return Number(token.value)
        if token.kind is TokenKind.IDENT:
            self._advance()
            if self._peek().kind is TokenKind.LPAREN:
                self._advance()
                args = [self._additive()]
                while self._peek().kind is TokenKind.COMMA:
                    self._advance()
                    args.append(self._additive())
                self._expect(TokenKind.RPAREN)
                return Call(token.text, tuple(args))
            return Variable(token.text)
        if token.kind is TokenKind.LPAREN:
            self._advance()
            node = self._additive()
            self._expect(TokenKind.RPAREN)
            return node
        raise self._unexpected(token)


def parse(source: str) -> ExprNode:
    """Parse expression text into an AST.

    Raises:
        ExpressionSyntaxError: If the text is not a well-formed expression
    """
    return Parser(source).parse()
