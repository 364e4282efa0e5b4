"""Tokenizer for size expressions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from zram_generator.exceptions import ExpressionSyntaxError


class TokenKind(Enum):
    NUMBER = "number"
    IDENT = "identifier"
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    PERCENT = "%"
    CARET = "^"
    LPAREN = "("
    RPAREN = ")"
    COMMA = ","
    EOF = "end of expression"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    position: int
    value: float | None = None


# Magnitude suffixes multiply the literal they follow: "500k" == 500000.
SUFFIXES: dict[str, float] = {
    "k": 1e3,
    "K": 1e3,
    "M": 1e6,
    "G": 1e9,
    "T": 1e12,
    "m": 1e-3,
    "u": 1e-6,
    "µ": 1e-6,
    "n": 1e-9,
    "p": 1e-12,
}


class Lexer:
    """Turn expression text into a flat token stream.

    Whitespace separates tokens and is otherwise ignored. Any character that
    cannot start a token is a syntax error.
    """

    _SINGLE_CHAR: dict[str, TokenKind] = {
        "+": TokenKind.PLUS,
        "-": TokenKind.MINUS,
        "*": TokenKind.STAR,
        "/": TokenKind.SLASH,
        "%": TokenKind.PERCENT,
        "^": TokenKind.CARET,
        "(": TokenKind.LPAREN,
        ")": TokenKind.RPAREN,
        ",": TokenKind.COMMA,
    }

    def __init__(self, source: str) -> None:
        self._source = source
        self._pos = 0

    def _peek(self, offset: int = 0) -> str:
        """Return character at current position + offset, or '' at EOF."""
        idx = self._pos + offset
        if idx < len(self._source):
            return self._source[idx]
        return ""

    def _error(self, reason: str) -> ExpressionSyntaxError:
        return ExpressionSyntaxError(self._source, f"{reason} at offset {self._pos}")

    @staticmethod
    def _is_ident_char(ch: str) -> bool:
        return ch.isalnum() or ch == "_"

    def tokenize(self) -> list[Token]:
        tokens: list[Token] = []
        while True:
            while self._peek().isspace():
                self._pos += 1
            ch = self._peek()
            if not ch:
                tokens.append(Token(TokenKind.EOF, "", self._pos))
                return tokens
            if ch.isdigit() or (ch == "." and self._peek(1).isdigit()):
                tokens.append(self._number())
            elif ch.isalpha() or ch == "_":
                tokens.append(self._identifier())
            elif ch in self._SINGLE_CHAR:
                tokens.append(Token(self._SINGLE_CHAR[ch], ch, self._pos))
                self._pos += 1
            else:
                raise self._error(f"Unexpected character {ch!r}")

    def _digits(self) -> None:
        while self._peek().isdigit():
            self._pos += 1

    def _number(self) -> Token:
        start = self._pos
        self._digits()
        if self._peek() == ".":
            self._pos += 1
            self._digits()
        if self._peek() in ("e", "E"):
            sign = 1 if self._peek(1) in ("+", "-") else 0
            if self._peek(1 + sign).isdigit():
                self._pos += 1 + sign
                self._digits()
        literal = self._source[start:self._pos]
        try:
            value = float(literal)
        except ValueError:
            raise self._error(f"Malformed number {literal!r}") from None

        suffix = self._peek()
        if suffix in SUFFIXES and not self._is_ident_char(self._peek(1)):
            self._pos += 1
            value *= SUFFIXES[suffix]
        return Token(TokenKind.NUMBER, self._source[start:self._pos], start, value)

    def _identifier(self) -> Token:
        start = self._pos
        while self._is_ident_char(self._peek()):
            self._pos += 1
        return Token(TokenKind.IDENT, self._source[start:self._pos], start)


def tokenize(source: str) -> list[Token]:
    return Lexer(source).tokenize()
