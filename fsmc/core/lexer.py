# fsmc/core/lexer.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Tokenizer for the specification language. Produces a flat token list that the
parser walks with one token of lookahead (two for the ``<-`` poll arrow).
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import List

from fsmc.core.errors import ParseError


class TokenKind(Enum):
    """Kinds of tokens recognised in specification text."""

    IDENT = auto()
    LIFETIME = auto()  # 'a
    COMMA = auto()
    SEMICOLON = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LPAREN = auto()
    RPAREN = auto()
    LT = auto()
    GT = auto()
    AMP = auto()
    FAT_ARROW = auto()  # =>
    PUSH_ARROW = auto()  # ->
    POLL_ARROW = auto()  # <-
    EOF = auto()


@dataclass(frozen=True)
class Span:
    """Location of a token in the source text (line and column are 1-based)."""

    offset: int
    line: int
    column: int
    length: int = 0


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    span: Span


_SINGLE = {
    ",": TokenKind.COMMA,
    ";": TokenKind.SEMICOLON,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    ">": TokenKind.GT,
    "&": TokenKind.AMP,
}

_DOUBLE = {
    "=>": TokenKind.FAT_ARROW,
    "->": TokenKind.PUSH_ARROW,
    "<-": TokenKind.POLL_ARROW,
}


def _is_ident_start(char: str) -> bool:
    return char.isalpha() or char == "_"


def _is_ident_part(char: str) -> bool:
    return char.isalnum() or char == "_"


class Lexer:
    """
    Converts specification text into tokens. Whitespace is insignificant;
    ``#`` and ``//`` start a comment that runs to the end of the line.
    """

    def __init__(self, text: str) -> None:
        """
        :param text: The specification source.
        """
        self._text = text
        self._pos = 0
        self._line = 1
        self._line_start = 0

    def tokenize(self) -> List[Token]:
        """
        Produce the complete token list, terminated by an EOF token.

        :raises ParseError: If an unknown character is encountered.
        """
        tokens: List[Token] = []
        while True:
            self._skip_trivia()
            if self._pos >= len(self._text):
                tokens.append(Token(TokenKind.EOF, "", self._span(0)))
                return tokens
            tokens.append(self._next_token())

    def _span(self, length: int) -> Span:
        return Span(
            offset=self._pos,
            line=self._line,
            column=self._pos - self._line_start + 1,
            length=length,
        )

    def _skip_trivia(self) -> None:
        text = self._text
        while self._pos < len(text):
            char = text[self._pos]
            if char == "\n":
                self._pos += 1
                self._line += 1
                self._line_start = self._pos
            elif char.isspace():
                self._pos += 1
            elif char == "#" or text.startswith("//", self._pos):
                end = text.find("\n", self._pos)
                self._pos = len(text) if end == -1 else end
            else:
                return

    def _next_token(self) -> Token:
        text = self._text
        char = text[self._pos]

        pair = text[self._pos : self._pos + 2]
        if pair in _DOUBLE:
            return self._emit(_DOUBLE[pair], pair)

        if char == "<":
            return self._emit(TokenKind.LT, char)

        if char in _SINGLE:
            return self._emit(_SINGLE[char], char)

        if char == "'":
            end = self._pos + 1
            while end < len(text) and _is_ident_part(text[end]):
                end += 1
            if end == self._pos + 1:
                raise ParseError("Expected a lifetime name after \"'\"", self._span(1))
            return self._emit(TokenKind.LIFETIME, text[self._pos : end])

        if _is_ident_start(char):
            end = self._pos + 1
            while end < len(text):
                if _is_ident_part(text[end]):
                    end += 1
                elif text[end] in ".:" and end + 1 < len(text):
                    # Dotted or path-qualified names: a.b.C, a::B
                    step = 2 if text.startswith("::", end) else 1
                    if end + step < len(text) and _is_ident_start(text[end + step]):
                        end += step
                    else:
                        break
                else:
                    break
            return self._emit(TokenKind.IDENT, text[self._pos : end])

        raise ParseError(f"Unexpected character {char!r}", self._span(1))

    def _emit(self, kind: TokenKind, lexeme: str) -> Token:
        token = Token(kind, lexeme, self._span(len(lexeme)))
        self._pos += len(lexeme)
        return token


def tokenize(text: str) -> List[Token]:
    """Tokenize ``text``; see :class:`Lexer`."""
    return Lexer(text).tokenize()
