"""psc Lexer — Tokenizer with line/column tracking.

Produces a stream of tokens from module source text. Layout is handled by
the parser, so every token records its column and whether it is the first
token on its line.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from psc.errors import SourceLocation, syntax_error, ParseError


class TokenType(Enum):
    # Keywords
    MODULE = auto()
    WHERE = auto()
    IMPORT = auto()
    FOREIGN = auto()
    IF = auto()
    THEN = auto()
    ELSE = auto()
    DO = auto()
    LET = auto()
    TRUE = auto()
    FALSE = auto()

    # Literals
    INT_LIT = auto()
    NUMBER_LIT = auto()
    STRING_LIT = auto()

    # Names
    IDENT = auto()
    PROPER = auto()
    QUALIFIED = auto()

    # Operators
    PLUS = auto()
    MINUS = auto()
    STAR = auto()
    SLASH = auto()
    PERCENT = auto()
    EQ = auto()
    NEQ = auto()
    GTE = auto()
    LTE = auto()
    GT = auto()
    LT = auto()
    AND = auto()
    OR = auto()
    APPEND = auto()
    ARROW = auto()
    LARROW = auto()
    ASSIGN = auto()
    BACKSLASH = auto()
    DOUBLE_COLON = auto()
    DOT = auto()
    PIPE = auto()

    # Delimiters
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    LBRACE = auto()
    RBRACE = auto()
    COMMA = auto()

    # Special
    EOF = auto()


KEYWORDS: dict[str, TokenType] = {
    "module": TokenType.MODULE,
    "where": TokenType.WHERE,
    "import": TokenType.IMPORT,
    "foreign": TokenType.FOREIGN,
    "if": TokenType.IF,
    "then": TokenType.THEN,
    "else": TokenType.ELSE,
    "do": TokenType.DO,
    "let": TokenType.LET,
    "true": TokenType.TRUE,
    "false": TokenType.FALSE,
}

# Longest match first
OPERATORS: list[tuple[str, TokenType]] = [
    ("::", TokenType.DOUBLE_COLON),
    ("->", TokenType.ARROW),
    ("<-", TokenType.LARROW),
    ("==", TokenType.EQ),
    ("/=", TokenType.NEQ),
    (">=", TokenType.GTE),
    ("<=", TokenType.LTE),
    ("<>", TokenType.APPEND),
    ("&&", TokenType.AND),
    ("||", TokenType.OR),
    ("+", TokenType.PLUS),
    ("-", TokenType.MINUS),
    ("*", TokenType.STAR),
    ("/", TokenType.SLASH),
    ("%", TokenType.PERCENT),
    (">", TokenType.GT),
    ("<", TokenType.LT),
    ("=", TokenType.ASSIGN),
    ("\\", TokenType.BACKSLASH),
    (".", TokenType.DOT),
    ("|", TokenType.PIPE),
    ("(", TokenType.LPAREN),
    (")", TokenType.RPAREN),
    ("[", TokenType.LBRACKET),
    ("]", TokenType.RBRACKET),
    ("{", TokenType.LBRACE),
    ("}", TokenType.RBRACE),
    (",", TokenType.COMMA),
]


@dataclass
class Token:
    type: TokenType
    value: str
    location: SourceLocation
    start: int = 0
    end: int = 0
    first_on_line: bool = False

    @property
    def column(self) -> int:
        return self.location.column

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.location})"


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch in ("_", "'")


class Lexer:
    """Tokenizer for psc source text."""

    def __init__(self, source: str, filename: str = "<stdin>"):
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.column = 1
        self._last_line = 0

    def _loc(self) -> SourceLocation:
        return SourceLocation(self.line, self.column, self.filename)

    def _peek(self) -> Optional[str]:
        if self.pos < len(self.source):
            return self.source[self.pos]
        return None

    def _peek_ahead(self, offset: int = 1) -> Optional[str]:
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return None

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        if ch == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return ch

    def _skip_whitespace_and_comments(self) -> None:
        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if ch in (" ", "\t", "\r", "\n"):
                self._advance()
            elif ch == "-" and self._peek_ahead() == "-":
                while self.pos < len(self.source) and self.source[self.pos] != "\n":
                    self._advance()
            elif ch == "{" and self._peek_ahead() == "-":
                loc = self._loc()
                self._advance()
                self._advance()
                while True:
                    if self.pos >= len(self.source):
                        raise ParseError(syntax_error("Unterminated block comment", loc))
                    if self.source[self.pos] == "-" and self._peek_ahead() == "}":
                        self._advance()
                        self._advance()
                        break
                    self._advance()
            else:
                break

    def _read_string(self) -> str:
        loc = self._loc()
        self._advance()  # opening quote
        value = ""
        while self.pos < len(self.source):
            ch = self._advance()
            if ch == '"':
                return value
            if ch == "\n":
                break
            if ch == "\\":
                if self.pos >= len(self.source):
                    break
                next_ch = self._advance()
                escape_map = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"'}
                value += escape_map.get(next_ch, next_ch)
            else:
                value += ch
        raise ParseError(syntax_error("Unterminated string literal", loc))

    def _read_number(self) -> tuple[TokenType, str]:
        value = ""
        is_number = False
        while self.pos < len(self.source) and (self.source[self.pos].isdigit() or self.source[self.pos] == "."):
            if self.source[self.pos] == ".":
                if is_number:
                    break
                if self._peek_ahead() and self._peek_ahead().isdigit():
                    is_number = True
                else:
                    break
            value += self._advance()
        return (TokenType.NUMBER_LIT if is_number else TokenType.INT_LIT), value

    def _read_segment(self) -> str:
        value = ""
        while self.pos < len(self.source) and _is_ident_char(self.source[self.pos]):
            value += self._advance()
        return value

    def _read_name(self) -> tuple[TokenType, str]:
        value = self._read_segment()
        if not value[0].isupper():
            return KEYWORDS.get(value, TokenType.IDENT), value
        # Proper names may be dotted (Data.Foo); a trailing lower-case
        # segment makes the whole thing a qualified value (Data.Foo.bar).
        while self._peek() == "." and self._peek_ahead() and (
            self._peek_ahead().isalpha() or self._peek_ahead() == "_"
        ):
            self._advance()
            segment = self._read_segment()
            value += "." + segment
            if not segment[0].isupper():
                return TokenType.QUALIFIED, value
        return TokenType.PROPER, value

    def tokenize(self) -> list[Token]:
        tokens: list[Token] = []
        while self.pos < len(self.source):
            self._skip_whitespace_and_comments()
            if self.pos >= len(self.source):
                break

            ch = self._peek()
            loc = self._loc()
            start = self.pos

            if ch == '"':
                tt, value = TokenType.STRING_LIT, self._read_string()
            elif ch.isdigit():
                tt, value = self._read_number()
            elif ch.isalpha() or ch == "_":
                tt, value = self._read_name()
            else:
                for text, op_type in OPERATORS:
                    if self.source.startswith(text, self.pos):
                        for _ in text:
                            self._advance()
                        tt, value = op_type, text
                        break
                else:
                    self._advance()
                    raise ParseError(syntax_error(f"Unexpected character '{ch}'", loc))

            first = loc.line != self._last_line
            self._last_line = loc.line
            tokens.append(Token(tt, value, loc, start, self.pos, first))

        tokens.append(Token(TokenType.EOF, "", self._loc(), self.pos, self.pos, True))
        return tokens


def tokenize(source: str, filename: str = "<stdin>") -> list[Token]:
    """Convenience function to tokenize psc source text."""
    return Lexer(source, filename).tokenize()
