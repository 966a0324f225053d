"""TOG Lexer — Tokenizer with line/column tracking.

Produces a flat list of tokens from TOG source code, always terminated by
EOF. Comments are discarded. The lexer knows nothing about semantics.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from tog.errors import LexError, SourceLocation


class TokenType(Enum):
    # Keywords
    FN = auto()
    LET = auto()
    STRUCT = auto()
    ENUM = auto()
    TRAIT = auto()
    IMPL = auto()
    FOR = auto()
    IN = auto()
    IF = auto()
    ELSE = auto()
    WHILE = auto()
    RETURN = auto()
    MATCH = auto()
    BREAK = auto()
    CONTINUE = auto()
    TRUE = auto()
    FALSE = auto()
    NONE = auto()

    # Literals
    INT_LIT = auto()
    FLOAT_LIT = auto()
    STRING_LIT = auto()

    # Identifier
    IDENT = auto()

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
    ARROW = auto()
    FAT_ARROW = auto()
    AND = auto()
    OR = auto()
    NOT = auto()
    ASSIGN = auto()
    DOT = auto()
    DOUBLE_COLON = auto()

    # Delimiters
    LBRACE = auto()
    RBRACE = auto()
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    COLON = auto()
    COMMA = auto()
    SEMICOLON = auto()

    # Special
    EOF = auto()


KEYWORDS: dict[str, TokenType] = {
    "fn": TokenType.FN,
    "let": TokenType.LET,
    "struct": TokenType.STRUCT,
    "enum": TokenType.ENUM,
    "trait": TokenType.TRAIT,
    "impl": TokenType.IMPL,
    "for": TokenType.FOR,
    "in": TokenType.IN,
    "if": TokenType.IF,
    "else": TokenType.ELSE,
    "while": TokenType.WHILE,
    "return": TokenType.RETURN,
    "match": TokenType.MATCH,
    "break": TokenType.BREAK,
    "continue": TokenType.CONTINUE,
    "true": TokenType.TRUE,
    "false": TokenType.FALSE,
    "none": TokenType.NONE,
}

ESCAPES: dict[str, str] = {
    "n": "\n",
    "t": "\t",
    "\\": "\\",
    '"': '"',
    "{": "{",
    "}": "}",
}

# Two-character operators are tried before their one-character prefixes.
TWO_CHAR_TOKENS: dict[str, TokenType] = {
    "::": TokenType.DOUBLE_COLON,
    "->": TokenType.ARROW,
    "=>": TokenType.FAT_ARROW,
    "==": TokenType.EQ,
    "!=": TokenType.NEQ,
    ">=": TokenType.GTE,
    "<=": TokenType.LTE,
    "&&": TokenType.AND,
    "||": TokenType.OR,
}

ONE_CHAR_TOKENS: dict[str, TokenType] = {
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "*": TokenType.STAR,
    "/": TokenType.SLASH,
    "%": TokenType.PERCENT,
    "=": TokenType.ASSIGN,
    "!": TokenType.NOT,
    ">": TokenType.GT,
    "<": TokenType.LT,
    ".": TokenType.DOT,
    ":": TokenType.COLON,
    ",": TokenType.COMMA,
    ";": TokenType.SEMICOLON,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
}


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    location: SourceLocation

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.location})"


class Lexer:
    """Tokenizer for TOG source code."""

    def __init__(self, source: str, filename: str = "<stdin>"):
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.column = 1

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
            elif ch == "/" and self._peek_ahead() == "/":
                while self.pos < len(self.source) and self.source[self.pos] != "\n":
                    self._advance()
            elif ch == "/" and self._peek_ahead() == "*":
                start = self._loc()
                self._advance()
                self._advance()
                while True:
                    if self.pos >= len(self.source):
                        raise LexError("Unterminated block comment", start)
                    if self.source[self.pos] == "*" and self._peek_ahead() == "/":
                        self._advance()
                        self._advance()
                        break
                    self._advance()
            else:
                break

    def _read_string(self) -> Token:
        loc = self._loc()
        self._advance()  # opening quote
        chars: list[str] = []
        while self.pos < len(self.source):
            ch = self._advance()
            if ch == '"':
                return Token(TokenType.STRING_LIT, "".join(chars), loc)
            if ch == "\\":
                if self.pos >= len(self.source):
                    break
                escape_loc = self._loc()
                next_ch = self._advance()
                if next_ch not in ESCAPES:
                    raise LexError(
                        f"Invalid escape sequence '\\{next_ch}'",
                        escape_loc,
                        {"escape": next_ch},
                    )
                chars.append(ESCAPES[next_ch])
            else:
                chars.append(ch)
        raise LexError("Unterminated string literal", loc)

    def _read_number(self) -> Token:
        loc = self._loc()
        start = self.pos
        is_float = False
        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if ch.isdigit():
                self._advance()
            elif ch == "." and not is_float and (self._peek_ahead() or "").isdigit():
                is_float = True
                self._advance()
            else:
                break
        token_type = TokenType.FLOAT_LIT if is_float else TokenType.INT_LIT
        return Token(token_type, self.source[start:self.pos], loc)

    def _read_identifier(self) -> Token:
        loc = self._loc()
        start = self.pos
        while self.pos < len(self.source) and (self.source[self.pos].isalnum() or self.source[self.pos] == "_"):
            self._advance()
        value = self.source[start:self.pos]
        return Token(KEYWORDS.get(value, TokenType.IDENT), value, loc)

    def tokenize(self) -> list[Token]:
        tokens: list[Token] = []
        while True:
            self._skip_whitespace_and_comments()
            if self.pos >= len(self.source):
                break

            ch = self._peek()
            loc = self._loc()

            if ch == '"':
                tokens.append(self._read_string())
            elif ch.isdigit():
                tokens.append(self._read_number())
            elif ch.isalpha() or ch == "_":
                tokens.append(self._read_identifier())
            elif self.source[self.pos:self.pos + 2] in TWO_CHAR_TOKENS:
                text = self._advance() + self._advance()
                tokens.append(Token(TWO_CHAR_TOKENS[text], text, loc))
            elif ch in ONE_CHAR_TOKENS:
                self._advance()
                tokens.append(Token(ONE_CHAR_TOKENS[ch], ch, loc))
            else:
                raise LexError(f"Unexpected character '{ch}'", loc, {"character": ch})

        tokens.append(Token(TokenType.EOF, "", self._loc()))
        return tokens


def tokenize(source: str, filename: str = "<stdin>") -> list[Token]:
    """Convenience function to tokenize TOG source code."""
    return Lexer(source, filename).tokenize()
