"""
Lexer for fnlang.

Splits source text into tokens on demand: the parser pulls one token at a
time, so an error late in the input is only reported once the parser gets
there.
"""

import string
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, List, Optional

from .errors import InvalidCharacter, LexerError, NestingTooDeep, UnterminatedComment


class TokenType(Enum):
    # Keywords
    FN = auto()
    LAMBDA = auto()

    # Symbols
    LPAREN = auto()      # (
    RPAREN = auto()      # )
    LBRACE = auto()      # {
    RBRACE = auto()      # }
    COMMA = auto()       # ,

    # Arithmetic operators
    PLUS = auto()        # +
    MINUS = auto()       # -
    STAR = auto()        # *
    SLASH = auto()       # /

    # Literals
    INTEGER = auto()
    IDENTIFIER = auto()  # plain or namespaced (ns::name)

    # Special
    EOF = auto()


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    offset: int
    line: int
    column: int

    def __repr__(self):
        return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"


KEYWORDS = {
    'fn': TokenType.FN,
    'lambda': TokenType.LAMBDA,
}

OPENING_TOKENS = frozenset({TokenType.LPAREN, TokenType.LBRACE})
CLOSING_TOKENS = frozenset({TokenType.RPAREN, TokenType.RBRACE})

# Brackets open at the same time, counting the function's own braces
MAX_NESTING = 100

SINGLE_CHAR_TOKENS = {
    '(': TokenType.LPAREN,
    ')': TokenType.RPAREN,
    '{': TokenType.LBRACE,
    '}': TokenType.RBRACE,
    ',': TokenType.COMMA,
    '+': TokenType.PLUS,
    '-': TokenType.MINUS,
    '*': TokenType.STAR,
    '/': TokenType.SLASH,
}

WHITESPACE = frozenset(' \t\r\n')
IDENT_START = frozenset(string.ascii_letters + '_')
IDENT_CHARS = IDENT_START | frozenset(string.digits)
DIGITS = frozenset(string.digits)


class Lexer:
    """Tokenizer for fnlang."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.column = 1

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.EOF:
                return

    def tokenize(self) -> List[Token]:
        """Tokenize the entire source and return list of tokens."""
        return list(self)

    def next_token(self) -> Token:
        """Scan and return the next significant token (EOF once exhausted)."""
        self._skip_insignificant()

        start = (self.pos, self.line, self.column)
        if self._at_end():
            return Token(TokenType.EOF, '', *start)

        char = self._peek()

        if char in DIGITS:
            return self._scan_integer(start)

        if char in IDENT_START:
            return self._scan_identifier(start)

        if char in SINGLE_CHAR_TOKENS:
            self._advance()
            return Token(SINGLE_CHAR_TOKENS[char], char, *start)

        raise InvalidCharacter(f"Unexpected character: {char!r}", *start)

    def _at_end(self) -> bool:
        return self.pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        pos = self.pos + offset
        if pos >= len(self.source):
            return '\0'
        return self.source[pos]

    def _advance(self) -> str:
        char = self.source[self.pos]
        self.pos += 1
        if char == '\n':
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        return char

    def _skip_insignificant(self):
        """Skip whitespace, line comments and block comments."""
        while not self._at_end():
            char = self._peek()
            if char in WHITESPACE:
                self._advance()
            elif char == '/' and self._peek(1) == '/':
                while not self._at_end() and self._peek() != '\n':
                    self._advance()
            elif char == '/' and self._peek(1) == '*':
                self._skip_block_comment()
            else:
                return

    def _skip_block_comment(self):
        start = (self.pos, self.line, self.column)
        end = self.source.find('*/', self.pos + 2)
        if end == -1:
            raise UnterminatedComment("Unterminated block comment", *start)
        while self.pos < end + 2:
            self._advance()

    def _scan_integer(self, start) -> Token:
        begin = self.pos
        while not self._at_end() and self._peek() in DIGITS:
            self._advance()
        return Token(TokenType.INTEGER, self.source[begin:self.pos], *start)

    def _read_word(self):
        while not self._at_end() and self._peek() in IDENT_CHARS:
            self._advance()

    def _scan_identifier(self, start) -> Token:
        begin = self.pos
        self._read_word()

        # Namespaced form wins over the plain one: ns::name is a single token
        if self._peek() == ':' and self._peek(1) == ':' and self._peek(2) in IDENT_START:
            self._advance()
            self._advance()
            self._read_word()
            return Token(TokenType.IDENTIFIER, self.source[begin:self.pos], *start)

        value = self.source[begin:self.pos]
        return Token(KEYWORDS.get(value, TokenType.IDENTIFIER), value, *start)


def tokenize(source: str) -> List[Token]:
    """Convenience function to tokenize source code."""
    return Lexer(source).tokenize()


def nesting_error(source: str, token: Token) -> NestingTooDeep:
    return NestingTooDeep.at(
        source, token.offset, f"More than {MAX_NESTING} brackets open at {token.value!r}")


def first_too_deep(source: str) -> Optional[Token]:
    """The first opening bracket that takes the open count past MAX_NESTING.

    Counting stops at a lexical error; parsing reports that error itself.
    """
    depth = 0
    try:
        for token in Lexer(source):
            if token.type in OPENING_TOKENS:
                depth += 1
                if depth > MAX_NESTING:
                    return token
            elif token.type in CLOSING_TOKENS:
                depth -= 1
    except LexerError:
        pass
    return None
