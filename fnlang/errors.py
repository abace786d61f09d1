"""
Error types raised while turning fnlang source text into a syntax tree.

Every failure aborts the parse. Both parser backends raise the same
classes at the same positions, so callers only need to catch ParseError.
"""

from typing import FrozenSet, Iterable, Optional, Tuple


# Rendering for expected-token kinds, in the order they are listed in messages
_KIND_LABELS = {
    'FN': "'fn'",
    'LAMBDA': "'lambda'",
    'IDENTIFIER': "identifier",
    'INTEGER': "integer",
    'LPAREN': "'('",
    'RPAREN': "')'",
    'LBRACE': "'{'",
    'RBRACE': "'}'",
    'COMMA': "','",
    'PLUS': "'+'",
    'MINUS': "'-'",
    'STAR': "'*'",
    'SLASH': "'/'",
    'EOF': "end of input",
}


def line_col(source: str, offset: int) -> Tuple[int, int]:
    """1-based line and column of a character offset."""
    line = source.count('\n', 0, offset) + 1
    column = offset - (source.rfind('\n', 0, offset) + 1) + 1
    return line, column


def describe_expected(expected) -> str:
    """Human readable "a, b or c" listing of token kinds."""
    names = {kind.name for kind in expected}
    labels = [label for name, label in _KIND_LABELS.items() if name in names]
    if not labels:
        return "nothing"
    if len(labels) == 1:
        return labels[0]
    return f"{', '.join(labels[:-1])} or {labels[-1]}"


class ParseError(Exception):
    """Base class of all parse failures."""

    def __init__(self, message: str, offset: int, line: int, column: int,
                 expected: Iterable = ()):
        self.message = message
        self.offset = offset
        self.line = line
        self.column = column
        self.expected: FrozenSet = frozenset(expected)
        super().__init__(f"Line {line}, column {column}: {message}")

    @classmethod
    def at(cls, source: str, offset: int, message: str, **kwargs) -> 'ParseError':
        """Build the error with line/column derived from an offset into source."""
        line, column = line_col(source, offset)
        return cls(message, offset, line, column, **kwargs)

    def format_with_source(self, source: str) -> str:
        """Render the message followed by the offending line and a caret."""
        lines = source.splitlines()
        error_line = lines[self.line - 1] if 0 < self.line <= len(lines) else ""
        pointer = " " * (self.column - 1) + "^"
        return f"{self.message}\nIn line {self.line}:\n{error_line}\n{pointer}"


class LexerError(ParseError):
    """Raised when the input cannot be split into tokens."""


class UnterminatedComment(LexerError):
    """A block comment was opened but never closed."""


class InvalidCharacter(LexerError):
    """A character that does not start any token."""


class UnexpectedToken(ParseError):
    """The token at the current position does not continue the current rule."""

    def __init__(self, message: str, offset: int, line: int, column: int,
                 expected: Iterable = (), found: Optional[str] = None):
        self.found = found
        super().__init__(message, offset, line, column, expected)


class UnmatchedBrace(UnexpectedToken):
    """A lambda or function body brace has no matching closer."""


class UnmatchedParen(UnexpectedToken):
    """A call, group or parameter list parenthesis has no matching closer."""


class UnexpectedEndOfInput(ParseError):
    """Input ended in the middle of a construct."""


class NestingTooDeep(ParseError):
    """More brackets are open at once than the parsers support."""


def classify_failure(source: str, offset: int, expected: Iterable,
                     found: Optional[str]) -> ParseError:
    """Pick the error class for a failure given what the grammar allowed.

    `expected` holds token kinds, `found` is the text of the offending
    token or None at end of input.
    """
    expected = frozenset(expected)
    names = {kind.name for kind in expected}
    wanted = describe_expected(expected)

    if found is None:
        if 'RBRACE' in names:
            return UnmatchedBrace.at(
                source, offset, f"Expected {wanted} but input ended; unclosed '{{'",
                expected=expected)
        if 'RPAREN' in names:
            return UnmatchedParen.at(
                source, offset, f"Expected {wanted} but input ended; unclosed '('",
                expected=expected)
        return UnexpectedEndOfInput.at(
            source, offset, f"Unexpected end of input, expected {wanted}",
            expected=expected)

    if 'RBRACE' in names:
        cls = UnmatchedBrace
    elif 'RPAREN' in names:
        cls = UnmatchedParen
    elif {'LBRACE', 'IDENTIFIER'} <= names:
        # Lambda parameter run not followed by its body
        cls = UnmatchedBrace
    else:
        cls = UnexpectedToken
    return cls.at(source, offset, f"Unexpected {found!r}, expected {wanted}",
                  expected=expected, found=found)
