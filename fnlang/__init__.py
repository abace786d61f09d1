"""
fnlang: front end for a small expression-oriented language.

    >>> from fnlang import parse
    >>> program = parse("fn double(x) { x * 2 }")
"""

from .ast import (
    Apply, BinaryOp, BinaryOperator, Call, Expr, FunctionDef, Identifier,
    IntegerLiteral, Lambda, Program, iter_children, walk,
)
from .errors import (
    InvalidCharacter, LexerError, NestingTooDeep, ParseError, UnexpectedEndOfInput,
    UnexpectedToken, UnmatchedBrace, UnmatchedParen, UnterminatedComment,
)
from .parser import parse, parse_file

__all__ = [
    'parse', 'parse_file',
    'Program', 'FunctionDef', 'Expr', 'BinaryOp', 'BinaryOperator', 'Call',
    'Apply', 'Lambda', 'Identifier', 'IntegerLiteral', 'iter_children', 'walk',
    'ParseError', 'LexerError', 'UnterminatedComment', 'InvalidCharacter',
    'UnexpectedToken', 'UnmatchedBrace', 'UnmatchedParen', 'UnexpectedEndOfInput',
    'NestingTooDeep',
]
