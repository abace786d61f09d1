"""
Grammar-based parser for fnlang using Lark.

Uses the formal grammar in grammar.lark and Lark's LALR parser to produce
the same AST nodes and the same ParseError classes as the hand-written
recursive descent parser in parser.py.
"""

from pathlib import Path

from lark import Lark, Transformer, v_args
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedToken

from .ast import (
    BinaryOp, BinaryOperator, Call, FunctionDef, Identifier, IntegerLiteral,
    Lambda, Program,
)
from .errors import InvalidCharacter, ParseError, UnterminatedComment, classify_failure
from .lexer import TokenType, first_too_deep, nesting_error


# Load grammar from file
GRAMMAR_PATH = Path(__file__).parent / "grammar.lark"

# Grammar terminal name -> token kinds it stands for
TERMINAL_KINDS = {
    'FN': (TokenType.FN,),
    'LAMBDA': (TokenType.LAMBDA,),
    'NAME': (TokenType.IDENTIFIER,),
    'NS_NAME': (TokenType.IDENTIFIER,),
    'INT': (TokenType.INTEGER,),
    'ADD_OP': (TokenType.PLUS, TokenType.MINUS),
    'MUL_OP': (TokenType.STAR, TokenType.SLASH),
    '_LPAR': (TokenType.LPAREN,),
    '_RPAR': (TokenType.RPAREN,),
    '_LBRACE': (TokenType.LBRACE,),
    '_RBRACE': (TokenType.RBRACE,),
    '_COMMA': (TokenType.COMMA,),
    '$END': (TokenType.EOF,),
}


@v_args(inline=True)
class FnTransformer(Transformer):
    """Transform Lark parse tree into our AST nodes."""

    # =========================================================================
    # Top-level
    # =========================================================================

    def start(self, *functions):
        return Program(tuple(functions))

    def function_def(self, token, name, params, body):
        return FunctionDef(name, params, body, token.start_pos, token.line, token.column)

    def param_list(self, *params):
        return tuple(params)

    # =========================================================================
    # Expressions
    # =========================================================================

    def add_expr(self, first, *rest):
        return self._fold(first, rest)

    def mul_expr(self, first, *rest):
        return self._fold(first, rest)

    def _fold(self, left, rest):
        """Fold `operand (OP operand)*` left to right."""
        for i in range(0, len(rest), 2):
            token, right = rest[i], rest[i + 1]
            left = BinaryOp(left, BinaryOperator.from_symbol(str(token)), right,
                            token.start_pos, token.line, token.column)
        return left

    def lambda_expr(self, token, *items):
        *params, body = items
        return Lambda(tuple(params), body, token.start_pos, token.line, token.column)

    def function_call(self, callee, *argument_lists):
        return Call(callee, tuple(argument_lists), callee.offset, callee.line, callee.column)

    def argument_list(self, *args):
        return tuple(args)

    def identifier(self, token):
        return Identifier.from_text(str(token), token.start_pos, token.line, token.column)

    def integer(self, token):
        return IntegerLiteral.from_text(str(token), token.start_pos, token.line, token.column)


def _reject_unterminated_comment(token):
    raise UnterminatedComment("Unterminated block comment",
                              token.start_pos, token.line, token.column)


def _expected_kinds(terminals):
    kinds = set()
    for name in terminals:
        kinds.update(TERMINAL_KINDS.get(name, ()))
    return kinds


# Create parser instance
_parser = None


def get_parser():
    """Get or create the Lark parser instance."""
    global _parser
    if _parser is None:
        with open(GRAMMAR_PATH) as f:
            grammar = f.read()
        _parser = Lark(
            grammar,
            parser='lalr',
            lexer='basic',
            lexer_callbacks={'UNTERMINATED_COMMENT': _reject_unterminated_comment},
        )
    return _parser


def _parse_tree(source: str):
    try:
        return get_parser().parse(source)
    except UnexpectedCharacters as e:
        raise InvalidCharacter.at(
            source, e.pos_in_stream,
            f"Unexpected character: {source[e.pos_in_stream]!r}") from None
    except UnexpectedToken as e:
        # e.expected holds the merged LALR lookaheads of the state; accepts is exact
        expected = _expected_kinds(e.accepts or e.expected)
        if e.token.type == '$END':
            raise classify_failure(source, len(source), expected, None) from None
        raise classify_failure(source, e.token.start_pos, expected, str(e.token)) from None
    except UnexpectedEOF as e:
        raise classify_failure(source, len(source), _expected_kinds(e.expected), None) from None


def parse(source: str) -> Program:
    """Parse fnlang source code into a Program."""
    error = tree = None
    try:
        tree = _parse_tree(source)
    except ParseError as e:
        error = e

    # The transformer recurses once per nesting level, so the bracket limit
    # applies here too. A failure before the offending bracket wins.
    too_deep = first_too_deep(source)
    if too_deep is not None and (error is None or error.offset > too_deep.offset):
        raise nesting_error(source, too_deep)
    if error is not None:
        raise error
    return FnTransformer().transform(tree)


def parse_file(path) -> Program:
    """Parse a fnlang file into a Program."""
    return parse(Path(path).read_text(encoding='utf-8'))
