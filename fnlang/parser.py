"""
Parser for fnlang.

Recursive descent over the lazily produced token stream. Ordered choice in
the grammar is resolved with one token of lookahead, so the parser never
backtracks and the first error it raises is the deepest one.
"""

from pathlib import Path
from typing import FrozenSet, List, Tuple

from .ast import (
    BinaryOp, BinaryOperator, Call, Expr, FunctionDef, Identifier,
    IntegerLiteral, Lambda, Program,
)
from .errors import classify_failure
from .lexer import (
    CLOSING_TOKENS, MAX_NESTING, OPENING_TOKENS, Lexer, Token, TokenType, nesting_error,
)


ADD_TOKENS = frozenset({TokenType.PLUS, TokenType.MINUS})
MUL_TOKENS = frozenset({TokenType.STAR, TokenType.SLASH})
OPERATOR_TOKENS = ADD_TOKENS | MUL_TOKENS

# Tokens that can begin a primary expression
PRIMARY_START = frozenset({
    TokenType.LAMBDA, TokenType.IDENTIFIER, TokenType.INTEGER, TokenType.LPAREN,
})


class Parser:
    """Recursive descent parser for fnlang."""

    def __init__(self, source: str):
        self.source = source
        self._lexer = Lexer(source)
        self._lookahead: List[Token] = []
        self._depth = 0  # brackets consumed but not yet closed

    def parse(self) -> Program:
        """Parse the whole source into a Program."""
        functions = []

        while not self._at_end():
            if not self._check(TokenType.FN):
                self._fail({TokenType.FN, TokenType.EOF})
            functions.append(self._parse_function())

        return Program(tuple(functions))

    # =========================================================================
    # Helper methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _peek(self, offset: int = 0) -> Token:
        # The lexer keeps returning EOF once the input is exhausted
        while len(self._lookahead) <= offset:
            self._lookahead.append(self._lexer.next_token())
        return self._lookahead[offset]

    def _advance(self) -> Token:
        token = self._peek()
        if token.type != TokenType.EOF:
            self._lookahead.pop(0)

        # Bound the recursion depth of the expression methods
        if token.type in OPENING_TOKENS:
            self._depth += 1
            if self._depth > MAX_NESTING:
                raise nesting_error(self.source, token)
        elif token.type in CLOSING_TOKENS:
            self._depth -= 1
        return token

    def _check(self, token_type: TokenType) -> bool:
        return self._peek().type == token_type

    def _match(self, *token_types: TokenType) -> bool:
        for tt in token_types:
            if self._check(tt):
                self._advance()
                return True
        return False

    def _expect(self, token_type: TokenType, expected: FrozenSet[TokenType] = None) -> Token:
        """Consume a token of the given type.

        `expected` is everything the grammar would have accepted here, used
        to classify and describe the failure.
        """
        if self._check(token_type):
            return self._advance()
        self._fail(expected or {token_type})

    def _fail(self, expected):
        token = self._peek()
        found = None if token.type == TokenType.EOF else token.value
        raise classify_failure(self.source, token.offset, expected, found)

    # =========================================================================
    # Function definitions
    # =========================================================================

    def _parse_function(self) -> FunctionDef:
        """Parse: fn NAME(params) { expr }"""
        token = self._expect(TokenType.FN)
        name = self._parse_identifier()

        self._expect(TokenType.LPAREN)
        params = self._parse_function_params()
        self._expect(TokenType.RPAREN, {TokenType.COMMA, TokenType.RPAREN})

        self._expect(TokenType.LBRACE)
        body = self._parse_expr()
        self._expect(TokenType.RBRACE, OPERATOR_TOKENS | {TokenType.RBRACE})

        return FunctionDef(name, params, body, token.offset, token.line, token.column)

    def _parse_function_params(self) -> Tuple[Identifier, ...]:
        """Parse parameters: () or (a, b, c) with no trailing comma."""
        if self._check(TokenType.RPAREN):
            return ()
        if not self._check(TokenType.IDENTIFIER):
            self._fail({TokenType.IDENTIFIER, TokenType.RPAREN})

        params = [self._parse_identifier()]
        while self._match(TokenType.COMMA):
            params.append(self._parse_identifier())
        return tuple(params)

    def _parse_identifier(self) -> Identifier:
        token = self._expect(TokenType.IDENTIFIER)
        return Identifier.from_text(token.value, token.offset, token.line, token.column)

    # =========================================================================
    # Expression parsing
    # =========================================================================

    def _parse_expr(self) -> Expr:
        """Parse an expression - entry point."""
        return self._parse_additive_expr()

    def _parse_additive_expr(self) -> Expr:
        """Parse additive expressions (+, -), left associative."""
        left = self._parse_multiplicative_expr()

        while self._peek().type in ADD_TOKENS:
            token = self._advance()
            right = self._parse_multiplicative_expr()
            left = BinaryOp(left, BinaryOperator.from_symbol(token.value), right,
                            token.offset, token.line, token.column)

        return left

    def _parse_multiplicative_expr(self) -> Expr:
        """Parse multiplicative expressions (*, /), left associative."""
        left = self._parse_primary_expr()

        while self._peek().type in MUL_TOKENS:
            token = self._advance()
            right = self._parse_primary_expr()
            left = BinaryOp(left, BinaryOperator.from_symbol(token.value), right,
                            token.offset, token.line, token.column)

        return left

    def _parse_primary_expr(self) -> Expr:
        """Parse lambda, call, identifier, integer or grouped expression, in that order."""
        token = self._peek()

        if token.type == TokenType.LAMBDA:
            return self._parse_lambda()

        if token.type == TokenType.IDENTIFIER:
            # A following '(' makes this a call, otherwise a plain reference
            if self._peek(1).type == TokenType.LPAREN:
                return self._parse_function_call()
            return self._parse_identifier()

        if token.type == TokenType.INTEGER:
            self._advance()
            return IntegerLiteral.from_text(token.value, token.offset, token.line, token.column)

        if token.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_expr()
            self._expect(TokenType.RPAREN, OPERATOR_TOKENS | {TokenType.RPAREN})
            return expr

        self._fail(PRIMARY_START)

    def _parse_lambda(self) -> Lambda:
        """Parse: lambda x y ... { expr }"""
        token = self._expect(TokenType.LAMBDA)

        params = []
        while self._check(TokenType.IDENTIFIER):
            params.append(self._parse_identifier())

        self._expect(TokenType.LBRACE, {TokenType.IDENTIFIER, TokenType.LBRACE})
        body = self._parse_expr()
        self._expect(TokenType.RBRACE, OPERATOR_TOKENS | {TokenType.RBRACE})

        return Lambda(tuple(params), body, token.offset, token.line, token.column)

    def _parse_function_call(self) -> Call:
        """Parse one or more adjacent argument lists after an identifier."""
        callee = self._parse_identifier()

        argument_lists = [self._parse_argument_list()]
        while self._check(TokenType.LPAREN):
            argument_lists.append(self._parse_argument_list())

        return Call(callee, tuple(argument_lists), callee.offset, callee.line, callee.column)

    def _parse_argument_list(self) -> Tuple[Expr, ...]:
        """Parse: ( [expr {, expr}] )"""
        self._expect(TokenType.LPAREN)

        if self._match(TokenType.RPAREN):
            return ()
        if self._peek().type not in PRIMARY_START:
            self._fail(PRIMARY_START | {TokenType.RPAREN})

        args = [self._parse_expr()]
        while self._match(TokenType.COMMA):
            args.append(self._parse_expr())

        self._expect(TokenType.RPAREN, OPERATOR_TOKENS | {TokenType.COMMA, TokenType.RPAREN})
        return tuple(args)


def parse(source: str) -> Program:
    """Convenience function to parse source code into a Program."""
    return Parser(source).parse()


def parse_file(path) -> Program:
    """Parse a fnlang file into a Program."""
    return parse(Path(path).read_text(encoding='utf-8'))
