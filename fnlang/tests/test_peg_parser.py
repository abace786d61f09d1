"""
Tests for the Lark-based fnlang parser.

These tests verify that the grammar-driven parser produces the same AST
and the same errors as the hand-written recursive descent parser.
"""

import pytest

from fnlang.ast import BinaryOp, BinaryOperator, Call, Identifier, IntegerLiteral, Lambda
from fnlang.converter import expr_to_string
from fnlang.errors import (
    InvalidCharacter, NestingTooDeep, ParseError, UnexpectedEndOfInput,
    UnexpectedToken, UnmatchedBrace, UnmatchedParen, UnterminatedComment,
)
from fnlang.lexer import MAX_NESTING
from fnlang.parser import parse as handwritten_parse
from fnlang.peg_parser import get_parser, parse as peg_parse, parse_file


# Use PEG parser as the default for these tests
parse = peg_parse


def body(source):
    return parse(source).functions[0].body


VALID_SOURCES = [
    "",
    "fn f() { 1 }",
    "fn f(a, b) { a + b }",
    "fn f() { 1 + 2 * 3 }",
    "fn f() { 10 - 2 - 3 }",
    "fn f() { 8 / 4 / 2 * 3 }",
    "fn f() { (1 + 2) * (3 - 4) }",
    "fn f() { g(1)(2,3) }",
    "fn f() { g()()() }",
    "fn f() { a::b }",
    "fn f() { fn::x + lambda::y }",
    "fn f() { std::add(1, 2) }",
    "fn f() { lambda x y { x + y } }",
    "fn f() { lambda { 1 } }",
    "fn f() { lambda x { lambda y { x * y } } }",
    "fn f() { map(lambda x { x * 2 }, xs)(0) / 4 }",
    "fn f() { 007 }",
    "fn f() { fnord + lambdas }",
    "fn f(x, x) { x }",
    "fn math::sq(x) { x * x } fn g() { math::sq(3) }",
    "// header\nfn f(/* none */) { /* body */ 1 // trailing\n}",
    "fn f() { 1 } /* done */",
    "\r\n\tfn f ( a , b ) { a }\r\n",
    "fn f() { " + "9" * 5000 + " }",
    "fn f() { " + "(" * (MAX_NESTING - 1) + "1" + ")" * (MAX_NESTING - 1) + " }",
]

INVALID_SOURCES = [
    ("fn f() { 1 + }", UnexpectedToken),
    ("fn f() { 1 ", UnmatchedBrace),
    ("fn f() { g(1, 2 }", UnmatchedParen),
    ("fn f() { g(1", UnmatchedParen),
    ("fn f() { g( }", UnmatchedParen),
    ("fn f() { (1 + 2 }", UnmatchedParen),
    ("fn f() { (g)(1) }", UnmatchedBrace),
    ("fn f() { lambda x 1 }", UnmatchedBrace),
    ("fn f() { lambda x { x }", UnmatchedBrace),
    ("fn f() { lambda x { } }", UnexpectedToken),
    ("fn f(a,) { a }", UnexpectedToken),
    ("fn f() { g(1,) }", UnexpectedToken),
    ("fn f(a b) { a }", UnmatchedParen),
    ("fn f( 1 ) { 1 }", UnmatchedParen),
    ("fn f() 1", UnexpectedToken),
    ("fn f() { }", UnexpectedToken),
    ("fn f() { 1 } x", UnexpectedToken),
    ("fn fn() { 1 }", UnexpectedToken),
    ("fn", UnexpectedEndOfInput),
    ("fn f", UnexpectedEndOfInput),
    ("fn f() { 1 *", UnexpectedEndOfInput),
    ("fn f() { 1 } fn", UnexpectedEndOfInput),
    ("fn f() { a::b::c }", InvalidCharacter),
    ("fn f() { a :: b }", InvalidCharacter),
    ("fn f() { 1 $ }", InvalidCharacter),
    ("fn f() { 1 } /* open", UnterminatedComment),
    ("fn f() { 1 /* open }", UnterminatedComment),
    ("fn ok() { 1 }\nfn broken( { 2 }", UnmatchedParen),
    ("fn f() { " + "(" * 2000 + "1" + ")" * 2000 + " }", NestingTooDeep),
    ("fn f() { " + "g(" * 500 + "1" + ")" * 500 + " }", NestingTooDeep),
    ("fn f() { " + "(" * 200 + "$", NestingTooDeep),
    ("fn f() { " + "(" * 200 + " /* open", NestingTooDeep),
    ("fn f() { 1 2 " + "(" * 200, UnmatchedBrace),
    ("fn f() { " + "(" * (MAX_NESTING - 1) + "1 (", UnmatchedParen),
]


class TestPEGBasic:
    """Basic parsing tests."""

    def test_empty_input(self):
        program = parse("")
        assert program is not None
        assert program.functions == ()

    def test_function(self):
        func = parse("fn add(a, b) { a + b }").functions[0]
        assert func.name == Identifier("add")
        assert func.params == (Identifier("a"), Identifier("b"))
        assert func.body == BinaryOp(Identifier("a"), BinaryOperator.ADD, Identifier("b"))

    def test_precedence(self):
        assert expr_to_string(body("fn f() { 1 + 2 * 3 }")) == "(1 + (2 * 3))"

    def test_left_associativity(self):
        assert expr_to_string(body("fn f() { 10 - 2 - 3 }")) == "((10 - 2) - 3)"

    def test_curried_call(self):
        expr = body("fn f() { g(1)(2,3) }")
        assert expr == Call(Identifier("g"), (
            (IntegerLiteral(1),),
            (IntegerLiteral(2), IntegerLiteral(3)),
        ))

    def test_namespaced_identifier(self):
        assert body("fn f() { a::b }") == Identifier("b", "a")

    def test_lambda_parameters(self):
        expr = body("fn f() { lambda x y { x + y } }")
        assert isinstance(expr, Lambda)
        assert [p.name for p in expr.params] == ["x", "y"]
        assert body("fn f() { lambda { 1 } }") == Lambda((), IntegerLiteral(1))

    def test_keyword_prefix(self):
        assert body("fn f() { fnord }") == Identifier("fnord")

    def test_comments_ignored(self):
        assert parse("// a\nfn /* b */ f() { 1 }") == parse("fn f() { 1 }")

    def test_positions(self):
        expr = body("fn f() {\n  g(1) + 2\n}")
        assert (expr.line, expr.column, expr.offset) == (2, 8, 16)
        assert (expr.left.line, expr.left.column) == (2, 3)

    def test_parser_is_cached(self):
        assert get_parser() is get_parser()

    def test_parse_file(self, tmp_path):
        path = tmp_path / "prog.fn"
        path.write_text("fn main() { 1 }", encoding="utf-8")
        assert parse_file(path).functions[0].name == Identifier("main")


class TestPEGErrors:
    """Error classes raised by the grammar-driven parser."""

    @pytest.mark.parametrize("source,error", INVALID_SOURCES)
    def test_error_class(self, source, error):
        with pytest.raises(error):
            parse(source)

    def test_all_errors_are_parse_errors(self):
        for source, _ in INVALID_SOURCES:
            with pytest.raises(ParseError):
                parse(source)

    def test_unterminated_comment_position(self):
        with pytest.raises(UnterminatedComment) as exc:
            parse("fn f() {\n  1 /* open }")
        assert (exc.value.line, exc.value.column, exc.value.offset) == (2, 5, 13)

    def test_end_of_input_offset(self):
        with pytest.raises(UnmatchedBrace) as exc:
            parse("fn f() { 1   ")
        assert exc.value.offset == 13

    def test_nesting_position(self):
        source = "fn f() {\n" + "(" * 2000 + "1" + ")" * 2000 + "\n}"
        with pytest.raises(NestingTooDeep) as exc:
            parse(source)
        assert exc.value.offset == 9 + MAX_NESTING - 1
        assert (exc.value.line, exc.value.column) == (2, MAX_NESTING)


class TestBackendsAgree:
    """The two parsers are interchangeable."""

    @pytest.mark.parametrize("source", VALID_SOURCES)
    def test_same_tree(self, source):
        assert peg_parse(source) == handwritten_parse(source)

    @pytest.mark.parametrize("source,error", INVALID_SOURCES)
    def test_same_error(self, source, error):
        with pytest.raises(ParseError) as peg_exc:
            peg_parse(source)
        with pytest.raises(ParseError) as rd_exc:
            handwritten_parse(source)
        assert type(peg_exc.value) is type(rd_exc.value) is error
        assert peg_exc.value.offset == rd_exc.value.offset
        assert (peg_exc.value.line, peg_exc.value.column) == (rd_exc.value.line, rd_exc.value.column)

    @pytest.mark.parametrize("source", [
        "fn f() { 1 + }",
        "fn f() { 1 } x",
        "fn f(a,) { a }",
    ])
    def test_same_expected_set(self, source):
        with pytest.raises(ParseError) as peg_exc:
            peg_parse(source)
        with pytest.raises(ParseError) as rd_exc:
            handwritten_parse(source)
        assert peg_exc.value.expected == rd_exc.value.expected
