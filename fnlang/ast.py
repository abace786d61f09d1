"""
AST node definitions for fnlang.

Nodes are immutable. Source positions are carried for diagnostics but take
no part in equality, so trees parsed from sources that differ only in
whitespace or comments compare equal.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Tuple, Union


def _position():
    return field(default=0, compare=False, repr=False)


# =============================================================================
# Operators
# =============================================================================

class BinaryOperator(Enum):
    """Binary operators, valued by their source symbol."""
    ADD = '+'
    SUB = '-'
    MUL = '*'
    DIV = '/'

    @property
    def symbol(self) -> str:
        return self.value

    @property
    def precedence(self) -> int:
        """1 for the additive tier, 2 for the multiplicative tier."""
        return 2 if self in MUL_OPERATORS else 1

    @classmethod
    def from_symbol(cls, symbol: str) -> 'BinaryOperator':
        return cls(symbol)


ADD_OPERATORS = (BinaryOperator.ADD, BinaryOperator.SUB)
MUL_OPERATORS = (BinaryOperator.MUL, BinaryOperator.DIV)


# =============================================================================
# Integer text
# =============================================================================

# int()/str() refuse more than 4300 digits by default; stay well below it
_DIGIT_CHUNK = 1000


def int_from_digits(digits: str) -> int:
    """Value of a decimal digit string of any length."""
    value = 0
    for start in range(0, len(digits), _DIGIT_CHUNK):
        chunk = digits[start:start + _DIGIT_CHUNK]
        value = value * 10 ** len(chunk) + int(chunk)
    return value


def int_to_digits(value: int) -> str:
    """Decimal text of a non-negative int of any size."""
    base = 10 ** _DIGIT_CHUNK
    if value < base:
        return str(value)
    chunks = []
    while value:
        value, chunk = divmod(value, base)
        chunks.append(chunk)
    head, *rest = reversed(chunks)
    return str(head) + "".join(str(chunk).zfill(_DIGIT_CHUNK) for chunk in rest)


# =============================================================================
# Expression AST nodes
# =============================================================================

@dataclass(frozen=True)
class Identifier:
    """Name reference, plain (`name`) or namespaced (`namespace::name`)."""
    name: str
    namespace: Optional[str] = None
    offset: int = _position()
    line: int = _position()
    column: int = _position()

    @classmethod
    def from_text(cls, text: str, offset: int = 0, line: int = 0,
                  column: int = 0) -> 'Identifier':
        namespace, sep, name = text.rpartition('::')
        return cls(name, namespace if sep else None, offset, line, column)

    @property
    def is_namespaced(self) -> bool:
        return self.namespace is not None

    @property
    def qualified_name(self) -> str:
        if self.namespace is None:
            return self.name
        return f"{self.namespace}::{self.name}"

    def __str__(self):
        return self.qualified_name


@dataclass(frozen=True)
class IntegerLiteral:
    """Unsigned decimal literal; leading zeros are not significant."""
    value: int
    offset: int = _position()
    line: int = _position()
    column: int = _position()

    @classmethod
    def from_text(cls, text: str, offset: int = 0, line: int = 0,
                  column: int = 0) -> 'IntegerLiteral':
        return cls(int_from_digits(text), offset, line, column)

    @property
    def digits(self) -> str:
        return int_to_digits(self.value)

    def __repr__(self):
        return f"IntegerLiteral(value={self.digits})"


@dataclass(frozen=True)
class BinaryOp:
    """Binary operation: left op right."""
    left: 'Expr'
    op: BinaryOperator
    right: 'Expr'
    offset: int = _position()
    line: int = _position()
    column: int = _position()


@dataclass(frozen=True)
class Call:
    """Curried call site: callee(a, b)(c)...

    All adjacent argument lists belong to one node, in application order.
    """
    callee: Identifier
    argument_lists: Tuple[Tuple['Expr', ...], ...]
    offset: int = _position()
    line: int = _position()
    column: int = _position()

    @property
    def arity(self) -> Tuple[int, ...]:
        """Number of arguments in each application."""
        return tuple(len(args) for args in self.argument_lists)

    def nested(self) -> 'Apply':
        """Fold the argument lists into left-to-right single applications.

        f(1)(2, 3) becomes Apply(Apply(f, (1,)), (2, 3)).
        """
        func: Union[Identifier, Apply] = self.callee
        for args in self.argument_lists:
            func = Apply(func, args, self.offset, self.line, self.column)
        return func


@dataclass(frozen=True)
class Apply:
    """One application of a function to a single argument list.

    Never produced by the parser; see Call.nested().
    """
    func: Union[Identifier, 'Apply']
    args: Tuple['Expr', ...]
    offset: int = _position()
    line: int = _position()
    column: int = _position()


@dataclass(frozen=True)
class Lambda:
    """Anonymous function: lambda x y { body }."""
    params: Tuple[Identifier, ...]
    body: 'Expr'
    offset: int = _position()
    line: int = _position()
    column: int = _position()


# Union type for all expressions
Expr = Union[BinaryOp, Call, Lambda, Identifier, IntegerLiteral]


# =============================================================================
# Top-level
# =============================================================================

@dataclass(frozen=True)
class FunctionDef:
    """Function definition: fn name(params) { body }."""
    name: Identifier
    params: Tuple[Identifier, ...]
    body: Expr
    offset: int = _position()
    line: int = _position()
    column: int = _position()


@dataclass(frozen=True)
class Program:
    """Root of the tree: the function definitions in source order."""
    functions: Tuple[FunctionDef, ...] = ()

    def __iter__(self) -> Iterator[FunctionDef]:
        return iter(self.functions)


Node = Union[Program, FunctionDef, Expr, Apply]


# =============================================================================
# Traversal
# =============================================================================

def iter_children(node: Node) -> Iterator[Node]:
    """Yield the direct children of a node in source order."""
    if isinstance(node, Program):
        yield from node.functions
    elif isinstance(node, FunctionDef):
        yield node.name
        yield from node.params
        yield node.body
    elif isinstance(node, BinaryOp):
        yield node.left
        yield node.right
    elif isinstance(node, Call):
        yield node.callee
        for args in node.argument_lists:
            yield from args
    elif isinstance(node, Apply):
        yield node.func
        yield from node.args
    elif isinstance(node, Lambda):
        yield from node.params
        yield node.body
    # Identifier and IntegerLiteral are leaves


def walk(node: Node) -> Iterator[Node]:
    """Yield node and all of its descendants in pre-order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(list(iter_children(current))))
