"""
Pretty printer: renders a syntax tree back to canonical fnlang source.

Parentheses are only emitted where the tree shape requires them, so
parse(format_program(tree)) == tree for every tree the parser produces.
"""

from typing import List

from .ast import (
    ADD_OPERATORS, BinaryOp, Call, Expr, FunctionDef, Identifier,
    IntegerLiteral, Lambda, Program,
)
from .config import PrintConfig


class PrettyPrinter:
    """Source formatter configured by a PrintConfig."""

    def __init__(self, config: PrintConfig = None):
        self.config = config or PrintConfig()

    # =========================================================================
    # Top-level
    # =========================================================================

    def print_program(self, program: Program) -> str:
        if not program.functions:
            return ""
        separator = "\n\n" if self.config.newlines_after_functions else "\n"
        return separator.join(self.print_function(f) for f in program.functions) + "\n"

    def print_function(self, func: FunctionDef, level: int = 0) -> str:
        params = ", ".join(p.qualified_name for p in func.params)
        header = f"{self.config.indent(level)}fn {func.name}({params}) {{"
        body = "\n".join(self._body_lines(func.body, level + 1))
        return f"{header}\n{body}\n{self.config.indent(level)}}}"

    def _body_lines(self, body: Expr, level: int) -> List[str]:
        """Lines of a function body, wrapping a long additive chain.

        Only the outermost +/- chain is split. An operand is kept whole on
        its continuation line even when that line is still over the limit.
        """
        indent = self.config.indent(level)
        line = self.print_expr(body)
        limit = self.config.max_line_length
        if not limit or self.config.indent_width(level) + len(line) <= limit:
            return [indent + line]

        # Split the outermost +/- chain, one operand per continuation line
        chain = []
        node = body
        while isinstance(node, BinaryOp) and node.op in ADD_OPERATORS:
            chain.append(node)
            node = node.left
        if not chain:
            return [indent + line]

        lines = [indent + self._operand(node, chain[-1], right=False)]
        continuation = self.config.indent(level + 1)
        for op_node in reversed(chain):
            right = self._operand(op_node.right, op_node, right=True)
            lines.append(f"{continuation}{op_node.op.symbol} {right}")
        return lines

    # =========================================================================
    # Expressions
    # =========================================================================

    def print_expr(self, expr: Expr) -> str:
        if isinstance(expr, IntegerLiteral):
            return expr.digits
        elif isinstance(expr, Identifier):
            return expr.qualified_name
        elif isinstance(expr, BinaryOp):
            left = self._operand(expr.left, expr, right=False)
            right = self._operand(expr.right, expr, right=True)
            if self.config.spaces_around_operators:
                return f"{left} {expr.op.symbol} {right}"
            return f"{left}{expr.op.symbol}{right}"
        elif isinstance(expr, Call):
            applications = "".join(
                "(" + ", ".join(self.print_expr(arg) for arg in args) + ")"
                for args in expr.argument_lists
            )
            return f"{expr.callee}{applications}"
        elif isinstance(expr, Lambda):
            params = "".join(f"{p} " for p in expr.params)
            return f"lambda {params}{{ {self.print_expr(expr.body)} }}"
        raise TypeError(f"Not an expression node: {expr!r}")

    def _operand(self, operand: Expr, parent: BinaryOp, right: bool) -> str:
        text = self.print_expr(operand)
        if isinstance(operand, BinaryOp):
            # Operators are left associative: an equal-tier right child was grouped
            needs_parens = (operand.op.precedence < parent.op.precedence
                            or (right and operand.op.precedence == parent.op.precedence))
            if needs_parens:
                return f"({text})"
        return text


def format_program(program: Program, config: PrintConfig = None) -> str:
    """Render a Program as canonical source text."""
    return PrettyPrinter(config).print_program(program)


def format_expr(expr: Expr, config: PrintConfig = None) -> str:
    """Render a single expression on one line."""
    return PrettyPrinter(config).print_expr(expr)
