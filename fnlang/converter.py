"""
Tree export utilities.

Provides:
- ast_to_dict(): Convert a Program to plain dicts and lists
- dict_to_ast(): Rebuild a Program from that dict format
- expr_to_string(): Fully parenthesized one-line rendering of an expression
- to_json() / to_yaml(): Serialize the dict format
"""

import json
from typing import Any, Dict, List

import yaml

from .ast import (
    BinaryOp, BinaryOperator, Call, Expr, FunctionDef, Identifier,
    IntegerLiteral, Lambda, Program,
)

# Larger integer values are exported as digit strings
EXPORT_INT_BITS = 4096


# =============================================================================
# AST -> dict
# =============================================================================

def ast_to_dict(ast: Program) -> Dict[str, Any]:
    """Convert a Program AST to the dict export format."""
    return {
        'functions': [function_to_dict(func) for func in ast.functions],
    }


def function_to_dict(func: FunctionDef) -> Dict[str, Any]:
    return {
        'name': func.name.qualified_name,
        'params': [p.qualified_name for p in func.params],
        'body': expr_to_dict(func.body),
    }


def expr_to_dict(expr: Expr) -> Dict[str, Any]:
    """Convert an Expr AST node to a dict tagged by 'type'."""
    if isinstance(expr, IntegerLiteral):
        return {'type': 'integer', 'value': _export_integer(expr)}
    elif isinstance(expr, Identifier):
        result = {'type': 'identifier', 'name': expr.name}
        if expr.namespace is not None:
            result['namespace'] = expr.namespace
        return result
    elif isinstance(expr, BinaryOp):
        return {
            'type': 'binary',
            'op': expr.op.symbol,
            'left': expr_to_dict(expr.left),
            'right': expr_to_dict(expr.right),
        }
    elif isinstance(expr, Call):
        return {
            'type': 'call',
            'callee': expr.callee.qualified_name,
            'argument_lists': [[expr_to_dict(arg) for arg in args]
                               for args in expr.argument_lists],
        }
    elif isinstance(expr, Lambda):
        return {
            'type': 'lambda',
            'params': [p.qualified_name for p in expr.params],
            'body': expr_to_dict(expr.body),
        }
    raise TypeError(f"Not an expression node: {expr!r}")


# =============================================================================
# dict -> AST
# =============================================================================

def dict_to_ast(data: Dict[str, Any]) -> Program:
    """Rebuild a Program from the dict export format."""
    try:
        functions = data['functions']
    except (KeyError, TypeError):
        raise ValueError("Program dict must have a 'functions' list") from None
    return Program(tuple(dict_to_function(f) for f in functions))


def dict_to_function(data: Dict[str, Any]) -> FunctionDef:
    return FunctionDef(
        name=Identifier.from_text(data['name']),
        params=_identifiers(data.get('params', [])),
        body=dict_to_expr(data['body']),
    )


def dict_to_expr(data: Dict[str, Any]) -> Expr:
    """Rebuild an Expr AST node from its dict form."""
    expr_type = data.get('type')
    if expr_type == 'integer':
        return IntegerLiteral.from_text(str(data['value']))
    elif expr_type == 'identifier':
        return Identifier(data['name'], data.get('namespace'))
    elif expr_type == 'binary':
        return BinaryOp(
            dict_to_expr(data['left']),
            BinaryOperator.from_symbol(data['op']),
            dict_to_expr(data['right']),
        )
    elif expr_type == 'call':
        argument_lists = data['argument_lists']
        if not argument_lists:
            raise ValueError("Call needs at least one argument list")
        return Call(
            Identifier.from_text(data['callee']),
            tuple(tuple(dict_to_expr(arg) for arg in args) for args in argument_lists),
        )
    elif expr_type == 'lambda':
        return Lambda(_identifiers(data.get('params', [])), dict_to_expr(data['body']))
    raise ValueError(f"Unknown expression type: {expr_type!r}")


def _identifiers(names: List[str]):
    return tuple(Identifier.from_text(name) for name in names)


def _export_integer(literal: IntegerLiteral):
    # JSON and YAML write ints through str(), which has a digit limit
    if literal.value.bit_length() <= EXPORT_INT_BITS:
        return literal.value
    return literal.digits


# =============================================================================
# Text renderings
# =============================================================================

def expr_to_string(expr) -> str:
    """Convert an Expr AST node to a one-line string with explicit grouping.

    Every binary operation is parenthesized, so precedence and
    associativity are visible: 1 + 2 * 3 renders as (1 + (2 * 3)).
    """
    if isinstance(expr, str):
        return expr
    elif isinstance(expr, IntegerLiteral):
        return expr.digits
    elif isinstance(expr, Identifier):
        return expr.qualified_name
    elif isinstance(expr, BinaryOp):
        return f"({expr_to_string(expr.left)} {expr.op.symbol} {expr_to_string(expr.right)})"
    elif isinstance(expr, Call):
        args = ''.join(
            '(' + ', '.join(expr_to_string(arg) for arg in arg_list) + ')'
            for arg_list in expr.argument_lists
        )
        return f"{expr.callee}{args}"
    elif isinstance(expr, Lambda):
        params = ''.join(f"{p} " for p in expr.params)
        return f"lambda {params}{{ {expr_to_string(expr.body)} }}"
    else:
        return str(expr)


def to_json(ast: Program) -> str:
    return json.dumps(ast_to_dict(ast), indent=2)


def to_yaml(ast: Program) -> str:
    return yaml.safe_dump(ast_to_dict(ast), sort_keys=False)
