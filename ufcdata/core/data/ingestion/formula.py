"""Arithmetic formulas over record fields, e.g. ``"$wins / ($wins + $losses)"``."""

from __future__ import annotations

import ast
import operator
import re
from collections.abc import Callable, Mapping
from typing import Any

from ufcdata.core.exceptions.base import ConfigurationError

_VARIABLE = re.compile(r"\$([A-Za-z_]\w*)")

_BINARY_OPS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS: dict[type[ast.unaryop], Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


def evaluate_formula(formula: str, variables: Mapping[str, float]) -> float:
    """Evaluate ``formula`` with ``$name`` placeholders bound from ``variables``.

    Only numeric literals, the four arithmetic operators, ``//``, ``%``,
    ``**``, unary signs and parentheses are accepted; anything else raises
    ``ConfigurationError``. Arithmetic errors such as division by zero
    propagate unchanged.
    """

    try:
        tree = ast.parse(_VARIABLE.sub(r"\1", formula), mode="eval")
    except SyntaxError as exc:
        raise ConfigurationError(f"Invalid formula '{formula}'", {"formula": formula}) from exc

    def _eval(node: ast.AST) -> Any:
        if isinstance(node, ast.Expression):
            return _eval(node.body)
        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
            return node.value
        if isinstance(node, ast.Name):
            if node.id not in variables:
                raise ConfigurationError(f"Unbound formula variable '${node.id}'", {"formula": formula})
            return variables[node.id]
        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
            return _BINARY_OPS[type(node.op)](_eval(node.left), _eval(node.right))
        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
            return _UNARY_OPS[type(node.op)](_eval(node.operand))
        raise ConfigurationError(
            f"Unsupported expression '{ast.unparse(node)}' in formula", {"formula": formula}
        )

    return _eval(tree)


__all__ = ["evaluate_formula"]
