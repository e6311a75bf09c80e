"""Arithmetic expression detection and safe evaluation."""

import ast
import math
import operator
import re
from typing import Optional

_OPERATORS = ("+", "-", "*", "/", "^", "%", "×", "÷", "√", "sqrt", "sin", "cos", "tan")
_FUNCTIONS = {
    "sqrt": math.sqrt,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
}
_CONSTANTS = {"pi": math.pi, "e": math.e}
_ALLOWED_WORDS = set(_FUNCTIONS) | set(_CONSTANTS)
_INVALID_PATTERNS = ("==", ">=", "<=", "!=", "++", "--")

_BINARY = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

MAX_EXPONENT = 1000


class CalculationError(ValueError):
    """Expression could not be evaluated."""


def is_math_expression(text: str) -> bool:
    expression = text.strip()
    if not expression:
        return False
    if not any(op in expression for op in _OPERATORS):
        return False
    words = re.findall(r"[a-zA-Z]+", expression)
    if any(word.lower() not in _ALLOWED_WORDS for word in words):
        return False
    if any(pattern in expression for pattern in _INVALID_PATTERNS):
        return False
    return expression[-1] not in "+-*/^%("


def _prepare(expression: str) -> str:
    prepared = expression.replace("×", "*").replace("÷", "/")
    prepared = re.sub(r"√\s*(\d+(?:\.\d+)?)", r"sqrt(\1)", prepared)
    prepared = prepared.replace("^", "**")
    # implicit multiplication: 2(3) and (3)2
    prepared = re.sub(r"(\d)\s*\(", r"\1*(", prepared)
    prepared = re.sub(r"\)\s*(\d)", r")*\1", prepared)
    return prepared


def _eval(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _eval(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) \
            and not isinstance(node.value, bool):
        return float(node.value)
    if isinstance(node, ast.Name) and node.id.lower() in _CONSTANTS:
        return _CONSTANTS[node.id.lower()]
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY:
        left = _eval(node.left)
        right = _eval(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise CalculationError("Exponent too large")
        try:
            result = _BINARY[type(node.op)](left, right)
        except (ZeroDivisionError, OverflowError) as e:
            raise CalculationError(str(e)) from e
        if isinstance(result, complex):
            raise CalculationError("Complex result")
        return result
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY:
        return _UNARY[type(node.op)](_eval(node.operand))
    if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) \
            and node.func.id.lower() in _FUNCTIONS and len(node.args) == 1 and not node.keywords:
        try:
            return _FUNCTIONS[node.func.id.lower()](_eval(node.args[0]))
        except ValueError as e:
            raise CalculationError(str(e)) from e
    raise CalculationError(f"Unsupported expression element: {type(node).__name__}")


def format_result(value: float) -> str:
    if math.isnan(value) or math.isinf(value):
        return "Error"
    if value == round(value) and abs(value) < 1e15:
        return str(int(round(value)))
    return f"{value:.10f}".rstrip("0").rstrip(".")


def evaluate(text: str) -> Optional[str]:
    """Evaluate an arithmetic expression, returning the formatted result or None."""
    if not is_math_expression(text):
        return None
    try:
        tree = ast.parse(_prepare(text.strip()), mode="eval")
        return format_result(_eval(tree))
    except (SyntaxError, CalculationError):
        return None
