"""
Built-in tools shipped with the CLI.

Domain tools (search, finance data, browsing) are supplied by callers; these
cover the small utilities every agent session benefits from.
"""

import ast
import operator
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from .registry import RegisteredTool, ToolContext, ToolRegistry

CURRENT_DATETIME_DESCRIPTION = (
    "Return the current local date and time. Use it whenever the question "
    "depends on today's date."
)

CALCULATE_DESCRIPTION = (
    "Evaluate an arithmetic expression with + - * / // % ** and parentheses. "
    "Use it for any non-trivial numeric computation instead of mental math."
)


class CalculateArgs(BaseModel):
    expression: str = Field(..., description="Arithmetic expression, e.g. '(1200 * 1.07) / 12'")


_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

MAX_EXPONENT = 1000


def _evaluate(node: ast.AST) -> float | int:
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left = _evaluate(node.left)
        right = _evaluate(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise ValueError(f"Exponent too large: {right}")
        return _BINARY_OPS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand))
    raise ValueError(f"Unsupported expression element: {type(node).__name__}")


def calculate(arguments: dict[str, Any], context: ToolContext) -> dict[str, Any]:
    """Safely evaluate an arithmetic expression."""
    expression = arguments["expression"]
    context.emit_progress(f"Evaluating {expression}")
    try:
        tree = ast.parse(expression, mode="eval")
    except SyntaxError as e:
        raise ValueError(f"Invalid expression: {expression}") from e
    return {"expression": expression, "value": _evaluate(tree)}


def current_datetime(arguments: dict[str, Any], context: ToolContext) -> dict[str, str]:
    now = datetime.now().astimezone()
    return {
        "date": now.strftime("%A, %B %d, %Y"),
        "time": now.strftime("%H:%M:%S"),
        "timezone": now.tzname() or "",
        "iso": now.isoformat(),
    }


def builtin_tools() -> list[RegisteredTool]:
    return [
        RegisteredTool(
            name="current_datetime",
            description=CURRENT_DATETIME_DESCRIPTION,
            executor=current_datetime,
        ),
        RegisteredTool(
            name="calculate",
            description=CALCULATE_DESCRIPTION,
            executor=calculate,
            argument_schema=CalculateArgs,
            cacheable=True,
        ),
    ]


def create_default_registry() -> ToolRegistry:
    """Registry pre-populated with the built-in tools."""
    registry = ToolRegistry()
    for tool in builtin_tools():
        registry.register(tool)
    return registry
