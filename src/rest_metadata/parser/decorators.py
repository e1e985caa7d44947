"""Decorator reader.

Reads marker decorators off parsed class and function declarations. A
marker is recognized by its final name only, so ``@GET``, ``@GET()`` and
``@markers.GET()`` are the same annotation. Generic type arguments are
written as a subscript: ``@Response[Person](200, "ok")``.
"""

import ast
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict


class Symbol(BaseModel):
    """A bare or dotted name used as a literal argument, e.g. ``PrimitiveTypes.long``."""

    model_config = ConfigDict(frozen=True)

    name: str

    @property
    def last(self) -> str:
        return self.name.rsplit(".", 1)[-1]


class DecoratorData(BaseModel):
    """One applied annotation occurrence."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    arguments: list[Any] = []
    type_arguments: list[ast.expr] = []
    argument_nodes: list[ast.expr] = []


Predicate = Callable[[str], bool]


def parse_decorator(expr: ast.expr) -> DecoratorData | None:
    """Turn a decorator (or ``Annotated`` metadata) expression into DecoratorData.

    Returns None for expressions that are not a name, attribute, call or
    subscript, e.g. a lambda.
    """
    args: list[ast.expr] = []
    type_args: list[ast.expr] = []

    node = expr
    if isinstance(node, ast.Call):
        args = list(node.args)
        node = node.func
    if isinstance(node, ast.Subscript):
        sl = node.slice
        type_args = list(sl.elts) if isinstance(sl, ast.Tuple) else [sl]
        node = node.value

    name = dotted_name(node)
    if name is None:
        return None

    return DecoratorData(
        name=name.rsplit(".", 1)[-1],
        arguments=[evaluate_literal(a) for a in args],
        type_arguments=type_args,
        argument_nodes=args,
    )


def read_decorators(declaration: ast.AST, predicate: Predicate) -> list[DecoratorData]:
    """Return the decorators of a declaration whose name matches, in source order."""
    result = []
    for expr in getattr(declaration, "decorator_list", []):
        data = parse_decorator(expr)
        if data is not None and predicate(data.name):
            result.append(data)
    return result


def read_first_text(declaration: ast.AST, predicate: Predicate) -> str | None:
    """First positional argument of the first matching decorator, as text."""
    for data in read_decorators(declaration, predicate):
        if not data.arguments:
            return None
        value = data.arguments[0]
        if isinstance(value, Symbol):
            return value.name
        return None if value is None else str(value)
    return None


def evaluate_literal(node: ast.expr) -> Any:
    """Evaluate a literal argument without executing any code.

    Strings, numbers, booleans and None map to themselves; lists and tuples
    to lists; dicts to dicts keyed by scalars (entries with any other key
    are dropped); names to Symbol. Anything else evaluates to None.
    """
    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.USub, ast.UAdd)):
        operand = evaluate_literal(node.operand)
        if isinstance(operand, (int, float)) and not isinstance(operand, bool):
            return -operand if isinstance(node.op, ast.USub) else operand
        return None
    if isinstance(node, (ast.List, ast.Tuple, ast.Set)):
        return [evaluate_literal(e) for e in node.elts]
    if isinstance(node, ast.Dict):
        result = {}
        for key, value in zip(node.keys, node.values):
            # ``**other`` spreads have no key
            if key is None:
                continue
            literal_key = _literal_key(evaluate_literal(key))
            if literal_key is not None:
                result[literal_key] = evaluate_literal(value)
        return result
    if isinstance(node, ast.Call) and dotted_name(node.func) == "dict" and not node.args:
        return {kw.arg: evaluate_literal(kw.value) for kw in node.keywords if kw.arg}
    name = dotted_name(node)
    if name is not None:
        return Symbol(name=name)
    return None


def _literal_key(value: Any) -> str | int | float | bool | None:
    # mapping keys stay scalar; ``Status.OK`` keys keep their dotted text
    if isinstance(value, Symbol):
        return value.name
    if isinstance(value, (str, int, float, bool)):
        return value
    return None


def dotted_name(node: ast.expr) -> str | None:
    """``a.b.c`` for Name/Attribute chains, None otherwise."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        base = dotted_name(node.value)
        return f"{base}.{node.attr}" if base else None
    return None
