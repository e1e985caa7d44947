"""Type resolution over parsed annotations.

Maps a type annotation expression to a normalized ``Type`` and walks class
bases, carrying generic bindings from subclass to base class.
"""

import ast
import copy
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict

from rest_metadata.parser.base import Property, Type
from rest_metadata.parser.decorators import dotted_name, evaluate_literal, parse_decorator
from rest_metadata.parser.docstrings import get_description
from rest_metadata.parser.source import GENERIC_BASES, ClassDeclaration, SourceTree

logger = structlog.get_logger(__name__)

PRIMITIVES = {
    "str": "string",
    "int": "integer",
    "float": "double",
    "bool": "boolean",
    "datetime": "datetime",
    "date": "date",
    "bytes": "buffer",
    "bytearray": "buffer",
    "Decimal": "double",
    "UUID": "string",
    "Any": "object",
    "object": "object",
}
VOID = {"None", "NoReturn", "Never"}
ARRAYS = {
    "list", "List", "Sequence", "MutableSequence", "set", "Set", "frozenset",
    "FrozenSet", "tuple", "Tuple", "Iterable", "Collection",
}
MAPPINGS = {"dict", "Dict", "Mapping", "MutableMapping"}
AWAITABLES = {"Awaitable", "Coroutine", "Promise"}
QUALIFIERS = {"ClassVar", "Final", "Required", "NotRequired", "ReadOnly"}
ENUM_BASES = {"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag"}

# Response wrappers that keep their inner type as ``type_argument``.
RESOURCE_WRAPPERS = {"NewResource", "RequestAccepted", "MovedPermanently", "MovedTemporarily"}
DOWNLOAD_WRAPPERS = {"DownloadResource", "DownloadBinaryData"}

NUMERIC_FORMATS = {"IsInt": "integer", "IsLong": "long", "IsFloat": "float", "IsDouble": "double"}
NUMERIC_TYPES = set(NUMERIC_FORMATS.values())

Bindings = dict[str, ast.expr]


class SuperClass(BaseModel):
    """A base class together with the type arguments bound to its parameters."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    declaration: ClassDeclaration
    type_arguments: dict[str, ast.expr] = {}
    arguments: list[ast.expr] = []  # the same concrete arguments, in order


class TypeResolver:
    """Resolves annotation expressions against the classes of a SourceTree."""

    def __init__(self, tree: SourceTree):
        self.tree = tree
        self._expanding: list[str] = []

    def resolve(self, expr: ast.expr | None, bindings: Bindings | None = None) -> Type:
        bindings = bindings or {}
        if expr is None:
            return Type(type_name="void")

        if isinstance(expr, ast.Constant):
            if expr.value is None:
                return Type(type_name="void")
            if isinstance(expr.value, str):
                return self._resolve_forward_ref(expr.value, bindings)
            return self._fallback(expr)

        if isinstance(expr, ast.BinOp) and isinstance(expr.op, ast.BitOr):
            return self._resolve_union(_flatten_union(expr), bindings)

        if isinstance(expr, ast.Subscript):
            return self._resolve_subscript(expr, bindings)

        name = dotted_name(expr)
        if name is None:
            return self._fallback(expr)
        return self._resolve_name(name, expr, bindings)

    def get_super_class(
        self, declaration: ClassDeclaration, type_arguments: Bindings | None = None
    ) -> SuperClass | None:
        """The first base naming a class of the tree, with composed bindings.

        Arguments the base reference supplies are substituted with the
        bindings of the current class, so ``class B(A[list[T]])`` seen as
        ``B[int]`` yields ``A`` bound to ``{"U": list[int]}``.
        """
        current = type_arguments or {}
        for base in declaration.node.bases:
            target = base.value if isinstance(base, ast.Subscript) else base
            name = dotted_name(target)
            if _last(name) in GENERIC_BASES:
                continue
            parent = self.tree.find_class(name)
            if parent is None or parent.node is declaration.node:
                continue
            args = _slice_elements(base) if isinstance(base, ast.Subscript) else []
            concrete = [substitute(a, current) for a in args]
            return SuperClass(
                declaration=parent,
                type_arguments=dict(zip(parent.type_parameters, concrete)),
                arguments=concrete,
            )
        return None

    def _resolve_name(self, name: str, expr: ast.expr, bindings: Bindings) -> Type:
        if name in bindings:
            return self.resolve(bindings[name])

        last = _last(name)
        if last in VOID:
            return Type(type_name="void")
        if last in PRIMITIVES:
            return Type(type_name=PRIMITIVES[last])
        if last in ARRAYS:
            return Type(type_name="array", element_type=Type(type_name="object"))
        if last in MAPPINGS:
            return Type(type_name="object")
        if last in RESOURCE_WRAPPERS or last in DOWNLOAD_WRAPPERS:
            return Type(type_name=last)

        declaration = self.tree.find_class(name)
        if declaration is not None:
            return self._resolve_class(declaration, [], bindings)
        return self._fallback(expr)

    def _resolve_subscript(self, expr: ast.Subscript, bindings: Bindings) -> Type:
        base = _last(dotted_name(expr.value))
        args = _slice_elements(expr)

        if base == "Annotated":
            resolved = self.resolve(args[0], bindings)
            markers = [d.name for d in (parse_decorator(a) for a in args[1:]) if d is not None]
            return apply_numeric_format(resolved, markers)
        if base == "Optional" or base in QUALIFIERS or base in AWAITABLES:
            # Coroutine[Any, Any, X] keeps its result type last
            return self.resolve(args[-1] if base in AWAITABLES else args[0], bindings)
        if base == "Union":
            return self._resolve_union(args, bindings)
        if base == "Literal":
            return Type(type_name="enum", enum_members=[evaluate_literal(a) for a in args])
        if base in ARRAYS:
            return Type(type_name="array", element_type=self.resolve(args[0], bindings))
        if base in MAPPINGS:
            return Type(type_name="object", additional_properties=self.resolve(args[-1], bindings))
        if base in RESOURCE_WRAPPERS:
            return Type(type_name=base, type_argument=self.resolve(args[0], bindings))
        if base in DOWNLOAD_WRAPPERS:
            return Type(type_name=base)

        declaration = self.tree.find_class(dotted_name(expr.value))
        if declaration is not None:
            return self._resolve_class(declaration, args, bindings)
        return self._fallback(expr)

    def _resolve_union(self, members: list[ast.expr], bindings: Bindings) -> Type:
        present = [m for m in members if not _is_none(m)]
        if len(present) == 1:
            return self.resolve(present[0], bindings)

        resolved = [self.resolve(m, bindings) for m in present]
        if resolved and all(t.type_name == "enum" for t in resolved):
            merged = [v for t in resolved for v in (t.enum_members or [])]
            return Type(type_name="enum", enum_members=merged)

        logger.debug("union_type_fallback", members=[ast.unparse(m) for m in present])
        return Type(type_name="object")

    def _resolve_forward_ref(self, text: str, bindings: Bindings) -> Type:
        try:
            parsed = ast.parse(text, mode="eval").body
        except SyntaxError:
            logger.debug("unparsable_forward_reference", reference=text)
            return Type(type_name="object")
        return self.resolve(parsed, bindings)

    def _resolve_class(self, declaration: ClassDeclaration, args: list[ast.expr], bindings: Bindings) -> Type:
        description = get_description(declaration.node)
        if _is_enum(declaration):
            return Type(type_name=declaration.name, enum_members=_enum_values(declaration), description=description)

        concrete = [substitute(a, bindings) for a in args]
        type_name = declaration.name
        if concrete:
            type_name = f"{declaration.name}[{', '.join(ast.unparse(a) for a in concrete)}]"

        # self-referencing models stop at a bare reference
        if type_name in self._expanding:
            return Type(type_name=type_name, description=description)

        self._expanding.append(type_name)
        try:
            properties = self._properties(declaration, dict(zip(declaration.type_parameters, concrete)))
        finally:
            self._expanding.pop()

        return Type(type_name=type_name, properties=properties, description=description)

    def _properties(self, declaration: ClassDeclaration, bindings: Bindings) -> list[Property]:
        chain = [(declaration, bindings)]
        seen = {id(declaration.node)}
        parent = self.get_super_class(declaration, bindings)
        while parent is not None and id(parent.declaration.node) not in seen:
            seen.add(id(parent.declaration.node))
            chain.append((parent.declaration, parent.type_arguments))
            parent = self.get_super_class(parent.declaration, parent.type_arguments)

        properties: dict[str, Property] = {}
        for current, current_bindings in reversed(chain):
            for prop in self._own_properties(current, current_bindings):
                properties[prop.name] = prop
        return list(properties.values())

    def _own_properties(self, declaration: ClassDeclaration, bindings: Bindings) -> list[Property]:
        result = []
        body = declaration.node.body
        for index, stmt in enumerate(body):
            if not isinstance(stmt, ast.AnnAssign) or not isinstance(stmt.target, ast.Name):
                continue
            name = stmt.target.id
            if name.startswith("_") or _is_class_var(stmt.annotation) or _is_hidden(stmt.annotation):
                continue

            description = _field_description(stmt.value)
            following = body[index + 1] if index + 1 < len(body) else None
            if isinstance(following, ast.Expr) and isinstance(following.value, ast.Constant) \
                    and isinstance(following.value.value, str):
                description = following.value.value.strip()

            result.append(Property(
                name=name,
                type=self.resolve(stmt.annotation, bindings),
                required=_field_required(stmt.value) and not is_optional(stmt.annotation),
                description=description,
            ))
        return result

    def _fallback(self, expr: ast.expr) -> Type:
        logger.debug("unresolved_type", expression=ast.unparse(expr))
        return Type(type_name="object")


def apply_numeric_format(resolved: Type, marker_names: list[str]) -> Type:
    """Apply an ``IsInt``/``IsLong``/``IsFloat``/``IsDouble`` marker to a numeric type."""
    if resolved.type_name not in NUMERIC_TYPES:
        return resolved
    for name in marker_names:
        if name in NUMERIC_FORMATS:
            return resolved.model_copy(update={"type_name": NUMERIC_FORMATS[name]})
    return resolved


def is_optional(expr: ast.expr | None) -> bool:
    """True for ``Optional[X]``, ``X | None`` and ``Union[..., None]``, also inside ``Annotated``."""
    if expr is None:
        return False
    if isinstance(expr, ast.BinOp) and isinstance(expr.op, ast.BitOr):
        return any(_is_none(m) for m in _flatten_union(expr))
    if isinstance(expr, ast.Subscript):
        base = _last(dotted_name(expr.value))
        args = _slice_elements(expr)
        if base in ("Optional", "NotRequired"):
            return True
        if base == "Union":
            return any(_is_none(a) for a in args)
        if base == "Annotated":
            return is_optional(args[0])
    return False


def substitute(expr: ast.expr, bindings: Bindings) -> ast.expr:
    """Copy of ``expr`` with names bound in ``bindings`` replaced."""
    if not bindings:
        return expr
    return _Substitution(bindings).visit(copy.deepcopy(expr))


class _Substitution(ast.NodeTransformer):
    def __init__(self, bindings: Bindings):
        self.bindings = bindings

    def visit_Name(self, node: ast.Name) -> ast.expr:
        if node.id in self.bindings:
            return copy.deepcopy(self.bindings[node.id])
        return node


def _flatten_union(expr: ast.expr) -> list[ast.expr]:
    if isinstance(expr, ast.BinOp) and isinstance(expr.op, ast.BitOr):
        return _flatten_union(expr.left) + _flatten_union(expr.right)
    return [expr]


def _is_none(expr: ast.expr) -> bool:
    return (isinstance(expr, ast.Constant) and expr.value is None) or dotted_name(expr) == "None"


def _is_enum(declaration: ClassDeclaration) -> bool:
    return any(_last(dotted_name(b)) in ENUM_BASES for b in declaration.node.bases)


def _enum_values(declaration: ClassDeclaration) -> list:
    values = []
    for stmt in declaration.node.body:
        if isinstance(stmt, ast.Assign) and all(isinstance(t, ast.Name) for t in stmt.targets):
            value = evaluate_literal(stmt.value)
            values.append(value if isinstance(value, (str, int, float)) else stmt.targets[0].id)
    return values


def enum_member_value(declaration: ClassDeclaration, member: str) -> Any:
    """Value of ``member`` in an enum class, None when it is not declared there."""
    for stmt in declaration.node.body:
        if isinstance(stmt, ast.Assign) and any(isinstance(t, ast.Name) and t.id == member for t in stmt.targets):
            value = evaluate_literal(stmt.value)
            return value if isinstance(value, (str, int, float)) else member
    return None


def _is_class_var(annotation: ast.expr) -> bool:
    target = annotation.value if isinstance(annotation, ast.Subscript) else annotation
    return _last(dotted_name(target)) == "ClassVar"


def _is_hidden(annotation: ast.expr) -> bool:
    if not isinstance(annotation, ast.Subscript) or _last(dotted_name(annotation.value)) != "Annotated":
        return False
    for marker in _slice_elements(annotation)[1:]:
        data = parse_decorator(marker)
        if data is not None and data.name == "hidden":
            return True
    return False


def _field_required(value: ast.expr | None) -> bool:
    if value is None:
        return True
    # pydantic Field(...) / dataclasses field() without a default
    if isinstance(value, ast.Call) and _last(dotted_name(value.func)) in ("Field", "field"):
        if value.args:
            return isinstance(value.args[0], ast.Constant) and value.args[0].value is Ellipsis
        return not any(kw.arg in ("default", "default_factory") for kw in value.keywords)
    return False


def _field_description(value: ast.expr | None) -> str | None:
    if isinstance(value, ast.Call) and _last(dotted_name(value.func)) == "Field":
        for kw in value.keywords:
            if kw.arg == "description" and isinstance(kw.value, ast.Constant):
                return kw.value.value
    return None


def _slice_elements(node: ast.Subscript) -> list[ast.expr]:
    return list(node.slice.elts) if isinstance(node.slice, ast.Tuple) else [node.slice]


def _last(name: str | None) -> str | None:
    return name.rsplit(".", 1)[-1] if name else None
