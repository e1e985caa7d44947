"""Parameter generator: one formal method parameter to one Parameter."""

import ast

from rest_metadata.errors import GenerationError
from rest_metadata.generator.types import Bindings, TypeResolver, apply_numeric_format, enum_member_value, is_optional
from rest_metadata.parser.base import Parameter, Type
from rest_metadata.parser.decorators import DecoratorData, Symbol, dotted_name, evaluate_literal, parse_decorator
from rest_metadata.parser.source import ParameterDeclaration

BODY_METHODS = ("post", "put", "patch")

LOCATIONS = {
    "PathParam": "path",
    "QueryParam": "query",
    "HeaderParam": "header",
    "CookieParam": "cookie",
    "FormParam": "formData",
    "FileParam": "formData",
}
CONTEXT_MARKERS = {
    "Context", "ContextRequest", "ContextResponse", "ContextNext",
    "ContextLanguage", "ContextAccept",
}


class ParameterGenerator:
    """Builds the Parameter for one method argument."""

    def __init__(
        self,
        parameter: ParameterDeclaration,
        method: str,
        path: str,
        resolver: TypeResolver,
        bindings: Bindings | None = None,
        description: str | None = None,
    ):
        self.parameter = parameter
        self.method = method
        self.path = path
        self.resolver = resolver
        self.bindings = bindings or {}
        self.description = description

    def generate(self) -> Parameter:
        if self.parameter.annotation is None:
            raise GenerationError(f"Parameter '{self.parameter.name}' has no type annotation.")

        value_type, markers = _split_annotated(self.parameter.annotation)
        marker = next((m for m in markers if m.name in LOCATIONS or m.name in CONTEXT_MARKERS or m.name == "Param"), None)

        if marker is None:
            if self.method in BODY_METHODS:
                return self._build("body", self.parameter.name, value_type, markers)
            raise GenerationError(
                f"Unsupported parameter '{self.parameter.name}' for '{self.method}' method: "
                "annotate it with a parameter marker."
            )

        name = _marker_name(marker) or self.parameter.name
        if marker.name in CONTEXT_MARKERS:
            return Parameter(name=name, location="context", type=Type(type_name="object"), required=False)
        if marker.name == "FileParam":
            return self._build("formData", name, value_type, markers, Type(type_name="file"))
        if marker.name == "Param":
            location = "formData" if self.method in BODY_METHODS else "query"
            return self._build(location, name, value_type, markers)

        location = LOCATIONS[marker.name]
        if location == "path" and f"{{{name}}}" not in self.path:
            raise GenerationError(f"Parameter '{name}' can't be passed as a path parameter: not found in '{self.path}'.")
        return self._build(location, name, value_type, markers)

    def _build(
        self,
        location: str,
        name: str,
        value_type: ast.expr,
        markers: list[DecoratorData],
        resolved: Type | None = None,
    ) -> Parameter:
        if resolved is None:
            resolved = self.resolver.resolve(value_type, self.bindings)
            resolved = apply_numeric_format(resolved, [m.name for m in markers])

        default = evaluate_literal(self.parameter.default) if self.parameter.has_default else None
        if isinstance(default, Symbol):
            default = self._member_default(default, resolved)
        required = location == "path" or (not self.parameter.has_default and not is_optional(value_type))

        return Parameter(
            name=name,
            location=location,
            type=resolved,
            required=required,
            default=default,
            description=self.description,
        )

    def _member_default(self, symbol: Symbol, resolved: Type):
        # ``Color.RED`` documents as the member value; other names have no literal default
        owner, _, member = symbol.name.rpartition(".")
        if not owner or resolved.enum_members is None:
            return None
        declaration = self.resolver.tree.find_class(owner)
        return enum_member_value(declaration, member) if declaration is not None else None

    @staticmethod
    def build(name: str, location: str, type_: Type | str, description: str | None = None) -> Parameter:
        """Synthetic parameter for BodyType, ParamFromPath and auto path rules."""
        if isinstance(type_, str):
            type_ = Type(type_name=type_)
        return Parameter(name=name, location=location, type=type_, required=True, description=description)


def _split_annotated(annotation: ast.expr) -> tuple[ast.expr, list[DecoratorData]]:
    """``Annotated[X, markers...]`` to ``(X, markers)``; anything else has no markers."""
    if isinstance(annotation, ast.Subscript) and (dotted_name(annotation.value) or "").rsplit(".", 1)[-1] == "Annotated":
        sl = annotation.slice
        elements = list(sl.elts) if isinstance(sl, ast.Tuple) else [sl]
        markers = [d for d in (parse_decorator(e) for e in elements[1:]) if d is not None]
        return elements[0], markers
    return annotation, []


def _marker_name(marker: DecoratorData) -> str | None:
    if marker.arguments and isinstance(marker.arguments[0], str):
        return marker.arguments[0]
    return None
