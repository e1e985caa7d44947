"""Method generator: one annotated method declaration to one Method."""

import ast
import re
from typing import Any

import structlog

from rest_metadata.config import GeneratorConfig
from rest_metadata.errors import GenerationError
from rest_metadata.generator.parameter import ParameterGenerator
from rest_metadata.generator.types import Bindings, TypeResolver
from rest_metadata.parser.base import Method, Parameter, ResponseType, SecurityRequirement, Type
from rest_metadata.parser.decorators import DecoratorData, Symbol, read_decorators
from rest_metadata.parser.docstrings import get_description, get_param_descriptions, get_tag, has_tag
from rest_metadata.parser.paths import join_paths, normalize_path
from rest_metadata.parser.source import ClassDeclaration, iter_parameters

logger = structlog.get_logger(__name__)

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD")
PATH_PLACEHOLDER = re.compile(r"{(.+?)}")

# Return type name -> default response status.
SUCCESS_STATUSES = {
    "void": "204",
    "NewResource": "201",
    "RequestAccepted": "202",
    "MovedPermanently": "301",
    "MovedTemporarily": "302",
}


class MethodGenerator:
    """Generates the metadata of one controller method."""

    def __init__(
        self,
        config: GeneratorConfig,
        resolver: TypeResolver,
        owner: ClassDeclaration,
        node: ast.FunctionDef | ast.AsyncFunctionDef,
        controller_path: str,
        bindings: Bindings | None = None,
    ):
        self.config = config
        self.resolver = resolver
        self.owner = owner
        self.node = node
        self.controller_path = controller_path
        self.bindings = bindings or {}
        self.method: str | None = None
        self.path = ""
        self._process_method_decorators()

    def is_valid(self) -> bool:
        return self.method is not None

    def get_name(self) -> str:
        return self.node.name

    def generate(self) -> Method:
        if not self.is_valid():
            raise GenerationError(f"'{self._location()}' isn't a valid controller method.")

        return_type = self.resolver.resolve(self.node.returns, self.bindings)
        responses = merge_responses(self._explicit_responses(), self._default_response(return_type))

        return Method(
            name=self.node.name,
            method=self.method,
            path=self.path,
            parameters=self._build_parameters(),
            responses=responses,
            type=return_type,
            consumes=self._decorator_values("Accept"),
            produces=self._decorator_values("Produces"),
            tags=self._decorator_values("Tags"),
            security=read_security(self.node),
            deprecated=self._is_deprecated(),
            summary=get_tag(self.node, "summary"),
            description=get_description(self.node),
            base_path=self._first_decorator_value("BasePath"),
            is_plural=bool(read_decorators(self.node, lambda n: n == "Plural")),
        )

    def _process_method_decorators(self) -> None:
        verbs = read_decorators(self.node, lambda n: n in HTTP_METHODS)
        if not verbs:
            return
        if len(verbs) > 1:
            found = ", ".join(d.name for d in verbs)
            raise GenerationError(f"Only one HTTP Method decorator in '{self._location()}' method is acceptable, Found: {found}")

        self.method = verbs[0].name.lower()

        paths = read_decorators(self.node, lambda n: n == "Path")
        if len(paths) > 1:
            raise GenerationError(f"Only one Path decorator in '{self._location()}' method is acceptable, Found: {len(paths)}")
        if paths and paths[0].arguments:
            fragment = normalize_path(str(_text(paths[0].arguments[0])))
            self.path = f"/{fragment}" if fragment else ""

    def _build_parameters(self) -> list[Parameter]:
        parameters = self._node_parameters()

        body_types = read_decorators(self.node, lambda n: n == "BodyType")
        if len(body_types) > 1:
            raise GenerationError(f"Only one BodyType decorator allowed in '{self._location()}' method.")
        if body_types and body_types[0].argument_nodes:
            body_type = self.resolver.resolve(body_types[0].argument_nodes[0], self.bindings)
            parameters.append(ParameterGenerator.build("body", "body", body_type))

        self._add_path_parameters(parameters)

        body = [p for p in parameters if p.location == "body"]
        form = [p for p in parameters if p.location == "formData"]
        if len(body) > 1:
            raise GenerationError(f"Only one body parameter allowed in '{self._location()}' method.")
        if body and form:
            raise GenerationError(
                f"Choose either FormParam/FileParam or a body parameter in '{self._location()}' method."
            )
        return parameters

    def _node_parameters(self) -> list[Parameter]:
        path = join_paths(self.controller_path, self.path)
        descriptions = get_param_descriptions(self.node)

        result = []
        for declaration in iter_parameters(self.node):
            if declaration.name in self.config.ignore_parameters:
                continue
            generator = ParameterGenerator(
                declaration, self.method, path, self.resolver, self.bindings, descriptions.get(declaration.name)
            )
            try:
                parameter = generator.generate()
            except GenerationError as e:
                raise GenerationError(
                    f"Error generate parameter method: '{self._location()}' argument: {declaration.name} {e}"
                ) from e
            if parameter.location not in ("context", "cookie"):
                result.append(parameter)
        return result

    def _add_path_parameters(self, parameters: list[Parameter]) -> None:
        for d in read_decorators(self.node, lambda n: n == "ParamFromPath"):
            if len(d.arguments) < 2:
                raise GenerationError(f"ParamFromPath needs a name and a type in '{self._location()}' method.")
            description = d.arguments[2] if len(d.arguments) > 2 else None
            parameters.append(ParameterGenerator.build(str(_text(d.arguments[0])), "path", _primitive(d.arguments[1]), description))

        if not self.config.auto_path_parameters:
            return

        path = join_paths(self.controller_path, self.path)
        for name in PATH_PLACEHOLDER.findall(path):
            if any(p.name == name and p.location == "path" for p in parameters):
                continue
            for rule in self.config.auto_path_parameters:
                if re.search(rule.pattern, name):
                    logger.debug("auto_path_parameter", method=self._location(), name=name, pattern=rule.pattern)
                    parameters.append(ParameterGenerator.build(name, "path", rule.type, rule.description))
                    break

    def _explicit_responses(self) -> list[ResponseType]:
        responses = []
        for d in read_decorators(self.node, lambda n: n == "Response"):
            args = d.arguments
            status = str(_text(args[0])) if args and args[0] is not None else "200"
            description = str(_text(args[1])) if len(args) > 1 and args[1] else ""
            examples = args[2] if len(args) > 2 and args[2] is not None else None
            schema = self.resolver.resolve(d.type_arguments[0], self.bindings) if d.type_arguments else None
            responses.append(ResponseType(status=status, description=description, schema=schema, examples=examples))
        return responses

    def _default_response(self, return_type: Type) -> ResponseType:
        status, schema = default_response_data(return_type)
        return ResponseType(
            status=status,
            description="No content" if return_type.type_name == "void" else "Ok",
            schema=schema,
            examples=self._success_examples(),
        )

    def _success_examples(self) -> Any:
        examples = read_decorators(self.node, lambda n: n == "Example")
        if not examples:
            return None
        if len(examples) > 1:
            raise GenerationError(f"Only one Example decorator allowed in '{self._location()}' method.")
        args = examples[0].arguments
        return args[0] if args else None

    def _decorator_values(self, name: str) -> list:
        decorators = read_decorators(self.node, lambda n: n == name)
        if not decorators:
            return []
        if len(decorators) > 1:
            raise GenerationError(f"Only one {name} decorator allowed in '{self._location()}' method.")
        return [str(_text(a)) for a in decorators[0].arguments if a is not None]

    def _first_decorator_value(self, name: str) -> str:
        decorators = read_decorators(self.node, lambda n: n == name)
        if decorators and decorators[0].arguments:
            return str(_text(decorators[0].arguments[0]))
        return ""

    def _is_deprecated(self) -> bool:
        return has_tag(self.node, "deprecated") or bool(read_decorators(self.node, lambda n: n == "deprecated"))

    def _location(self) -> str:
        return f"{self.owner.name}.{self.node.name}"


def default_response_data(return_type: Type) -> tuple[str, Type]:
    """Status and schema of the response inferred from a return type."""
    name = return_type.type_name
    if name in ("DownloadResource", "DownloadBinaryData"):
        return "200", Type(type_name="buffer")
    if name == "void":
        return "204", return_type
    if name in SUCCESS_STATUSES:
        return SUCCESS_STATUSES[name], return_type.type_argument or return_type
    return "200", return_type


def merge_responses(responses: list[ResponseType], default: ResponseType) -> list[ResponseType]:
    """Merge explicit responses with the inferred default.

    An explicit response at the default's status wins but adopts the default
    example when it has none; otherwise the default is appended.
    """
    if not responses:
        return [default]

    for response in responses:
        if response.status == default.status:
            if default.examples is not None and response.examples is None:
                response.examples = default.examples
            return responses

    responses.append(default)
    return responses


def read_security(node: ast.AST) -> list[SecurityRequirement] | None:
    """One requirement per ``Security(name, scopes?)`` decorator, None when absent."""
    decorators = read_decorators(node, lambda n: n == "Security")
    if not decorators:
        return None
    return [_security(d) for d in decorators]


def _security(d: DecoratorData) -> SecurityRequirement:
    scopes = d.arguments[1] if len(d.arguments) > 1 else None
    return SecurityRequirement(
        name=str(_text(d.arguments[0])) if d.arguments else "",
        scopes=[str(_text(s)) for s in scopes] if isinstance(scopes, list) else None,
    )


def _primitive(value: Any) -> str:
    # PrimitiveTypes.long or "long"
    return value.last if isinstance(value, Symbol) else str(value)


def _text(value: Any) -> Any:
    if isinstance(value, Symbol):
        return value.name
    return value
