"""Controller generator: one exported class to one Controller."""

import ast

import structlog

from rest_metadata.config import GeneratorConfig
from rest_metadata.errors import GenerationError
from rest_metadata.generator.method import MethodGenerator, read_security
from rest_metadata.generator.types import Bindings, TypeResolver
from rest_metadata.parser.base import Controller, Method
from rest_metadata.parser.decorators import Symbol, read_decorators, read_first_text
from rest_metadata.parser.paths import normalize_path
from rest_metadata.parser.source import ClassDeclaration

logger = structlog.get_logger(__name__)

TYPE_PLACEHOLDER = "{type}"


class ControllerGenerator:
    """Generates the metadata of one annotated class, inherited methods included."""

    def __init__(self, config: GeneratorConfig, resolver: TypeResolver, declaration: ClassDeclaration):
        self.config = config
        self.resolver = resolver
        self.declaration = declaration
        # no Path and no generic template normalizes to "", the root path
        self.path_value: str = normalize_path(self._path_for_class())

    def is_valid(self) -> bool:
        """Every class resolves to a path, the empty root path included."""
        return True

    def generate(self) -> Controller:
        self._check_linkage()
        return Controller(
            name=self.declaration.name,
            path=self.path_value,
            location=self.declaration.source_file,
            methods=self._build_methods(),
            consumes=self._decorator_values("Accept"),
            produces=self._decorator_values("Produces"),
            tags=self._decorator_values("Tags"),
            security=read_security(self.declaration.node),
        )

    def _build_methods(self) -> list[Method]:
        result: list[Method] = []
        seen_names: set[str] = set()
        visited: set[int] = set()

        target: ClassDeclaration | None = self.declaration
        bindings: Bindings = {}
        while target is not None and id(target.node) not in visited:
            visited.add(id(target.node))
            for node in target.methods():
                generator = MethodGenerator(self.config, self.resolver, target, node, self.path_value, bindings)
                if not generator.is_valid():
                    continue
                if generator.get_name() in seen_names:
                    logger.debug("overridden_method_skipped", controller=self.declaration.name,
                                 method=generator.get_name(), declared_in=target.name)
                    continue
                seen_names.add(generator.get_name())
                result.append(generator.generate())

            parent = self.resolver.get_super_class(target, bindings)
            target, bindings = (parent.declaration, parent.type_arguments) if parent else (None, {})
        return result

    def _path_for_class(self) -> str | None:
        path = read_first_text(self.declaration.node, lambda n: n == "Path")
        if path is not None:
            return path

        # A route template shared by a generic base, bound to the first
        # concrete type argument this class supplies to it.
        visited = {id(self.declaration.node)}
        parent = self.resolver.get_super_class(self.declaration)
        while parent is not None and id(parent.declaration.node) not in visited:
            visited.add(id(parent.declaration.node))
            template = read_first_text(parent.declaration.node, lambda n: n == "PathFromGenericArg")
            if template is not None:
                if not parent.arguments:
                    return None
                return template.replace(TYPE_PLACEHOLDER, ast.unparse(parent.arguments[0]))
            parent = self.resolver.get_super_class(parent.declaration, parent.type_arguments)
        return None

    def _decorator_values(self, name: str) -> list[str]:
        self._check_linkage()
        decorators = read_decorators(self.declaration.node, lambda n: n == name)
        if not decorators:
            return []
        if len(decorators) > 1:
            raise GenerationError(f"Only one {name} decorator allowed in '{self.declaration.name}' controller.")
        return [a.name if isinstance(a, Symbol) else str(a) for a in decorators[0].arguments if a is not None]

    def _check_linkage(self) -> None:
        if not self.declaration.source_file:
            raise GenerationError("Controller node doesn't have a valid parent source file.")
        if not self.declaration.name:
            raise GenerationError("Controller node doesn't have a valid name.")
