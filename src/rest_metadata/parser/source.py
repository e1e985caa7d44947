"""Parsed Python sources and the class declarations they contain.

Annotated sources are parsed with ``ast`` only; nothing is imported or
executed. The tree indexes every class so that base classes and referenced
models can be looked up by name across files.
"""

import ast
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict

from rest_metadata.errors import GenerationError
from rest_metadata.parser.decorators import dotted_name

logger = structlog.get_logger(__name__)

GENERIC_BASES = {"Generic", "Protocol"}


class ClassDeclaration(BaseModel):
    """A class found in one of the parsed modules."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    node: ast.ClassDef
    source_file: str
    module: str
    exported: bool
    type_vars: frozenset[str] = frozenset()

    @property
    def type_parameters(self) -> list[str]:
        """Generic parameter names, in declaration order.

        PEP 695 parameters win, then ``Generic[...]``/``Protocol[...]``,
        then TypeVars appearing in subscripted bases.
        """
        params = getattr(self.node, "type_params", None)
        if params:
            return [p.name for p in params]

        for base in self.node.bases:
            if isinstance(base, ast.Subscript) and _last(dotted_name(base.value)) in GENERIC_BASES:
                return [n for n in (dotted_name(e) for e in _slice_elements(base)) if n]

        found: list[str] = []
        for base in self.node.bases:
            for node in ast.walk(base):
                if isinstance(node, ast.Name) and node.id in self.type_vars and node.id not in found:
                    found.append(node.id)
        return found

    def methods(self) -> list[ast.FunctionDef | ast.AsyncFunctionDef]:
        return [m for m in self.node.body if isinstance(m, (ast.FunctionDef, ast.AsyncFunctionDef))]


class ParameterDeclaration(BaseModel):
    """One formal parameter of a method declaration."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    annotation: ast.expr | None = None
    default: ast.expr | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not None


class SourceTree:
    """Index of class declarations across a set of parsed modules."""

    def __init__(self):
        self._classes: list[ClassDeclaration] = []
        self._by_name: dict[str, ClassDeclaration] = {}

    @classmethod
    def from_paths(cls, paths: list[Path]) -> "SourceTree":
        tree = cls()
        for path in paths:
            files = sorted(path.rglob("*.py")) if path.is_dir() else [path]
            for file_path in files:
                tree.add_source(file_path.read_text(encoding="utf-8"), str(file_path))
        return tree

    @classmethod
    def from_source(cls, text: str, filename: str = "<source>") -> "SourceTree":
        tree = cls()
        tree.add_source(text, filename)
        return tree

    def add_source(self, text: str, filename: str) -> None:
        try:
            module = ast.parse(text, filename=filename)
        except SyntaxError as e:
            raise GenerationError(f"Cannot parse '{filename}': {e.msg} (line {e.lineno})") from e

        module_name = Path(filename).stem
        exports = _read_all(module)
        type_vars = frozenset(_read_type_vars(module))

        for node in module.body:
            if not isinstance(node, ast.ClassDef):
                continue
            exported = not node.name.startswith("_") and (exports is None or node.name in exports)
            declaration = ClassDeclaration(
                name=node.name,
                node=node,
                source_file=filename,
                module=module_name,
                exported=exported,
                type_vars=type_vars,
            )
            self._classes.append(declaration)
            if node.name in self._by_name:
                logger.debug("duplicate_class_name", name=node.name, source_file=filename)
            else:
                self._by_name[node.name] = declaration

    def find_class(self, name: str | None) -> ClassDeclaration | None:
        """Look a class up by the last segment of a (dotted) name."""
        if not name:
            return None
        return self._by_name.get(_last(name))

    def exported_classes(self) -> list[ClassDeclaration]:
        return [c for c in self._classes if c.exported]

    def __len__(self) -> int:
        return len(self._classes)


def iter_parameters(function: ast.FunctionDef | ast.AsyncFunctionDef) -> list[ParameterDeclaration]:
    """Formal parameters of a method, without ``self``/``cls`` and ``*args``/``**kwargs``."""
    args = function.args
    positional = list(args.posonlyargs) + list(args.args)
    # defaults align with the tail of the positional parameters
    defaults: list[ast.expr | None] = [None] * (len(positional) - len(args.defaults)) + list(args.defaults)

    is_static = any(dotted_name(d) == "staticmethod" for d in function.decorator_list)
    pairs = list(zip(positional, defaults))
    if pairs and not is_static:
        pairs = pairs[1:]
    pairs += list(zip(args.kwonlyargs, args.kw_defaults))

    return [ParameterDeclaration(name=arg.arg, annotation=arg.annotation, default=default) for arg, default in pairs]


def _read_all(module: ast.Module) -> set[str] | None:
    for node in module.body:
        if isinstance(node, ast.Assign) and any(isinstance(t, ast.Name) and t.id == "__all__" for t in node.targets):
            if isinstance(node.value, (ast.List, ast.Tuple)):
                return {e.value for e in node.value.elts if isinstance(e, ast.Constant) and isinstance(e.value, str)}
    return None


def _read_type_vars(module: ast.Module) -> list[str]:
    names = []
    for node in module.body:
        if not isinstance(node, ast.Assign) or not isinstance(node.value, ast.Call):
            continue
        if _last(dotted_name(node.value.func)) != "TypeVar":
            continue
        names.extend(t.id for t in node.targets if isinstance(t, ast.Name))
    return names


def _slice_elements(node: ast.Subscript) -> list[ast.expr]:
    return list(node.slice.elts) if isinstance(node.slice, ast.Tuple) else [node.slice]


def _last(name: str | None) -> str | None:
    return name.rsplit(".", 1)[-1] if name else None
