"""Documentation read from docstrings.

Both reST fields (``:summary:``, ``:param name:``) and JSDoc-like tags
(``@summary``, ``@param name``) are accepted.
"""

import ast
import re

_REST_FIELD = re.compile(r"^\s*:(\w+)(?:\s+(\w+))?:\s*(.*)$")
_TAG_FIELD = re.compile(r"^\s*@(\w+)\b\s*(.*)$")
_DEPRECATED_DIRECTIVE = re.compile(r"^\s*\.\.\s+deprecated::", re.MULTILINE)


_DOCUMENTED = (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef, ast.Module)


def _lines(node: ast.AST) -> list[str]:
    if not isinstance(node, _DOCUMENTED):
        return []
    doc = ast.get_docstring(node)
    return doc.splitlines() if doc else []


def _parse_field(line: str) -> tuple[str, str | None, str] | None:
    m = _REST_FIELD.match(line)
    if m:
        return m.group(1), m.group(2), m.group(3).strip()
    m = _TAG_FIELD.match(line)
    if m:
        tag, text = m.group(1), m.group(2).strip()
        if tag == "param" and text:
            arg, _, rest = text.partition(" ")
            return tag, arg, rest.strip()
        return tag, None, text
    return None


def _fields(node: ast.AST) -> list[tuple[str, str | None, str]]:
    fields: list[tuple[str, str | None, str]] = []
    for line in _lines(node):
        field = _parse_field(line)
        if field is None:
            # continuation of the previous field
            if fields and line.strip():
                tag, arg, text = fields[-1]
                fields[-1] = (tag, arg, f"{text} {line.strip()}".strip())
            continue
        fields.append(field)
    return fields


def get_description(node: ast.AST) -> str | None:
    """Docstring text up to the first field or directive line."""
    result = []
    for line in _lines(node):
        if _parse_field(line) or line.strip().startswith(".."):
            break
        result.append(line)
    text = "\n".join(result).strip()
    return text or None


def get_tag(node: ast.AST, tag: str) -> str | None:
    for name, _, text in _fields(node):
        if name == tag:
            return text or None
    return None


def has_tag(node: ast.AST, tag: str) -> bool:
    if any(name == tag for name, _, _ in _fields(node)):
        return True
    if tag == "deprecated":
        return bool(_DEPRECATED_DIRECTIVE.search("\n".join(_lines(node))))
    return False


def get_param_descriptions(node: ast.AST) -> dict[str, str]:
    """``{parameter name: description}`` from ``:param x:`` / ``@param x`` fields."""
    return {arg: text for name, arg, text in _fields(node) if name == "param" and arg}
