"""Generator configuration.

Loaded from a YAML (or JSON) file; keys may be camelCase or snake_case:

    ignoreParameters: [request, response]
    autoPathParameters:
      - ['^AUTOID_', long, auto id parameter]
"""

import re
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from rest_metadata.errors import GenerationError


class AutoPathParameter(BaseModel):
    """Rule inferring an undeclared path parameter from its placeholder name."""

    pattern: str
    type: str
    description: str = ""

    @field_validator("pattern")
    @classmethod
    def check_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid regular expression '{v}': {e}") from e
        return v


class GeneratorConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ignore_parameters: list[str] = Field(default_factory=list, alias="ignoreParameters")
    auto_path_parameters: list[AutoPathParameter] = Field(default_factory=list, alias="autoPathParameters")

    @field_validator("auto_path_parameters", mode="before")
    @classmethod
    def parse_rule_triples(cls, v):
        """Accept ``[pattern, type, description]`` triples as well as mappings."""
        if not isinstance(v, list):
            return v
        rules = []
        for rule in v:
            if isinstance(rule, (list, tuple)):
                rule = dict(zip(("pattern", "type", "description"), rule))
            rules.append(rule)
        return rules


def load_config(file_path: Path | None) -> GeneratorConfig:
    """Read a config file; no path means defaults."""
    if file_path is None:
        return GeneratorConfig()

    text = file_path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise GenerationError(f"Invalid config file '{file_path}': {e}") from e

    if not isinstance(data, dict):
        raise GenerationError(f"Invalid config file '{file_path}': expected a mapping")
    try:
        return GeneratorConfig(**data)
    except ValidationError as e:
        raise GenerationError(f"Invalid config file '{file_path}': {e}") from e
