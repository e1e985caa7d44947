"""Unified data models for extracted API metadata.

The generators turn annotated class declarations into these records; a
renderer turns them into an OpenAPI document.
"""

from typing import Any

from pydantic import BaseModel, Field


class Type(BaseModel):
    """A normalized type description."""

    type_name: str  # string / integer / long / double / boolean / array / object / void / buffer / <Reference>
    type_argument: "Type | None" = None  # inner type of NewResource-style wrappers
    element_type: "Type | None" = None  # array element
    properties: "list[Property] | None" = None
    additional_properties: "Type | None" = None
    enum_members: list[Any] | None = None
    description: str | None = None


class Property(BaseModel):
    """A field of an object or reference type."""

    name: str
    type: Type
    required: bool
    description: str | None = None


class Parameter(BaseModel):
    """A single operation input."""

    name: str
    location: str = Field(alias="in")  # path / query / header / formData / body / context / cookie
    type: Type
    required: bool
    default: Any = None
    description: str | None = None

    model_config = {"populate_by_name": True}


class ResponseType(BaseModel):
    """A documented or inferred HTTP response."""

    status: str
    description: str
    schema_: Type | None = Field(default=None, alias="schema")
    examples: Any = None

    model_config = {"populate_by_name": True}


class SecurityRequirement(BaseModel):
    name: str
    scopes: list[str] | None = None


class Method(BaseModel):
    """One operation on a controller."""

    name: str
    method: str  # get / post / put / patch / delete / options / head
    path: str
    parameters: list[Parameter]
    responses: list[ResponseType]
    type: Type
    tags: list[str] = []
    security: list[SecurityRequirement] | None = None
    produces: list[str] = []
    consumes: list[str] = []
    deprecated: bool = False
    summary: str | None = None
    description: str | None = None
    base_path: str = ""
    is_plural: bool = False


class Controller(BaseModel):
    """One exported annotated class."""

    name: str
    path: str
    location: str
    methods: list[Method]
    tags: list[str] = []
    security: list[SecurityRequirement] | None = None
    produces: list[str] = []
    consumes: list[str] = []


Type.model_rebuild()
