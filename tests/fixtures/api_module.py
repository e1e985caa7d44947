"""Models referenced through a module attribute in apis.py."""

from pydantic import BaseModel


class GenericTypeTest(BaseModel):
    value: str
