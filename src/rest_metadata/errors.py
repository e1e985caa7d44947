"""Errors raised while generating API metadata."""


class GenerationError(Exception):
    """Structurally broken annotated source that cannot be summarized."""
