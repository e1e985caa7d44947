"""Route fragment normalization."""


def normalize_path(fragment: str | None) -> str:
    """Canonicalize a route fragment.

    Repeated, leading and trailing slashes are dropped and ``:name``
    segments become ``{name}``, so ``normalize_path("/people//:id/")``
    is ``"people/{id}"``.
    """
    if not fragment:
        return ""
    parts = [p for p in fragment.split("/") if p]
    parts = [f"{{{p[1:]}}}" if p.startswith(":") and len(p) > 1 else p for p in parts]
    return "/".join(parts)


def join_paths(*fragments: str | None) -> str:
    """Compose normalized fragments into one slash-prefixed path."""
    parts = [normalize_path(f) for f in fragments]
    return "/" + "/".join(p for p in parts if p)
