"""CLI entry point for rest-metadata."""

import fnmatch
import json
from pathlib import Path

import click
import yaml

from rest_metadata.config import load_config
from rest_metadata.errors import GenerationError
from rest_metadata.generator.metadata import MetadataGenerator
from rest_metadata.log import configure_logging
from rest_metadata.parser.base import Controller
from rest_metadata.parser.source import SourceTree


def _filter_controllers(controllers: list[Controller], patterns: tuple[str, ...]) -> list[Controller]:
    """Keep controllers whose name matches one of the glob patterns."""
    if not patterns:
        return controllers
    return [c for c in controllers if any(fnmatch.fnmatch(c.name, p) for p in patterns)]


def _dump(controllers: list[Controller], fmt: str) -> str:
    data = [c.model_dump(by_alias=True, exclude_none=True) for c in controllers]
    if fmt == "yaml":
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    return json.dumps(data, indent=2, ensure_ascii=False)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log debug events to stderr.")
def main(verbose: bool):
    """rest-metadata: extract API metadata from annotated Python controllers."""
    configure_logging(verbose)


@main.command()
@click.argument("sources", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.option("-c", "--config", "config_path", default=None, type=click.Path(exists=True, path_type=Path), help="YAML/JSON generator config.")
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Output file (default: stdout).")
@click.option("--format", "fmt", default="json", type=click.Choice(["json", "yaml"]), help="Output format.")
@click.option("--controller", "patterns", multiple=True, help="Only controllers matching this glob (repeatable).")
def extract(sources: tuple[Path, ...], config_path: Path | None, output: Path | None, fmt: str, patterns: tuple[str, ...]):
    """Extract controller metadata from annotated Python sources."""
    try:
        config = load_config(config_path)
        tree = SourceTree.from_paths(list(sources))
        controllers = MetadataGenerator(tree, config).generate()
    except GenerationError as e:
        raise click.ClickException(str(e)) from e

    controllers = _filter_controllers(controllers, patterns)
    result = _dump(controllers, fmt)

    if output is None:
        click.echo(result)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(result, encoding="utf-8")
    click.echo(f"Wrote {len(controllers)} controllers to {output}")
