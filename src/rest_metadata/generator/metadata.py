"""Metadata generator: runs the controller generator over a source tree."""

import structlog

from rest_metadata.config import GeneratorConfig
from rest_metadata.generator.controller import ControllerGenerator
from rest_metadata.generator.types import TypeResolver
from rest_metadata.parser.base import Controller
from rest_metadata.parser.source import SourceTree

logger = structlog.get_logger(__name__)


class MetadataGenerator:
    """Produces the Controller list a renderer consumes."""

    def __init__(self, tree: SourceTree, config: GeneratorConfig | None = None):
        self.tree = tree
        self.config = config or GeneratorConfig()
        self.resolver = TypeResolver(tree)

    def generate(self) -> list[Controller]:
        """Generate controllers for every exported class that exposes an operation."""
        controllers = []
        for declaration in self.tree.exported_classes():
            controller = ControllerGenerator(self.config, self.resolver, declaration).generate()
            # model classes and other plain classes have nothing to document
            if controller.methods:
                controllers.append(controller)

        logger.info(
            "metadata_generated",
            classes=len(self.tree),
            controllers=len(controllers),
            methods=sum(len(c.methods) for c in controllers),
        )
        return controllers
