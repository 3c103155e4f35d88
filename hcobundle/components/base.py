"""
Component Descriptor Builder base.

A builder knows one sub-operator's generator: where it lives in the image,
how its "dump schemas" flag is spelled and which arguments it takes. It
resolves every image it passes to the generator, then hands the fixed
four-part contract to the DescriptorExtractor.

Subclasses must implement:
- name: Component name, unique within a run
- generator_args(): Resolve images and build the argument list
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from hcobundle.descriptors.generators import DEFAULT_CSV_GENERATOR
from hcobundle.descriptors.models import ComponentBuild
from hcobundle.registry.images import ImageReference, RelatedImages

if TYPE_CHECKING:
    from hcobundle.descriptors.extractor import DescriptorExtractor
    from hcobundle.registry.resolver import DigestResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComponentOptions:
    """Settings shared by every component of one run."""

    namespace: str
    csv_version: str
    replaces_version: str | None = None
    pull_policy: str = "IfNotPresent"


class RecordingResolver:
    """
    Resolver wrapper that remembers what one builder resolved.

    The wrapped resolver still appends to the run-wide accumulator; the
    recorded list becomes the component's own ``images``.
    """

    def __init__(self, resolver: DigestResolver):
        self._resolver = resolver
        self.resolved: list[ImageReference] = []

    @property
    def accumulator(self) -> RelatedImages:
        return self._resolver.accumulator

    async def resolve(self, image: ImageReference | str) -> ImageReference:
        resolved = await self._resolver.resolve(image)
        self.resolved.append(resolved)
        return resolved


class ComponentBuilder(ABC):
    """
    Base class for component descriptor builders.

    Class attributes configure the generator contract and may be overridden
    per subclass or per instance.
    """

    generator_entrypoint: str = DEFAULT_CSV_GENERATOR
    dump_schemas_flag: str = "--dump-crds"
    boundary_lines: int = 1

    def __init__(
        self,
        image: ImageReference | str,
        options: ComponentOptions,
        *,
        version: str | None = None,
    ):
        self._image = image if isinstance(image, ImageReference) else ImageReference.parse(image)
        self.options = options
        self._version = version

    @property
    @abstractmethod
    def name(self) -> str:
        """Component name, also the prefix of its schema files."""
        ...

    @property
    def image(self) -> ImageReference:
        """The component's operator image, which also carries its generator."""
        return self._image

    @property
    def version(self) -> str:
        """Operator version; defaults to the operator image tag."""
        return self._version or self._image.tag or ""

    @abstractmethod
    async def generator_args(self, resolver: RecordingResolver) -> list[str]:
        """
        Resolve this component's images and build the generator arguments.

        Raises:
            RegistryUnavailable: If an image cannot be inspected
            DigestMissing: If an image has no digest
        """
        ...

    async def build(self, resolver: DigestResolver, extractor: DescriptorExtractor) -> ComponentBuild:
        """
        Resolve images, run the generator and return the component build.

        Any failure propagates; nothing is retried.
        """
        recorder = RecordingResolver(resolver)
        args = await self.generator_args(recorder)
        logger.info(f"[{self.name}] Resolved {len(recorder.resolved)} image(s)")

        descriptor, schemas = await extractor.extract(
            self.generator_entrypoint,
            self.name,
            str(self.image),
            self.dump_schemas_flag,
            args,
            boundary_lines=self.boundary_lines,
        )
        images = tuple(recorder.resolved)
        return ComponentBuild(
            descriptor=descriptor.with_images(images),
            schemas=tuple(schemas),
            images=images,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', image='{self.image}')"


class GenericComponentBuilder(ComponentBuilder):
    """
    Data-driven builder for components without a dedicated class.

    ``args`` are str.format templates. Available fields: namespace,
    csv_version, replaces_version, pull_policy, version, image (pinned),
    digest, prefix, and one field per ``sub_images`` key holding the pinned
    sub-image.

    Example:
        GenericComponentBuilder(
            "example",
            "registry.example/comp:v1",
            options,
            args=["--namespace={namespace}", "--operator-image={image}"],
        )
    """

    def __init__(
        self,
        name: str,
        image: ImageReference | str,
        options: ComponentOptions,
        *,
        args: Sequence[str] = (),
        sub_images: Mapping[str, str] | None = None,
        version: str | None = None,
        generator_entrypoint: str | None = None,
        dump_schemas_flag: str | None = None,
        boundary_lines: int | None = None,
    ):
        super().__init__(image, options, version=version)
        self._name = name
        self._args = list(args)
        self._sub_images = dict(sub_images or {})
        if generator_entrypoint is not None:
            self.generator_entrypoint = generator_entrypoint
        if dump_schemas_flag is not None:
            self.dump_schemas_flag = dump_schemas_flag
        if boundary_lines is not None:
            self.boundary_lines = boundary_lines

    @property
    def name(self) -> str:
        return self._name

    async def generator_args(self, resolver: RecordingResolver) -> list[str]:
        operator = await resolver.resolve(self.image)
        fields = {
            "namespace": self.options.namespace,
            "csv_version": self.options.csv_version,
            "replaces_version": self.options.replaces_version or "",
            "pull_policy": self.options.pull_policy,
            "version": self.version,
            "image": str(operator),
            "digest": operator.digest or "",
            "prefix": self.image.prefix,
        }
        for key, image in self._sub_images.items():
            fields[key] = str(await resolver.resolve(image))
        return [arg.format(**fields) for arg in self._args]
