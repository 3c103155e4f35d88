"""
Component registry.

Builders are registered once and run in registration order, which is also
the order of deployments, permissions and owned CRDs in the merged CSV.

Usage:
    registry = ComponentRegistry()
    registry.register(KubeVirtBuilder(image, options))
    registry.register(NetworkAddonsBuilder(image, options))

    for builder in registry:
        build = await builder.build(resolver, extractor)
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from hcobundle.descriptors.apis import API_SOURCE

from .base import ComponentBuilder
from .cdi import ContainerizedDataImporterBuilder
from .hpp import HostpathProvisionerBuilder
from .kubevirt import KubeVirtBuilder
from .network import NetworkAddonsBuilder
from .nmo import NodeMaintenanceBuilder
from .ssp import SchedulingScalePerformanceBuilder
from .vm_import import VMImportBuilder

if TYPE_CHECKING:
    from hcobundle.config.settings import BuildSettings

logger = logging.getLogger(__name__)


class ComponentRegistry:
    """Ordered mapping of component name to builder."""

    def __init__(self) -> None:
        self._builders: dict[str, ComponentBuilder] = {}

    def register(self, builder: ComponentBuilder) -> None:
        """
        Register a builder.

        Raises:
            ValueError: If a builder with the same name is already registered, or
                the name is the one reserved for the operator's own API schemas
        """
        if builder.name == API_SOURCE:
            raise ValueError(f"Component name '{API_SOURCE}' is reserved for the operator's API schemas")
        if builder.name in self._builders:
            raise ValueError(f"Component '{builder.name}' already registered")
        self._builders[builder.name] = builder
        logger.debug(f"[component_registry] Registered {builder!r}")

    def get(self, name: str) -> ComponentBuilder | None:
        return self._builders.get(name)

    def get_required(self, name: str) -> ComponentBuilder:
        builder = self._builders.get(name)
        if builder is None:
            raise KeyError(f"Component '{name}' not found. Available: {self.names}")
        return builder

    def select(self, names: list[str]) -> ComponentRegistry:
        """A registry with only the named components, in registration order."""
        unknown = [n for n in names if n not in self._builders]
        if unknown:
            raise KeyError(f"Unknown component(s) {unknown}. Available: {self.names}")
        selected = ComponentRegistry()
        for name, builder in self._builders.items():
            if name in names:
                selected.register(builder)
        return selected

    @property
    def names(self) -> list[str]:
        return list(self._builders)

    def __iter__(self) -> Iterator[ComponentBuilder]:
        return iter(list(self._builders.values()))

    def __len__(self) -> int:
        return len(self._builders)

    def __contains__(self, name: str) -> bool:
        return name in self._builders


def default_components(settings: BuildSettings) -> ComponentRegistry:
    """The HyperConverged operator's seven components, in bundle order."""
    options = settings.component_options()
    registry = ComponentRegistry()
    registry.register(KubeVirtBuilder(settings.kubevirt_image, options, version=settings.kubevirt_version))
    registry.register(NetworkAddonsBuilder(settings.cna_image, options))
    registry.register(SchedulingScalePerformanceBuilder(settings.ssp_image, options, version=settings.ssp_version))
    registry.register(ContainerizedDataImporterBuilder(settings.cdi_image, options, version=settings.cdi_version))
    registry.register(NodeMaintenanceBuilder(settings.nmo_image, options, version=settings.nmo_version))
    registry.register(
        HostpathProvisionerBuilder(
            settings.hppo_image,
            options,
            provisioner_image=settings.hpp_image,
            version=settings.hppo_version,
        )
    )
    registry.register(VMImportBuilder(settings.vm_import_image, options, version=settings.vm_import_version))
    return registry
