"""
hco-bundle components

One descriptor builder per sub-operator, plus a data-driven builder for
anything else.
"""

from .base import ComponentBuilder, ComponentOptions, GenericComponentBuilder, RecordingResolver
from .cdi import ContainerizedDataImporterBuilder
from .hpp import HostpathProvisionerBuilder
from .kubevirt import KubeVirtBuilder
from .network import NetworkAddonsBuilder
from .nmo import NodeMaintenanceBuilder
from .registry import ComponentRegistry, default_components
from .ssp import SchedulingScalePerformanceBuilder
from .vm_import import VMImportBuilder

__all__ = [
    "ComponentBuilder",
    "ComponentOptions",
    "GenericComponentBuilder",
    "RecordingResolver",
    "KubeVirtBuilder",
    "NetworkAddonsBuilder",
    "SchedulingScalePerformanceBuilder",
    "ContainerizedDataImporterBuilder",
    "NodeMaintenanceBuilder",
    "HostpathProvisionerBuilder",
    "VMImportBuilder",
    "ComponentRegistry",
    "default_components",
]
