"""
Bundle pipeline processors

One processor per build stage, in pipeline order.
"""

from .bundle import BundleAssemblyProcessor, ValidationProcessor
from .components import ComponentBuildProcessor
from .images import OperatorImageProcessor
from .merge import MergeProcessor
from .schemas import ApiSchemaProcessor, OverlapCheckProcessor
from .templator import ManifestTemplatorProcessor

__all__ = [
    "ComponentBuildProcessor",
    "ApiSchemaProcessor",
    "OperatorImageProcessor",
    "OverlapCheckProcessor",
    "MergeProcessor",
    "ManifestTemplatorProcessor",
    "BundleAssemblyProcessor",
    "ValidationProcessor",
]
