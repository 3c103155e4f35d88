"""
hco-bundle pipeline

Typed build stages composed by a fail-fast executor.

Core Components:
- Frame: Immutable data containers passed between stages
- Processor: One build stage
- Pipeline: Sequential, fail-fast executor
- Context: Run-scoped collaborators and audit trail
"""

from .builder import build_request, create_bundle_pipeline, create_inspector, create_runner, run_bundle_build
from .context import PipelineContext, PipelineResult
from .executor import Pipeline, PipelineBuilder
from .frames import (
    BuildRequestFrame,
    BundleFrame,
    ComponentSetFrame,
    ErrorFrame,
    Frame,
    MergedDescriptorFrame,
)
from .processor import Processor

__all__ = [
    # Core
    "Pipeline",
    "PipelineBuilder",
    "PipelineContext",
    "PipelineResult",
    "Processor",
    # Frames
    "Frame",
    "ErrorFrame",
    "BuildRequestFrame",
    "ComponentSetFrame",
    "MergedDescriptorFrame",
    "BundleFrame",
    # Factory
    "build_request",
    "create_bundle_pipeline",
    "create_inspector",
    "create_runner",
    "run_bundle_build",
]
