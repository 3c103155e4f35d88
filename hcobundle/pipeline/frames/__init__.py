"""
Bundle pipeline frames

Frames are immutable data containers that flow through the pipeline.
"""

from .base import ErrorFrame, Frame
from .build import BuildRequestFrame, BundleFrame, ComponentSetFrame, MergedDescriptorFrame

__all__ = [
    # Base
    "Frame",
    "ErrorFrame",
    # Build
    "BuildRequestFrame",
    "ComponentSetFrame",
    "MergedDescriptorFrame",
    "BundleFrame",
]
