"""
hco-bundle registry layer

Image references, registry inspectors and the digest resolver.
"""

from .base import RegistryInspector
from .http import RegistryHTTPInspector
from .images import (
    ImageReference,
    PullspecRegex,
    RelatedImages,
    find_image_lines,
    is_valid_pullspec,
)
from .resolver import DigestResolver
from .skopeo import SkopeoInspector

__all__ = [
    "ImageReference",
    "PullspecRegex",
    "RelatedImages",
    "find_image_lines",
    "is_valid_pullspec",
    "RegistryInspector",
    "SkopeoInspector",
    "RegistryHTTPInspector",
    "DigestResolver",
]
