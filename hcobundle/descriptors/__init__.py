"""
hco-bundle descriptors

Extraction, merging, templating and assembly of ClusterServiceVersions and
their CustomResourceDefinitions.
"""

from .apis import load_api_schemas, write_schemas
from .bundle import IMAGE_PLACEHOLDER, BundleAnnotations, BundleLayout, assemble
from .extractor import (
    DescriptorExtractor,
    compute_delta,
    join_documents,
    schema_filename,
    split_documents,
)
from .generators import (
    DEFAULT_CSV_GENERATOR,
    DockerGeneratorRunner,
    GeneratorRunner,
    LocalGeneratorRunner,
)
from .merger import (
    MergedDescriptor,
    SchemaConflict,
    assert_no_overlap,
    check_overlap,
    deep_merge,
    find_conflicts,
    merge,
    source_from_filename,
    validate_component_images,
)
from .models import (
    ComponentBuild,
    ComponentDescriptor,
    OverrideFragment,
    PermissionSet,
    RunMetadata,
    SchemaDefinition,
)
from .permissions import namespace_service_accounts
from .templator import render, write_manifests
from .validation import validate_paths

__all__ = [
    # Models
    "ComponentBuild",
    "ComponentDescriptor",
    "OverrideFragment",
    "PermissionSet",
    "RunMetadata",
    "SchemaDefinition",
    # Extraction
    "DEFAULT_CSV_GENERATOR",
    "GeneratorRunner",
    "DockerGeneratorRunner",
    "LocalGeneratorRunner",
    "DescriptorExtractor",
    "compute_delta",
    "split_documents",
    "join_documents",
    "schema_filename",
    "load_api_schemas",
    "write_schemas",
    # Merge
    "MergedDescriptor",
    "SchemaConflict",
    "merge",
    "deep_merge",
    "validate_component_images",
    "namespace_service_accounts",
    "find_conflicts",
    "check_overlap",
    "assert_no_overlap",
    "source_from_filename",
    # Output
    "render",
    "write_manifests",
    "BundleAnnotations",
    "BundleLayout",
    "IMAGE_PLACEHOLDER",
    "assemble",
    "validate_paths",
]
