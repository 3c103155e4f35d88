"""
Descriptor Merger.

Combines the component ClusterServiceVersions into the single CSV that the
bundle ships, and checks that no two sources claim the same CRD.

Merge rules:
- related images are the ordered, de-duplicated union of every component's
  resolved images plus any extra images; all must be digest-pinned
- permissions stay per component; colliding service accounts are renamed
- deployments and owned CRDs are concatenated after the operator's own
- overrides are deep-merged last and win on scalar and list collisions
"""
from __future__ import annotations

import copy
import json
import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from hcobundle.errors import EmptyComponentImage, SchemaOverlap, UnpinnedImageReference
from hcobundle.registry.images import ImageReference, find_image_lines, is_valid_pullspec
from hcobundle.utils.yaml_io import dump_document

from .extractor import CRD_EXT, CSV_EXT
from .models import (
    ComponentDescriptor,
    OverrideFragment,
    PermissionSet,
    RunMetadata,
    SchemaDefinition,
)
from .operator import HCO_NAME, operator_csv_deployment, operator_permissions
from .permissions import namespace_service_accounts

logger = logging.getLogger(__name__)

CSV_API_VERSION = "operators.coreos.com/v1alpha1"
CSV_KIND = "ClusterServiceVersion"

DEFAULT_CRD_DESCRIPTION = "Represents the deployment of HyperConverged Cluster Operator"
SHORT_DESCRIPTION = (
    "A unified operator deploying and controlling KubeVirt and its supporting "
    "operators with opinionated defaults"
)

_SCHEMA_FILENAME = re.compile(rf"^(?P<source>.+)(?P<index>\d{{2}})\.{re.escape(CRD_EXT)}$")


def deep_merge(target: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """
    Merge ``overrides`` into a copy of ``target``.

    Nested mappings are merged key by key; any other value in ``overrides``
    (scalars and lists alike) replaces the target's value.
    """
    merged = copy.deepcopy(dict(target))
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_component_images(descriptors: Iterable[ComponentDescriptor]) -> None:
    """
    Require a well-formed ``image:`` line in every component descriptor.

    Raises:
        EmptyComponentImage: If a descriptor has none
    """
    for descriptor in descriptors:
        images = find_image_lines(descriptor.raw_text)
        if not any(is_valid_pullspec(image) for image in images):
            raise EmptyComponentImage(
                f"Descriptor for {descriptor.name} declares no well-formed image "
                f"(found {images or 'no image lines'})",
                stage=descriptor.name,
            )


def _as_reference(image: ImageReference | str) -> ImageReference:
    if isinstance(image, ImageReference):
        return image
    return ImageReference.parse(image)


def unique_related_images(
    descriptors: Sequence[ComponentDescriptor],
    related_images: Iterable[ImageReference | str] = (),
) -> list[ImageReference]:
    """
    Ordered union of component images then extra images, without duplicates.

    Raises:
        UnpinnedImageReference: If any entry is not digest-pinned
    """
    ordered: list[ImageReference] = []
    for descriptor in descriptors:
        ordered.extend(descriptor.images)
    ordered.extend(_as_reference(image) for image in related_images)

    unique = list(dict.fromkeys(ordered))
    unpinned = [str(image) for image in unique if not image.is_pinned]
    if unpinned:
        raise UnpinnedImageReference(
            f"Related images must be digest-pinned: {', '.join(unpinned)}",
            stage="merge",
        )
    return unique


def related_image_entries(images: Sequence[ImageReference]) -> list[dict[str, str]]:
    """spec.relatedImages entries; clashing names get a short digest suffix."""
    entries = []
    used: set[str] = set()
    for image in images:
        name = image.name
        if name in used:
            name = f"{name}-{image.digest.partition(':')[2][:12]}"
        used.add(name)
        entries.append({"name": name, "image": str(image)})
    return entries


def _alm_examples(api_schemas: Sequence[SchemaDefinition], package_name: str) -> str:
    examples = [
        {
            "apiVersion": f"{schema.group}/{schema.version}",
            "kind": schema.kind,
            "metadata": {"name": package_name, "namespace": package_name},
            "spec": {},
        }
        for schema in api_schemas
    ]
    return json.dumps(examples, indent=2)


@dataclass(frozen=True)
class MergedDescriptor:
    """
    The unified CSV and what it was built from.

    Attributes:
        document: The merged CSV, ready to be dumped
        components: Every component descriptor, after service account renames
        related_images: De-duplicated, pinned related images
        metadata: The run metadata stamped into the document
    """

    document: dict[str, Any]
    components: tuple[ComponentDescriptor, ...]
    related_images: tuple[ImageReference, ...]
    metadata: RunMetadata
    operator_permissions: tuple[PermissionSet, ...] = field(default=(), compare=False)

    @property
    def csv_filename(self) -> str:
        return f"{self.metadata.csv_name}.{CSV_EXT}"

    def permissions_by_component(self) -> dict[str, tuple[PermissionSet, ...]]:
        """Permission sets of each component, both scopes, never merged."""
        result: dict[str, tuple[PermissionSet, ...]] = {HCO_NAME: self.operator_permissions}
        for component in self.components:
            result[component.name] = (*component.permissions, *component.cluster_permissions)
        return result

    def to_yaml(self) -> str:
        return dump_document(self.document, explicit_start=True)


def merge(
    descriptors: Sequence[ComponentDescriptor],
    overrides: OverrideFragment | Mapping[str, Any] | None,
    run_metadata: RunMetadata,
    related_images: Iterable[ImageReference | str] = (),
    *,
    api_schemas: Sequence[SchemaDefinition] = (),
) -> MergedDescriptor:
    """
    Merge component descriptors into one CSV.

    Args:
        descriptors: Component descriptors in build order
        overrides: Partial CSV deep-merged on top of the result
        run_metadata: Version and identity fields for the header
        related_images: Extra pinned images (operator image, helper images)
        api_schemas: The operator's own CRDs

    Raises:
        ValueError: If two descriptors share a name
        EmptyComponentImage: If a descriptor has no well-formed image line
        UnpinnedImageReference: If a related image is not digest-pinned
    """
    names = [d.name for d in descriptors]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate component names: {', '.join(duplicates)}")

    validate_component_images(descriptors)
    images = unique_related_images(descriptors, related_images)

    components = namespace_service_accounts(descriptors, reserved=[HCO_NAME])
    operator_perm = operator_permissions(components, api_schemas)

    permissions = [p.to_csv_entry() for c in components for p in c.permissions]
    cluster_permissions = [operator_perm.to_csv_entry()]
    cluster_permissions.extend(p.to_csv_entry() for c in components for p in c.cluster_permissions)

    deployments = [operator_csv_deployment(run_metadata)]
    deployments.extend(copy.deepcopy(d) for c in components for d in c.deployments)

    owned = [
        schema.owned_entry(run_metadata.crd_display, DEFAULT_CRD_DESCRIPTION)
        for schema in api_schemas
    ]
    owned.extend(copy.deepcopy(entry) for c in components for entry in c.owned_crds)

    annotations: dict[str, Any] = {
        "capabilities": "Full Lifecycle",
        "categories": "OpenShift Optional",
        "certified": "false",
        "containerImage": run_metadata.operator_image,
        "createdAt": run_metadata.created_at,
        "description": SHORT_DESCRIPTION,
        "repository": "https://github.com/kubevirt/hyperconverged-cluster-operator",
        "support": "false",
    }
    if api_schemas:
        annotations["alm-examples"] = _alm_examples(api_schemas, run_metadata.package_name)

    spec: dict[str, Any] = {
        "displayName": run_metadata.display_name,
        "description": run_metadata.description,
        "keywords": ["KubeVirt", "Virtualization"],
        "version": run_metadata.csv_version,
    }
    if run_metadata.replaces:
        spec["replaces"] = run_metadata.replaces
    spec.update(
        {
            "installModes": [
                {"type": "OwnNamespace", "supported": False},
                {"type": "SingleNamespace", "supported": True},
                {"type": "MultiNamespace", "supported": False},
                {"type": "AllNamespaces", "supported": False},
            ],
            "install": {
                "strategy": "deployment",
                "spec": {
                    "permissions": permissions,
                    "clusterPermissions": cluster_permissions,
                    "deployments": deployments,
                },
            },
            "customresourcedefinitions": {"owned": owned},
            "relatedImages": related_image_entries(images),
        }
    )

    document: dict[str, Any] = {
        "apiVersion": CSV_API_VERSION,
        "kind": CSV_KIND,
        "metadata": {
            "name": run_metadata.csv_name,
            "namespace": "placeholder",
            "annotations": annotations,
        },
        "spec": spec,
    }

    if isinstance(overrides, OverrideFragment):
        overrides = overrides.to_document()
    if overrides:
        document = deep_merge(document, overrides)

    logger.info(
        f"Merged {len(components)} component(s) into {run_metadata.csv_name} "
        f"with {len(images)} related image(s)"
    )
    return MergedDescriptor(
        document=document,
        components=tuple(components),
        related_images=tuple(images),
        metadata=run_metadata,
        operator_permissions=(operator_perm,),
    )


# =============================================================================
# Overlap check
# =============================================================================


@dataclass(frozen=True)
class SchemaConflict:
    """A (group, kind) claimed by more than one source."""

    group: str
    kind: str
    sources: tuple[str, ...]
    files: tuple[str, ...] = ()

    def __str__(self) -> str:
        return f"{self.kind}.{self.group} is declared by {', '.join(self.sources)}"


def source_from_filename(filename: str) -> str:
    """``kubevirt03.crd.yaml`` -> ``kubevirt``."""
    match = _SCHEMA_FILENAME.match(filename)
    if match:
        return match.group("source")
    return filename.split(".", 1)[0]


def find_conflicts(schemas: Iterable[SchemaDefinition]) -> list[SchemaConflict]:
    """Group schemas by (group, kind) and report keys with several sources."""
    sources: dict[tuple[str, str], list[str]] = {}
    files: dict[tuple[str, str], list[str]] = {}
    for schema in schemas:
        owners = sources.setdefault(schema.key, [])
        if schema.source not in owners:
            owners.append(schema.source)
        files.setdefault(schema.key, []).append(schema.filename)

    return [
        SchemaConflict(group=key[0], kind=key[1], sources=tuple(owners), files=tuple(files[key]))
        for key, owners in sorted(sources.items())
        if len(owners) > 1
    ]


def load_schema_directory(directory: str | Path, pattern: str = f"*.{CRD_EXT}") -> list[SchemaDefinition]:
    """
    Load every schema file in a directory.

    Raises:
        FileNotFoundError: If the directory does not exist
        StructuralValidationFailed: If a file is not a well-formed CRD
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Schema directory not found: {directory}")

    schemas = []
    for path in sorted(directory.glob(pattern)):
        schemas.append(
            SchemaDefinition.from_text(
                path.read_text(encoding="utf-8"),
                source=source_from_filename(path.name),
                filename=path.name,
            )
        )
    return schemas


def check_overlap(directory: str | Path, pattern: str = f"*.{CRD_EXT}") -> list[SchemaConflict]:
    """Run the overlap check against the schema files on disk."""
    schemas = load_schema_directory(directory, pattern)
    conflicts = find_conflicts(schemas)
    logger.info(f"Checked {len(schemas)} schema file(s) in {directory}: {len(conflicts)} conflict(s)")
    return conflicts


def assert_no_overlap(directory: str | Path, pattern: str = f"*.{CRD_EXT}") -> None:
    """
    Raises:
        SchemaOverlap: If any (group, kind) has more than one source
    """
    conflicts = check_overlap(directory, pattern)
    if conflicts:
        details = "; ".join(str(c) for c in conflicts)
        raise SchemaOverlap(f"Overlapping API groups: {details}", stage="overlap", conflicts=conflicts)
