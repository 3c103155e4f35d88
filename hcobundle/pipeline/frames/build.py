"""
Build frames.

    BuildRequestFrame
        -> ComponentSetFrame      (components built, API schemas and operator images added)
        -> MergedDescriptorFrame  (merged CSV, all schemas)
        -> BundleFrame            (files on disk)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from hcobundle.descriptors.bundle import BundleLayout
from hcobundle.descriptors.merger import MergedDescriptor
from hcobundle.descriptors.models import (
    ComponentBuild,
    ComponentDescriptor,
    RunMetadata,
    SchemaDefinition,
)
from hcobundle.registry.images import ImageReference

from .base import Frame


@dataclass(frozen=True, kw_only=True, slots=True)
class BuildRequestFrame(Frame):
    """
    What to build and where.

    Attributes:
        deploy_dir: Bundle output directory
        namespace: Namespace of the rendered manifests
        run_metadata: Version metadata; operator_image still unresolved
        overrides: Override fragment document
        api_sources: Directory of the operator's own CRDs, or None
        helper_images: Operator env name -> image of helper containers
    """

    deploy_dir: Path
    namespace: str
    run_metadata: RunMetadata
    overrides: dict[str, Any] = field(default_factory=dict)
    api_sources: Path | None = None
    helper_images: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        base = Frame.to_dict(self)
        base.update(
            {
                "deploy_dir": str(self.deploy_dir),
                "csv_version": self.run_metadata.csv_version,
                "api_sources": str(self.api_sources) if self.api_sources else None,
            }
        )
        return base


@dataclass(frozen=True, kw_only=True, slots=True)
class ComponentSetFrame(Frame):
    """Every component build, plus the operator's own schemas and images."""

    request: BuildRequestFrame
    builds: tuple[ComponentBuild, ...] = ()
    api_schemas: tuple[SchemaDefinition, ...] = ()
    extra_images: tuple[ImageReference, ...] = ()
    run_metadata: RunMetadata | None = None

    @property
    def descriptors(self) -> list[ComponentDescriptor]:
        return [build.descriptor for build in self.builds]

    @property
    def schemas(self) -> list[SchemaDefinition]:
        """API schemas first, then component schemas in build order."""
        return [*self.api_schemas, *(s for build in self.builds for s in build.schemas)]

    @property
    def metadata_for_merge(self) -> RunMetadata:
        return self.run_metadata or self.request.run_metadata

    def to_dict(self) -> dict[str, Any]:
        base = Frame.to_dict(self)
        base.update(
            {
                "components": [build.name for build in self.builds],
                "schema_count": len(self.schemas),
                "extra_images": [str(image) for image in self.extra_images],
            }
        )
        return base


@dataclass(frozen=True, kw_only=True, slots=True)
class MergedDescriptorFrame(Frame):
    request: BuildRequestFrame
    merged: MergedDescriptor
    schemas: tuple[SchemaDefinition, ...] = ()
    api_schemas: tuple[SchemaDefinition, ...] = ()
    manifest_files: tuple[Path, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        base = Frame.to_dict(self)
        base.update(
            {
                "csv_name": self.merged.metadata.csv_name,
                "related_images": len(self.merged.related_images),
                "manifest_files": len(self.manifest_files),
            }
        )
        return base


@dataclass(frozen=True, kw_only=True, slots=True)
class BundleFrame(Frame):
    """The assembled bundle."""

    layout: BundleLayout
    merged: MergedDescriptor
    manifest_files: tuple[Path, ...] = ()
    validated_files: int = 0

    @property
    def csv_path(self) -> Path:
        return self.layout.csv_dir / self.merged.csv_filename

    def to_dict(self) -> dict[str, Any]:
        base = Frame.to_dict(self)
        base.update(
            {
                "csv_path": str(self.csv_path),
                "files": len(self.layout.files),
                "validated_files": self.validated_files,
            }
        )
        return base
