"""
Bundle Assembler.

Lays out the deploy directory:

    crds/<source>NN.crd.yaml
    olm-catalog/<package>/<version>/<operator>.v<version>.clusterserviceversion.yaml
    olm-catalog/<package>/<version>/<source>NN.crd.yaml
    olm-catalog/<package>/<version>/metadata/annotations.yaml
    index-image/bundle.Dockerfile
    index-image/<package>/<version>/...   (image reference replaced by a placeholder)

Schema files are written to both crds/ and the bundle directory: the first
is applied directly, the second is the bundle format.
"""
from __future__ import annotations

import logging
import re
import shutil
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from hcobundle.registry.images import ImageReference
from hcobundle.utils.yaml_io import write_document

from .apis import write_schemas
from .merger import MergedDescriptor
from .models import SchemaDefinition

logger = logging.getLogger(__name__)

IMAGE_PLACEHOLDER = "+IMAGE_TO_REPLACE+"
INDEX_IMAGE_CREATED_AT = "2020-10-23 08:58:25"
BUNDLE_DOCKERFILE = "bundle.Dockerfile"

_CREATED_AT_LINE = re.compile(r"^(?P<key>\s*createdAt:).*$", re.MULTILINE)


@dataclass(frozen=True)
class BundleAnnotations:
    """The fixed OLM keys of metadata/annotations.yaml."""

    package: str
    channels: str
    default_channel: str
    manifests: str = "manifests/"
    media_type: str = "registry+v1"
    metadata: str = "metadata/"

    @classmethod
    def for_version(cls, package: str, version: str) -> BundleAnnotations:
        """One channel per version, which is also the default channel."""
        return cls(package=package, channels=version, default_channel=version)

    def to_document(self) -> dict[str, Any]:
        prefix = "operators.operatorframework.io.bundle"
        return {
            "annotations": {
                f"{prefix}.channel.default.v1": self.default_channel,
                f"{prefix}.channels.v1": self.channels,
                f"{prefix}.manifests.v1": self.manifests,
                f"{prefix}.mediatype.v1": self.media_type,
                f"{prefix}.metadata.v1": self.metadata,
                f"{prefix}.package.v1": self.package,
            }
        }

    def dockerfile(self, bundle_path: str) -> str:
        """A bundle Dockerfile carrying the same keys as labels."""
        labels = "\n".join(
            f"LABEL {key}={value}" for key, value in self.to_document()["annotations"].items()
        )
        return (
            "FROM scratch\n\n"
            f"{labels}\n\n"
            f"COPY {bundle_path}/*.yaml /{self.manifests}\n"
            f"COPY {bundle_path}/metadata /{self.metadata}\n"
        )


@dataclass
class BundleLayout:
    """Paths of one assembled bundle."""

    root: Path
    package: str
    version: str
    files: list[Path] = field(default_factory=list)

    @property
    def crd_dir(self) -> Path:
        return self.root / "crds"

    @property
    def olm_dir(self) -> Path:
        return self.root / "olm-catalog"

    @property
    def csv_dir(self) -> Path:
        return self.olm_dir / self.package / self.version

    @property
    def metadata_dir(self) -> Path:
        return self.csv_dir / "metadata"

    @property
    def annotations_path(self) -> Path:
        return self.metadata_dir / "annotations.yaml"

    @property
    def index_image_dir(self) -> Path:
        return self.root / "index-image"

    @property
    def index_csv_dir(self) -> Path:
        return self.index_image_dir / self.package / self.version

    @property
    def yaml_dirs(self) -> list[Path]:
        """Directories whose YAML files must pass the lint gate."""
        return [self.crd_dir, self.csv_dir]


def _reset(directory: Path) -> None:
    if directory.exists():
        shutil.rmtree(directory)
    directory.mkdir(parents=True)


def index_image_text(csv_text: str, operator_image: str) -> str:
    """Pin createdAt and replace the operator image reference with the placeholder."""
    text = _CREATED_AT_LINE.sub(rf'\g<key> "{INDEX_IMAGE_CREATED_AT}"', csv_text)
    if operator_image:
        repository = ImageReference.parse(operator_image).repository
        pattern = re.compile(rf"{re.escape(repository)}(?:[:@][^\s\"']*)?")
        text = pattern.sub(IMAGE_PLACEHOLDER, text)
    return text


def assemble(
    merged: MergedDescriptor,
    schemas: Sequence[SchemaDefinition],
    annotations: BundleAnnotations,
    target_directory: str | Path,
) -> BundleLayout:
    """
    Write the bundle and its index-image variant.

    crds/, the versioned bundle directory and index-image/ are cleared
    first; anything else under the target directory is left alone.
    """
    layout = BundleLayout(
        root=Path(target_directory),
        package=merged.metadata.package_name,
        version=merged.metadata.csv_version,
    )

    _reset(layout.crd_dir)
    _reset(layout.csv_dir)
    layout.metadata_dir.mkdir(parents=True)

    layout.files.append(write_document(layout.annotations_path, annotations.to_document()))

    csv_path = layout.csv_dir / merged.csv_filename
    csv_text = merged.to_yaml()
    csv_path.write_text(csv_text, encoding="utf-8")
    layout.files.append(csv_path)

    layout.files.extend(write_schemas(schemas, layout.crd_dir))
    layout.files.extend(write_schemas(schemas, layout.csv_dir))
    logger.info(f"Wrote {merged.csv_filename} and {len(schemas)} schema file(s) to {layout.csv_dir}")

    _assemble_index_image(layout, annotations, csv_path.name, csv_text, merged.metadata.operator_image)
    return layout


def _assemble_index_image(
    layout: BundleLayout,
    annotations: BundleAnnotations,
    csv_filename: str,
    csv_text: str,
    operator_image: str,
) -> None:
    if layout.index_image_dir.exists():
        shutil.rmtree(layout.index_image_dir)
    layout.index_csv_dir.parent.mkdir(parents=True)
    shutil.copytree(layout.csv_dir, layout.index_csv_dir)

    dockerfile = layout.index_image_dir / BUNDLE_DOCKERFILE
    source_dockerfile = layout.olm_dir / BUNDLE_DOCKERFILE
    if source_dockerfile.is_file():
        shutil.copyfile(source_dockerfile, dockerfile)
    else:
        dockerfile.write_text(
            annotations.dockerfile(f"{layout.package}/{layout.version}"),
            encoding="utf-8",
        )
    layout.files.append(dockerfile)

    index_csv = layout.index_csv_dir / csv_filename
    index_csv.write_text(index_image_text(csv_text, operator_image), encoding="utf-8")
    layout.files.append(index_csv)
    logger.info(f"Wrote index image layout to {layout.index_image_dir}")
