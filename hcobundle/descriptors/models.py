"""
Descriptor domain models.

ClusterServiceVersion (CSV) documents are kept as plain dicts in
``raw_document``; the dataclasses below expose the parts the merger and the
templator work with. Run-level inputs (overrides, version metadata) are
pydantic models because they arrive from files and the command line.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from hcobundle.errors import StructuralValidationFailed
from hcobundle.registry.images import ImageReference
from hcobundle.utils.yaml_io import dump_document, load_document

NAMESPACED = "namespaced"
CLUSTER = "cluster"


def _utc_timestamp() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")


def _dig(document: Any, *keys: str, default: Any = None) -> Any:
    current = document
    for key in keys:
        if not isinstance(current, dict):
            return default
        current = current.get(key)
        if current is None:
            return default
    return current


# =============================================================================
# Permissions
# =============================================================================


@dataclass(frozen=True, slots=True)
class PermissionSet:
    """
    RBAC rules granted to one service account.

    Attributes:
        service_account_name: Account the rules are bound to
        rules: PolicyRule mappings, as found in the CSV
        scope: NAMESPACED (CSV permissions) or CLUSTER (CSV clusterPermissions)
    """

    service_account_name: str
    rules: tuple[dict[str, Any], ...] = ()
    scope: str = NAMESPACED

    @classmethod
    def from_csv_entry(cls, entry: dict[str, Any], scope: str) -> PermissionSet:
        rules = entry.get("rules") or []
        if not isinstance(rules, list):
            raise StructuralValidationFailed(
                f"Permission rules for {entry.get('serviceAccountName')!r} are not a list"
            )
        return cls(
            service_account_name=str(entry.get("serviceAccountName", "")),
            rules=tuple(copy.deepcopy(r) for r in rules),
            scope=scope,
        )

    def renamed(self, renames: dict[str, str]) -> PermissionSet:
        new_name = renames.get(self.service_account_name)
        if new_name is None:
            return self
        return replace(self, service_account_name=new_name)

    def to_csv_entry(self) -> dict[str, Any]:
        return {
            "serviceAccountName": self.service_account_name,
            "rules": [copy.deepcopy(r) for r in self.rules],
        }


# =============================================================================
# Schema definitions (CRDs)
# =============================================================================


@dataclass(frozen=True)
class SchemaDefinition:
    """
    A CustomResourceDefinition extracted from a generator or an API source.

    (group, kind) must be unique across all sources of one bundle.
    """

    group: str
    version: str
    kind: str
    plural: str = ""
    source: str = ""
    filename: str = ""
    raw_text: str = ""
    raw_document: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def key(self) -> tuple[str, str]:
        return (self.group, self.kind)

    @property
    def crd_name(self) -> str:
        return f"{self.plural}.{self.group}" if self.plural else self.group

    @classmethod
    def from_text(cls, text: str, *, source: str, filename: str = "") -> SchemaDefinition:
        """
        Parse one CRD document.

        Raises:
            StructuralValidationFailed: If the text is not a CRD mapping
        """
        where = filename or source
        try:
            document = load_document(text)
        except yaml.YAMLError as e:
            raise StructuralValidationFailed(f"Invalid YAML in schema {where}: {e}") from e

        if not isinstance(document, dict):
            raise StructuralValidationFailed(f"Schema {where} is not a YAML mapping")

        group = _dig(document, "spec", "group")
        kind = _dig(document, "spec", "names", "kind")
        if not group or not kind:
            raise StructuralValidationFailed(
                f"Schema {where} has no spec.group / spec.names.kind"
            )

        version = _dig(document, "spec", "version") or ""
        versions = _dig(document, "spec", "versions", default=[])
        if isinstance(versions, list) and versions:
            stored = [v for v in versions if isinstance(v, dict) and v.get("storage")]
            chosen = stored[0] if stored else versions[0]
            if isinstance(chosen, dict):
                version = chosen.get("name", version)

        return cls(
            group=str(group),
            version=str(version),
            kind=str(kind),
            plural=str(_dig(document, "spec", "names", "plural", default="")),
            source=source,
            filename=filename,
            raw_text=text if text.endswith("\n") else text + "\n",
            raw_document=document,
        )

    def owned_entry(self, display_name: str = "", description: str = "") -> dict[str, Any]:
        """The CSV spec.customresourcedefinitions.owned entry for this CRD."""
        entry: dict[str, Any] = {
            "name": self.crd_name,
            "version": self.version,
            "kind": self.kind,
        }
        if display_name:
            entry["displayName"] = display_name
        if description:
            entry["description"] = description
        return entry


# =============================================================================
# Component descriptors (CSVs)
# =============================================================================


@dataclass(frozen=True)
class ComponentDescriptor:
    """
    One sub-operator's ClusterServiceVersion.

    Attributes:
        name: Component name, unique within a run
        display_name: spec.displayName of the CSV
        images: Resolved references produced while building this component
        permissions: Namespaced permission sets
        cluster_permissions: Cluster-wide permission sets
        deployments: spec.install.spec.deployments entries
        owned_crds: spec.customresourcedefinitions.owned entries
        raw_document: The parsed CSV
        raw_text: The CSV as emitted by the generator
    """

    name: str
    display_name: str = ""
    images: tuple[ImageReference, ...] = ()
    permissions: tuple[PermissionSet, ...] = ()
    cluster_permissions: tuple[PermissionSet, ...] = ()
    deployments: tuple[dict[str, Any], ...] = field(default=(), compare=False)
    owned_crds: tuple[dict[str, Any], ...] = field(default=(), compare=False)
    raw_document: dict[str, Any] = field(default_factory=dict, compare=False)
    raw_text: str = ""

    @classmethod
    def from_text(
        cls,
        name: str,
        text: str,
        *,
        images: tuple[ImageReference, ...] = (),
    ) -> ComponentDescriptor:
        """
        Parse a CSV document emitted by a generator.

        Only the first document of the stream is used; generators print the
        CSV first.

        Raises:
            StructuralValidationFailed: If the text is not a YAML mapping
        """
        try:
            documents = [d for d in yaml.safe_load_all(text) if d is not None]
        except yaml.YAMLError as e:
            raise StructuralValidationFailed(f"Invalid YAML in {name} descriptor: {e}") from e

        if not documents or not isinstance(documents[0], dict):
            raise StructuralValidationFailed(f"Descriptor for {name} is not a YAML mapping")
        return cls.from_document(name, documents[0], images=images, raw_text=text)

    @classmethod
    def from_document(
        cls,
        name: str,
        document: dict[str, Any],
        *,
        images: tuple[ImageReference, ...] = (),
        raw_text: str | None = None,
    ) -> ComponentDescriptor:
        install = _dig(document, "spec", "install", "spec", default={})
        if not isinstance(install, dict):
            raise StructuralValidationFailed(f"Descriptor for {name} has a malformed install spec")
        permissions = tuple(
            PermissionSet.from_csv_entry(e, NAMESPACED) for e in install.get("permissions") or []
        )
        cluster_permissions = tuple(
            PermissionSet.from_csv_entry(e, CLUSTER) for e in install.get("clusterPermissions") or []
        )
        return cls(
            name=name,
            display_name=str(_dig(document, "spec", "displayName", default="")),
            images=tuple(images),
            permissions=permissions,
            cluster_permissions=cluster_permissions,
            deployments=tuple(copy.deepcopy(install.get("deployments") or [])),
            owned_crds=tuple(
                copy.deepcopy(_dig(document, "spec", "customresourcedefinitions", "owned", default=[]))
            ),
            raw_document=document,
            raw_text=raw_text if raw_text is not None else dump_document(document),
        )

    @property
    def service_account_names(self) -> list[str]:
        """Distinct service accounts in declaration order."""
        names: list[str] = []
        for perm in (*self.permissions, *self.cluster_permissions):
            if perm.service_account_name:
                names.append(perm.service_account_name)
        for deployment in self.deployments:
            sa = _dig(deployment, "spec", "template", "spec", "serviceAccountName")
            if sa:
                names.append(sa)
        return list(dict.fromkeys(names))

    def container_images(self) -> list[str]:
        """Images of every container declared in the CSV deployments."""
        images = []
        for deployment in self.deployments:
            containers = _dig(deployment, "spec", "template", "spec", "containers", default=[])
            for container in containers:
                if isinstance(container, dict) and container.get("image"):
                    images.append(container["image"])
        return images

    def with_images(self, images: tuple[ImageReference, ...]) -> ComponentDescriptor:
        return replace(self, images=tuple(images))

    def with_service_accounts_renamed(self, renames: dict[str, str]) -> ComponentDescriptor:
        """Rename service accounts in permissions and deployments."""
        if not renames:
            return self

        deployments = []
        for deployment in self.deployments:
            deployment = copy.deepcopy(deployment)
            pod_spec = _dig(deployment, "spec", "template", "spec")
            if isinstance(pod_spec, dict) and pod_spec.get("serviceAccountName") in renames:
                pod_spec["serviceAccountName"] = renames[pod_spec["serviceAccountName"]]
            deployments.append(deployment)

        return replace(
            self,
            permissions=tuple(p.renamed(renames) for p in self.permissions),
            cluster_permissions=tuple(p.renamed(renames) for p in self.cluster_permissions),
            deployments=tuple(deployments),
        )


@dataclass(frozen=True)
class ComponentBuild:
    """What one component builder hands to the merger."""

    descriptor: ComponentDescriptor
    schemas: tuple[SchemaDefinition, ...] = ()
    images: tuple[ImageReference, ...] = ()

    @property
    def name(self) -> str:
        return self.descriptor.name


# =============================================================================
# Run inputs
# =============================================================================


class Link(BaseModel):
    name: str
    url: str


class Maintainer(BaseModel):
    name: str
    email: str


class Provider(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    url: str | None = None


class OverrideSpec(BaseModel):
    """The spec part of an override fragment."""

    model_config = ConfigDict(extra="allow")

    links: list[Link] | None = None
    maintainers: list[Maintainer] | None = None
    maturity: str | None = None
    provider: Provider | None = None


class OverrideFragment(BaseModel):
    """
    Partial CSV merged on top of the merged descriptor.

    Known keys are validated; anything else passes through untouched.
    """

    model_config = ConfigDict(extra="allow")

    spec: OverrideSpec = Field(default_factory=OverrideSpec)

    @classmethod
    def from_yaml(cls, text: str) -> OverrideFragment:
        try:
            document = load_document(text)
        except yaml.YAMLError as e:
            raise StructuralValidationFailed(f"Invalid YAML in CSV overrides: {e}") from e
        if document is None:
            return cls()
        if not isinstance(document, dict):
            raise StructuralValidationFailed("CSV overrides must be a YAML mapping")
        return cls.model_validate(document)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class RunMetadata(BaseModel):
    """
    Version and identity metadata stamped into the merged descriptor.

    created_at is the only field expected to differ between two runs on the
    same inputs.
    """

    model_config = ConfigDict(frozen=True)

    csv_version: str
    replaces_version: str | None = None
    operator_name: str = "kubevirt-hyperconverged-operator"
    package_name: str = "kubevirt-hyperconverged"
    display_name: str = "KubeVirt HyperConverged Cluster Operator"
    description: str = ""
    crd_display: str = "HyperConverged Cluster Operator"
    operator_image: str = ""
    created_at: str = Field(default_factory=_utc_timestamp)
    component_versions: dict[str, str] = Field(default_factory=dict)
    operator_env: dict[str, str] = Field(default_factory=dict)

    @property
    def csv_name(self) -> str:
        return f"{self.operator_name}.v{self.csv_version}"

    @property
    def replaces(self) -> str | None:
        if not self.replaces_version:
            return None
        return f"{self.operator_name}.v{self.replaces_version}"
