"""
Manifest Templator.

Turns CSV install strategies into the plain Kubernetes objects needed to
deploy without OLM:

    permissions + serviceAccountName  ->  ServiceAccount + Role + RoleBinding
    clusterPermissions                ->  ClusterRole + ClusterRoleBinding
    deployments                       ->  Deployment

render() is pure; write_manifests() puts the result on disk.
"""
from __future__ import annotations

import copy
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from hcobundle.utils.yaml_io import write_document

from .models import ComponentDescriptor, PermissionSet, RunMetadata, SchemaDefinition
from .operator import (
    HCO_NAME,
    HCO_SERVICE_ACCOUNT,
    operator_deployment,
    operator_permissions,
)
from .permissions import namespace_service_accounts

logger = logging.getLogger(__name__)

RBAC_API_VERSION = "rbac.authorization.k8s.io/v1"

Manifest = tuple[str, dict[str, Any]]


def _resource(kind: str, api_version: str, name: str, namespace: str | None = None) -> dict[str, Any]:
    resource: dict[str, Any] = {
        "apiVersion": api_version,
        "kind": kind,
        "metadata": {"name": name, "labels": {"name": name}},
    }
    if namespace:
        resource["metadata"]["namespace"] = namespace
    return resource


def _filename(document: dict[str, Any]) -> str:
    return f"{document['kind'].lower()}-{document['metadata']['name']}.yaml"


def service_account(name: str, namespace: str) -> dict[str, Any]:
    return _resource("ServiceAccount", "v1", name, namespace)


def rbac_pair(permission: PermissionSet, namespace: str, name: str | None = None) -> list[dict[str, Any]]:
    """Role and RoleBinding (or the cluster variants) for one permission set."""
    name = name or permission.service_account_name
    cluster = permission.scope == "cluster"
    role_kind = "ClusterRole" if cluster else "Role"
    scope_namespace = None if cluster else namespace

    role = _resource(role_kind, RBAC_API_VERSION, name, scope_namespace)
    role["rules"] = [copy.deepcopy(rule) for rule in permission.rules]

    binding = _resource(f"{role_kind}Binding", RBAC_API_VERSION, name, scope_namespace)
    binding["roleRef"] = {"apiGroup": "rbac.authorization.k8s.io", "kind": role_kind, "name": name}
    binding["subjects"] = [
        {"kind": "ServiceAccount", "name": permission.service_account_name, "namespace": namespace}
    ]
    return [role, binding]


def _override_images(pod_spec: dict[str, Any], image_overrides: Mapping[str, str]) -> None:
    for key in ("initContainers", "containers"):
        for container in pod_spec.get(key) or []:
            image = image_overrides.get(container.get("name", ""))
            if image:
                container["image"] = image


def deployment(entry: dict[str, Any], namespace: str, image_overrides: Mapping[str, str]) -> dict[str, Any]:
    """A Deployment from a CSV spec.install.spec.deployments entry."""
    spec = copy.deepcopy(entry.get("spec") or {})
    pod_spec = spec.get("template", {}).get("spec")
    if isinstance(pod_spec, dict):
        _override_images(pod_spec, image_overrides)

    document = _resource("Deployment", "apps/v1", entry["name"], namespace)
    labels = entry.get("label") or spec.get("template", {}).get("metadata", {}).get("labels")
    if labels:
        document["metadata"]["labels"] = dict(labels)
    document["spec"] = spec
    return document


def _component_manifests(
    descriptor: ComponentDescriptor,
    namespace: str,
    image_overrides: Mapping[str, str],
) -> list[dict[str, Any]]:
    documents = [service_account(sa, namespace) for sa in descriptor.service_account_names]

    seen: dict[tuple[str, str], int] = {}
    for permission in (*descriptor.permissions, *descriptor.cluster_permissions):
        key = (permission.scope, permission.service_account_name)
        count = seen.get(key, 0)
        seen[key] = count + 1
        name = permission.service_account_name if count == 0 else f"{permission.service_account_name}-{count}"
        documents.extend(rbac_pair(permission, namespace, name))

    for entry in descriptor.deployments:
        documents.append(deployment(entry, namespace, image_overrides))
    return documents


def render(
    descriptors: Sequence[ComponentDescriptor],
    operator_namespace: str,
    image_overrides: Mapping[str, str],
    version_metadata: RunMetadata,
    api_schemas: Sequence[SchemaDefinition] = (),
) -> list[Manifest]:
    """
    Render deployment manifests for the operator and every component.

    Args:
        descriptors: Component descriptors in build order
        operator_namespace: Namespace of every namespaced object
        image_overrides: Container name -> image, applied to all deployments
        version_metadata: Versions and operator image for the operator deployment
        api_schemas: The operator's own CRDs, for its ClusterRole

    Returns:
        (filename, document) pairs sorted by filename

    Raises:
        ValueError: If two objects would be written to the same file
    """
    components = namespace_service_accounts(descriptors, reserved=[HCO_SERVICE_ACCOUNT])

    operator_image = image_overrides.get(HCO_NAME) or version_metadata.operator_image
    documents = [service_account(HCO_SERVICE_ACCOUNT, operator_namespace)]
    documents.extend(
        rbac_pair(operator_permissions(components, api_schemas), operator_namespace, HCO_NAME)
    )
    documents.append(operator_deployment(version_metadata, operator_namespace, image=operator_image))

    for component in components:
        documents.extend(_component_manifests(component, operator_namespace, image_overrides))

    manifests: dict[str, dict[str, Any]] = {}
    for document in documents:
        filename = _filename(document)
        if filename in manifests:
            if manifests[filename] == document:
                continue
            raise ValueError(f"Two different manifests render to {filename}")
        manifests[filename] = document

    logger.info(f"Rendered {len(manifests)} manifest(s) for {len(components)} component(s)")
    return sorted(manifests.items())


def write_manifests(manifests: Sequence[Manifest], output_dir: str | Path) -> list[Path]:
    """Write rendered manifests, one file per object."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    return [write_document(output_dir / filename, document) for filename, document in manifests]
