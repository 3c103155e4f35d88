"""
The HyperConverged operator's own deployment and RBAC.

Unlike the components, the top-level operator has no generator: its
deployment and permissions come from the fixed template below, filled in
with the run's version metadata.
"""
from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from .models import CLUSTER, ComponentDescriptor, PermissionSet, RunMetadata, SchemaDefinition

HCO_NAME = "hyperconverged-cluster-operator"
HCO_SERVICE_ACCOUNT = HCO_NAME
HCO_DEPLOYMENT_NAME = "hco-operator"
HCO_CONTAINER_NAME = HCO_NAME
HEALTH_PORT = 6060

COMPONENT_VERBS = ["get", "list", "watch", "create", "delete", "patch", "update"]

# Core resources the operator reads or manages on behalf of its components
_CORE_RULES: tuple[dict[str, Any], ...] = (
    {
        "apiGroups": [""],
        "resources": [
            "pods",
            "services",
            "services/finalizers",
            "endpoints",
            "persistentvolumeclaims",
            "events",
            "configmaps",
            "secrets",
            "serviceaccounts",
            "namespaces",
        ],
        "verbs": ["*"],
    },
    {
        "apiGroups": ["apps"],
        "resources": ["deployments", "daemonsets", "replicasets", "statefulsets"],
        "verbs": ["*"],
    },
    {
        "apiGroups": ["rbac.authorization.k8s.io"],
        "resources": ["roles", "rolebindings", "clusterroles", "clusterrolebindings"],
        "verbs": ["*"],
    },
    {
        "apiGroups": ["apiextensions.k8s.io"],
        "resources": ["customresourcedefinitions"],
        "verbs": ["get", "list", "watch"],
    },
    {
        "apiGroups": ["monitoring.coreos.com"],
        "resources": ["servicemonitors", "prometheusrules"],
        "verbs": ["get", "list", "watch", "create", "update", "delete"],
    },
)


def _owned_resources(entries: Sequence[dict[str, Any]]) -> dict[str, list[str]]:
    """Map API group to plural resource names from CSV owned-CRD entries."""
    by_group: dict[str, list[str]] = {}
    for entry in entries:
        plural, _, group = str(entry.get("name", "")).partition(".")
        if not plural or not group:
            continue
        resources = by_group.setdefault(group, [])
        if plural not in resources:
            resources.append(plural)
    return by_group


def operator_cluster_rules(
    descriptors: Sequence[ComponentDescriptor],
    api_schemas: Sequence[SchemaDefinition] = (),
) -> list[dict[str, Any]]:
    """
    ClusterRole rules for the HyperConverged operator.

    Full access to its own API groups, CRUD on every component's custom
    resources, and the fixed core rules. Groups appear in first-seen order.
    """
    rules: list[dict[str, Any]] = []

    own: dict[str, list[str]] = {}
    for schema in api_schemas:
        resources = own.setdefault(schema.group, [])
        for resource in (schema.plural, f"{schema.plural}/status", f"{schema.plural}/finalizers"):
            if schema.plural and resource not in resources:
                resources.append(resource)
    for group, resources in own.items():
        rules.append({"apiGroups": [group], "resources": resources, "verbs": ["*"]})

    owned_entries = [entry for d in descriptors for entry in d.owned_crds]
    for group, resources in _owned_resources(owned_entries).items():
        if group in own:
            continue
        rules.append({"apiGroups": [group], "resources": resources, "verbs": list(COMPONENT_VERBS)})

    rules.extend({key: list(value) for key, value in rule.items()} for rule in _CORE_RULES)
    return rules


def operator_permissions(
    descriptors: Sequence[ComponentDescriptor],
    api_schemas: Sequence[SchemaDefinition] = (),
) -> PermissionSet:
    return PermissionSet(
        service_account_name=HCO_SERVICE_ACCOUNT,
        rules=tuple(operator_cluster_rules(descriptors, api_schemas)),
        scope=CLUSTER,
    )


def operator_env(metadata: RunMetadata, image: str | None = None) -> list[dict[str, Any]]:
    """Container environment: downward API fields, then versions, then extra settings."""
    env: list[dict[str, Any]] = [
        {
            "name": "WATCH_NAMESPACE",
            "valueFrom": {"fieldRef": {"fieldPath": "metadata.annotations['olm.targetNamespaces']"}},
        },
        {"name": "OPERATOR_IMAGE", "value": image or metadata.operator_image},
        {"name": "OPERATOR_NAME", "value": HCO_NAME},
        {"name": "OPERATOR_NAMESPACE", "valueFrom": {"fieldRef": {"fieldPath": "metadata.namespace"}}},
        {"name": "POD_NAME", "valueFrom": {"fieldRef": {"fieldPath": "metadata.name"}}},
    ]
    for name in sorted(metadata.component_versions):
        env.append({"name": name, "value": metadata.component_versions[name]})
    for name in sorted(metadata.operator_env):
        env.append({"name": name, "value": metadata.operator_env[name]})
    env.append({"name": "HCO_KV_IO_VERSION", "value": metadata.csv_version})
    return env


def _health_check(path: str) -> dict[str, Any]:
    return {
        "httpGet": {"path": path, "port": HEALTH_PORT},
        "initialDelaySeconds": 5,
        "periodSeconds": 5,
        "failureThreshold": 1,
    }


def operator_deployment_spec(
    metadata: RunMetadata,
    *,
    image: str | None = None,
    pull_policy: str = "IfNotPresent",
) -> dict[str, Any]:
    """The Deployment spec of the operator, shared by the CSV and the raw manifest."""
    labels = {"name": HCO_NAME}
    return {
        "replicas": 1,
        "selector": {"matchLabels": dict(labels)},
        "strategy": {"type": "Recreate"},
        "template": {
            "metadata": {"labels": dict(labels)},
            "spec": {
                "serviceAccountName": HCO_SERVICE_ACCOUNT,
                "containers": [
                    {
                        "name": HCO_CONTAINER_NAME,
                        "image": image or metadata.operator_image,
                        "imagePullPolicy": pull_policy,
                        "command": [HCO_NAME],
                        "env": operator_env(metadata, image),
                        "ports": [{"name": "health", "containerPort": HEALTH_PORT}],
                        "readinessProbe": _health_check("/readyz"),
                        "livenessProbe": _health_check("/livez"),
                        "resources": {"requests": {"cpu": "10m", "memory": "96Mi"}},
                        "volumeMounts": [{"name": "tmp", "mountPath": "/tmp"}],
                    }
                ],
                "volumes": [{"name": "tmp", "emptyDir": {}}],
                "priorityClassName": "system-cluster-critical",
            },
        },
    }


def operator_csv_deployment(metadata: RunMetadata) -> dict[str, Any]:
    """The spec.install.spec.deployments entry for the operator."""
    return {"name": HCO_DEPLOYMENT_NAME, "spec": operator_deployment_spec(metadata)}


def operator_deployment(
    metadata: RunMetadata,
    namespace: str,
    *,
    image: str | None = None,
) -> dict[str, Any]:
    """The operator Deployment manifest for a plain (non-OLM) install."""
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {
            "name": HCO_DEPLOYMENT_NAME,
            "namespace": namespace,
            "labels": {"name": HCO_NAME},
        },
        "spec": operator_deployment_spec(metadata, image=image),
    }
