"""Tests for the manifest templator."""

import copy

import pytest
import yaml
from conftest import component_crd, component_csv, pinned

from hcobundle.descriptors.models import ComponentDescriptor, PermissionSet, SchemaDefinition
from hcobundle.descriptors.operator import HCO_NAME
from hcobundle.descriptors.templator import rbac_pair, render, write_manifests
from hcobundle.utils.yaml_io import dump_document

NAMESPACE = "kubevirt-hyperconverged"


def _descriptor(name, service_account=None):
    return ComponentDescriptor.from_text(
        name, component_csv(name, pinned(f"registry.example/{name}:v1"), service_account=service_account)
    )


class TestRender:
    """Tests for render."""

    def test_operator_objects(self, run_metadata):
        manifests = dict(render([], NAMESPACE, {}, run_metadata))

        assert sorted(manifests) == [
            f"clusterrole-{HCO_NAME}.yaml",
            f"clusterrolebinding-{HCO_NAME}.yaml",
            "deployment-hco-operator.yaml",
            f"serviceaccount-{HCO_NAME}.yaml",
        ]
        deployment = manifests["deployment-hco-operator.yaml"]
        assert deployment["metadata"]["namespace"] == NAMESPACE
        container = deployment["spec"]["template"]["spec"]["containers"][0]
        assert container["image"] == run_metadata.operator_image
        env = {e["name"]: e.get("value") for e in container["env"]}
        assert env["KUBEVIRT_VERSION"] == "v0.34.0"
        assert env["HCO_KV_IO_VERSION"] == "1.3.0"

    def test_component_objects(self, run_metadata):
        manifests = dict(render([_descriptor("comp")], NAMESPACE, {}, run_metadata))

        assert "serviceaccount-comp-operator.yaml" in manifests
        assert "role-comp-operator.yaml" in manifests
        assert "deployment-comp-operator.yaml" in manifests

        binding = manifests["clusterrolebinding-comp-operator.yaml"]
        assert binding["roleRef"] == {
            "apiGroup": "rbac.authorization.k8s.io",
            "kind": "ClusterRole",
            "name": "comp-operator",
        }
        assert binding["subjects"] == [{"kind": "ServiceAccount", "name": "comp-operator", "namespace": NAMESPACE}]
        assert "namespace" not in manifests["clusterrole-comp-operator.yaml"]["metadata"]
        assert manifests["rolebinding-comp-operator.yaml"]["metadata"]["namespace"] == NAMESPACE

    def test_output_is_sorted_by_filename(self, run_metadata):
        manifests = render([_descriptor("b"), _descriptor("a")], NAMESPACE, {}, run_metadata)

        filenames = [filename for filename, _ in manifests]
        assert filenames == sorted(filenames)

    def test_image_overrides_by_container_name(self, run_metadata):
        override = pinned("registry.example/patched:v2")
        manifests = dict(
            render([_descriptor("comp")], NAMESPACE, {"comp-operator": override, HCO_NAME: "registry.example/hco:dev"}, run_metadata)
        )

        container = manifests["deployment-comp-operator.yaml"]["spec"]["template"]["spec"]["containers"][0]
        assert container["image"] == override
        operator = manifests["deployment-hco-operator.yaml"]["spec"]["template"]["spec"]["containers"][0]
        assert operator["image"] == "registry.example/hco:dev"

    def test_render_is_pure(self, run_metadata):
        descriptors = [_descriptor("a"), _descriptor("b")]
        deployments_before = copy.deepcopy([d.deployments for d in descriptors])
        overrides = {"a-operator": pinned("registry.example/patched:v2")}

        first = render(descriptors, NAMESPACE, overrides, run_metadata)
        second = render(descriptors, NAMESPACE, overrides, run_metadata)

        assert [(name, dump_document(doc)) for name, doc in first] == [
            (name, dump_document(doc)) for name, doc in second
        ]
        assert [d.deployments for d in descriptors] == deployments_before
        container = dict(first)["deployment-a-operator.yaml"]["spec"]["template"]["spec"]["containers"][0]
        assert container["image"] == overrides["a-operator"]

    def test_colliding_service_accounts_render_separately(self, run_metadata):
        manifests = dict(
            render([_descriptor("a", "shared"), _descriptor("b", "shared")], NAMESPACE, {}, run_metadata)
        )

        assert "serviceaccount-shared.yaml" in manifests
        assert "serviceaccount-b-shared.yaml" in manifests
        deployment = manifests["deployment-b-operator.yaml"]
        assert deployment["spec"]["template"]["spec"]["serviceAccountName"] == "b-shared"

    def test_operator_role_covers_api_schemas(self, run_metadata):
        schema = SchemaDefinition.from_text(
            component_crd("hco.kubevirt.io", "HyperConverged"), source="hco", filename="hco00.crd.yaml"
        )

        manifests = dict(render([], NAMESPACE, {}, run_metadata, api_schemas=[schema]))

        rules = manifests[f"clusterrole-{HCO_NAME}.yaml"]["rules"]
        assert rules[0] == {
            "apiGroups": ["hco.kubevirt.io"],
            "resources": ["hyperconvergeds", "hyperconvergeds/status", "hyperconvergeds/finalizers"],
            "verbs": ["*"],
        }

    def test_conflicting_objects_raise(self, run_metadata):
        a = _descriptor("a")
        b = ComponentDescriptor.from_text(
            "b", component_csv("a", pinned("registry.example/other:v1"))
        )

        with pytest.raises(ValueError, match="deployment-a-operator.yaml"):
            render([a, b], NAMESPACE, {}, run_metadata)


class TestRbacPair:
    """Tests for rbac_pair."""

    def test_namespaced_pair(self):
        permission = PermissionSet("sa", rules=({"apiGroups": [""], "resources": ["pods"], "verbs": ["get"]},))

        role, binding = rbac_pair(permission, NAMESPACE)

        assert role["kind"] == "Role"
        assert role["rules"] == [{"apiGroups": [""], "resources": ["pods"], "verbs": ["get"]}]
        assert binding["kind"] == "RoleBinding"
        assert binding["roleRef"]["kind"] == "Role"


class TestWriteManifests:
    """Tests for write_manifests."""

    def test_one_file_per_object(self, tmp_path, run_metadata):
        manifests = render([_descriptor("comp")], NAMESPACE, {}, run_metadata)

        paths = write_manifests(manifests, tmp_path / "manifests")

        assert [p.name for p in paths] == [filename for filename, _ in manifests]
        loaded = yaml.safe_load((tmp_path / "manifests" / "deployment-comp-operator.yaml").read_text())
        assert loaded["kind"] == "Deployment"
