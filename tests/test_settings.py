"""Tests for BuildSettings."""

import pytest

from hcobundle.config import BuildSettings
from hcobundle.config.settings import DEFAULT_SMBIOS, default_overrides
from hcobundle.pipeline import build_request


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("CSV_VERSION", "KUBEVIRT_VERSION", "OPERATOR_IMAGE", "CSV_OVERRIDES", "DEPLOY_DIR"):
        monkeypatch.delenv(name, raising=False)


class TestDerivedImages:
    """Tests for image defaults derived from versions."""

    def test_images_follow_versions(self, tmp_path):
        settings = BuildSettings(project_root=tmp_path, kubevirt_version="v0.36.0", csv_version="1.4.0")

        assert settings.kubevirt_image == "docker.io/kubevirt/virt-operator:v0.36.0"
        assert settings.operator_image == "quay.io/kubevirt/hyperconverged-cluster-operator:1.4.0"
        assert settings.deploy_dir == tmp_path / "deploy"

    def test_explicit_image_wins(self, tmp_path):
        settings = BuildSettings(project_root=tmp_path, cdi_image="registry.example/cdi:dev")

        assert settings.cdi_image == "registry.example/cdi:dev"

    def test_empty_image_stays_empty(self, tmp_path):
        settings = BuildSettings(project_root=tmp_path, operator_image="", vmware_container="")

        assert settings.operator_image == ""
        assert settings.vmware_container == ""
        assert "VMWARE_CONTAINER" not in build_request(settings).helper_images
        assert "CONVERSION_CONTAINER" in build_request(settings).helper_images


class TestProjectConfig:
    """Tests for reading hack/config."""

    def test_for_project_reads_config(self, tmp_path):
        (tmp_path / "hack").mkdir()
        (tmp_path / "hack" / "config").write_text(
            "CSV_VERSION=1.5.0\nKUBEVIRT_VERSION=v0.35.0\nUNRELATED=1\n",
            encoding="utf-8",
        )

        settings = BuildSettings.for_project(tmp_path)

        assert settings.csv_version == "1.5.0"
        assert settings.kubevirt_version == "v0.35.0"
        assert settings.kubevirt_image == "docker.io/kubevirt/virt-operator:v0.35.0"
        assert settings.deploy_dir == tmp_path / "deploy"

    def test_environment_beats_config(self, tmp_path, monkeypatch):
        (tmp_path / "hack").mkdir()
        (tmp_path / "hack" / "config").write_text("CSV_VERSION=1.5.0\n", encoding="utf-8")
        monkeypatch.setenv("CSV_VERSION", "1.6.0")

        assert BuildSettings.for_project(tmp_path).csv_version == "1.6.0"

    def test_overrides_argument_beats_both(self, tmp_path):
        settings = BuildSettings.for_project(tmp_path, deploy_dir=tmp_path / "out")

        assert settings.deploy_dir == tmp_path / "out"


class TestRunMetadata:
    """Tests for run_metadata and its inputs."""

    def test_component_versions(self):
        versions = BuildSettings(kubevirt_version="v0.34.0").component_versions

        assert versions["KUBEVIRT_VERSION"] == "v0.34.0"
        assert set(versions) == {
            "KUBEVIRT_VERSION",
            "CDI_VERSION",
            "NETWORK_ADDONS_VERSION",
            "SSP_VERSION",
            "NMO_VERSION",
            "HPPO_VERSION",
            "VM_IMPORT_VERSION",
        }

    def test_metadata_fields(self, tmp_path):
        settings = BuildSettings(project_root=tmp_path, csv_version="1.3.0", replaces_csv_version="1.2.0")

        metadata = settings.run_metadata(
            operator_image="quay.io/kubevirt/hyperconverged-cluster-operator@sha256:" + "a" * 64,
            operator_env={"CONVERSION_CONTAINER": "x"},
        )

        assert metadata.csv_name == "kubevirt-hyperconverged-operator.v1.3.0"
        assert metadata.replaces == "kubevirt-hyperconverged-operator.v1.2.0"
        assert metadata.operator_env == {"SMBIOS": DEFAULT_SMBIOS, "CONVERSION_CONTAINER": "x"}
        assert metadata.operator_image.endswith("a" * 64)

    def test_configured_operator_image_by_default(self, tmp_path):
        settings = BuildSettings(project_root=tmp_path, csv_version="1.3.0")

        assert settings.run_metadata().operator_image == settings.operator_image

    def test_description_file(self, tmp_path):
        docs = tmp_path / "docs"
        docs.mkdir()
        (docs / "operator_description.md").write_text("# HCO\n", encoding="utf-8")

        assert BuildSettings(project_root=tmp_path).run_metadata().description == "# HCO\n"

    def test_missing_description_is_empty(self, tmp_path):
        assert BuildSettings(project_root=tmp_path).description() == ""


class TestOverrides:
    """Tests for load_overrides."""

    def test_default_overrides(self, tmp_path):
        overrides = BuildSettings(project_root=tmp_path).load_overrides()

        assert overrides == default_overrides()
        assert [link.name for link in overrides.spec.links] == ["KubeVirt project", "Source Code"]
        assert overrides.spec.provider.name == "KubeVirt project"

    def test_overrides_file(self, tmp_path):
        path = tmp_path / "overrides.yaml"
        path.write_text("spec:\n  maturity: beta\n  keywords:\n  - test\n", encoding="utf-8")

        overrides = BuildSettings(project_root=tmp_path, csv_overrides=path).load_overrides()

        document = overrides.to_document()
        assert document["spec"]["maturity"] == "beta"
        assert document["spec"]["keywords"] == ["test"]
        assert "links" not in document["spec"]
