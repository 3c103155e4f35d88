"""
Build settings.

Values come from, in order of precedence: explicit arguments, environment
variables, then the shell-style ``hack/config`` file. Variable names match
the ones the release tooling already writes (CSV_VERSION, KUBEVIRT_VERSION,
...), so there is no prefix.

Image references left unset are derived from the component versions.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hcobundle.components.base import ComponentOptions
from hcobundle.descriptors.models import OverrideFragment, RunMetadata

DEFAULT_ENV_FILE = "hack/config"
DEFAULT_SMBIOS = "Family: KubeVirt\nManufacturer: KubeVirt\nProduct: None"

DEFAULT_OVERRIDES = {
    "spec": {
        "links": [
            {"name": "KubeVirt project", "url": "https://kubevirt.io"},
            {
                "name": "Source Code",
                "url": "https://github.com/kubevirt/hyperconverged-cluster-operator",
            },
        ],
        "maintainers": [{"email": "kubevirt-dev@googlegroups.com", "name": "KubeVirt project"}],
        "maturity": "alpha",
        "provider": {"name": "KubeVirt project"},
    }
}

# Environment names of the component versions the operator deployment carries
COMPONENT_VERSION_FIELDS = {
    "KUBEVIRT_VERSION": "kubevirt_version",
    "CDI_VERSION": "cdi_version",
    "NETWORK_ADDONS_VERSION": "network_addons_version",
    "SSP_VERSION": "ssp_version",
    "NMO_VERSION": "nmo_version",
    "HPPO_VERSION": "hppo_version",
    "VM_IMPORT_VERSION": "vm_import_version",
}


class BuildSettings(BaseSettings):
    """Everything one bundle build needs to know."""

    model_config = SettingsConfigDict(
        extra="ignore",
        case_sensitive=False,
        env_file=DEFAULT_ENV_FILE,
        env_file_encoding="utf-8",
    )

    # Layout
    project_root: Path = Field(default=Path("."), description="Repository root")
    deploy_dir: Path | None = Field(default=None, description="Bundle output directory")
    api_sources: Path | None = Field(default=None, description="Directory of the operator's own CRD YAML")
    csv_overrides: Path | None = Field(default=None, description="Override fragment file")
    operator_description_file: Path | None = Field(default=None, description="Markdown CSV description")
    scratch_dir: Path | None = Field(default=None, description="Intermediate files; a temp dir when unset")

    # Identity
    operator_name: str = "kubevirt-hyperconverged-operator"
    namespace: str = "kubevirt-hyperconverged"
    package_name: str = "kubevirt-hyperconverged"
    display_name: str = "KubeVirt HyperConverged Cluster Operator"
    crd_display: str = "HyperConverged Cluster Operator"
    image_pull_policy: str = "IfNotPresent"
    smbios: str = DEFAULT_SMBIOS

    # Versions
    csv_version: str = "1.3.0"
    replaces_csv_version: str | None = "1.2.0"
    kubevirt_version: str = "v0.34.0"
    network_addons_version: str = "0.42.0"
    ssp_version: str = "v1.2.1"
    cdi_version: str = "v1.23.5"
    nmo_version: str = "v0.7.0"
    hppo_version: str = "v0.6.0"
    hpp_version: str = "v0.6.0"
    vm_import_version: str = "v0.2.3"
    conversion_container_version: str = "v2.0.0"
    vmware_container_version: str = "v2.0.0"

    # Images, derived from the versions when unset. An empty operator or helper
    # image is left out of the bundle.
    operator_image: str | None = None
    kubevirt_image: str | None = None
    cna_image: str | None = None
    ssp_image: str | None = None
    cdi_image: str | None = None
    nmo_image: str | None = None
    hppo_image: str | None = None
    hpp_image: str | None = None
    vm_import_image: str | None = None
    conversion_container: str | None = None
    vmware_container: str | None = None

    # Tooling
    container_engine: str = "docker"
    registry_inspector: Literal["skopeo", "skopeo-container", "registry"] = "skopeo-container"
    generator_runner: Literal["docker", "local"] = "docker"
    command_timeout: float | None = Field(default=None, gt=0)
    insecure_registries: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _derive_defaults(self) -> BuildSettings:
        defaults = {
            "operator_image": f"quay.io/kubevirt/hyperconverged-cluster-operator:{self.csv_version}",
            "kubevirt_image": f"docker.io/kubevirt/virt-operator:{self.kubevirt_version}",
            "cna_image": f"quay.io/kubevirt/cluster-network-addons-operator:{self.network_addons_version}",
            "ssp_image": f"quay.io/fromani/kubevirt-ssp-operator-container:{self.ssp_version}",
            "cdi_image": f"docker.io/kubevirt/cdi-operator:{self.cdi_version}",
            "nmo_image": f"quay.io/kubevirt/node-maintenance-operator:{self.nmo_version}",
            "hppo_image": f"quay.io/kubevirt/hostpath-provisioner-operator:{self.hppo_version}",
            "hpp_image": f"quay.io/kubevirt/hostpath-provisioner:{self.hpp_version}",
            "vm_import_image": f"quay.io/kubevirt/vm-import-operator:{self.vm_import_version}",
            "conversion_container": (
                f"quay.io/kubevirt/kubevirt-v2v-conversion:{self.conversion_container_version}"
            ),
            "vmware_container": f"quay.io/kubevirt/kubevirt-vmware:{self.vmware_container_version}",
        }
        for name, value in defaults.items():
            if getattr(self, name) is None:
                setattr(self, name, value)

        if self.deploy_dir is None:
            self.deploy_dir = self.project_root / "deploy"
        if self.operator_description_file is None:
            self.operator_description_file = self.project_root / "docs" / "operator_description.md"
        return self

    @classmethod
    def for_project(cls, project_root: str | Path, **overrides) -> BuildSettings:
        """Settings for a checkout, reading its ``hack/config``."""
        root = Path(project_root)
        return cls(_env_file=root / DEFAULT_ENV_FILE, project_root=root, **overrides)

    @property
    def component_versions(self) -> dict[str, str]:
        return {env: getattr(self, field) for env, field in COMPONENT_VERSION_FIELDS.items()}

    def component_options(self) -> ComponentOptions:
        return ComponentOptions(
            namespace=self.namespace,
            csv_version=self.csv_version,
            replaces_version=self.replaces_csv_version,
            pull_policy=self.image_pull_policy,
        )

    def description(self) -> str:
        path = self.operator_description_file
        if path is not None and path.is_file():
            return path.read_text(encoding="utf-8")
        return ""

    def load_overrides(self) -> OverrideFragment:
        """The override fragment file, or the built-in links/maintainers/provider."""
        if self.csv_overrides is not None:
            return OverrideFragment.from_yaml(self.csv_overrides.read_text(encoding="utf-8"))
        return default_overrides()

    def run_metadata(
        self,
        operator_image: str | None = None,
        operator_env: dict[str, str] | None = None,
    ) -> RunMetadata:
        """
        Metadata for the merged CSV.

        Args:
            operator_image: The resolved operator image; the configured one if None
            operator_env: Extra operator environment (helper images, ...)
        """
        env = {"SMBIOS": self.smbios}
        env.update(operator_env or {})
        return RunMetadata(
            csv_version=self.csv_version,
            replaces_version=self.replaces_csv_version,
            operator_name=self.operator_name,
            package_name=self.package_name,
            display_name=self.display_name,
            description=self.description(),
            crd_display=self.crd_display,
            operator_image=operator_image or self.operator_image or "",
            component_versions=self.component_versions,
            operator_env=env,
        )


def default_overrides() -> OverrideFragment:
    return OverrideFragment.model_validate(DEFAULT_OVERRIDES)
