"""Tests for the component descriptor builders and their registry."""

import pytest
from conftest import FakeRunner, digest_for

from hcobundle.components import (
    ComponentOptions,
    ComponentRegistry,
    ContainerizedDataImporterBuilder,
    GenericComponentBuilder,
    HostpathProvisionerBuilder,
    KubeVirtBuilder,
    NetworkAddonsBuilder,
    NodeMaintenanceBuilder,
    RecordingResolver,
    VMImportBuilder,
    default_components,
)
from hcobundle.config import BuildSettings
from hcobundle.descriptors.extractor import DescriptorExtractor
from hcobundle.registry.resolver import DigestResolver


@pytest.fixture
def options():
    return ComponentOptions(namespace="kubevirt-hyperconverged", csv_version="1.3.0", replaces_version="1.2.0")


@pytest.fixture
def recorder(fake_inspector):
    return RecordingResolver(DigestResolver(fake_inspector))


def _args_dict(args):
    return dict(arg.lstrip("-").split("=", 1) for arg in args)


class TestKubeVirtBuilder:
    """Tests for KubeVirtBuilder."""

    @pytest.mark.asyncio
    async def test_resolves_operator_and_virt_images(self, options, recorder):
        builder = KubeVirtBuilder("docker.io/kubevirt/virt-operator:v0.34.0", options)

        args = _args_dict(await builder.generator_args(recorder))

        assert builder.name == "kubevirt"
        assert builder.dump_schemas_flag == "--dumpCRDs"
        assert args["namespace"] == "kubevirt-hyperconverged"
        assert args["csvVersion"] == "1.3.0"
        assert args["operatorImageVersion"] == digest_for("docker.io/kubevirt/virt-operator:v0.34.0")
        assert args["dockerPrefix"] == "docker.io/kubevirt"
        assert args["kubeVirtVersion"] == "v0.34.0"
        assert args["apiSha"] == digest_for("docker.io/kubevirt/virt-api:v0.34.0")
        assert args["launcherSha"] == digest_for("docker.io/kubevirt/virt-launcher:v0.34.0")
        assert len(recorder.resolved) == 5
        assert all(image.is_pinned for image in recorder.resolved)

    def test_explicit_version_wins_over_tag(self, options):
        builder = KubeVirtBuilder("docker.io/kubevirt/virt-operator:latest", options, version="v0.34.0")

        assert builder.version == "v0.34.0"


class TestNetworkAddonsBuilder:
    """Tests for NetworkAddonsBuilder."""

    @pytest.mark.asyncio
    async def test_image_is_split_into_prefix_name_and_digest(self, options, recorder):
        image = "quay.io/kubevirt/cluster-network-addons-operator:0.42.0"
        builder = NetworkAddonsBuilder(image, options)

        args = _args_dict(await builder.generator_args(recorder))

        assert args["container-prefix"] == "quay.io/kubevirt"
        assert args["image-name"] == "cluster-network-addons-operator@sha256"
        assert "sha256:" + args["container-tag"] == digest_for(image)
        assert args["version-replaces"] == "1.2.0"
        assert args["operator-version"] == "0.42.0"


class TestOtherBuilders:
    """Tests for the remaining dedicated builders."""

    @pytest.mark.asyncio
    async def test_cdi_resolves_every_sibling(self, options, recorder):
        builder = ContainerizedDataImporterBuilder("docker.io/kubevirt/cdi-operator:v1.23.5", options)

        args = _args_dict(await builder.generator_args(recorder))

        assert len(recorder.resolved) == 7
        assert args["importer-image"].startswith("docker.io/kubevirt/cdi-importer@sha256:")
        assert args["operator-image"].startswith("docker.io/kubevirt/cdi-operator@sha256:")

    @pytest.mark.asyncio
    async def test_hpp_resolves_the_provisioner_separately(self, options, recorder):
        builder = HostpathProvisionerBuilder(
            "quay.io/kubevirt/hostpath-provisioner-operator:v0.6.0",
            options,
            provisioner_image="quay.io/kubevirt/hostpath-provisioner:v0.6.1",
        )

        args = _args_dict(await builder.generator_args(recorder))

        assert args["provisioner-image-name"] == (
            "quay.io/kubevirt/hostpath-provisioner@"
            + digest_for("quay.io/kubevirt/hostpath-provisioner:v0.6.1")
        )

    def test_nmo_generator_location(self, options):
        builder = NodeMaintenanceBuilder("quay.io/kubevirt/node-maintenance-operator:v0.7.0", options)

        assert builder.generator_entrypoint == "/usr/local/bin/csv-generator"
        assert builder.dump_schemas_flag == "--dump-crds"

    @pytest.mark.asyncio
    async def test_vm_import_images(self, options, recorder):
        builder = VMImportBuilder("quay.io/kubevirt/vm-import-operator:v0.2.3", options)

        args = _args_dict(await builder.generator_args(recorder))

        assert args["controller-image"].startswith("quay.io/kubevirt/vm-import-controller@sha256:")
        assert args["virtv2v-image"].startswith("quay.io/kubevirt/vm-import-virtv2v@sha256:")


class TestGenericComponentBuilder:
    """Tests for GenericComponentBuilder."""

    @pytest.mark.asyncio
    async def test_formats_argument_templates(self, options, recorder):
        builder = GenericComponentBuilder(
            "example",
            "registry.example/comp:v1",
            options,
            args=["--namespace={namespace}", "--operator-image={image}", "--helper={helper}", "--tag={version}"],
            sub_images={"helper": "registry.example/helper:v2"},
        )

        args = _args_dict(await builder.generator_args(recorder))

        assert args["namespace"] == "kubevirt-hyperconverged"
        assert args["operator-image"] == "registry.example/comp@" + digest_for("registry.example/comp:v1")
        assert args["helper"] == "registry.example/helper@" + digest_for("registry.example/helper:v2")
        assert args["tag"] == "v1"

    def test_contract_overrides(self, options):
        builder = GenericComponentBuilder(
            "example",
            "registry.example/comp:v1",
            options,
            generator_entrypoint="/gen",
            dump_schemas_flag="--dumpSchemas",
            boundary_lines=0,
        )

        assert (builder.generator_entrypoint, builder.dump_schemas_flag, builder.boundary_lines) == (
            "/gen",
            "--dumpSchemas",
            0,
        )
        assert GenericComponentBuilder.dump_schemas_flag == "--dump-crds"

    @pytest.mark.asyncio
    async def test_build_returns_descriptor_schemas_and_images(self, options, fake_inspector, tmp_path):
        resolver = DigestResolver(fake_inspector)
        extractor = DescriptorExtractor(FakeRunner(), tmp_path)
        builder = GenericComponentBuilder("comp", "registry.example/comp:v1", options, args=["--image={image}"])

        build = await builder.build(resolver, extractor)

        assert build.name == "comp"
        assert [str(i) for i in build.images] == ["registry.example/comp@" + digest_for("registry.example/comp:v1")]
        assert build.descriptor.images == build.images
        assert [s.key for s in build.schemas] == [("comp.example.com", "Widget")]
        assert resolver.accumulator.snapshot() == build.images


class TestComponentRegistry:
    """Tests for ComponentRegistry."""

    def test_duplicate_names_are_rejected(self, options):
        registry = ComponentRegistry()
        registry.register(GenericComponentBuilder("a", "registry.example/a:v1", options))

        with pytest.raises(ValueError, match="already registered"):
            registry.register(GenericComponentBuilder("a", "registry.example/other:v1", options))

    def test_api_source_name_is_reserved(self, options):
        registry = ComponentRegistry()

        with pytest.raises(ValueError, match="reserved"):
            registry.register(GenericComponentBuilder("hco", "registry.example/hco:v1", options))
        assert len(registry) == 0

    def test_select_keeps_registration_order(self, options):
        registry = ComponentRegistry()
        for name in ("a", "b", "c"):
            registry.register(GenericComponentBuilder(name, f"registry.example/{name}:v1", options))

        selected = registry.select(["c", "a"])

        assert selected.names == ["a", "c"]
        assert "b" not in selected
        assert len(selected) == 2

    def test_unknown_component(self, options):
        registry = ComponentRegistry()

        assert registry.get("missing") is None
        with pytest.raises(KeyError):
            registry.get_required("missing")
        with pytest.raises(KeyError):
            registry.select(["missing"])

    def test_default_components(self, tmp_path):
        settings = BuildSettings(project_root=tmp_path, kubevirt_version="v0.35.0")

        registry = default_components(settings)

        assert registry.names == [
            "kubevirt",
            "cluster-network-addons",
            "scheduling-scale-performance",
            "containerized-data-importer",
            "node-maintenance",
            "hostpath-provisioner",
            "vm-import-operator",
        ]
        assert str(registry.get_required("kubevirt").image) == "docker.io/kubevirt/virt-operator:v0.35.0"
