"""
End-to-end bundle builds with fake registries and generators.

Three components are built, merged, rendered, assembled and validated; the
overlap scenario stops before anything reaches the bundle.
"""

import pytest
import yaml
from conftest import FakeInspector, FakeRunner

from hcobundle.components.base import GenericComponentBuilder
from hcobundle.components.registry import ComponentRegistry
from hcobundle.config import BuildSettings
from hcobundle.pipeline import BundleFrame, create_bundle_pipeline, run_bundle_build
from hcobundle.registry.images import ImageReference


def _settings(tmp_path):
    return BuildSettings(
        project_root=tmp_path,
        deploy_dir=tmp_path / "deploy",
        scratch_dir=tmp_path / "scratch",
        operator_image="",
        conversion_container="",
        vmware_container="",
    )


def _components(settings, count=3):
    options = settings.component_options()
    registry = ComponentRegistry()
    for index in range(1, count + 1):
        registry.register(
            GenericComponentBuilder(
                f"comp{index}",
                f"registry.example/comp{index}:v1",
                options,
                args=["--operator-image={image}"],
            )
        )
    return registry


class TestBundleBuild:
    """Tests for run_bundle_build."""

    @pytest.mark.asyncio
    async def test_three_components(self, tmp_path):
        settings = _settings(tmp_path)
        inspector = FakeInspector()
        runner = FakeRunner()

        result = await run_bundle_build(
            settings,
            inspector=inspector,
            runner=runner,
            components=_components(settings),
        )

        assert result.success, result.error
        bundle = result.get_frame(BundleFrame)
        assert isinstance(bundle, BundleFrame)

        csv = yaml.safe_load(bundle.csv_path.read_text(encoding="utf-8"))
        related = csv["spec"]["relatedImages"]
        assert [entry["name"] for entry in related] == ["comp1", "comp2", "comp3"]
        assert all(ImageReference.parse(entry["image"]).is_pinned for entry in related)

        deployments = csv["spec"]["install"]["spec"]["deployments"]
        assert [d["name"] for d in deployments] == [
            "hco-operator",
            "comp1-operator",
            "comp2-operator",
            "comp3-operator",
        ]

        crd_files = sorted(p.name for p in (settings.deploy_dir / "crds").iterdir())
        assert crd_files == ["comp100.crd.yaml", "comp200.crd.yaml", "comp300.crd.yaml"]

        assert bundle.layout.annotations_path.is_file()
        assert bundle.manifest_files
        assert bundle.validated_files >= 4
        assert not settings.scratch_dir.exists()
        assert inspector.calls == [
            "registry.example/comp1:v1",
            "registry.example/comp2:v1",
            "registry.example/comp3:v1",
        ]

    @pytest.mark.asyncio
    async def test_generator_receives_pinned_image(self, tmp_path):
        settings = _settings(tmp_path)
        runner = FakeRunner()

        await run_bundle_build(
            settings,
            inspector=FakeInspector(),
            runner=runner,
            components=_components(settings, count=1),
        )

        base_call, dump_call = runner.calls
        assert any(arg.startswith("--operator-image=registry.example/comp1@sha256:") for arg in base_call)
        assert "--dump-crds" in dump_call
        assert "--dump-crds" not in base_call

    @pytest.mark.asyncio
    async def test_keep_scratch(self, tmp_path):
        settings = _settings(tmp_path)

        result = await run_bundle_build(
            settings,
            inspector=FakeInspector(),
            runner=FakeRunner(),
            components=_components(settings, count=1),
            keep_scratch=True,
        )

        assert result.success
        assert (settings.scratch_dir / "comp100.crd.yaml").is_file()

    @pytest.mark.asyncio
    async def test_overlap_stops_before_bundle(self, tmp_path):
        settings = _settings(tmp_path)
        runner = FakeRunner(
            schemas={
                "comp1": [("example.com", "Foo")],
                "comp2": [("example.com", "Foo")],
            }
        )

        result = await run_bundle_build(
            settings,
            inspector=FakeInspector(),
            runner=runner,
            components=_components(settings),
        )

        assert not result.success
        assert result.error_frame.error_type == "schema_overlap"
        assert result.error_frame.processor_name == "overlap"
        assert "Foo" in result.error
        assert not (settings.deploy_dir / "olm-catalog").exists()
        assert not (settings.deploy_dir / "crds").exists()
        assert settings.scratch_dir.exists()

    @pytest.mark.asyncio
    async def test_rerun_after_overlap_ignores_stale_schemas(self, tmp_path):
        settings = _settings(tmp_path)
        first = await run_bundle_build(
            settings,
            inspector=FakeInspector(),
            runner=FakeRunner(schemas={"comp1": [("example.com", "Foo")], "comp2": [("example.com", "Foo")]}),
            components=_components(settings),
        )
        assert first.error_frame.error_type == "schema_overlap"
        assert (settings.scratch_dir / "comp200.crd.yaml").is_file()

        second = await run_bundle_build(
            settings,
            inspector=FakeInspector(),
            runner=FakeRunner(schemas={"comp1": [("example.com", "Foo")], "comp2": []}),
            components=_components(settings),
        )

        assert second.success, second.error
        crd_files = sorted(p.name for p in (settings.deploy_dir / "crds").iterdir())
        assert crd_files == ["comp100.crd.yaml", "comp300.crd.yaml"]

    @pytest.mark.asyncio
    async def test_generator_failure_names_the_command(self, tmp_path):
        settings = _settings(tmp_path)
        runner = FakeRunner(returncodes={"comp2": 3})

        result = await run_bundle_build(
            settings,
            inspector=FakeInspector(),
            runner=runner,
            components=_components(settings),
        )

        assert not result.success
        assert result.error_frame.error_type == "generator_invocation_failed"
        assert result.error_frame.stage == "comp2"
        assert result.error_frame.command.startswith("fake-run")
        assert "Command: fake-run" in result.error_frame.format_report()
        # comp3 never ran
        assert not any("registry.example/comp3:v1" in call for call in runner.calls)

    @pytest.mark.asyncio
    async def test_missing_digest(self, tmp_path):
        settings = _settings(tmp_path)
        inspector = FakeInspector(digests={"registry.example/comp1:v1": None})

        result = await run_bundle_build(
            settings,
            inspector=inspector,
            runner=FakeRunner(),
            components=_components(settings),
        )

        assert not result.success
        assert result.error_frame.error_type == "digest_missing"
        assert inspector.calls == ["registry.example/comp1:v1"]

    @pytest.mark.asyncio
    async def test_operator_and_helper_images(self, tmp_path):
        settings = _settings(tmp_path).model_copy(
            update={
                "operator_image": "quay.io/kubevirt/hyperconverged-cluster-operator:1.3.0",
                "conversion_container": "quay.io/kubevirt/kubevirt-v2v-conversion:v2.0.0",
            }
        )

        result = await run_bundle_build(
            settings,
            inspector=FakeInspector(),
            runner=FakeRunner(),
            components=_components(settings, count=1),
            pipeline=create_bundle_pipeline(render_manifests=False, validate=False),
        )

        assert result.success, result.error
        bundle = result.get_frame(BundleFrame)
        names = [image.name for image in bundle.merged.related_images]
        assert names == ["comp1", "hyperconverged-cluster-operator", "kubevirt-v2v-conversion"]
        assert bundle.merged.metadata.operator_image.startswith(
            "quay.io/kubevirt/hyperconverged-cluster-operator@sha256:"
        )
        assert bundle.manifest_files == ()
        assert bundle.validated_files == 0

        index_csv = bundle.layout.index_csv_dir / bundle.merged.csv_filename
        assert "+IMAGE_TO_REPLACE+" in index_csv.read_text(encoding="utf-8")
