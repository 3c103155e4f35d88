"""
Bundle pipeline factory.

    BuildRequestFrame
        -> components        resolve images, run generators, split CRDs
        -> api_schemas       add the operator's own CRDs
        -> operator_images   resolve the operator and helper images
        -> overlap           abort on a (group, kind) claimed twice
        -> merge             one CSV with pinned related images
        -> templator         plain Kubernetes manifests
        -> bundle            crds/, olm-catalog/, index-image/
        -> validate          YAML lint gate
    BundleFrame

The scratch directory is removed only after a successful run; on failure
it is left in place for inspection.
"""
from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from hcobundle.components.registry import ComponentRegistry, default_components
from hcobundle.descriptors.extractor import DescriptorExtractor
from hcobundle.descriptors.generators import (
    DockerGeneratorRunner,
    GeneratorRunner,
    LocalGeneratorRunner,
)
from hcobundle.registry.base import RegistryInspector
from hcobundle.registry.http import RegistryHTTPInspector
from hcobundle.registry.images import RelatedImages
from hcobundle.registry.resolver import DigestResolver
from hcobundle.registry.skopeo import SkopeoInspector

from .context import PipelineContext, PipelineResult
from .executor import Pipeline, PipelineBuilder
from .frames import BuildRequestFrame
from .processors import (
    ApiSchemaProcessor,
    BundleAssemblyProcessor,
    ComponentBuildProcessor,
    ManifestTemplatorProcessor,
    MergeProcessor,
    OperatorImageProcessor,
    OverlapCheckProcessor,
    ValidationProcessor,
)

if TYPE_CHECKING:
    from hcobundle.config.settings import BuildSettings

logger = logging.getLogger(__name__)


def create_bundle_pipeline(*, render_manifests: bool = True, validate: bool = True) -> Pipeline:
    """Create the bundle build pipeline."""
    return (
        PipelineBuilder()
        .add(ComponentBuildProcessor())
        .add(ApiSchemaProcessor())
        .add(OperatorImageProcessor())
        .add(OverlapCheckProcessor())
        .add(MergeProcessor())
        .add_if(render_manifests, ManifestTemplatorProcessor())
        .add(BundleAssemblyProcessor())
        .add_if(validate, ValidationProcessor())
        .build()
    )


def create_inspector(settings: BuildSettings) -> RegistryInspector:
    if settings.registry_inspector == "registry":
        return RegistryHTTPInspector(
            timeout=settings.command_timeout,
            insecure_registries=settings.insecure_registries,
        )
    if settings.registry_inspector == "skopeo":
        return SkopeoInspector(timeout=settings.command_timeout)
    return SkopeoInspector.containerized(engine=settings.container_engine, timeout=settings.command_timeout)


def create_runner(settings: BuildSettings) -> GeneratorRunner:
    if settings.generator_runner == "local":
        return LocalGeneratorRunner(timeout=settings.command_timeout)
    return DockerGeneratorRunner(settings.container_engine, timeout=settings.command_timeout)


def build_request(settings: BuildSettings) -> BuildRequestFrame:
    """The initial frame for a build configured by ``settings``."""
    helper_images = {
        "CONVERSION_CONTAINER": settings.conversion_container,
        "VMWARE_CONTAINER": settings.vmware_container,
    }
    return BuildRequestFrame(
        deploy_dir=settings.deploy_dir,
        namespace=settings.namespace,
        run_metadata=settings.run_metadata(),
        overrides=settings.load_overrides().to_document(),
        api_sources=settings.api_sources,
        helper_images={env: image for env, image in helper_images.items() if image},
    )


async def run_bundle_build(
    settings: BuildSettings,
    *,
    inspector: RegistryInspector | None = None,
    runner: GeneratorRunner | None = None,
    components: ComponentRegistry | None = None,
    pipeline: Pipeline | None = None,
    keep_scratch: bool = False,
) -> PipelineResult:
    """
    Build the bundle described by ``settings``.

    Args:
        settings: Build settings
        inspector: Registry inspector; chosen from settings when None
        runner: Generator runner; chosen from settings when None
        components: Builders to run; the default seven when None
        pipeline: Pipeline to execute; create_bundle_pipeline() when None
        keep_scratch: Keep the scratch directory even on success

    Returns:
        PipelineResult whose output is a BundleFrame on success
    """
    scratch_dir = settings.scratch_dir or Path(tempfile.mkdtemp(prefix="hco-bundle-"))
    scratch_dir.mkdir(parents=True, exist_ok=True)

    own_inspector = inspector is None
    inspector = inspector or create_inspector(settings)
    resolver = DigestResolver(inspector, accumulator=RelatedImages())
    ctx = PipelineContext(
        resolver=resolver,
        extractor=DescriptorExtractor(runner or create_runner(settings), scratch_dir),
        components=components if components is not None else default_components(settings),
        scratch_dir=scratch_dir,
    )
    pipeline = pipeline or create_bundle_pipeline()

    try:
        result = await pipeline.execute(build_request(settings), ctx)
    finally:
        if own_inspector and isinstance(inspector, RegistryHTTPInspector):
            await inspector.close()

    if result.success and not keep_scratch:
        shutil.rmtree(scratch_dir, ignore_errors=True)
        logger.debug(f"Removed scratch directory {scratch_dir}")
    elif not result.success:
        logger.warning(f"Build failed; intermediate files kept in {scratch_dir}")
    return result
