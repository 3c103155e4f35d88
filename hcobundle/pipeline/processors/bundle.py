"""Bundle assembly and validation stages."""
from __future__ import annotations

import logging

from hcobundle.descriptors.bundle import BundleAnnotations, assemble
from hcobundle.descriptors.validation import validate_paths
from hcobundle.pipeline.context import PipelineContext
from hcobundle.pipeline.frames import BundleFrame, MergedDescriptorFrame
from hcobundle.pipeline.processor import Processor

logger = logging.getLogger(__name__)


class BundleAssemblyProcessor(Processor):
    """MergedDescriptorFrame -> BundleFrame."""

    accepts = (MergedDescriptorFrame,)

    @property
    def name(self) -> str:
        return "bundle"

    async def process(self, frame: MergedDescriptorFrame, ctx: PipelineContext) -> BundleFrame:
        metadata = frame.merged.metadata
        annotations = BundleAnnotations.for_version(metadata.package_name, metadata.csv_version)
        layout = assemble(frame.merged, frame.schemas, annotations, frame.request.deploy_dir)
        return BundleFrame(
            layout=layout,
            merged=frame.merged,
            manifest_files=frame.manifest_files,
            source_frame_id=frame.id,
        )


class ValidationProcessor(Processor):
    """YAML lint gate over everything the build wrote."""

    accepts = (BundleFrame,)

    @property
    def name(self) -> str:
        return "validate"

    async def process(self, frame: BundleFrame, ctx: PipelineContext) -> BundleFrame:
        count = validate_paths([*frame.layout.yaml_dirs, *frame.manifest_files])
        return frame.derive(validated_files=count)
