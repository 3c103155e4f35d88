"""Manifest rendering stage."""
from __future__ import annotations

import logging
import shutil

from hcobundle.descriptors.templator import render, write_manifests
from hcobundle.pipeline.context import PipelineContext
from hcobundle.pipeline.frames import MergedDescriptorFrame
from hcobundle.pipeline.processor import Processor

logger = logging.getLogger(__name__)

MANIFESTS_DIR = "manifests"


class ManifestTemplatorProcessor(Processor):
    """Render plain Kubernetes manifests into ``<deploy_dir>/manifests``."""

    accepts = (MergedDescriptorFrame,)

    def __init__(self, subdirectory: str = MANIFESTS_DIR):
        self._subdirectory = subdirectory

    @property
    def name(self) -> str:
        return "templator"

    async def process(self, frame: MergedDescriptorFrame, ctx: PipelineContext) -> MergedDescriptorFrame:
        merged = frame.merged
        manifests = render(
            merged.components,
            frame.request.namespace,
            {},
            merged.metadata,
            api_schemas=frame.api_schemas,
        )

        output_dir = frame.request.deploy_dir / self._subdirectory
        if output_dir.exists():
            shutil.rmtree(output_dir)
        paths = write_manifests(manifests, output_dir)
        logger.info(f"Wrote {len(paths)} manifest(s) to {output_dir}")
        return frame.derive(manifest_files=tuple(paths))
