"""Merge stage."""
from __future__ import annotations

import logging

from hcobundle.descriptors.merger import merge
from hcobundle.pipeline.context import PipelineContext
from hcobundle.pipeline.frames import ComponentSetFrame, MergedDescriptorFrame
from hcobundle.pipeline.processor import Processor

logger = logging.getLogger(__name__)


class MergeProcessor(Processor):
    """
    ComponentSetFrame -> MergedDescriptorFrame.

    Related images are the components' own images followed by everything
    the resolver accumulated during the run.
    """

    accepts = (ComponentSetFrame,)

    @property
    def name(self) -> str:
        return "merge"

    async def process(self, frame: ComponentSetFrame, ctx: PipelineContext) -> MergedDescriptorFrame:
        merged = merge(
            frame.descriptors,
            frame.request.overrides,
            frame.metadata_for_merge,
            related_images=[*frame.extra_images, *ctx.related_images],
            api_schemas=frame.api_schemas,
        )
        return MergedDescriptorFrame(
            request=frame.request,
            merged=merged,
            schemas=tuple(frame.schemas),
            api_schemas=frame.api_schemas,
            source_frame_id=frame.id,
        )
