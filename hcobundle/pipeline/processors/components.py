"""
Component build stage.

Runs every registered builder, one after the other. Each builder resolves
its images and extracts its descriptor and schemas before the next starts.
"""
from __future__ import annotations

import logging

from hcobundle.descriptors.extractor import remove_schema_files
from hcobundle.pipeline.context import PipelineContext
from hcobundle.pipeline.frames import BuildRequestFrame, ComponentSetFrame
from hcobundle.pipeline.processor import Processor

logger = logging.getLogger(__name__)


class ComponentBuildProcessor(Processor):
    """BuildRequestFrame -> ComponentSetFrame."""

    accepts = (BuildRequestFrame,)

    @property
    def name(self) -> str:
        return "components"

    async def process(self, frame: BuildRequestFrame, ctx: PipelineContext) -> ComponentSetFrame:
        registry = ctx.require("components")
        resolver = ctx.require("resolver")
        extractor = ctx.require("extractor")

        # The overlap check must only see this run's schema files
        remove_schema_files(extractor.scratch_dir)

        builds = []
        for builder in registry:
            logger.info(f"[{builder.name}] Building descriptor from {builder.image}")
            build = await builder.build(resolver, extractor)
            logger.info(
                f"[{builder.name}] Done: {len(build.schemas)} schema(s), {len(build.images)} image(s)"
            )
            builds.append(build)

        return ComponentSetFrame(
            request=frame,
            builds=tuple(builds),
            source_frame_id=frame.id,
        )
