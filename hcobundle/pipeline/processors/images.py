"""
Operator image stage.

Resolves the operator image and its helper images (conversion and VMware
containers). They are not part of any component but belong in the related
images and in the operator's environment.
"""
from __future__ import annotations

import logging

from hcobundle.pipeline.context import PipelineContext
from hcobundle.pipeline.frames import ComponentSetFrame
from hcobundle.pipeline.processor import Processor

logger = logging.getLogger(__name__)


class OperatorImageProcessor(Processor):
    accepts = (ComponentSetFrame,)

    @property
    def name(self) -> str:
        return "operator_images"

    async def process(self, frame: ComponentSetFrame, ctx: PipelineContext) -> ComponentSetFrame:
        resolver = ctx.require("resolver")
        metadata = frame.request.run_metadata

        extra = []
        operator_image = metadata.operator_image
        if operator_image:
            resolved = await resolver.resolve(operator_image)
            operator_image = str(resolved)
            extra.append(resolved)

        env = dict(metadata.operator_env)
        for env_name, image in frame.request.helper_images.items():
            resolved = await resolver.resolve(image)
            env[env_name] = str(resolved)
            extra.append(resolved)

        logger.info(f"Resolved operator image {operator_image or '(none)'} and {len(extra)} extra image(s)")
        return frame.derive(
            extra_images=tuple(extra),
            run_metadata=metadata.model_copy(update={"operator_image": operator_image, "operator_env": env}),
        )
