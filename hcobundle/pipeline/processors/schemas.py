"""
Schema stages: the operator's own API schemas and the overlap check.

The overlap check reads the schema files from the scratch directory, so
every source, generated or not, is checked together and before anything
is written to the bundle.
"""
from __future__ import annotations

import logging

from hcobundle.descriptors.apis import API_SOURCE, load_api_schemas, write_schemas
from hcobundle.descriptors.extractor import remove_schema_files
from hcobundle.descriptors.merger import assert_no_overlap
from hcobundle.pipeline.context import PipelineContext
from hcobundle.pipeline.frames import ComponentSetFrame
from hcobundle.pipeline.processor import Processor

logger = logging.getLogger(__name__)


class ApiSchemaProcessor(Processor):
    """Load the API schemas and write them next to the component schemas."""

    accepts = (ComponentSetFrame,)

    @property
    def name(self) -> str:
        return "api_schemas"

    async def process(self, frame: ComponentSetFrame, ctx: PipelineContext) -> ComponentSetFrame:
        scratch_dir = ctx.require("scratch_dir")
        remove_schema_files(scratch_dir, API_SOURCE)

        api_sources = frame.request.api_sources
        if api_sources is None:
            logger.info("No API sources configured; bundle carries component CRDs only")
            return frame

        schemas = load_api_schemas(api_sources)
        write_schemas(schemas, scratch_dir)
        return frame.derive(api_schemas=tuple(schemas))


class OverlapCheckProcessor(Processor):
    """Abort when two sources declare the same (group, kind)."""

    accepts = (ComponentSetFrame,)

    @property
    def name(self) -> str:
        return "overlap"

    async def process(self, frame: ComponentSetFrame, ctx: PipelineContext) -> ComponentSetFrame:
        assert_no_overlap(ctx.require("scratch_dir"))
        return frame
