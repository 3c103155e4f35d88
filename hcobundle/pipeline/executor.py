"""
Pipeline Executor for the bundle build.

Stages run one after another. The first exception stops the run: it
becomes a fatal ErrorFrame carrying the processor name, stage and command,
and no later stage runs.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING

from .context import PipelineContext, PipelineResult
from .frames import ErrorFrame, Frame

if TYPE_CHECKING:
    from .processor import Processor

logger = logging.getLogger(__name__)


class Pipeline:
    """
    Sequential, fail-fast pipeline.

    Example:
        pipeline = Pipeline([
            ComponentBuildProcessor(),
            ApiSchemaProcessor(),
            MergeProcessor(),
            BundleAssemblyProcessor(),
        ])

        result = await pipeline.execute(
            initial_frame=BuildRequestFrame(...),
            ctx=PipelineContext(...),
        )
    """

    def __init__(self, processors: Sequence[Processor]):
        if not processors:
            raise ValueError("Pipeline must have at least one processor")
        self.processors = list(processors)

    @property
    def processor_names(self) -> list[str]:
        return [p.name for p in self.processors]

    async def execute(
        self,
        initial_frame: Frame,
        ctx: PipelineContext | None = None,
    ) -> PipelineResult:
        """
        Execute the pipeline on an initial frame.

        Returns:
            PipelineResult; on failure success is False and error_frame is set
        """
        if ctx is None:
            ctx = PipelineContext()

        logger.info(
            f"Pipeline starting: execution_id={str(ctx.execution_id)[:8]}..., "
            f"processors={self.processor_names}"
        )

        result = PipelineResult(context=ctx)
        frame: Frame | None = initial_frame

        for processor in self.processors:
            if frame is None:
                logger.warning(f"No frame before processor '{processor.name}', stopping")
                break
            if not processor.handles(frame):
                logger.debug(f"Processor '{processor.name}' skipped {frame.frame_type}")
                continue

            ctx.record_frame(frame.to_dict(), processor.name)
            start_time = time.perf_counter()
            try:
                output = await processor.process(frame, ctx)
            except Exception as e:
                logger.error(f"Processor '{processor.name}' failed: {e}", exc_info=True)
                output = ErrorFrame.from_exception(e, processor_name=processor.name, source_frame=frame)
            finally:
                duration_ms = (time.perf_counter() - start_time) * 1000
                ctx.record_timing(processor.name, duration_ms)
                logger.debug(f"Processor '{processor.name}': time={duration_ms:.1f}ms")

            if isinstance(output, ErrorFrame) and output.is_fatal:
                ctx.record_frame(output.to_dict(), processor.name)
                result.output_frames = [output]
                result.success = False
                result.error = output.error_message
                result.error_frame = output
                logger.info(
                    f"Pipeline aborted: execution_id={str(ctx.execution_id)[:8]}..., "
                    f"processor={processor.name}, duration={ctx.elapsed_ms:.1f}ms"
                )
                return result

            frame = output

        result.output_frames = [frame] if frame is not None else []
        logger.info(
            f"Pipeline complete: execution_id={str(ctx.execution_id)[:8]}..., "
            f"duration={ctx.elapsed_ms:.1f}ms"
        )
        return result

    def __repr__(self) -> str:
        return f"Pipeline(processors={self.processor_names})"


class PipelineBuilder:
    """
    Builder for constructing pipelines with fluent API.

    Example:
        pipeline = (
            PipelineBuilder()
            .add(ComponentBuildProcessor())
            .add_if(validate, ValidationProcessor())
            .build()
        )
    """

    def __init__(self) -> None:
        self._processors: list[Processor] = []

    def add(self, processor: Processor) -> PipelineBuilder:
        self._processors.append(processor)
        return self

    def add_if(self, condition: bool, processor: Processor) -> PipelineBuilder:
        if condition:
            self._processors.append(processor)
        return self

    def build(self) -> Pipeline:
        return Pipeline(self._processors)
