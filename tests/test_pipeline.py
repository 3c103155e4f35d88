"""Tests for the pipeline runtime: frames, executor and context."""

from dataclasses import dataclass

import pytest

from hcobundle.errors import GeneratorInvocationFailed, SchemaOverlap
from hcobundle.pipeline import (
    ErrorFrame,
    Frame,
    Pipeline,
    PipelineBuilder,
    PipelineContext,
    Processor,
    create_bundle_pipeline,
)


@dataclass(frozen=True, kw_only=True, slots=True)
class CounterFrame(Frame):
    value: int = 0


@dataclass(frozen=True, kw_only=True, slots=True)
class OtherFrame(Frame):
    label: str = ""


class IncrementProcessor(Processor):
    accepts = (CounterFrame,)

    def __init__(self, name="increment"):
        self._name = name
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    async def process(self, frame, ctx):
        self.calls += 1
        return frame.derive(value=frame.value + 1)


class FailingProcessor(Processor):
    def __init__(self, exc):
        self._exc = exc

    @property
    def name(self) -> str:
        return "failing"

    async def process(self, frame, ctx):
        raise self._exc


class TestFrames:
    """Tests for Frame and ErrorFrame."""

    def test_derive_links_lineage(self):
        frame = CounterFrame(value=1)

        derived = frame.derive(value=2)

        assert derived.value == 2
        assert derived.source_frame_id == frame.id
        assert derived.id != frame.id
        assert frame.value == 1

    def test_error_frame_keeps_stage_and_command(self):
        exc = GeneratorInvocationFailed("exit 1", stage="kubevirt", command=["docker", "run", "x"])

        error = ErrorFrame.from_exception(exc, processor_name="components", source_frame=CounterFrame())

        assert error.error_type == "generator_invocation_failed"
        assert error.stage == "kubevirt"
        assert error.command == "docker run x"
        assert error.original_frame_type == "CounterFrame"
        assert error.is_fatal
        report = error.format_report()
        assert "Build failed in step 'kubevirt' (components)" in report
        assert "Command: docker run x" in report

    def test_error_frame_for_plain_exceptions(self):
        error = ErrorFrame.from_exception(FileNotFoundError("x"), processor_name="api_schemas")

        assert error.error_type == "missing_file"
        assert error.stage == "api_schemas"
        assert error.command is None
        assert error.exception_class == "FileNotFoundError"


class TestPipeline:
    """Tests for the fail-fast executor."""

    @pytest.mark.asyncio
    async def test_runs_processors_in_order(self):
        pipeline = Pipeline([IncrementProcessor("one"), IncrementProcessor("two")])

        result = await pipeline.execute(CounterFrame(value=0))

        assert result.success
        assert result.get_frame(CounterFrame).value == 2
        assert set(result.context.processor_timings) == {"one", "two"}
        assert len(result.context.frame_log) == 2

    @pytest.mark.asyncio
    async def test_first_error_stops_the_run(self):
        after = IncrementProcessor("after")
        exc = SchemaOverlap("Foo.example.com is declared by a, b", stage="overlap")
        pipeline = Pipeline([IncrementProcessor("before"), FailingProcessor(exc), after])

        result = await pipeline.execute(CounterFrame())

        assert not result.success
        assert after.calls == 0
        assert result.error_frame.processor_name == "failing"
        assert result.error_frame.error_type == "schema_overlap"
        assert result.error == str(exc)
        assert result.output_frames == [result.error_frame]
        assert result.to_dict()["failed_processor"] == "failing"

    @pytest.mark.asyncio
    async def test_unexpected_exceptions_are_fatal_too(self):
        pipeline = Pipeline([FailingProcessor(RuntimeError("bug")), IncrementProcessor()])

        result = await pipeline.execute(CounterFrame())

        assert not result.success
        assert result.error_frame.error_type == "internal"
        assert result.error_frame.exception_class == "RuntimeError"

    @pytest.mark.asyncio
    async def test_frames_of_other_types_pass_through(self):
        increment = IncrementProcessor()
        pipeline = Pipeline([increment])

        result = await pipeline.execute(OtherFrame(label="x"))

        assert result.success
        assert increment.calls == 0
        assert result.get_frame(OtherFrame).label == "x"

    def test_empty_pipeline_is_rejected(self):
        with pytest.raises(ValueError):
            Pipeline([])

    def test_builder_add_if(self):
        pipeline = (
            PipelineBuilder()
            .add(IncrementProcessor("a"))
            .add_if(False, IncrementProcessor("b"))
            .add_if(True, IncrementProcessor("c"))
            .build()
        )

        assert pipeline.processor_names == ["a", "c"]

    def test_bundle_pipeline_order(self):
        assert create_bundle_pipeline().processor_names == [
            "components",
            "api_schemas",
            "operator_images",
            "overlap",
            "merge",
            "templator",
            "bundle",
            "validate",
        ]
        assert create_bundle_pipeline(render_manifests=False, validate=False).processor_names == [
            "components",
            "api_schemas",
            "operator_images",
            "overlap",
            "merge",
            "bundle",
        ]


class TestPipelineContext:
    """Tests for PipelineContext."""

    def test_require_missing_collaborator(self):
        with pytest.raises(RuntimeError, match="resolver"):
            PipelineContext().require("resolver")

    def test_related_images_without_resolver(self):
        assert len(PipelineContext().related_images) == 0

    def test_audit_dict(self, tmp_path):
        ctx = PipelineContext(scratch_dir=tmp_path)
        ctx.record_timing("merge", 1.5)

        audit = ctx.to_audit_dict()

        assert audit["scratch_dir"] == str(tmp_path)
        assert audit["processor_timings"] == {"merge": 1.5}
