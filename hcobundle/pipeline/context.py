"""
Pipeline Context for the bundle build.

The context carries the run-scoped collaborators (resolver, extractor,
component registry) and the audit trail. It is created once per build and
passed to every processor.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from hcobundle.registry.images import RelatedImages

if TYPE_CHECKING:
    from hcobundle.components.registry import ComponentRegistry
    from hcobundle.descriptors.extractor import DescriptorExtractor
    from hcobundle.registry.resolver import DigestResolver

    from .frames import ErrorFrame


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class PipelineContext:
    """
    Run-scoped context passed through the pipeline.

    Attributes:
        resolver: Digest resolver; its accumulator collects related images
        extractor: Descriptor extractor writing into scratch_dir
        components: Builders to run, in order
        scratch_dir: Directory for intermediate files
    """

    execution_id: UUID = field(default_factory=uuid4)
    started_at: datetime = field(default_factory=_utc_now)

    resolver: DigestResolver | None = None
    extractor: DescriptorExtractor | None = None
    components: ComponentRegistry | None = None
    scratch_dir: Path | None = None

    # Audit trail
    processor_timings: dict[str, float] = field(default_factory=dict)
    frame_log: list[dict[str, Any]] = field(default_factory=list)

    @property
    def related_images(self) -> RelatedImages:
        """Every image resolved so far, in resolution order."""
        if self.resolver is None:
            return RelatedImages()
        return self.resolver.accumulator

    @property
    def elapsed_ms(self) -> float:
        delta = _utc_now() - self.started_at
        return delta.total_seconds() * 1000

    def require(self, name: str) -> Any:
        """
        Get a collaborator that a processor cannot run without.

        Raises:
            RuntimeError: If it was not provided
        """
        value = getattr(self, name)
        if value is None:
            raise RuntimeError(f"Pipeline context has no {name}")
        return value

    def record_frame(self, frame_dict: dict[str, Any], processor_name: str) -> None:
        self.frame_log.append(
            {
                "timestamp": _utc_now().isoformat(),
                "processor": processor_name,
                "frame": frame_dict,
                "elapsed_ms": self.elapsed_ms,
            }
        )

    def record_timing(self, processor_name: str, duration_ms: float) -> None:
        self.processor_timings[processor_name] = duration_ms

    def to_audit_dict(self) -> dict[str, Any]:
        return {
            "execution_id": str(self.execution_id),
            "started_at": self.started_at.isoformat(),
            "duration_ms": self.elapsed_ms,
            "scratch_dir": str(self.scratch_dir) if self.scratch_dir else None,
            "processor_timings": self.processor_timings,
            "frame_count": len(self.frame_log),
            "related_images": len(self.related_images),
        }


@dataclass
class PipelineResult:
    """
    Result of pipeline execution.

    On failure, error_frame holds the failing processor, stage and command.
    """

    context: PipelineContext
    output_frames: list[Any] = field(default_factory=list)
    success: bool = True
    error: str | None = None
    error_frame: ErrorFrame | None = None

    @property
    def execution_id(self) -> UUID:
        return self.context.execution_id

    @property
    def duration_ms(self) -> float:
        return self.context.elapsed_ms

    def get_frame(self, frame_type: type) -> Any | None:
        """Get the first frame of a specific type."""
        for frame in self.output_frames:
            if isinstance(frame, frame_type):
                return frame
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "execution_id": str(self.execution_id),
            "success": self.success,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "failed_processor": self.error_frame.processor_name if self.error_frame else None,
            "output_frame_types": [f.frame_type for f in self.output_frames],
        }
