"""
Base Frame abstraction for the bundle pipeline.

Frames are immutable data containers that flow between stages. Each stage
takes one frame and returns the next; lineage is kept through
source_frame_id.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any, TypeVar
from uuid import UUID, uuid4

F = TypeVar("F", bound="Frame")


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, kw_only=True, slots=True)
class Frame:
    """
    Base class for all frames.

    Frames are immutable: create new frames via derive() instead of
    mutating.
    """

    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utc_now)
    source_frame_id: UUID | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def frame_type(self) -> str:
        """Frame type name for logging and debugging."""
        return self.__class__.__name__

    def derive(self: F, **changes: Any) -> F:
        """
        Create a new frame of the same type derived from this one.

        Example:
            new_frame = old_frame.derive(api_schemas=schemas)
        """
        return replace(
            self,
            id=uuid4(),
            created_at=_utc_now(),
            source_frame_id=self.id,
            **changes,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize frame to dictionary for the audit log."""
        return {
            "id": str(self.id),
            "frame_type": self.frame_type,
            "created_at": self.created_at.isoformat(),
            "source_frame_id": str(self.source_frame_id) if self.source_frame_id else None,
            "metadata": self.metadata,
        }

    def __repr__(self) -> str:
        return f"{self.frame_type}(id={str(self.id)[:8]}...)"


@dataclass(frozen=True, kw_only=True, slots=True)
class ErrorFrame(Frame):
    """
    Frame representing the failure that stopped the build.

    Every build error is fatal; the executor stops at the first ErrorFrame.
    """

    error_type: str = "internal"
    error_message: str = "An error occurred"
    processor_name: str = ""
    stage: str = ""
    command: str | None = None
    original_frame_type: str = ""
    exception_class: str | None = None
    is_fatal: bool = True

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        processor_name: str,
        source_frame: Frame | None = None,
    ) -> ErrorFrame:
        """Create ErrorFrame from an exception, keeping its stage and command."""
        return cls(
            error_type=getattr(exc, "code", None) or _classify_error(exc),
            error_message=str(exc),
            processor_name=processor_name,
            stage=getattr(exc, "stage", "") or processor_name,
            command=getattr(exc, "command", None),
            original_frame_type=source_frame.frame_type if source_frame else "",
            exception_class=type(exc).__name__,
            source_frame_id=source_frame.id if source_frame else None,
        )

    def to_dict(self) -> dict[str, Any]:
        base = Frame.to_dict(self)
        base.update(
            {
                "error_type": self.error_type,
                "error_message": self.error_message,
                "processor_name": self.processor_name,
                "stage": self.stage,
                "command": self.command,
                "original_frame_type": self.original_frame_type,
                "is_fatal": self.is_fatal,
            }
        )
        return base

    def format_report(self) -> str:
        """Failing step and command, as printed by the CLI."""
        lines = [f"Build failed in step '{self.stage}' ({self.processor_name}): {self.error_message}"]
        if self.command:
            lines.append(f"Command: {self.command}")
        return "\n".join(lines)


def _classify_error(exc: Exception) -> str:
    """Classify exceptions that are not BundleErrors."""
    if isinstance(exc, TimeoutError):
        return "timeout"
    if isinstance(exc, FileNotFoundError):
        return "missing_file"
    if isinstance(exc, OSError):
        return "os_error"
    if isinstance(exc, ValueError):
        return "validation"
    return "internal"
