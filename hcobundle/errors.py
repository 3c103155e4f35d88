"""
Exceptions for the bundle build.

Every error raised here is fatal to the run. The pipeline executor turns
the first one it sees into a fatal ErrorFrame and stops; nothing retries.
"""

from __future__ import annotations

from collections.abc import Sequence


class BundleError(Exception):
    """Base exception for bundle build errors."""

    code = "bundle_error"

    def __init__(
        self,
        message: str,
        *,
        stage: str = "",
        command: Sequence[str] | str | None = None,
    ):
        super().__init__(message)
        self.stage = stage
        if command is not None and not isinstance(command, str):
            command = " ".join(str(part) for part in command)
        self.command = command

    def __str__(self) -> str:
        message = self.args[0]
        if self.stage:
            return f"[{self.stage}] {message}"
        return message


class RegistryUnavailable(BundleError):
    """Raised when a registry inspection cannot complete."""

    code = "registry_unavailable"


class DigestMissing(BundleError):
    """Raised when inspected image metadata carries no Digest field."""

    code = "digest_missing"


class GeneratorInvocationFailed(BundleError):
    """Raised when a descriptor generator exits non-zero or prints nothing."""

    code = "generator_invocation_failed"

    def __init__(
        self,
        message: str,
        *,
        returncode: int | None = None,
        stderr: str = "",
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.returncode = returncode
        self.stderr = stderr


class EmptyComponentImage(BundleError):
    """Raised when a component descriptor has no well-formed image line."""

    code = "empty_component_image"


class SchemaOverlap(BundleError):
    """Raised when two sources claim the same CRD (group, kind)."""

    code = "schema_overlap"

    def __init__(self, message: str, *, conflicts: Sequence = (), **kwargs):
        super().__init__(message, **kwargs)
        self.conflicts = list(conflicts)


class StructuralValidationFailed(BundleError):
    """Raised when a produced or extracted document is not well-formed YAML."""

    code = "structural_validation_failed"

    def __init__(self, message: str, *, problems: Sequence[str] = (), **kwargs):
        super().__init__(message, **kwargs)
        self.problems = list(problems)


class UnpinnedImageReference(BundleError):
    """Raised when a tag reference reaches the related-images list."""

    code = "unpinned_image_reference"


__all__ = [
    "BundleError",
    "RegistryUnavailable",
    "DigestMissing",
    "GeneratorInvocationFailed",
    "EmptyComponentImage",
    "SchemaOverlap",
    "StructuralValidationFailed",
    "UnpinnedImageReference",
]
