"""
Registry Inspector Protocol.

An inspector returns the registry metadata of an image reference. The only
field the build relies on is ``Digest``, the content hash of the manifest.
"""
from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .images import ImageReference


@runtime_checkable
class RegistryInspector(Protocol):
    """
    Protocol for registry inspection backends.

    Implementations:
    - SkopeoInspector (skopeo inspect, optionally inside a container)
    - RegistryHTTPInspector (registry v2 HTTP API via httpx)
    """

    @property
    def name(self) -> str:
        """Inspector name for logging."""
        ...

    async def inspect(self, image: ImageReference) -> dict[str, Any]:
        """
        Inspect an image reference.

        Returns:
            Metadata mapping; contains "Digest" when the registry reports one

        Raises:
            RegistryUnavailable: If the inspection cannot complete
        """
        ...
