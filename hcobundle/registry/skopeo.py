"""
Skopeo-based registry inspector.

Runs ``skopeo inspect docker://<image>`` and parses its JSON output. When
skopeo is not installed locally it can be run from its container image:

    inspector = SkopeoInspector.containerized()
"""
from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

from hcobundle.errors import RegistryUnavailable
from hcobundle.utils.process import run_command

from .images import ImageReference

logger = logging.getLogger(__name__)

SKOPEO_IMAGE = "quay.io/skopeo/stable:latest"


class SkopeoInspector:
    """
    Inspects images with skopeo.

    Args:
        command: Command prefix that ends right before the image argument
        timeout: Seconds to wait for skopeo; None relies on skopeo's own defaults
    """

    def __init__(
        self,
        command: Sequence[str] = ("skopeo", "inspect"),
        *,
        timeout: float | None = None,
    ):
        self._command = tuple(command)
        self._timeout = timeout

    @classmethod
    def containerized(
        cls,
        *,
        engine: str = "docker",
        image: str = SKOPEO_IMAGE,
        timeout: float | None = None,
    ) -> SkopeoInspector:
        """Inspector running skopeo from its container image."""
        return cls((engine, "run", "--rm", image, "inspect"), timeout=timeout)

    @property
    def name(self) -> str:
        return "skopeo"

    async def inspect(self, image: ImageReference) -> dict[str, Any]:
        args = [*self._command, f"docker://{image}"]
        try:
            result = await run_command(args, timeout=self._timeout)
        except (OSError, TimeoutError) as e:
            raise RegistryUnavailable(
                f"Cannot inspect {image}: {e}",
                stage="resolve",
                command=args,
            ) from e

        if not result.ok:
            raise RegistryUnavailable(
                f"Inspection of {image} failed with exit code {result.returncode}: "
                f"{result.stderr.strip()}",
                stage="resolve",
                command=args,
            )

        try:
            metadata = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise RegistryUnavailable(
                f"Unparsable inspection output for {image}: {e}",
                stage="resolve",
                command=args,
            ) from e

        if not isinstance(metadata, dict):
            raise RegistryUnavailable(
                f"Unexpected inspection output for {image}",
                stage="resolve",
                command=args,
            )
        return metadata
