"""cluster-network-addons descriptor builder."""
from __future__ import annotations

from .base import ComponentBuilder, RecordingResolver


class NetworkAddonsBuilder(ComponentBuilder):
    """
    The network addons generator rebuilds its image reference from parts:
    ``<container-prefix>/<image-name>:<container-tag>``. Passing
    ``<name>@sha256`` as the image name and the bare hex digest as the tag
    yields the pinned reference.
    """

    @property
    def name(self) -> str:
        return "cluster-network-addons"

    async def generator_args(self, resolver: RecordingResolver) -> list[str]:
        operator = await resolver.resolve(self.image)
        algorithm, _, digest_hex = (operator.digest or "").partition(":")

        return [
            f"--namespace={self.options.namespace}",
            f"--version={self.options.csv_version}",
            f"--version-replaces={self.options.replaces_version or ''}",
            f"--image-pull-policy={self.options.pull_policy}",
            f"--operator-version={self.version}",
            f"--container-tag={digest_hex}",
            f"--container-prefix={operator.prefix}",
            f"--image-name={operator.name}@{algorithm}",
        ]
