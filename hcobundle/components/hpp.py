"""hostpath-provisioner operator descriptor builder."""
from __future__ import annotations

from hcobundle.registry.images import ImageReference

from .base import ComponentBuilder, ComponentOptions, RecordingResolver


class HostpathProvisionerBuilder(ComponentBuilder):
    """The provisioner image is versioned apart from its operator."""

    def __init__(
        self,
        image: ImageReference | str,
        options: ComponentOptions,
        *,
        provisioner_image: ImageReference | str,
        version: str | None = None,
    ):
        super().__init__(image, options, version=version)
        self.provisioner_image = provisioner_image

    @property
    def name(self) -> str:
        return "hostpath-provisioner"

    async def generator_args(self, resolver: RecordingResolver) -> list[str]:
        operator = await resolver.resolve(self.image)
        provisioner = await resolver.resolve(self.provisioner_image)
        return [
            f"--csv-version={self.options.csv_version}",
            f"--operator-image-name={operator}",
            f"--provisioner-image-name={provisioner}",
            f"--namespace={self.options.namespace}",
            f"--pull-policy={self.options.pull_policy}",
        ]
