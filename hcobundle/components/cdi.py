"""containerized-data-importer (CDI) descriptor builder."""
from __future__ import annotations

from .base import ComponentBuilder, RecordingResolver

# Generator flag -> image name, all siblings of cdi-operator
CDI_IMAGES = {
    "controller": "cdi-controller",
    "apiserver": "cdi-apiserver",
    "cloner": "cdi-cloner",
    "importer": "cdi-importer",
    "uploadproxy": "cdi-uploadproxy",
    "uploadserver": "cdi-uploadserver",
}


class ContainerizedDataImporterBuilder(ComponentBuilder):
    @property
    def name(self) -> str:
        return "containerized-data-importer"

    async def generator_args(self, resolver: RecordingResolver) -> list[str]:
        operator = await resolver.resolve(self.image)
        args = [
            f"--namespace={self.options.namespace}",
            f"--csv-version={self.options.csv_version}",
            f"--pull-policy={self.options.pull_policy}",
            f"--operator-image={operator}",
        ]
        for flag, image_name in CDI_IMAGES.items():
            resolved = await resolver.resolve(self.image.sibling(image_name))
            args.append(f"--{flag}-image={resolved}")
        args.append(f"--operator-version={self.version}")
        return args
