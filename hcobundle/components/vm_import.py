"""vm-import-operator descriptor builder."""
from __future__ import annotations

from .base import ComponentBuilder, RecordingResolver


class VMImportBuilder(ComponentBuilder):
    @property
    def name(self) -> str:
        return "vm-import-operator"

    async def generator_args(self, resolver: RecordingResolver) -> list[str]:
        operator = await resolver.resolve(self.image)
        controller = await resolver.resolve(self.image.sibling("vm-import-controller"))
        virtv2v = await resolver.resolve(self.image.sibling("vm-import-virtv2v"))
        return [
            f"--csv-version={self.options.csv_version}",
            f"--operator-version={self.version}",
            f"--operator-image={operator}",
            f"--controller-image={controller}",
            f"--namespace={self.options.namespace}",
            f"--virtv2v-image={virtv2v}",
            f"--pull-policy={self.options.pull_policy}",
        ]
