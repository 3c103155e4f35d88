"""node-maintenance-operator (NMO) descriptor builder."""
from __future__ import annotations

from .base import ComponentBuilder, RecordingResolver


class NodeMaintenanceBuilder(ComponentBuilder):
    """NMO ships its generator under /usr/local/bin."""

    generator_entrypoint = "/usr/local/bin/csv-generator"

    @property
    def name(self) -> str:
        return "node-maintenance"

    async def generator_args(self, resolver: RecordingResolver) -> list[str]:
        operator = await resolver.resolve(self.image)
        return [
            f"--namespace={self.options.namespace}",
            f"--csv-version={self.options.csv_version}",
            f"--operator-image={operator}",
        ]
