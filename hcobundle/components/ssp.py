"""scheduling-scale-performance (SSP) descriptor builder."""
from __future__ import annotations

from .base import ComponentBuilder, RecordingResolver


class SchedulingScalePerformanceBuilder(ComponentBuilder):
    @property
    def name(self) -> str:
        return "scheduling-scale-performance"

    async def generator_args(self, resolver: RecordingResolver) -> list[str]:
        operator = await resolver.resolve(self.image)
        return [
            f"--namespace={self.options.namespace}",
            f"--csv-version={self.options.csv_version}",
            f"--operator-image={operator}",
            f"--operator-version={self.version}",
        ]
