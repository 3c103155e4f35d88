"""
Descriptor generator runners.

Generators are closed binaries shipped inside each component's operator
image. They print a CSV on stdout, followed by the component's CRDs when
given their "dump schemas" flag.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from hcobundle.utils.process import CommandResult, run_command

logger = logging.getLogger(__name__)

DEFAULT_CSV_GENERATOR = "/usr/bin/csv-generator"


@runtime_checkable
class GeneratorRunner(Protocol):
    """Runs a generator entrypoint and captures its output."""

    def command(self, entrypoint: str, image: str, args: Sequence[str]) -> list[str]:
        """The command line that run() executes."""
        ...

    async def run(self, entrypoint: str, image: str, args: Sequence[str]) -> CommandResult:
        """
        Run the generator.

        Raises:
            OSError: If the runner binary cannot be started
            TimeoutError: If the generator does not finish in time
        """
        ...


class DockerGeneratorRunner:
    """
    Runs the generator inside its operator image.

    Equivalent to ``docker run --rm --entrypoint=<entrypoint> <image> <args>``.
    """

    def __init__(self, engine: str = "docker", *, timeout: float | None = None):
        self._engine = engine
        self._timeout = timeout

    def command(self, entrypoint: str, image: str, args: Sequence[str]) -> list[str]:
        return [self._engine, "run", "--rm", f"--entrypoint={entrypoint}", image, *args]

    async def run(self, entrypoint: str, image: str, args: Sequence[str]) -> CommandResult:
        return await run_command(self.command(entrypoint, image, args), timeout=self._timeout)


class LocalGeneratorRunner:
    """
    Runs the generator entrypoint directly on the host.

    The image argument is ignored. Useful when the generator binaries are
    already extracted, and in tests.
    """

    def __init__(self, prefix: Sequence[str] = (), *, timeout: float | None = None):
        self._prefix = list(prefix)
        self._timeout = timeout

    def command(self, entrypoint: str, image: str, args: Sequence[str]) -> list[str]:
        return [*self._prefix, entrypoint, *args]

    async def run(self, entrypoint: str, image: str, args: Sequence[str]) -> CommandResult:
        return await run_command(self.command(entrypoint, image, args), timeout=self._timeout)
