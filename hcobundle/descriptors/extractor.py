"""
Descriptor Extractor.

A generator only offers an additive "dump schemas" flag, so the CRDs are
recovered by running it twice and diffing the two outputs:

    base      = generator <args>
    extended  = generator <args> <dump-flag>
    delta     = lines of extended missing from base, minus the boundary lines
    schemas   = delta split on "---"

Every intermediate output is written to the scratch directory and left
there, so a failed build can be inspected.
"""
from __future__ import annotations

import difflib
import logging
from collections.abc import Sequence
from pathlib import Path

from hcobundle.errors import GeneratorInvocationFailed
from hcobundle.utils.yaml_io import DOCUMENT_SEPARATOR, is_separator

from .generators import GeneratorRunner
from .models import ComponentDescriptor, SchemaDefinition

logger = logging.getLogger(__name__)

CSV_EXT = "clusterserviceversion.yaml"
CSV_CRD_EXT = "csv_crds.yaml"
CRDS_EXT = "crds.yaml"
CRD_EXT = "crd.yaml"


def compute_delta(base: str, extended: str, boundary_lines: int = 1) -> list[str]:
    """
    Lines of ``extended`` that are absent from ``base``, in order.

    The first ``boundary_lines`` added lines are dropped: they are what the
    generator prints at the point where it starts appending schemas, not
    schema payload.
    """
    base_lines = base.splitlines()
    extended_lines = extended.splitlines()
    matcher = difflib.SequenceMatcher(a=base_lines, b=extended_lines, autojunk=False)

    added: list[str] = []
    for tag, _i1, _i2, j1, j2 in matcher.get_opcodes():
        if tag in ("insert", "replace"):
            added.extend(extended_lines[j1:j2])
    return added[max(boundary_lines, 0):]


def split_documents(lines: Sequence[str]) -> list[str]:
    """
    Split lines into YAML documents on ``---`` separator lines.

    Whitespace-only fragments are discarded. Each returned document ends
    with a newline and contains no separator line.
    """
    fragments: list[list[str]] = [[]]
    for line in lines:
        if is_separator(line):
            fragments.append([])
        else:
            fragments[-1].append(line)
    return [
        "\n".join(fragment) + "\n"
        for fragment in fragments
        if any(line.strip() for line in fragment)
    ]


def join_documents(documents: Sequence[str]) -> str:
    """Inverse of split_documents for non-empty fragments."""
    return f"{DOCUMENT_SEPARATOR}\n".join(documents)


def schema_filename(source: str, index: int) -> str:
    return f"{source}{index:02d}.{CRD_EXT}"


def remove_schema_files(directory: str | Path, source: str | None = None) -> list[Path]:
    """
    Delete schema files left in a directory by an earlier run.

    With a source only ``<source>NN.crd.yaml`` files go; without one every
    ``*.crd.yaml`` file does.
    """
    directory = Path(directory)
    if not directory.is_dir():
        return []
    pattern = f"{source}[0-9][0-9].{CRD_EXT}" if source else f"*.{CRD_EXT}"
    removed = sorted(directory.glob(pattern))
    for path in removed:
        path.unlink()
    if removed:
        logger.debug(f"Removed {len(removed)} stale schema file(s) from {directory}")
    return removed


class DescriptorExtractor:
    """
    Extracts one component's CSV and CRDs from its generator.

    Args:
        runner: How generators are executed (container or host)
        scratch_dir: Directory for intermediate and schema files
        boundary_lines: Default number of leading delta lines to drop
    """

    def __init__(
        self,
        runner: GeneratorRunner,
        scratch_dir: str | Path,
        *,
        boundary_lines: int = 1,
    ):
        self._runner = runner
        self._scratch_dir = Path(scratch_dir)
        self._boundary_lines = boundary_lines

    @property
    def scratch_dir(self) -> Path:
        return self._scratch_dir

    async def extract(
        self,
        generator_entrypoint: str,
        component_name: str,
        image_pull_spec: str,
        dump_schemas_flag: str,
        generator_args: Sequence[str],
        *,
        boundary_lines: int | None = None,
    ) -> tuple[ComponentDescriptor, list[SchemaDefinition]]:
        """
        Run the generator twice and separate the CSV from its CRDs.

        Returns:
            The component descriptor (without images) and its schema definitions

        Raises:
            GeneratorInvocationFailed: Either run failed or printed nothing
            StructuralValidationFailed: The CSV or a schema fragment is malformed
        """
        if boundary_lines is None:
            boundary_lines = self._boundary_lines
        self._scratch_dir.mkdir(parents=True, exist_ok=True)
        remove_schema_files(self._scratch_dir, component_name)

        args = list(generator_args)
        base = await self._invoke(generator_entrypoint, component_name, image_pull_spec, args)
        self._write(f"{component_name}.{CSV_EXT}", base)

        extended = await self._invoke(
            generator_entrypoint,
            component_name,
            image_pull_spec,
            [*args, dump_schemas_flag],
        )
        self._write(f"{component_name}.{CSV_CRD_EXT}", extended)

        delta = compute_delta(base, extended, boundary_lines)
        self._write(f"{component_name}.{CRDS_EXT}", "\n".join(delta) + ("\n" if delta else ""))

        if not delta:
            logger.warning(f"[{component_name}] No schema delta found; component declares no CRDs")

        schemas = []
        for index, text in enumerate(split_documents(delta)):
            filename = schema_filename(component_name, index)
            self._write(filename, text)
            schemas.append(SchemaDefinition.from_text(text, source=component_name, filename=filename))

        descriptor = ComponentDescriptor.from_text(component_name, base)
        logger.info(f"[{component_name}] Extracted descriptor with {len(schemas)} schema(s)")
        return descriptor, schemas

    async def _invoke(
        self,
        entrypoint: str,
        component_name: str,
        image: str,
        args: Sequence[str],
    ) -> str:
        command = self._runner.command(entrypoint, image, args)
        try:
            result = await self._runner.run(entrypoint, image, args)
        except (OSError, TimeoutError) as e:
            raise GeneratorInvocationFailed(
                f"Cannot run generator for {component_name}: {e}",
                stage=component_name,
                command=command,
            ) from e

        if not result.ok:
            raise GeneratorInvocationFailed(
                f"Generator for {component_name} exited with code {result.returncode}",
                stage=component_name,
                command=command,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        if not result.stdout.strip():
            raise GeneratorInvocationFailed(
                f"Generator for {component_name} produced no output",
                stage=component_name,
                command=command,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result.stdout

    def _write(self, filename: str, text: str) -> Path:
        path = self._scratch_dir / filename
        path.write_text(text, encoding="utf-8")
        logger.debug(f"Wrote {path}")
        return path
