"""
hco-bundle command line.

    hco-bundle build --project-root .
    hco-bundle merge --component-csv kubevirt=kubevirt.csv.yaml ... > merged.csv.yaml
    hco-bundle check-overlap --crds-dir _out/crds
    hco-bundle render --component-csv kubevirt=kubevirt.csv.yaml ... --output-dir deploy/manifests
    hco-bundle validate deploy/crds deploy/olm-catalog/kubevirt-hyperconverged/1.3.0

Errors go to stderr; every failure exits with status 1.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from hcobundle.config import BuildSettings
from hcobundle.descriptors.apis import load_api_schemas
from hcobundle.descriptors.merger import check_overlap, merge as merge_descriptors
from hcobundle.descriptors.models import ComponentDescriptor, OverrideFragment
from hcobundle.descriptors.operator import HCO_NAME
from hcobundle.descriptors.templator import render as render_manifests, write_manifests
from hcobundle.descriptors.validation import validate_paths
from hcobundle.errors import BundleError
from hcobundle.pipeline import BundleFrame, create_bundle_pipeline, run_bundle_build

logger = logging.getLogger(__name__)

app = typer.Typer(
    no_args_is_help=True,
    help="Aggregate operator descriptors into an OLM bundle.",
)

_console = Console()
_err_console = Console(stderr=True)


def _fail(message: str) -> typer.Exit:
    _err_console.print(message, style="red", highlight=False, markup=False)
    return typer.Exit(code=1)


def _parse_component_csvs(values: list[str]) -> list[ComponentDescriptor]:
    """NAME=PATH pairs into descriptors, in the order given."""
    descriptors = []
    for value in values:
        name, sep, path = value.partition("=")
        if not sep or not name or not path:
            raise typer.BadParameter(f"Expected NAME=PATH, got {value!r}", param_hint="--component-csv")
        text = Path(path).read_text(encoding="utf-8")
        descriptors.append(ComponentDescriptor.from_text(name, text))
    return descriptors


@app.callback()
def _configure(
    log_level: str = typer.Option("INFO", "--log-level", help="Root logger level."),
) -> None:
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@app.command()
def build(
    project_root: Path = typer.Option(Path("."), "--project-root", help="Repository checkout with hack/config."),
    deploy_dir: Optional[Path] = typer.Option(None, "--deploy-dir", help="Bundle output directory."),
    keep_scratch: bool = typer.Option(False, "--keep-scratch", help="Keep intermediate files on success."),
    skip_validation: bool = typer.Option(False, "--skip-validation", help="Skip the YAML lint gate."),
    skip_manifests: bool = typer.Option(False, "--skip-manifests", help="Do not render deploy manifests."),
) -> None:
    """Run the whole build: components, merge, manifests, bundle, validation."""

    overrides = {"deploy_dir": deploy_dir} if deploy_dir is not None else {}
    try:
        settings = BuildSettings.for_project(project_root, **overrides)
        settings.load_overrides()
    except (BundleError, ValueError, OSError) as e:
        raise _fail(str(e)) from e
    pipeline = create_bundle_pipeline(
        render_manifests=not skip_manifests,
        validate=not skip_validation,
    )

    result = asyncio.run(run_bundle_build(settings, pipeline=pipeline, keep_scratch=keep_scratch))
    if not result.success:
        report = result.error_frame.format_report() if result.error_frame else result.error
        raise _fail(report or "Build failed")

    bundle = result.get_frame(BundleFrame)
    table = Table(title="HCO bundle")
    table.add_column("Item", style="bright_green", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("CSV", str(bundle.csv_path))
    table.add_row("Components", ", ".join(c.name for c in bundle.merged.components))
    table.add_row("Related images", str(len(bundle.merged.related_images)))
    table.add_row("Manifests", str(len(bundle.manifest_files)))
    table.add_row("Validated files", str(bundle.validated_files))
    table.add_row("Duration", f"{result.duration_ms:.0f} ms")
    _console.print(table)


@app.command()
def merge(
    component_csv: list[str] = typer.Option(..., "--component-csv", help="NAME=PATH, repeatable, in order."),
    csv_overrides: Optional[Path] = typer.Option(None, "--csv-overrides", help="Override fragment YAML."),
    csv_version: str = typer.Option(..., "--csv-version"),
    replaces_csv_version: Optional[str] = typer.Option(None, "--replaces-csv-version"),
    spec_displayname: str = typer.Option("KubeVirt HyperConverged Cluster Operator", "--spec-displayname"),
    spec_description: str = typer.Option("", "--spec-description"),
    related_images_list: str = typer.Option("", "--related-images-list", help="Comma-separated pinned images."),
    operator_image_name: str = typer.Option("", "--operator-image-name"),
    api_sources: Optional[Path] = typer.Option(None, "--api-sources", help="Directory of the operator's CRDs."),
) -> None:
    """Merge component CSVs and print the result on stdout."""

    settings = BuildSettings(csv_version=csv_version, replaces_csv_version=replaces_csv_version)
    metadata = settings.run_metadata(operator_image=operator_image_name or None).model_copy(
        update={"display_name": spec_displayname, "description": spec_description}
    )
    related = [image.strip() for image in related_images_list.split(",") if image.strip()]

    try:
        overrides = (
            OverrideFragment.from_yaml(csv_overrides.read_text(encoding="utf-8"))
            if csv_overrides is not None
            else None
        )
        descriptors = _parse_component_csvs(component_csv)
        api_schemas = load_api_schemas(api_sources) if api_sources is not None else []
        merged = merge_descriptors(descriptors, overrides, metadata, related, api_schemas=api_schemas)
    except (BundleError, ValueError, OSError) as e:
        raise _fail(str(e)) from e

    typer.echo(merged.to_yaml(), nl=False)


@app.command(name="check-overlap")
def check_overlap_command(
    crds_dir: Path = typer.Option(..., "--crds-dir", exists=True, file_okay=False, help="Directory of *.crd.yaml."),
) -> None:
    """Fail when two sources declare the same CRD group and kind."""

    conflicts = check_overlap(crds_dir)
    if conflicts:
        for conflict in conflicts:
            _err_console.print(f"Overlap: {conflict}", style="red", highlight=False, markup=False)
        raise typer.Exit(code=1)
    _console.print(f"No overlapping CRDs in {crds_dir}")


@app.command()
def render(
    component_csv: list[str] = typer.Option(..., "--component-csv", help="NAME=PATH, repeatable, in order."),
    operator_namespace: str = typer.Option("kubevirt-hyperconverged", "--operator-namespace"),
    operator_image: str = typer.Option("", "--operator-image"),
    api_sources: Optional[Path] = typer.Option(None, "--api-sources", help="Directory of the operator's CRDs."),
    output_dir: Path = typer.Option(..., "--output-dir"),
) -> None:
    """Write plain Kubernetes manifests for the operator and its components."""

    settings = BuildSettings()
    metadata = settings.run_metadata(operator_image=operator_image or None)
    image_overrides = {HCO_NAME: operator_image} if operator_image else {}

    try:
        descriptors = _parse_component_csvs(component_csv)
        api_schemas = load_api_schemas(api_sources) if api_sources is not None else []
        manifests = render_manifests(
            descriptors,
            operator_namespace,
            image_overrides,
            metadata,
            api_schemas=api_schemas,
        )
    except (BundleError, ValueError, OSError) as e:
        raise _fail(str(e)) from e

    paths = write_manifests(manifests, output_dir)
    _console.print(f"Wrote {len(paths)} manifest(s) to {output_dir}")


@app.command()
def validate(
    paths: list[Path] = typer.Argument(..., help="Files or directories of YAML."),
) -> None:
    """Run the YAML lint gate over files and directories."""

    try:
        count = validate_paths(paths)
    except BundleError as e:
        for problem in getattr(e, "problems", []):
            _err_console.print(problem, highlight=False, markup=False)
        raise _fail(str(e)) from e
    except FileNotFoundError as e:
        raise _fail(str(e)) from e
    _console.print(f"{count} file(s) OK")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
