"""
Top-level API schemas.

The HyperConverged operator's own CRDs are not produced by a generator
image; they are generated from the operator's API types and committed as
YAML under the API sources directory. They join the component CRDs for the
overlap check and the bundle.
"""
from __future__ import annotations

import logging
from pathlib import Path

import yaml

from hcobundle.errors import StructuralValidationFailed
from hcobundle.utils.yaml_io import load_document

from .extractor import schema_filename, split_documents
from .models import SchemaDefinition

logger = logging.getLogger(__name__)

API_SOURCE = "hco"


def load_api_schemas(api_sources: str | Path, *, source: str = API_SOURCE) -> list[SchemaDefinition]:
    """
    Load every CRD found in the YAML files under ``api_sources``.

    Files are read in sorted order and documents numbered in order of
    appearance, so filenames are stable between runs. Documents that are not
    CustomResourceDefinitions are skipped.

    Raises:
        FileNotFoundError: If api_sources does not exist
        StructuralValidationFailed: If a CRD document is malformed
    """
    root = Path(api_sources)
    if not root.exists():
        raise FileNotFoundError(f"API sources not found: {root}")

    files = [root] if root.is_file() else sorted(
        p for p in root.rglob("*") if p.suffix in (".yaml", ".yml") and p.is_file()
    )

    schemas: list[SchemaDefinition] = []
    for path in files:
        lines = path.read_text(encoding="utf-8").splitlines()
        for text in split_documents(lines):
            try:
                document = load_document(text)
            except yaml.YAMLError as e:
                raise StructuralValidationFailed(f"Invalid YAML in {path}: {e}") from e
            if not isinstance(document, dict) or document.get("kind") != "CustomResourceDefinition":
                logger.debug(f"Skipping non-CRD document in {path}")
                continue
            filename = schema_filename(source, len(schemas))
            schemas.append(SchemaDefinition.from_text(text, source=source, filename=filename))

    logger.info(f"Loaded {len(schemas)} API schema(s) from {root}")
    return schemas


def write_schemas(schemas: list[SchemaDefinition], directory: str | Path) -> list[Path]:
    """
    Write schema files into a directory, keeping their filenames.

    Raises:
        ValueError: If two schemas would be written to the same file
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    paths = []
    for index, schema in enumerate(schemas):
        filename = schema.filename or schema_filename(schema.source, index)
        path = directory / filename
        if path in paths:
            raise ValueError(f"Two schemas would be written to {filename}")
        path.write_text(schema.raw_text, encoding="utf-8")
        paths.append(path)
    return paths
