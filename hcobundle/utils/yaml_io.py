"""
YAML helpers.

All documents written by the build go through dump_document so that
identical inputs always produce byte-identical files.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DOCUMENT_SEPARATOR = "---"

_SEPARATOR_LINE = re.compile(r"^---(?:\s.*)?$")


class _BundleDumper(yaml.SafeDumper):
    """SafeDumper that indents block sequences and never emits aliases."""

    def ignore_aliases(self, data: Any) -> bool:
        return True

    def increase_indent(self, flow: bool = False, indentless: bool = False):
        return super().increase_indent(flow, False)


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    # Multi-line strings (descriptions, SMBIOS) read better as literal blocks
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_BundleDumper.add_representer(str, _represent_str)


def is_separator(line: str) -> bool:
    """True if a line is a YAML document separator."""
    return bool(_SEPARATOR_LINE.match(line.rstrip()))


def dump_document(document: Any, *, explicit_start: bool = False) -> str:
    """Serialize one document with stable key order and formatting."""
    return yaml.dump(
        document,
        Dumper=_BundleDumper,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
        width=4096,
        explicit_start=explicit_start,
    )


def load_document(text: str) -> Any:
    """Parse a single YAML document. Raises yaml.YAMLError on bad input."""
    return yaml.safe_load(text)


def write_document(path: str | Path, document: Any, *, explicit_start: bool = False) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_document(document, explicit_start=explicit_start), encoding="utf-8")
    logger.debug(f"Wrote {path}")
    return path
