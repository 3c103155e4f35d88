"""
hco-bundle utilities

Subprocess and YAML helpers shared across the build.
"""

from .process import CommandResult, run_command
from .yaml_io import (
    DOCUMENT_SEPARATOR,
    dump_document,
    is_separator,
    load_document,
    write_document,
)

__all__ = [
    "CommandResult",
    "run_command",
    "DOCUMENT_SEPARATOR",
    "dump_document",
    "is_separator",
    "load_document",
    "write_document",
]
