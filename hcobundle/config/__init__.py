"""
hco-bundle configuration

pydantic-settings model for one bundle build.
"""

from .settings import (
    DEFAULT_ENV_FILE,
    DEFAULT_OVERRIDES,
    BuildSettings,
    default_overrides,
)

__all__ = [
    "BuildSettings",
    "DEFAULT_ENV_FILE",
    "DEFAULT_OVERRIDES",
    "default_overrides",
]
