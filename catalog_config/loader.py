"""
Configuration Loader (``catalog_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into a frozen
``CatalogSettings``.  Runtime callers use
``catalog_config.get_active_settings()`` instead of this module.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or a non-mapping document  -> ``ValueError``.
* Out-of-range values  -> ``ValueError`` from ``CatalogSettings``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from catalog_config.schema import CatalogSettings


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level")
    return data


def parse_settings(data: dict[str, Any]) -> CatalogSettings:
    """Build settings from a parsed ``catalog:`` mapping (or a flat one)."""
    section = data.get("catalog", data)
    if not isinstance(section, dict):
        raise ValueError("'catalog' section must be a mapping")

    unknown = set(section) - CatalogSettings.field_names()
    if unknown:
        raise ValueError(f"Unknown catalog settings: {sorted(unknown)}")
    return CatalogSettings(**section)


def load_settings(path: Path) -> CatalogSettings:
    return parse_settings(load_yaml_file(path))
