"""
catalog_config -- single public entrypoint for catalog settings.

Responsibility:
    Provides the ONLY way to obtain catalog settings at runtime through
    ``get_active_settings()``.  Without an explicit path the packaged
    ``defaults.yaml`` is loaded.

Architecture position:
    Configuration.  Sits beside ``catalog_kernel``; kernel services accept a
    ``CatalogSettings`` instance and never read files themselves.

Failure modes:
    - ``FileNotFoundError`` -- explicit path does not exist.
    - ``ValueError`` -- unknown keys or out-of-range values.
"""

from __future__ import annotations

import logging
from pathlib import Path

from catalog_config.loader import load_settings
from catalog_config.schema import CatalogSettings

_logger = logging.getLogger("catalog_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_settings(config_path: Path | str | None = None) -> CatalogSettings:
    """Load catalog settings from ``config_path`` or the packaged defaults."""
    path = Path(config_path) if config_path is not None else DEFAULTS_PATH
    settings = load_settings(path)
    _logger.info(
        "catalog_settings_loaded",
        extra={
            "config_path": str(path),
            "stock_mutation_max_retries": settings.stock_mutation_max_retries,
            "repository_timeout_seconds": settings.repository_timeout_seconds,
        },
    )
    return settings


__all__ = ["CatalogSettings", "DEFAULTS_PATH", "get_active_settings"]
