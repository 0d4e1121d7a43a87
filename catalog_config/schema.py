"""
Catalog settings schema (``catalog_config.schema``).

Frozen dataclass holding every tunable of the catalog kernel.  Field
defaults mirror ``defaults.yaml``; values are validated on construction.
"""

from __future__ import annotations

from dataclasses import dataclass, fields


@dataclass(frozen=True)
class CatalogSettings:
    """
    Tunables of the catalog kernel.

    Override at instantiation for tests:

        settings = CatalogSettings(stock_mutation_max_retries=5)
    """

    # Identifier allocation
    duplicate_sku_marker: str = "COPIA"
    copy_name_suffix: str = " (Copy)"
    variant_prefix_length: int = 3

    # Concurrency
    stock_mutation_max_retries: int = 3

    # Repository boundary
    repository_read_retries: int = 1
    repository_timeout_seconds: float = 5.0

    # Listings
    default_page_size: int = 20
    max_page_size: int = 200
    low_stock_limit: int = 50

    # License quota: warn when this many products or fewer remain
    quota_warning_threshold: int = 10

    def __post_init__(self):
        if not self.duplicate_sku_marker:
            raise ValueError("duplicate_sku_marker must not be empty")
        if self.variant_prefix_length < 1:
            raise ValueError(
                f"variant_prefix_length must be >= 1, got {self.variant_prefix_length}"
            )
        for name in (
            "stock_mutation_max_retries",
            "repository_read_retries",
            "quota_warning_threshold",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        if self.repository_timeout_seconds <= 0:
            raise ValueError("repository_timeout_seconds must be positive")
        if not 1 <= self.default_page_size <= self.max_page_size:
            raise ValueError(
                "default_page_size must be between 1 and max_page_size "
                f"({self.default_page_size} / {self.max_page_size})"
            )
        if self.low_stock_limit < 1:
            raise ValueError("low_stock_limit must be >= 1")

    @classmethod
    def field_names(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls))
