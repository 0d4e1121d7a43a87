"""Read-only selectors for catalog queries."""

from catalog_kernel.selectors.base import BaseSelector
from catalog_kernel.selectors.catalog_selector import (
    CatalogSelector,
    CatalogStatistics,
    LowStockItem,
)

__all__ = ["BaseSelector", "CatalogSelector", "CatalogStatistics", "LowStockItem"]
