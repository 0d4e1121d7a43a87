"""
Pure domain layer.

Immutable catalog records and the pure algorithms over them (attribute
combination, SKU derivation, stock aggregation and stock operations), with
no dependencies on the ORM or the database.
"""

from catalog_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from catalog_kernel.domain.combinator import combine
from catalog_kernel.domain.identifiers import allocate_duplicate_sku, variant_sku
from catalog_kernel.domain.product import (
    Attribute,
    AttributeValue,
    BulkDeleteResult,
    DeletabilityCheck,
    FamilyInfo,
    Product,
    ProductFilter,
    ProductKind,
    ProductPage,
    ProductSummary,
    Reference,
    Sort,
    SortField,
    StockLevel,
    Variant,
    WarehouseStock,
)
from catalog_kernel.domain.stock import (
    StockChange,
    StockMovement,
    StockOperation,
    StockOperationType,
    VariantStockSummary,
    aggregate_stock,
    apply_stock_operation,
    variant_stock,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "combine",
    "allocate_duplicate_sku",
    "variant_sku",
    "Attribute",
    "AttributeValue",
    "BulkDeleteResult",
    "DeletabilityCheck",
    "FamilyInfo",
    "Product",
    "ProductFilter",
    "ProductKind",
    "ProductPage",
    "ProductSummary",
    "Reference",
    "Sort",
    "SortField",
    "StockLevel",
    "Variant",
    "WarehouseStock",
    "StockChange",
    "StockMovement",
    "StockOperation",
    "StockOperationType",
    "VariantStockSummary",
    "aggregate_stock",
    "apply_stock_operation",
    "variant_stock",
]
