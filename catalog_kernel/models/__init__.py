"""ORM models for the catalog kernel."""

from catalog_kernel.models.product import (
    BarcodeClaimModel,
    ProductModel,
    ProductWarehouseStockModel,
    VariantModel,
    VariantWarehouseStockModel,
)
from catalog_kernel.models.stock_movement import StockMovementModel

__all__ = [
    "BarcodeClaimModel",
    "ProductModel",
    "ProductWarehouseStockModel",
    "VariantModel",
    "VariantWarehouseStockModel",
    "StockMovementModel",
]
