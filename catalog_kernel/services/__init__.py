"""Catalog services: repository, stock mutation and use-case orchestration."""

from catalog_kernel.services.catalog_service import CatalogService
from catalog_kernel.services.repository import SqlCatalogRepository, SqlRepositoryFactory
from catalog_kernel.services.stock_mutator import StockMutationResult, StockMutator

__all__ = [
    "CatalogService",
    "SqlCatalogRepository",
    "SqlRepositoryFactory",
    "StockMutationResult",
    "StockMutator",
]
