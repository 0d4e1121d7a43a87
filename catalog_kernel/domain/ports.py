"""
Ports -- narrow interfaces to the catalog's collaborators.

Responsibility:
    Structural protocols for everything the Catalog Service consumes but
    does not own: the tenant-bound product store, the family directory and
    its counter, the license quota and the referential-integrity check.

Architecture position:
    Kernel > Domain.  Services depend on these protocols, never on concrete
    collaborators, and receive implementations through their constructors.
    ``catalog_kernel.services.repository`` provides the SQL store.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable
from uuid import UUID

from catalog_kernel.domain.product import (
    DeletabilityCheck,
    FamilyInfo,
    Product,
    ProductFilter,
    Sort,
)
from catalog_kernel.domain.stock import StockMovement


@runtime_checkable
class CatalogRepository(Protocol):
    """
    Tenant-bound product store.

    An instance is bound to exactly one tenant; every lookup and write is
    scoped to it, so cross-tenant access cannot be expressed.

    ``insert`` and ``save`` stage changes; ``commit`` makes them durable.
    ``save`` raises OptimisticLockError when ``product.version`` no longer
    matches the stored version.
    """

    tenant_id: str

    def find_by_id(self, product_id: UUID) -> Product | None: ...

    def find_by_sku(self, sku: str) -> Product | None: ...

    def find_by_barcode(self, barcode: str) -> Product | None: ...

    def insert(self, product: Product) -> Product: ...

    def save(self, product: Product) -> Product: ...

    def query(
        self,
        filter: ProductFilter,
        sort: Sort,
        page: int,
        page_size: int,
    ) -> tuple[Sequence[Product], int]: ...

    def record_movement(self, movement: StockMovement) -> StockMovement: ...

    def list_movements(
        self, product_id: UUID, limit: int
    ) -> Sequence[StockMovement]: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@runtime_checkable
class RepositoryFactory(Protocol):
    """Resolves the repository of one tenant, once per request."""

    def __call__(self, tenant_id: str) -> CatalogRepository: ...


@runtime_checkable
class FamilyDirectory(Protocol):
    def get_family(self, tenant_id: str, family_id: str) -> FamilyInfo | None: ...


@runtime_checkable
class FamilyCounterSink(Protocol):
    """Product-count statistic kept on each family (eventually consistent)."""

    def increment_product_count(self, family_id: str, delta: int) -> None: ...


@runtime_checkable
class LicenseQuotaChecker(Protocol):
    """
    Plan quota for products.

    ``remaining_product_quota`` returns a negative number for unlimited plans.
    """

    def remaining_product_quota(self, tenant_id: str) -> int: ...

    def increment_usage(self, tenant_id: str, delta: int) -> None: ...


@runtime_checkable
class ReferentialIntegrityChecker(Protocol):
    def check_product_deletable(
        self, tenant_id: str, product_id: UUID
    ) -> DeletabilityCheck: ...
