"""
CatalogSelector -- read-only catalog statistics and reports.

Responsibility:
    Dashboard figures (counts, out-of-stock and low-stock products,
    inventory value), the low-stock report, the families in use and the
    stock movement history of a product.

Architecture position:
    Kernel > Selectors.  Reads ORM rows and converts them to domain records;
    stock figures always go through ``aggregate_stock`` so they agree with
    what the Catalog Service reports.

Invariants enforced:
    - Read-only; tenant-scoped.
    - Stock figures consider active products only.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterator
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from catalog_config.schema import CatalogSettings
from catalog_kernel.domain.product import ZERO, Product, StockLevel
from catalog_kernel.domain.stock import (
    StockMovement,
    aggregate_stock,
    is_low_stock,
    is_out_of_stock,
)
from catalog_kernel.models.product import ProductModel
from catalog_kernel.models.stock_movement import StockMovementModel
from catalog_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class CatalogStatistics:
    total: int
    active: int
    inactive: int
    out_of_stock: int
    low_stock: int
    inventory_value: Decimal


@dataclass(frozen=True)
class LowStockItem:
    product_id: UUID
    sku: str
    name: str
    stock: StockLevel


class CatalogSelector(BaseSelector[ProductModel]):
    """Read-only catalog reports for one tenant."""

    def __init__(
        self,
        session: Session,
        tenant_id: str,
        settings: CatalogSettings | None = None,
        batch_size: int = 500,
    ):
        super().__init__(session, tenant_id)
        self._settings = settings or CatalogSettings()
        self._batch_size = batch_size

    def statistics(self) -> CatalogStatistics:
        total = self.session.execute(
            select(func.count(ProductModel.id)).where(
                ProductModel.tenant_id == self.tenant_id
            )
        ).scalar_one()

        active = 0
        out_of_stock = 0
        low_stock = 0
        value = ZERO
        for product in self._active_products():
            active += 1
            level = aggregate_stock(product)
            if is_out_of_stock(level):
                out_of_stock += 1
            elif is_low_stock(level):
                low_stock += 1
            value += level.quantity * product.base_price

        return CatalogStatistics(
            total=total,
            active=active,
            inactive=total - active,
            out_of_stock=out_of_stock,
            low_stock=low_stock,
            inventory_value=value,
        )

    def low_stock(self, limit: int | None = None) -> list[LowStockItem]:
        """
        Active products at or below their minimum, in SKU order.

        ``limit`` defaults to the ``low_stock_limit`` setting.
        """
        if limit is None:
            limit = self._settings.low_stock_limit
        if limit <= 0:
            return []
        items: list[LowStockItem] = []
        for product in self._active_products():
            level = aggregate_stock(product)
            if is_low_stock(level):
                items.append(
                    LowStockItem(
                        product_id=product.id,
                        sku=product.sku,
                        name=product.name,
                        stock=level,
                    )
                )
                if len(items) >= limit:
                    break
        return items

    def families(self) -> list[str]:
        """Distinct family ids used by active products."""
        rows = self.session.execute(
            select(ProductModel.family_id)
            .where(ProductModel.tenant_id == self.tenant_id)
            .where(ProductModel.active.is_(True))
            .where(ProductModel.family_id.is_not(None))
            .distinct()
            .order_by(ProductModel.family_id)
        ).scalars().all()
        return list(rows)

    def movement_history(self, product_id: UUID, limit: int = 100) -> list[StockMovement]:
        """Stock movements of a product, newest first."""
        rows = self.session.execute(
            select(StockMovementModel)
            .where(StockMovementModel.tenant_id == self.tenant_id)
            .where(StockMovementModel.product_id == product_id)
            .order_by(StockMovementModel.occurred_at.desc())
            .limit(limit)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def _active_products(self) -> Iterator[Product]:
        offset = 0
        while True:
            rows = self.session.execute(
                select(ProductModel)
                .where(ProductModel.tenant_id == self.tenant_id)
                .where(ProductModel.active.is_(True))
                .order_by(ProductModel.sku)
                .offset(offset)
                .limit(self._batch_size)
            ).scalars().all()
            if not rows:
                return
            for row in rows:
                yield row.to_dto()
            offset += len(rows)
