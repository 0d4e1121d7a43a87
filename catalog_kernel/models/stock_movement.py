"""
Module: catalog_kernel.models.stock_movement
Responsibility: Append-only log of applied stock operations, one row per
    successful inbound, outbound or adjustment.
Architecture position: Kernel > Models.  References products and variants
    by id with NO foreign key, so the log survives variant regeneration.

Invariants enforced:
    - Rows are only ever inserted, in the same transaction as the product
      write they describe.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from catalog_kernel.db.base import Base
from catalog_kernel.domain.stock import StockMovement, StockOperationType


class StockMovementModel(Base):
    """Maps to: catalog_kernel.domain.stock.StockMovement (frozen dataclass)."""

    __tablename__ = "stock_movements"

    __table_args__ = (
        Index("idx_movement_product", "tenant_id", "product_id", "occurred_at"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    product_id: Mapped[UUID] = mapped_column(nullable=False)
    variant_id: Mapped[UUID | None] = mapped_column(nullable=True)
    warehouse_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    operation: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_before: Mapped[Decimal] = mapped_column(nullable=False)
    quantity_after: Mapped[Decimal] = mapped_column(nullable=False)

    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    def to_dto(self) -> StockMovement:
        return StockMovement(
            id=self.id,
            tenant_id=self.tenant_id,
            product_id=self.product_id,
            variant_id=self.variant_id,
            warehouse_id=self.warehouse_id,
            operation=StockOperationType(self.operation),
            amount=self.amount,
            quantity_before=self.quantity_before,
            quantity_after=self.quantity_after,
            reason=self.reason,
            occurred_at=self.occurred_at,
        )

    @classmethod
    def from_dto(cls, dto: StockMovement) -> "StockMovementModel":
        return cls(
            id=dto.id or uuid4(),
            tenant_id=dto.tenant_id,
            product_id=dto.product_id,
            variant_id=dto.variant_id,
            warehouse_id=dto.warehouse_id,
            operation=dto.operation.value,
            amount=dto.amount,
            quantity_before=dto.quantity_before,
            quantity_after=dto.quantity_after,
            reason=dto.reason,
            occurred_at=dto.occurred_at,
        )

    def __repr__(self) -> str:
        return (
            f"<StockMovementModel {self.operation} {self.amount} "
            f"product={self.product_id}>"
        )
