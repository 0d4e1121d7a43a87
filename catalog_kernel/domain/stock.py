"""
Stock -- aggregation and typed stock operations.

Responsibility:
    ``aggregate_stock`` computes the effective on-hand/minimum/maximum of a
    product on read.  ``apply_stock_operation`` applies one inbound, outbound
    or adjustment operation to a product (or one of its variants) and returns
    the new record.  Neither touches storage; the StockMutator service owns
    the read-modify-write cycle and its retry.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Quantities never go negative.  An outbound larger than the quantity on
      hand raises InsufficientStockError and returns nothing.
    - Warehouse rows are authoritative over ``Product.stock`` and variants
      are authoritative over both, for aggregation only.

Failure modes:
    - InvalidStockAmountError: negative or non-finite amount.
    - InsufficientStockError: outbound larger than the targeted quantity.
    - VariantNotFoundError: ``variant_id`` does not belong to the product.

Aggregation rules (first match wins):
    1. Variants present: quantity is the sum of every variant's warehouse
       quantities.  Minimum and maximum are NOT taken from the variants;
       they come from rule 2 or 3 applied to the product itself.
    2. Warehouse rows present: quantity, minimum and maximum are the sums of
       the rows.
    3. Otherwise ``product.stock`` verbatim.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Sequence
from uuid import UUID

from catalog_kernel.domain.product import (
    ZERO,
    Product,
    StockLevel,
    Variant,
    WarehouseStock,
)
from catalog_kernel.exceptions import (
    InsufficientStockError,
    InvalidStockAmountError,
    VariantNotFoundError,
)


class StockOperationType(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"
    ADJUSTMENT = "adjustment"


@dataclass(frozen=True)
class StockOperation:
    """
    One stock operation.

    With ``warehouse_id`` the operation targets that warehouse row of the
    product or variant.  Without it, the product's bare ``stock.quantity``
    or the variant's legacy ``quantity`` is targeted; neither is read by
    aggregation once warehouse rows or variants exist.
    """

    type: StockOperationType
    amount: Decimal
    variant_id: UUID | None = None
    warehouse_id: str | None = None
    reason: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            try:
                amount = Decimal(str(self.amount))
            except (InvalidOperation, ValueError) as exc:
                raise InvalidStockAmountError(str(self.amount)) from exc
            object.__setattr__(self, "amount", amount)
        if not self.amount.is_finite():
            raise InvalidStockAmountError(str(self.amount))
        if not isinstance(self.type, StockOperationType):
            object.__setattr__(self, "type", StockOperationType(self.type))


@dataclass(frozen=True)
class StockMovement:
    """Recorded outcome of a successful stock operation."""

    tenant_id: str
    product_id: UUID
    operation: StockOperationType
    amount: Decimal
    quantity_before: Decimal
    quantity_after: Decimal
    occurred_at: datetime
    variant_id: UUID | None = None
    warehouse_id: str | None = None
    reason: str | None = None
    id: UUID | None = None


@dataclass(frozen=True)
class VariantStockSummary:
    variant_id: UUID
    sku: str
    combination: dict[str, str]
    quantity: Decimal


@dataclass(frozen=True)
class StockChange:
    """Result of ``apply_stock_operation``."""

    product: Product
    quantity_before: Decimal
    quantity_after: Decimal


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def _sum_rows(rows: Sequence[WarehouseStock]) -> StockLevel:
    return StockLevel(
        quantity=sum((r.quantity for r in rows), ZERO),
        minimum=sum((r.minimum for r in rows), ZERO),
        maximum=sum((r.maximum for r in rows), ZERO),
    )


def _own_stock(product: Product) -> StockLevel:
    if product.stock_by_warehouse:
        return _sum_rows(product.stock_by_warehouse)
    return product.stock


def variant_quantity(variant: Variant) -> Decimal:
    return sum((r.quantity for r in variant.stock_by_warehouse), ZERO)


def aggregate_stock(product: Product) -> StockLevel:
    """Effective stock level of ``product``."""
    own = _own_stock(product)
    if product.variants:
        total = sum((variant_quantity(v) for v in product.variants), ZERO)
        return replace(own, quantity=total)
    return own


def is_out_of_stock(level: StockLevel) -> bool:
    return level.quantity <= ZERO


def is_low_stock(level: StockLevel) -> bool:
    """At or below a positive minimum."""
    return level.minimum > ZERO and level.quantity <= level.minimum


def variant_stock(product: Product) -> tuple[VariantStockSummary, ...]:
    """Per-variant warehouse totals, in variant order."""
    return tuple(
        VariantStockSummary(
            variant_id=v.id,
            sku=v.sku,
            combination=dict(v.combination),
            quantity=variant_quantity(v),
        )
        for v in product.variants
    )


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def _apply(
    op: StockOperation, current: Decimal, product_id: UUID
) -> Decimal:
    if op.type == StockOperationType.INBOUND:
        return current + op.amount
    if op.type == StockOperationType.OUTBOUND:
        if current < op.amount:
            raise InsufficientStockError(
                str(product_id), str(current), str(op.amount)
            )
        return current - op.amount
    return op.amount


def _apply_to_rows(
    rows: tuple[WarehouseStock, ...],
    op: StockOperation,
    product_id: UUID,
) -> tuple[tuple[WarehouseStock, ...], Decimal, Decimal]:
    for index, row in enumerate(rows):
        if row.warehouse_id == op.warehouse_id:
            after = _apply(op, row.quantity, product_id)
            updated = replace(row, quantity=after)
            return rows[:index] + (updated,) + rows[index + 1:], row.quantity, after

    # Missing row: outbound sees zero, inbound and adjustment create it.
    after = _apply(op, ZERO, product_id)
    return rows + (WarehouseStock(warehouse_id=op.warehouse_id, quantity=after),), ZERO, after


def apply_stock_operation(product: Product, op: StockOperation) -> StockChange:
    """
    Apply ``op`` to ``product`` and return the updated record.

    The input record is never modified.
    """
    if op.amount < ZERO:
        raise InvalidStockAmountError(str(op.amount))

    if op.variant_id is not None:
        variant = product.find_variant(op.variant_id)
        if variant is None:
            raise VariantNotFoundError(str(product.id), str(op.variant_id))

        if op.warehouse_id is not None:
            rows, before, after = _apply_to_rows(
                variant.stock_by_warehouse, op, product.id
            )
            new_variant = replace(variant, stock_by_warehouse=rows)
        else:
            before = variant.quantity
            after = _apply(op, before, product.id)
            new_variant = replace(variant, quantity=after)

        variants = tuple(
            new_variant if v.id == variant.id else v for v in product.variants
        )
        return StockChange(replace(product, variants=variants), before, after)

    if op.warehouse_id is not None:
        rows, before, after = _apply_to_rows(
            product.stock_by_warehouse, op, product.id
        )
        return StockChange(
            replace(product, stock_by_warehouse=rows), before, after
        )

    before = product.stock.quantity
    after = _apply(op, before, product.id)
    return StockChange(
        replace(product, stock=replace(product.stock, quantity=after)),
        before,
        after,
    )
