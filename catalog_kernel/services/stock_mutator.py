"""
StockMutator -- serialized read-modify-write of product stock.

Responsibility:
    Applies one StockOperation to a product or variant: reads the current
    record, applies the pure ``apply_stock_operation``, saves under the
    optimistic version check, records a StockMovement and commits.  On a
    version conflict the whole cycle is repeated against freshly read state,
    so the non-negative invariant is re-validated on every attempt.

Architecture position:
    Kernel > Services -- imperative shell.  Called by CatalogService.update_stock.
    Depends on the CatalogRepository port and a Clock.

Invariants enforced:
    - Quantities never go negative, including under concurrent writers:
      an outbound is only committed against the version it was validated on.
    - Exactly one StockMovement per committed operation, in the same
      transaction as the product write.

Failure modes:
    - ProductNotFoundError / VariantNotFoundError: unknown target.
    - InsufficientStockError / InvalidStockAmountError: invariant rejected;
      nothing is written.
    - OptimisticLockError: still conflicting after ``max_retries`` retries.
    - RepositoryUnavailableError: propagated, not retried.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from catalog_kernel.domain.clock import Clock, SystemClock
from catalog_kernel.domain.ports import CatalogRepository
from catalog_kernel.domain.product import Product
from catalog_kernel.domain.stock import (
    StockMovement,
    StockOperation,
    apply_stock_operation,
)
from catalog_kernel.exceptions import OptimisticLockError, ProductNotFoundError
from catalog_kernel.logging_config import get_logger

logger = get_logger("services.stock_mutator")


@dataclass(frozen=True)
class StockMutationResult:
    product: Product
    movement: StockMovement
    attempts: int


class StockMutator:
    """
    Retrying stock writer for one tenant.

    Transaction boundary: commits on success, rolls back on any failure.
    """

    def __init__(
        self,
        repository: CatalogRepository,
        clock: Clock | None = None,
        max_retries: int = 3,
    ):
        self._repository = repository
        self._clock = clock or SystemClock()
        self._max_retries = max_retries

    def mutate(self, product_id: UUID, op: StockOperation) -> StockMutationResult:
        attempt = 0
        while True:
            attempt += 1
            try:
                product = self._repository.find_by_id(product_id)
                if product is None:
                    raise ProductNotFoundError(str(product_id))

                change = apply_stock_operation(product, op)
                saved = self._repository.save(change.product)
                movement = self._repository.record_movement(
                    StockMovement(
                        tenant_id=self._repository.tenant_id,
                        product_id=product_id,
                        variant_id=op.variant_id,
                        warehouse_id=op.warehouse_id,
                        operation=op.type,
                        amount=op.amount,
                        quantity_before=change.quantity_before,
                        quantity_after=change.quantity_after,
                        reason=op.reason,
                        occurred_at=self._clock.now(),
                    )
                )
                self._repository.commit()
            except OptimisticLockError:
                self._repository.rollback()
                if attempt > self._max_retries:
                    logger.error(
                        "stock_conflict_exhausted",
                        extra={"product_id": str(product_id), "attempts": attempt},
                    )
                    raise
                logger.warning(
                    "stock_conflict_retry",
                    extra={"product_id": str(product_id), "attempt": attempt},
                )
                continue
            except Exception:
                self._repository.rollback()
                raise

            logger.info(
                "stock_mutated",
                extra={
                    "product_id": str(product_id),
                    "variant_id": str(op.variant_id) if op.variant_id else None,
                    "warehouse_id": op.warehouse_id,
                    "operation": op.type.value,
                    "amount": str(op.amount),
                    "quantity_before": str(change.quantity_before),
                    "quantity_after": str(change.quantity_after),
                    "version": saved.version,
                },
            )
            return StockMutationResult(saved, movement, attempt)
