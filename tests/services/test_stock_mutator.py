"""
Tests for StockMutator retry semantics.

Uses an in-memory repository that can be told to report version
conflicts, so the retry loop is exercised without a database race.
"""

from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest

from catalog_kernel.domain.product import Product, StockLevel
from catalog_kernel.domain.stock import StockOperation, StockOperationType
from catalog_kernel.exceptions import (
    InsufficientStockError,
    OptimisticLockError,
    ProductNotFoundError,
)
from catalog_kernel.services.stock_mutator import StockMutator


class ConflictingRepository:
    """
    Holds one product; ``save`` fails with a version conflict ``conflicts``
    times, each time simulating a concurrent writer that took ``stolen``
    units first.
    """

    tenant_id = "tenant-a"

    def __init__(self, product, conflicts=0, stolen=Decimal("0")):
        self.product = product
        self.conflicts = conflicts
        self.stolen = stolen
        self.movements = []
        self.commits = 0
        self.rollbacks = 0
        self._pending = None

    def find_by_id(self, product_id):
        if product_id != self.product.id:
            return None
        return self.product

    def save(self, product):
        if self.conflicts > 0:
            self.conflicts -= 1
            level = self.product.stock
            self.product = replace(
                self.product,
                stock=replace(level, quantity=level.quantity - self.stolen),
                version=self.product.version + 1,
            )
            raise OptimisticLockError("Product", str(product.id))
        if product.version != self.product.version:
            raise OptimisticLockError("Product", str(product.id))
        self._pending = replace(product, version=product.version + 1)
        return self._pending

    def record_movement(self, movement):
        self.movements.append(movement)
        return movement

    def commit(self):
        self.commits += 1
        if self._pending is not None:
            self.product = self._pending
            self._pending = None

    def rollback(self):
        self.rollbacks += 1
        self._pending = None


def _product(quantity):
    return Product(
        tenant_id="tenant-a",
        sku="P",
        name="P",
        stock=StockLevel(quantity=Decimal(quantity)),
        version=1,
    )


def _outbound(amount):
    return StockOperation(StockOperationType.OUTBOUND, Decimal(amount))


class TestStockMutator:
    def test_success_on_first_attempt(self, deterministic_clock):
        repo = ConflictingRepository(_product("10"))
        mutator = StockMutator(repo, clock=deterministic_clock)

        result = mutator.mutate(repo.product.id, _outbound("3"))

        assert result.attempts == 1
        assert result.product.stock.quantity == Decimal("7")
        assert result.movement.quantity_before == Decimal("10")
        assert result.movement.quantity_after == Decimal("7")
        assert result.movement.occurred_at == deterministic_clock.now()
        assert repo.commits == 1

    def test_conflict_is_retried_against_fresh_state(self):
        repo = ConflictingRepository(_product("10"), conflicts=1, stolen=Decimal("4"))
        mutator = StockMutator(repo)

        result = mutator.mutate(repo.product.id, _outbound("3"))

        assert result.attempts == 2
        assert repo.product.stock.quantity == Decimal("3")
        assert repo.rollbacks == 1
        assert len(repo.movements) == 1
        assert repo.movements[0].quantity_before == Decimal("6")

    def test_retry_revalidates_non_negative(self):
        repo = ConflictingRepository(_product("5"), conflicts=1, stolen=Decimal("4"))
        mutator = StockMutator(repo)

        with pytest.raises(InsufficientStockError):
            mutator.mutate(repo.product.id, _outbound("3"))

        assert repo.product.stock.quantity == Decimal("1")
        assert repo.commits == 0

    def test_retries_exhausted(self, captured_logs):
        repo = ConflictingRepository(_product("100"), conflicts=10)
        mutator = StockMutator(repo, max_retries=2)

        with pytest.raises(OptimisticLockError):
            mutator.mutate(repo.product.id, _outbound("1"))

        assert repo.rollbacks == 3
        assert repo.movements == []
        messages = [r["message"] for r in captured_logs()]
        assert messages.count("stock_conflict_retry") == 2
        assert "stock_conflict_exhausted" in messages

    def test_zero_retries(self):
        repo = ConflictingRepository(_product("10"), conflicts=1)

        with pytest.raises(OptimisticLockError):
            StockMutator(repo, max_retries=0).mutate(repo.product.id, _outbound("1"))

    def test_unknown_product(self):
        repo = ConflictingRepository(_product("10"))

        with pytest.raises(ProductNotFoundError):
            StockMutator(repo).mutate(uuid4(), _outbound("1"))

        assert repo.rollbacks == 1
