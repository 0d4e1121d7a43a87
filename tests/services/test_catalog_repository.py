"""
Tests for SqlCatalogRepository.

These tests verify:
- Optimistic version check on save
- Tenant isolation of every lookup
- Unique constraints as the backstop for lost check-then-insert races,
  including the tenant-wide barcode registry
- Classification of constraint violations by constraint name
- Reconciliation of warehouse rows and variants on save
- Read retries on transient driver errors
"""

from dataclasses import replace
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from conftest import TENANT
from catalog_config.schema import CatalogSettings
from catalog_kernel.domain.product import (
    Product,
    ProductFilter,
    Sort,
    Variant,
    WarehouseStock,
)
from catalog_kernel.exceptions import (
    DuplicateBarcodeError,
    DuplicateSkuError,
    DuplicateVariantSkuError,
    OptimisticLockError,
    ProductNotFoundError,
    RepositoryUnavailableError,
)
from catalog_kernel.services.repository import (
    SqlCatalogRepository,
    SqlRepositoryFactory,
    violated_constraint,
)


def _new(sku="A", tenant=TENANT, **kwargs):
    return Product(tenant_id=tenant, sku=sku, name=sku, **kwargs)


def _insert(repository, product):
    saved = repository.insert(product)
    repository.commit()
    return saved


class TestOptimisticLocking:
    def test_insert_assigns_version_one(self, repository):
        saved = _insert(repository, _new())

        assert saved.version == 1
        assert repository.find_by_id(saved.id).version == 1

    def test_save_increments_version(self, repository):
        saved = _insert(repository, _new())

        updated = repository.save(replace(saved, name="Renamed"))
        repository.commit()

        assert updated.version == 2
        assert repository.find_by_id(saved.id).name == "Renamed"

    def test_stale_version_rejected(self, repository):
        saved = _insert(repository, _new())
        repository.save(replace(saved, name="First"))
        repository.commit()

        with pytest.raises(OptimisticLockError) as exc_info:
            repository.save(replace(saved, name="Second"))

        assert exc_info.value.code == "OPTIMISTIC_LOCK_CONFLICT"
        repository.rollback()
        assert repository.find_by_id(saved.id).name == "First"

    def test_child_only_change_bumps_version(self, repository):
        saved = _insert(repository, _new())

        updated = repository.save(
            replace(saved, stock_by_warehouse=(WarehouseStock("A", Decimal("1")),))
        )

        assert updated.version == 2

    def test_save_unknown_product(self, repository):
        with pytest.raises(ProductNotFoundError):
            repository.save(replace(_new(), version=1))


class TestTenantIsolation:
    def test_lookups_scoped_to_tenant(self, repository, other_repository):
        saved = _insert(repository, _new("A", barcode="111"))

        assert other_repository.find_by_id(saved.id) is None
        assert other_repository.find_by_sku("A") is None
        assert other_repository.find_by_barcode("111") is None
        items, total = other_repository.query(ProductFilter(), Sort(), 1, 10)
        assert (list(items), total) == ([], 0)

    def test_same_sku_and_barcode_in_other_tenant(self, repository, other_repository):
        _insert(repository, _new("A", barcode="111"))

        saved = _insert(other_repository, _new("A", tenant="tenant-b", barcode="111"))

        assert other_repository.find_by_sku("a").id == saved.id

    def test_cannot_save_other_tenants_product(self, repository, other_repository):
        saved = _insert(repository, _new())

        with pytest.raises(ProductNotFoundError):
            other_repository.save(replace(saved, name="Hijack"))


class TestUniqueBackstop:
    def test_duplicate_sku_on_insert(self, repository):
        _insert(repository, _new("A"))

        with pytest.raises(DuplicateSkuError):
            repository.insert(_new("A"))

    def test_duplicate_product_barcode_on_insert(self, repository):
        _insert(repository, _new("A", barcode="111"))

        with pytest.raises(DuplicateBarcodeError):
            repository.insert(_new("B", barcode="111"))

    def test_duplicate_variant_barcode_across_products(self, repository):
        _insert(repository, _new("A", variants=(Variant(sku="A-1", barcode="222"),)))

        with pytest.raises(DuplicateBarcodeError):
            repository.insert(_new("B", variants=(Variant(sku="B-1", barcode="222"),)))

    def test_variant_barcode_taken_by_product_barcode(self, repository):
        _insert(repository, _new("A", barcode="111"))

        with pytest.raises(DuplicateBarcodeError) as exc_info:
            repository.insert(_new("B", variants=(Variant(sku="B-RED", barcode="111"),)))

        assert exc_info.value.barcode == "111"
        assert repository.find_by_sku("B") is None

    def test_product_barcode_taken_by_variant_barcode(self, repository):
        _insert(repository, _new("A", variants=(Variant(sku="A-RED", barcode="333"),)))

        with pytest.raises(DuplicateBarcodeError) as exc_info:
            repository.insert(_new("B", barcode="333"))

        assert exc_info.value.barcode == "333"

    def test_save_adding_taken_barcode_to_variant(self, repository):
        _insert(repository, _new("A", barcode="444"))
        other = _insert(repository, _new("B", barcode="999", variants=(Variant(sku="B-RED"),)))
        red = replace(other.variants[0], barcode="444")

        with pytest.raises(DuplicateBarcodeError) as exc_info:
            repository.save(replace(other, variants=(red,)))

        assert exc_info.value.barcode == "444"
        assert repository.find_by_barcode("444").sku == "A"

    def test_released_barcode_can_be_reused(self, repository):
        first = _insert(repository, _new("A", barcode="555"))
        repository.save(replace(first, barcode=None))
        repository.commit()

        second = _insert(repository, _new("B", variants=(Variant(sku="B-RED", barcode="555"),)))

        assert repository.find_by_barcode("555").id == second.id

    def test_barcode_moves_between_own_product_and_variant(self, repository):
        saved = _insert(repository, _new("A", barcode="666", variants=(Variant(sku="A-RED"),)))
        red = replace(saved.variants[0], barcode="666")

        repository.save(replace(saved, barcode=None, variants=(red,)))
        repository.commit()

        found = repository.find_by_barcode("666")
        assert found.barcode is None
        assert found.variants[0].barcode == "666"

    def test_sku_mentioning_barcode_is_a_sku_conflict(self, repository):
        _insert(repository, _new("BARCODE-1"))

        with pytest.raises(DuplicateSkuError):
            repository.insert(_new("BARCODE-1"))

    def test_duplicate_variant_sku_within_parent(self, repository):
        with pytest.raises(DuplicateVariantSkuError):
            repository.insert(
                _new("A", variants=(Variant(sku="A-1"), Variant(sku="A-1")))
            )

    def test_session_usable_after_conflict(self, repository):
        _insert(repository, _new("A"))
        with pytest.raises(DuplicateSkuError):
            repository.insert(_new("A"))

        saved = _insert(repository, _new("B"))

        assert repository.find_by_sku("B").id == saved.id


class _DriverError(Exception):
    """Driver exception carrying PostgreSQL-style diagnostics."""

    def __init__(self, message, constraint_name=None):
        super().__init__(message)
        self.diag = SimpleNamespace(constraint_name=constraint_name)


class TestConstraintClassification:
    def test_postgres_constraint_name_wins_over_message(self):
        orig = _DriverError(
            'duplicate key value violates unique constraint "uq_product_tenant_sku"\n'
            "DETAIL:  Key (tenant_id, sku)=(t, BARCODE-9) already exists.",
            constraint_name="uq_product_tenant_sku",
        )

        assert violated_constraint(IntegrityError("INSERT", {}, orig)) == "uq_product_tenant_sku"

    def test_sqlite_column_list_maps_to_constraint(self):
        orig = Exception(
            "UNIQUE constraint failed: product_barcodes.tenant_id, product_barcodes.barcode"
        )

        assert violated_constraint(IntegrityError("INSERT", {}, orig)) == "uq_barcode_tenant_barcode"

    def test_unknown_constraint(self):
        orig = Exception("UNIQUE constraint failed: product_variants.id")

        assert violated_constraint(IntegrityError("INSERT", {}, orig)) is None


class TestChildReconciliation:
    def test_warehouse_rows_added_updated_removed(self, repository):
        saved = _insert(
            repository,
            _new(
                stock_by_warehouse=(
                    WarehouseStock("A", Decimal("1")),
                    WarehouseStock("B", Decimal("2")),
                )
            ),
        )

        repository.save(
            replace(
                saved,
                stock_by_warehouse=(
                    WarehouseStock("B", Decimal("5")),
                    WarehouseStock("C", Decimal("3")),
                ),
            )
        )
        repository.commit()

        loaded = repository.find_by_id(saved.id)
        assert [(w.warehouse_id, w.quantity) for w in loaded.stock_by_warehouse] == [
            ("B", Decimal("5")),
            ("C", Decimal("3")),
        ]

    def test_variants_kept_by_id(self, repository):
        red = Variant(sku="A-RED", stock_by_warehouse=(WarehouseStock("W", Decimal("2")),))
        blue = Variant(sku="A-BLU")
        saved = _insert(repository, _new(variants=(red, blue)))

        green = Variant(sku="A-GRE")
        repository.save(
            replace(saved, variants=(green, replace(red, sku="A-ROJ", barcode="9")))
        )
        repository.commit()

        loaded = repository.find_by_id(saved.id)
        assert [v.sku for v in loaded.variants] == ["A-GRE", "A-ROJ"]
        kept = loaded.find_variant(red.id)
        assert kept.barcode == "9"
        assert kept.stock_by_warehouse == (WarehouseStock("W", Decimal("2")),)
        assert loaded.find_variant(blue.id) is None

    def test_variant_sku_reused_after_removal(self, repository):
        saved = _insert(repository, _new(variants=(Variant(sku="A-1"),)))

        updated = repository.save(replace(saved, variants=(Variant(sku="A-1"),)))
        repository.commit()

        assert len(repository.find_by_id(saved.id).variants) == 1
        assert updated.version == 2

    def test_barcode_lookup_through_variant(self, repository):
        saved = _insert(repository, _new(variants=(Variant(sku="A-1", barcode="777"),)))

        assert repository.find_by_barcode("777").id == saved.id


class TestQuery:
    def test_inactive_excluded_by_default(self, repository):
        _insert(repository, _new("A"))
        _insert(repository, _new("B", active=False))

        items, total = repository.query(ProductFilter(), Sort(), 1, 10)

        assert [p.sku for p in items] == ["A"]
        assert total == 1


class _FlakySession:
    """Session stand-in whose first ``failures`` executes raise OperationalError."""

    def __init__(self, session, failures):
        self._session = session
        self.failures = failures
        self.rollbacks = 0

    def execute(self, *args, **kwargs):
        if self.failures > 0:
            self.failures -= 1
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))
        return self._session.execute(*args, **kwargs)

    def rollback(self):
        self.rollbacks += 1
        self._session.rollback()


class TestReadRetries:
    def test_transient_failure_is_retried(self, repository, session):
        saved = _insert(repository, _new())
        flaky = _FlakySession(session, failures=1)
        retrying = SqlCatalogRepository(flaky, TENANT, read_retries=1)

        assert retrying.find_by_id(saved.id).id == saved.id
        assert flaky.rollbacks == 1

    def test_exhausted_retries_raise(self, session):
        flaky = _FlakySession(session, failures=3)
        retrying = SqlCatalogRepository(flaky, TENANT, read_retries=1)

        with pytest.raises(RepositoryUnavailableError) as exc_info:
            retrying.find_by_sku("A")

        assert exc_info.value.operation == "find_by_sku"
        assert flaky.failures == 1

    def test_no_retry_by_default(self, session):
        flaky = _FlakySession(session, failures=1)

        with pytest.raises(RepositoryUnavailableError):
            SqlCatalogRepository(flaky, TENANT).find_by_id(uuid4())


class TestRepositoryFactory:
    def test_binds_tenant_and_fresh_session(self, session_factory):
        factory = SqlRepositoryFactory(session_factory, read_retries=2)

        first = factory("tenant-x")
        second = factory("tenant-x")
        try:
            assert first.tenant_id == "tenant-x"
            assert first.session is not second.session
        finally:
            first.close()
            second.close()

    def test_from_settings_uses_read_retries(self, session_factory):
        factory = SqlRepositoryFactory.from_settings(
            session_factory, CatalogSettings(repository_read_retries=3)
        )

        repository = factory(TENANT)
        try:
            assert repository._read_retries == 3
        finally:
            repository.close()
