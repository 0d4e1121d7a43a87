"""
Catalog Service (``catalog_kernel.services.catalog_service``).

Responsibility
--------------
Orchestrates the catalog use cases of one tenant: create, update, variant
generation, soft delete, duplicate and stock update, plus the lookups and
paged search the presentation layer needs.  Validation against the
repository (SKU and barcode uniqueness), the license quota and the family
directory happens here; persistence is delegated to the CatalogRepository
and stock writes to the StockMutator.

Architecture
------------
Layer: **Kernel > Services** -- imperative shell.

1. Pure domain functions (``combine``, ``variant_sku``,
   ``allocate_duplicate_sku``, ``aggregate_stock``) compute new records.
2. The tenant-bound ``CatalogRepository`` stages and commits them.
3. Collaborators (family counter, license quota) are notified only after
   the product write is committed.

Invariants
----------
- SKUs are stored uppercase and are unique per tenant, inactive products
  included.  The repository unique constraint is the backstop for
  concurrent creates.
- A barcode is unique per tenant across products and all their variants.
- A family is validated (exists and active) when it is assigned.
- Variant SKUs are unique within their parent.
- Soft delete is idempotent: a product that is already inactive is
  returned unchanged and the family counter is not decremented again.
- Each public write method owns its transaction boundary: commit on
  success, rollback on any failure.

Failure Modes
-------------
- ``QuotaExceededError``, ``DuplicateSkuError``, ``DuplicateBarcodeError``,
  ``DuplicateVariantSkuError``, ``InvalidFamilyError``,
  ``ReferentialIntegrityViolationError``, ``CatalogValidationError``,
  ``ProductNotFoundError``: terminal for the request, nothing written.
- Stock failures: see ``StockMutator``.
- Counter notifications run after commit.  A failing sink is logged with
  the product id (for reconciliation) and surfaces as
  ``CounterUpdateError``; the product write stands.  ``bulk_soft_delete``
  records it as a failure of that id and carries on.

Usage::

    service = CatalogService.for_tenant(
        factory, "acme",
        family_directory=families, family_counter=families,
        quota_checker=licenses, integrity_checker=orders,
    )
    product = service.create_product(sku="abc", name="Widget")
    service.update_stock(product.id, StockOperation("inbound", Decimal("5")))
"""

from __future__ import annotations

from collections import Counter
from contextlib import contextmanager
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Iterator, Mapping, Sequence
from uuid import UUID, uuid4

from catalog_config.schema import CatalogSettings
from catalog_kernel.domain.clock import Clock, SystemClock
from catalog_kernel.domain.combinator import combine
from catalog_kernel.domain.identifiers import allocate_duplicate_sku, variant_sku
from catalog_kernel.domain.ports import (
    CatalogRepository,
    FamilyCounterSink,
    FamilyDirectory,
    LicenseQuotaChecker,
    ReferentialIntegrityChecker,
    RepositoryFactory,
)
from catalog_kernel.domain.product import (
    ZERO,
    Attribute,
    AttributeValue,
    BulkDeleteResult,
    Product,
    ProductFilter,
    ProductKind,
    ProductPage,
    ProductSummary,
    Sort,
    StockLevel,
    Variant,
    WarehouseStock,
)
from catalog_kernel.domain.stock import (
    StockOperation,
    VariantStockSummary,
    aggregate_stock,
    variant_stock,
)
from catalog_kernel.exceptions import (
    CatalogKernelError,
    CatalogValidationError,
    CounterUpdateError,
    DuplicateBarcodeError,
    DuplicateSkuError,
    DuplicateVariantSkuError,
    InvalidFamilyError,
    ProductNotFoundError,
    QuotaExceededError,
    ReferentialIntegrityViolationError,
)
from catalog_kernel.logging_config import LogContext, get_logger
from catalog_kernel.services.stock_mutator import StockMutator

logger = get_logger("services.catalog_service")

UPDATABLE_FIELDS = frozenset({
    "sku",
    "barcode",
    "family_id",
    "name",
    "kind",
    "base_price",
    "stock",
    "stock_by_warehouse",
    "attributes",
    "variants",
    "images",
    "main_image",
})


class CatalogService:
    """
    Catalog use cases for one tenant.

    Contract:
        All collaborators are injected; the service holds no global state.
        The tenant is the one the repository is bound to.

    Non-goals:
        - Does NOT reactivate soft-deleted products.
        - Does NOT reconcile family or quota counters (eventually consistent).
    """

    def __init__(
        self,
        repository: CatalogRepository,
        family_directory: FamilyDirectory,
        family_counter: FamilyCounterSink,
        quota_checker: LicenseQuotaChecker,
        integrity_checker: ReferentialIntegrityChecker,
        settings: CatalogSettings | None = None,
        clock: Clock | None = None,
    ):
        self._repository = repository
        self._families = family_directory
        self._family_counter = family_counter
        self._quota = quota_checker
        self._integrity = integrity_checker
        self._settings = settings or CatalogSettings()
        self._clock = clock or SystemClock()
        self._stock_mutator = StockMutator(
            repository,
            clock=self._clock,
            max_retries=self._settings.stock_mutation_max_retries,
        )

    @classmethod
    def for_tenant(
        cls,
        factory: RepositoryFactory,
        tenant_id: str,
        **kwargs: Any,
    ) -> "CatalogService":
        """Resolve the tenant's repository once and build a service around it."""
        return cls(factory(tenant_id), **kwargs)

    @property
    def tenant_id(self) -> str:
        return self._repository.tenant_id

    @contextmanager
    def _scope(self, product_id: UUID | None = None) -> Iterator[None]:
        with LogContext.bind(tenant_id=self.tenant_id, product_id=product_id):
            yield

    # =========================================================================
    # Reads
    # =========================================================================

    def get_product(self, product_id: UUID) -> Product:
        """Raises ProductNotFoundError when the id is unknown in this tenant."""
        return self._require(product_id)

    def get_by_sku(self, sku: str) -> Product | None:
        return self._repository.find_by_sku(_normalize_sku(sku))

    def get_by_barcode(self, barcode: str) -> Product | None:
        return self._repository.find_by_barcode(barcode)

    def get_stock(self, product_id: UUID) -> StockLevel:
        """Aggregated stock level (variants, then warehouses, then legacy stock)."""
        return aggregate_stock(self._require(product_id))

    def get_variant_stock(self, product_id: UUID) -> tuple[VariantStockSummary, ...]:
        return variant_stock(self._require(product_id))

    def search(
        self,
        filter: ProductFilter | None = None,
        sort: Sort | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> ProductPage:
        """
        One page of product summaries with aggregated stock.

        ``page_size`` defaults to ``default_page_size`` and is capped at
        ``max_page_size``.
        """
        if page < 1:
            raise CatalogValidationError("page", "must be >= 1")
        size = page_size or self._settings.default_page_size
        if size < 1:
            raise CatalogValidationError("page_size", "must be >= 1")
        size = min(size, self._settings.max_page_size)

        filter = _coerce_filter(filter or ProductFilter())
        items, total = self._repository.query(filter, sort or Sort(), page, size)
        return ProductPage(
            items=tuple(_summarize(p) for p in items),
            total=total,
            page=page,
            page_size=size,
        )

    # =========================================================================
    # Create
    # =========================================================================

    def create_product(
        self,
        sku: str,
        name: str,
        *,
        barcode: str | None = None,
        family_id: str | None = None,
        kind: ProductKind | str = ProductKind.SIMPLE,
        base_price: Decimal | int | str = ZERO,
        stock: StockLevel | Mapping[str, Any] | None = None,
        stock_by_warehouse: Iterable[WarehouseStock | Mapping[str, Any]] = (),
        images: Iterable[str] = (),
        main_image: str | None = None,
    ) -> Product:
        """
        Create a product.

        Order of checks: quota, SKU uniqueness, barcode uniqueness, family.
        On success the family counter and the quota usage are each
        incremented by one.

        Raises:
            QuotaExceededError, DuplicateSkuError, DuplicateBarcodeError,
            InvalidFamilyError, CatalogValidationError.
        """
        with self._scope():
            self._check_quota()

            normalized = _normalize_sku(sku)
            if self._repository.find_by_sku(normalized) is not None:
                raise DuplicateSkuError(normalized)

            barcode = barcode or None
            if barcode is not None:
                self._check_barcode_free(barcode, exclude=None)

            if family_id is not None:
                self._validate_family(family_id)

            product = Product(
                tenant_id=self.tenant_id,
                sku=normalized,
                name=_require_text("name", name),
                barcode=barcode,
                family_id=family_id,
                kind=_coerce_kind(kind),
                base_price=_decimal("base_price", base_price),
                stock=_coerce_stock_level(stock),
                stock_by_warehouse=_coerce_rows("stock_by_warehouse", stock_by_warehouse),
                images=tuple(images),
                main_image=main_image,
            )
            _check_non_negative(product)

            saved = self._write(lambda: self._repository.insert(product))

            logger.info(
                "product_created",
                extra={"product_id": str(saved.id), "sku": saved.sku},
            )
            if saved.family_id is not None:
                self._notify_family(saved.family_id, 1, saved.id)
            self._notify_quota(1, saved.id)
            return saved

    # =========================================================================
    # Variants
    # =========================================================================

    def generate_variants(
        self,
        product_id: UUID,
        attributes: Sequence[Attribute | Mapping[str, Any]],
    ) -> Product:
        """
        Replace the product's attributes and variants wholesale.

        Every active value combination becomes a variant with zero stock and
        zero price delta.  Prior variants, and their stock, are discarded.
        The product becomes a variant-parent.

        Raises:
            ProductNotFoundError: unknown product.
            DuplicateVariantSkuError: two combinations derive the same SKU
                (values sharing their leading characters).
        """
        with self._scope(product_id):
            product = self._require(product_id)
            attrs = tuple(_coerce_attribute(a) for a in attributes)

            prefix = self._settings.variant_prefix_length
            variants = tuple(
                Variant(sku=variant_sku(product.sku, combo, prefix), combination=combo)
                for combo in combine(attrs)
            )
            _check_variant_skus(product.id, variants)

            updated = replace(
                product,
                kind=ProductKind.VARIANT_PARENT,
                attributes=attrs,
                variants=variants,
            )
            saved = self._write(lambda: self._repository.save(updated))

            logger.info(
                "variants_generated",
                extra={
                    "product_id": str(product_id),
                    "variant_count": len(variants),
                    "discarded_count": len(product.variants),
                },
            )
            return saved

    # =========================================================================
    # Update
    # =========================================================================

    def update_product(self, product_id: UUID, patch: Mapping[str, Any]) -> Product:
        """
        Shallow-merge ``patch`` into the product and persist it.

        Only UPDATABLE_FIELDS are accepted.  A changed SKU or barcode is
        re-checked for uniqueness excluding the product itself.  A changed
        family is validated and, for an active product, the old family is
        decremented and the new one incremented.  A ``variants`` patch may
        only carry variants the product already has.

        Raises:
            ProductNotFoundError, CatalogValidationError, DuplicateSkuError,
            DuplicateBarcodeError, DuplicateVariantSkuError,
            InvalidFamilyError, OptimisticLockError.
        """
        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise CatalogValidationError(
                sorted(unknown)[0], "field cannot be updated"
            )

        with self._scope(product_id):
            product = self._require(product_id)
            updated = replace(product, **_coerce_patch(patch))
            _check_non_negative(updated)
            _check_variant_ids(product, updated.variants)

            if updated.sku != product.sku:
                owner = self._repository.find_by_sku(updated.sku)
                if owner is not None and owner.id != product.id:
                    raise DuplicateSkuError(updated.sku)

            _check_own_barcodes(updated)
            for code in sorted(updated.barcodes() - product.barcodes()):
                self._check_barcode_free(code, exclude=product.id)

            _check_variant_skus(product.id, updated.variants)

            family_changed = updated.family_id != product.family_id
            if family_changed and updated.family_id is not None:
                self._validate_family(updated.family_id)

            saved = self._write(lambda: self._repository.save(updated))

            logger.info(
                "product_updated",
                extra={
                    "product_id": str(product_id),
                    "fields": sorted(patch),
                    "version": saved.version,
                },
            )
            if family_changed and saved.active:
                if product.family_id is not None:
                    self._notify_family(product.family_id, -1, saved.id)
                if saved.family_id is not None:
                    self._notify_family(saved.family_id, 1, saved.id)
            return saved

    # =========================================================================
    # Soft delete
    # =========================================================================

    def soft_delete(self, product_id: UUID, force: bool = False) -> Product:
        """
        Mark the product inactive.

        Unless ``force``, the referential integrity checker must allow it.
        Calling this on an inactive product returns it unchanged.

        Raises:
            ProductNotFoundError, ReferentialIntegrityViolationError,
            OptimisticLockError.
        """
        product, _ = self._soft_delete(product_id, force)
        return product

    def bulk_soft_delete(
        self, product_ids: Iterable[UUID], force: bool = False
    ) -> BulkDeleteResult:
        """
        Soft-delete each product, continuing past catalog failures.

        Each failure is reported with its error code; the remaining ids
        are still processed.  A family counter that fails after a product
        was deactivated counts the product as deleted and reports
        COUNTER_UPDATE_FAILED for it.
        """
        deleted = 0
        already_inactive = 0
        failures: list[tuple[UUID, str]] = []
        for product_id in product_ids:
            try:
                _, changed = self._soft_delete(product_id, force)
            except CatalogKernelError as exc:
                failures.append((product_id, exc.code))
                logger.warning(
                    "bulk_delete_item_failed",
                    extra={"product_id": str(product_id), "error_code": exc.code},
                )
                if isinstance(exc, CounterUpdateError):
                    # The soft delete itself committed.
                    deleted += 1
                continue
            if changed:
                deleted += 1
            else:
                already_inactive += 1

        result = BulkDeleteResult(
            deleted=deleted,
            already_inactive=already_inactive,
            failures=tuple(failures),
        )
        logger.info(
            "bulk_delete_completed",
            extra={
                "tenant_id": self.tenant_id,
                "deleted": result.deleted,
                "already_inactive": result.already_inactive,
                "failed": result.failed,
            },
        )
        return result

    def _soft_delete(self, product_id: UUID, force: bool) -> tuple[Product, bool]:
        with self._scope(product_id):
            product = self._require(product_id)
            if not product.active:
                logger.info(
                    "product_already_inactive",
                    extra={"product_id": str(product_id)},
                )
                return product, False

            if not force:
                check = self._integrity.check_product_deletable(
                    self.tenant_id, product.id
                )
                if not check.can_delete:
                    raise ReferentialIntegrityViolationError(
                        str(product.id), check.related_records
                    )

            saved = self._write(
                lambda: self._repository.save(replace(product, active=False))
            )
            logger.info(
                "product_soft_deleted",
                extra={"product_id": str(product_id), "forced": force},
            )
            if saved.family_id is not None:
                self._notify_family(saved.family_id, -1, saved.id)
            return saved, True

    # =========================================================================
    # Duplicate
    # =========================================================================

    def duplicate_product(self, product_id: UUID) -> Product:
        """
        Copy a product under a freshly allocated SKU.

        The copy is active, named with ``copy_name_suffix``, has no barcode
        and zero quantities everywhere (warehouse minimum/maximum are kept).
        Variants get new ids, the copy marker appended to their SKU and no
        barcode.

        Raises:
            ProductNotFoundError, QuotaExceededError, DuplicateSkuError.
        """
        with self._scope(product_id):
            source = self._require(product_id)
            self._check_quota()

            marker = self._settings.duplicate_sku_marker
            new_sku = allocate_duplicate_sku(
                source.sku,
                lambda candidate: self._repository.find_by_sku(candidate) is not None,
                marker,
            )

            copy = replace(
                source,
                id=uuid4(),
                sku=new_sku,
                name=f"{source.name}{self._settings.copy_name_suffix}",
                barcode=None,
                active=True,
                stock=replace(source.stock, quantity=ZERO),
                stock_by_warehouse=_zeroed(source.stock_by_warehouse),
                variants=tuple(
                    replace(
                        v,
                        id=uuid4(),
                        sku=f"{v.sku}-{marker}",
                        barcode=None,
                        quantity=ZERO,
                        stock_by_warehouse=_zeroed(v.stock_by_warehouse),
                    )
                    for v in source.variants
                ),
                version=0,
                created_at=None,
                updated_at=None,
            )
            saved = self._write(lambda: self._repository.insert(copy))

            logger.info(
                "product_duplicated",
                extra={
                    "product_id": str(saved.id),
                    "source_product_id": str(source.id),
                    "sku": saved.sku,
                },
            )
            if saved.family_id is not None:
                self._notify_family(saved.family_id, 1, saved.id)
            self._notify_quota(1, saved.id)
            return saved

    # =========================================================================
    # Stock
    # =========================================================================

    def update_stock(self, product_id: UUID, operation: StockOperation) -> Product:
        """
        Apply one stock operation (see StockMutator).

        Raises:
            ProductNotFoundError, VariantNotFoundError, InsufficientStockError,
            InvalidStockAmountError, OptimisticLockError.
        """
        with self._scope(product_id):
            return self._stock_mutator.mutate(product_id, operation).product

    # =========================================================================
    # Internals
    # =========================================================================

    def _require(self, product_id: UUID) -> Product:
        product = self._repository.find_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def _write(self, stage) -> Product:
        """Run one staged write and commit it, rolling back on failure."""
        try:
            saved = stage()
            self._repository.commit()
        except Exception:
            self._repository.rollback()
            raise
        return saved

    def _check_quota(self) -> None:
        remaining = self._quota.remaining_product_quota(self.tenant_id)
        if remaining < 0:
            return
        if remaining == 0:
            logger.warning("product_quota_exhausted", extra={"tenant_id": self.tenant_id})
            raise QuotaExceededError(self.tenant_id)
        if remaining <= self._settings.quota_warning_threshold:
            logger.warning(
                "product_quota_low",
                extra={"tenant_id": self.tenant_id, "remaining": remaining},
            )

    def _check_barcode_free(self, barcode: str, exclude: UUID | None) -> None:
        owner = self._repository.find_by_barcode(barcode)
        if owner is not None and owner.id != exclude:
            raise DuplicateBarcodeError(barcode)

    def _validate_family(self, family_id: str) -> None:
        family = self._families.get_family(self.tenant_id, family_id)
        if family is None:
            raise InvalidFamilyError(family_id, "family does not exist")
        if not family.active:
            raise InvalidFamilyError(family_id, "family is inactive")

    def _notify_family(self, family_id: str, delta: int, product_id: UUID) -> None:
        try:
            self._family_counter.increment_product_count(family_id, delta)
        except Exception as exc:
            logger.error(
                "family_counter_update_failed",
                extra={
                    "family_id": family_id,
                    "delta": delta,
                    "product_id": str(product_id),
                },
                exc_info=True,
            )
            raise CounterUpdateError("family", str(product_id), str(exc)) from exc

    def _notify_quota(self, delta: int, product_id: UUID) -> None:
        try:
            self._quota.increment_usage(self.tenant_id, delta)
        except Exception as exc:
            logger.error(
                "quota_usage_update_failed",
                extra={"delta": delta, "product_id": str(product_id)},
                exc_info=True,
            )
            raise CounterUpdateError("quota", str(product_id), str(exc)) from exc


# =============================================================================
# Helpers
# =============================================================================


def _normalize_sku(sku: str) -> str:
    return _require_text("sku", sku).upper()


def _require_text(field: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise CatalogValidationError(field, "must be a non-empty string")
    return value.strip()


def _decimal(field: str, value: Any) -> Decimal:
    if isinstance(value, Decimal):
        number = value
    else:
        try:
            number = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise CatalogValidationError(field, f"not a number: {value!r}") from exc
    if not number.is_finite():
        raise CatalogValidationError(field, f"not a finite number: {value!r}")
    return number


def _coerce_filter(filter: ProductFilter) -> ProductFilter:
    price_min = filter.price_min
    price_max = filter.price_max
    if price_min is not None:
        price_min = _decimal("price_min", price_min)
    if price_max is not None:
        price_max = _decimal("price_max", price_max)
    if price_min is not None and price_max is not None and price_min > price_max:
        raise CatalogValidationError("price_min", "must not exceed price_max")
    return replace(filter, price_min=price_min, price_max=price_max)


def _coerce_kind(value: Any) -> ProductKind:
    try:
        return ProductKind(value)
    except ValueError as exc:
        raise CatalogValidationError("kind", f"unknown kind {value!r}") from exc


def _coerce_stock_level(value: Any) -> StockLevel:
    if value is None:
        return StockLevel()
    if isinstance(value, StockLevel):
        return value
    return StockLevel(
        quantity=_decimal("stock.quantity", value.get("quantity", ZERO)),
        minimum=_decimal("stock.minimum", value.get("minimum", ZERO)),
        maximum=_decimal("stock.maximum", value.get("maximum", ZERO)),
    )


def _coerce_rows(field: str, rows: Iterable[Any]) -> tuple[WarehouseStock, ...]:
    result = []
    for row in rows or ():
        if not isinstance(row, WarehouseStock):
            row = WarehouseStock(
                warehouse_id=_require_text(f"{field}.warehouse_id", row.get("warehouse_id")),
                quantity=_decimal(f"{field}.quantity", row.get("quantity", ZERO)),
                minimum=_decimal(f"{field}.minimum", row.get("minimum", ZERO)),
                maximum=_decimal(f"{field}.maximum", row.get("maximum", ZERO)),
            )
        result.append(row)
    seen = Counter(r.warehouse_id for r in result)
    repeated = [w for w, n in seen.items() if n > 1]
    if repeated:
        raise CatalogValidationError(field, f"warehouse {repeated[0]} listed twice")
    return tuple(result)


def _coerce_attribute(value: Any) -> Attribute:
    if isinstance(value, Attribute):
        return value
    values = []
    for item in value.get("values", ()):
        if isinstance(item, AttributeValue):
            values.append(item)
        elif isinstance(item, str):
            values.append(AttributeValue(value=item))
        else:
            values.append(
                AttributeValue(value=item["value"], active=bool(item.get("active", True)))
            )
    return Attribute(name=_require_text("attributes.name", value.get("name")), values=tuple(values))


def _coerce_variant(value: Any) -> Variant:
    if isinstance(value, Variant):
        return value
    data = dict(value)
    variant_id = data.get("id")
    return Variant(
        id=UUID(str(variant_id)) if variant_id else uuid4(),
        sku=_normalize_sku(data.get("sku")),
        barcode=data.get("barcode") or None,
        combination=dict(data.get("combination") or {}),
        stock_by_warehouse=_coerce_rows(
            "variants.stock_by_warehouse", data.get("stock_by_warehouse", ())
        ),
        price_delta=_decimal("variants.price_delta", data.get("price_delta", ZERO)),
        active=bool(data.get("active", True)),
        quantity=_decimal("variants.quantity", data.get("quantity", ZERO)),
    )


def _coerce_patch(patch: Mapping[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    for key, value in patch.items():
        if key == "sku":
            changes[key] = _normalize_sku(value)
        elif key == "name":
            changes[key] = _require_text("name", value)
        elif key == "barcode":
            changes[key] = value or None
        elif key == "kind":
            changes[key] = _coerce_kind(value)
        elif key == "base_price":
            changes[key] = _decimal("base_price", value)
        elif key == "stock":
            changes[key] = _coerce_stock_level(value)
        elif key == "stock_by_warehouse":
            changes[key] = _coerce_rows(key, value)
        elif key == "attributes":
            changes[key] = tuple(_coerce_attribute(a) for a in value or ())
        elif key == "variants":
            changes[key] = tuple(_coerce_variant(v) for v in value or ())
        elif key == "images":
            changes[key] = tuple(value or ())
        else:
            changes[key] = value
    return changes


def _check_quantity(field: str, value: Decimal) -> None:
    if not value.is_finite():
        raise CatalogValidationError(field, "must be a finite number")
    if value < ZERO:
        raise CatalogValidationError(field, "must not be negative")


def _check_non_negative(product: Product) -> None:
    """Record values built directly (not through ``_decimal``) are checked here too."""
    if not product.base_price.is_finite():
        raise CatalogValidationError("base_price", "must be a finite number")
    _check_quantity("stock.quantity", product.stock.quantity)
    for row in product.stock_by_warehouse:
        _check_quantity("stock_by_warehouse.quantity", row.quantity)
    for variant in product.variants:
        _check_quantity("variants.quantity", variant.quantity)
        for row in variant.stock_by_warehouse:
            _check_quantity("variants.quantity", row.quantity)


def _check_variant_skus(product_id: UUID, variants: Sequence[Variant]) -> None:
    counts = Counter(v.sku for v in variants)
    for sku, n in counts.items():
        if n > 1:
            raise DuplicateVariantSkuError(str(product_id), sku)


def _check_variant_ids(product: Product, variants: Sequence[Variant]) -> None:
    # Variants are only created by generate_variants; a patch may keep,
    # change or drop the existing ones.
    known = {v.id for v in product.variants}
    for variant in variants:
        if variant.id not in known:
            raise CatalogValidationError(
                "variants.id", f"{variant.id} is not a variant of this product"
            )


def _check_own_barcodes(product: Product) -> None:
    codes = [v.barcode for v in product.variants if v.barcode]
    if product.barcode:
        codes.append(product.barcode)
    for code, n in Counter(codes).items():
        if n > 1:
            raise DuplicateBarcodeError(code)


def _zeroed(rows: Sequence[WarehouseStock]) -> tuple[WarehouseStock, ...]:
    return tuple(replace(r, quantity=ZERO) for r in rows)


def _summarize(product: Product) -> ProductSummary:
    return ProductSummary(
        id=product.id,
        sku=product.sku,
        name=product.name,
        kind=product.kind,
        active=product.active,
        family_id=product.family_id,
        barcode=product.barcode,
        base_price=product.base_price,
        stock=aggregate_stock(product),
        variant_count=len(product.variants),
    )
