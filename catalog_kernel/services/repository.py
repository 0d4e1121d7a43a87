"""
SqlCatalogRepository -- tenant-bound SQLAlchemy implementation of CatalogRepository.

Responsibility:
    Loads and stores Product records for exactly one tenant.  Converts
    between ORM rows and frozen domain records, enforces the optimistic
    version check on save and translates driver errors into the kernel's
    typed exceptions.

Architecture position:
    Kernel > Services -- imperative shell.  Implements the CatalogRepository
    port from catalog_kernel.domain.ports.  The session is owned by the
    caller (usually via SqlRepositoryFactory); the Catalog Service decides
    when to commit or roll back.

Invariants enforced:
    - Tenant isolation: every statement filters on the bound tenant_id.
    - Optimistic locking: save() refuses a record whose version differs from
      the stored one, and the guarded UPDATE catches a concurrent writer that
      slips in between the check and the flush.
    - Child rows are reconciled by id (variants), by warehouse_id (stock
      rows) and by barcode (barcode registry), never deleted and
      re-inserted wholesale.
    - Every barcode of a product and its variants is registered in
      product_barcodes, whose unique key spans both tables.

Failure modes:
    - DuplicateSkuError / DuplicateBarcodeError / DuplicateVariantSkuError:
      unique constraint violated on flush (lost check-then-insert race),
      classified by constraint name.
    - StorageConstraintError: any other constraint violated on flush.
    - OptimisticLockError: stale version on save.
    - ProductNotFoundError: save() of a product that does not exist.
    - RepositoryUnavailableError: connection failure or statement timeout.
      Reads are retried up to ``read_retries`` extra times; writes never.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import replace
from typing import Callable, Sequence, TypeVar
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from catalog_config.schema import CatalogSettings
from catalog_kernel.domain.product import (
    Product,
    ProductFilter,
    Sort,
    SortField,
    StockLevel,
    Variant,
    WarehouseStock,
)
from catalog_kernel.domain.stock import (
    StockMovement,
    aggregate_stock,
    is_low_stock,
    is_out_of_stock,
)
from catalog_kernel.exceptions import (
    CatalogKernelError,
    DuplicateBarcodeError,
    DuplicateSkuError,
    DuplicateVariantSkuError,
    OptimisticLockError,
    ProductNotFoundError,
    RepositoryUnavailableError,
    StorageConstraintError,
)
from catalog_kernel.logging_config import get_logger
from catalog_kernel.models.product import (
    BarcodeClaimModel,
    ProductModel,
    ProductWarehouseStockModel,
    VariantModel,
    VariantWarehouseStockModel,
)
from catalog_kernel.models.stock_movement import StockMovementModel

logger = get_logger("services.repository")

T = TypeVar("T")

_SORT_COLUMNS = {
    SortField.SKU: ProductModel.sku,
    SortField.NAME: ProductModel.name,
    SortField.BASE_PRICE: ProductModel.base_price,
    SortField.CREATED_AT: ProductModel.created_at,
}

# Column lists SQLite reports for each unique constraint.
_SQLITE_UNIQUE_COLUMNS = {
    "uq_product_tenant_sku": "products.tenant_id, products.sku",
    "uq_product_tenant_barcode": "products.tenant_id, products.barcode",
    "uq_variant_product_sku": "product_variants.product_id, product_variants.sku",
    "uq_variant_tenant_barcode": "product_variants.tenant_id, product_variants.barcode",
    "uq_barcode_tenant_barcode": "product_barcodes.tenant_id, product_barcodes.barcode",
}

_BARCODE_CONSTRAINTS = frozenset({
    "uq_product_tenant_barcode",
    "uq_variant_tenant_barcode",
    "uq_barcode_tenant_barcode",
})


class SqlCatalogRepository:
    """
    Product store of one tenant backed by a SQLAlchemy session.

    Contract:
        ``insert``/``save``/``record_movement`` flush but never commit.
        Reads always reload rows from the database (populate_existing), so a
        retrying writer sees the latest committed version.
    """

    def __init__(self, session: Session, tenant_id: str, read_retries: int = 0):
        self._session = session
        self.tenant_id = tenant_id
        self._read_retries = max(0, read_retries)

    @property
    def session(self) -> Session:
        return self._session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_id(self, product_id: UUID) -> Product | None:
        row = self._read("find_by_id", lambda: self._load_row(product_id))
        return row.to_dto() if row is not None else None

    def find_by_sku(self, sku: str) -> Product | None:
        """Lookup by SKU, case-insensitive, including inactive products."""
        stmt = (
            select(ProductModel)
            .where(ProductModel.tenant_id == self.tenant_id)
            .where(ProductModel.sku == sku.upper())
            .execution_options(populate_existing=True)
        )
        row = self._read(
            "find_by_sku", lambda: self._session.execute(stmt).scalars().first()
        )
        return row.to_dto() if row is not None else None

    def find_by_barcode(self, barcode: str) -> Product | None:
        """Product owning ``barcode`` itself or through one of its variants."""

        def _lookup() -> ProductModel | None:
            product_id = self._session.execute(
                select(BarcodeClaimModel.product_id)
                .where(BarcodeClaimModel.tenant_id == self.tenant_id)
                .where(BarcodeClaimModel.barcode == barcode)
            ).scalars().first()
            if product_id is None:
                return None
            return self._load_row(product_id)

        row = self._read("find_by_barcode", _lookup)
        return row.to_dto() if row is not None else None

    def query(
        self,
        filter: ProductFilter,
        sort: Sort,
        page: int,
        page_size: int,
    ) -> tuple[Sequence[Product], int]:
        """
        One page of products matching ``filter``, plus the total match count.

        ``page`` is 1-based.  Ordering ties are broken by id so pages are
        stable.
        """
        conditions = [ProductModel.tenant_id == self.tenant_id]
        if filter.active is not None:
            conditions.append(ProductModel.active == filter.active)
        if filter.family_id is not None:
            conditions.append(ProductModel.family_id == filter.family_id)
        if filter.kind is not None:
            conditions.append(ProductModel.kind == filter.kind.value)
        if filter.price_min is not None:
            conditions.append(ProductModel.base_price >= filter.price_min)
        if filter.price_max is not None:
            conditions.append(ProductModel.base_price <= filter.price_max)
        if filter.text:
            pattern = f"%{filter.text.strip().lower()}%"
            conditions.append(
                or_(
                    func.lower(ProductModel.sku).like(pattern),
                    func.lower(ProductModel.name).like(pattern),
                    func.lower(ProductModel.barcode).like(pattern),
                )
            )

        column = _SORT_COLUMNS[sort.field]
        order = column.desc() if sort.descending else column.asc()
        offset = (max(page, 1) - 1) * page_size

        def _run() -> tuple[list[Product], int]:
            if filter.filters_on_stock:
                # Aggregated stock has no column form once warehouse rows
                # or variants exist; filter the ordered rows in memory.
                rows = self._session.execute(
                    select(ProductModel)
                    .where(*conditions)
                    .order_by(order, ProductModel.id)
                    .execution_options(populate_existing=True)
                ).scalars().all()
                matches = [
                    p for p in (r.to_dto() for r in rows)
                    if _matches_stock(filter, aggregate_stock(p))
                ]
                return matches[offset:offset + page_size], len(matches)

            total = self._session.execute(
                select(func.count(ProductModel.id)).where(*conditions)
            ).scalar_one()
            rows = self._session.execute(
                select(ProductModel)
                .where(*conditions)
                .order_by(order, ProductModel.id)
                .offset(offset)
                .limit(page_size)
                .execution_options(populate_existing=True)
            ).scalars().all()
            return [r.to_dto() for r in rows], total

        return self._read("query", _run)

    def list_movements(self, product_id: UUID, limit: int) -> list[StockMovement]:
        stmt = (
            select(StockMovementModel)
            .where(StockMovementModel.tenant_id == self.tenant_id)
            .where(StockMovementModel.product_id == product_id)
            .order_by(StockMovementModel.occurred_at.desc())
            .limit(limit)
        )
        rows = self._read(
            "list_movements", lambda: self._session.execute(stmt).scalars().all()
        )
        return [r.to_dto() for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, product: Product) -> Product:
        """Stage a new product.  Version 1 is assigned."""
        row = ProductModel.from_dto(product)
        self._session.add(row)
        try:
            self._session.flush()
        except IntegrityError as exc:
            self._session.rollback()
            error = self._integrity_error(exc, product, "insert")
            logger.warning(
                "product_insert_conflict",
                extra={"sku": product.sku, "error_code": error.code},
            )
            raise error from exc
        except OperationalError as exc:
            self._session.rollback()
            raise RepositoryUnavailableError("insert", str(exc.orig)) from exc

        logger.debug(
            "product_inserted",
            extra={"product_id": str(row.id), "sku": row.sku},
        )
        return row.to_dto()

    def save(self, product: Product) -> Product:
        """
        Stage the full state of ``product`` over the stored row.

        Raises:
            OptimisticLockError: ``product.version`` is not the stored version,
                or another writer committed first.
        """
        try:
            row = self._load_row(product.id)
            if row is None:
                raise ProductNotFoundError(str(product.id))
            if row.version != product.version:
                raise OptimisticLockError("Product", str(product.id))

            # Phase 1: parent row under the version guard, drop orphaned
            # children so their unique keys are free for phase 2.
            row.version = product.version + 1
            row.apply_scalars(product)
            self._remove_orphans(row, product)
            self._session.flush()

            # Phase 2: update surviving children, add new ones.
            self._upsert_children(row, product)
            self._session.flush()
        except StaleDataError as exc:
            self._session.rollback()
            raise OptimisticLockError("Product", str(product.id)) from exc
        except IntegrityError as exc:
            self._session.rollback()
            raise self._integrity_error(exc, product, "save") from exc
        except OperationalError as exc:
            self._session.rollback()
            raise RepositoryUnavailableError("save", str(exc.orig)) from exc

        return replace(
            product,
            version=row.version,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def record_movement(self, movement: StockMovement) -> StockMovement:
        row = StockMovementModel.from_dto(movement)
        self._session.add(row)
        try:
            self._session.flush()
        except OperationalError as exc:
            self._session.rollback()
            raise RepositoryUnavailableError("record_movement", str(exc.orig)) from exc
        return row.to_dto()

    def commit(self) -> None:
        try:
            self._session.commit()
        except OperationalError as exc:
            self._session.rollback()
            raise RepositoryUnavailableError("commit", str(exc.orig)) from exc

    def rollback(self) -> None:
        self._session.rollback()

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load_row(self, product_id: UUID) -> ProductModel | None:
        return self._session.execute(
            select(ProductModel)
            .where(ProductModel.tenant_id == self.tenant_id)
            .where(ProductModel.id == product_id)
            .execution_options(populate_existing=True)
        ).scalars().first()

    def _read(self, operation: str, fn: Callable[[], T]) -> T:
        attempt = 0
        while True:
            try:
                return fn()
            except OperationalError as exc:
                self._session.rollback()
                if attempt >= self._read_retries:
                    logger.error(
                        "repository_unavailable",
                        extra={"operation": operation, "attempts": attempt + 1},
                    )
                    raise RepositoryUnavailableError(operation, str(exc.orig)) from exc
                attempt += 1
                logger.warning(
                    "repository_read_retry",
                    extra={"operation": operation, "attempt": attempt},
                )

    def _integrity_error(
        self, exc: IntegrityError, product: Product, operation: str
    ) -> CatalogKernelError:
        """Typed error for a constraint violation; the session is rolled back."""
        constraint = violated_constraint(exc)
        if constraint == "uq_product_tenant_sku":
            return DuplicateSkuError(product.sku)
        if constraint == "uq_variant_product_sku":
            return DuplicateVariantSkuError(
                str(product.id), _first_repeated_sku(product.variants)
            )
        if constraint in _BARCODE_CONSTRAINTS:
            return DuplicateBarcodeError(self._taken_barcode(product))
        logger.error(
            "unclassified_integrity_error",
            extra={
                "operation": operation,
                "constraint": constraint,
                "product_id": str(product.id),
            },
        )
        return StorageConstraintError(operation, constraint)

    def _taken_barcode(self, product: Product) -> str:
        """First barcode of ``product`` already registered to another product."""
        codes = sorted(product.barcodes())
        if not codes:
            return ""
        taken = self._read(
            "find_barcode_owner",
            lambda: self._session.execute(
                select(BarcodeClaimModel.barcode)
                .where(BarcodeClaimModel.tenant_id == self.tenant_id)
                .where(BarcodeClaimModel.barcode.in_(codes))
                .where(BarcodeClaimModel.product_id != product.id)
                .order_by(BarcodeClaimModel.barcode)
            ).scalars().first(),
        )
        return taken or codes[0]

    def _remove_orphans(self, row: ProductModel, product: Product) -> None:
        codes = product.barcodes()
        for claim in [c for c in row.barcode_claims if c.barcode not in codes]:
            row.barcode_claims.remove(claim)

        keep_wh = {w.warehouse_id for w in product.stock_by_warehouse}
        for wh_row in [r for r in row.warehouse_rows if r.warehouse_id not in keep_wh]:
            row.warehouse_rows.remove(wh_row)

        variants_by_id = {v.id: v for v in product.variants}
        for variant_row in list(row.variants):
            dto = variants_by_id.get(variant_row.id)
            if dto is None:
                row.variants.remove(variant_row)
                continue
            keep = {w.warehouse_id for w in dto.stock_by_warehouse}
            for wh_row in [
                r for r in variant_row.warehouse_rows if r.warehouse_id not in keep
            ]:
                variant_row.warehouse_rows.remove(wh_row)

    def _upsert_children(self, row: ProductModel, product: Product) -> None:
        held = {c.barcode for c in row.barcode_claims}
        for code in sorted(product.barcodes() - held):
            row.barcode_claims.append(
                BarcodeClaimModel(tenant_id=self.tenant_id, barcode=code)
            )

        _sync_rows(
            row.warehouse_rows, product.stock_by_warehouse, ProductWarehouseStockModel
        )

        existing = {v.id: v for v in row.variants}
        for position, dto in enumerate(product.variants):
            variant_row = existing.get(dto.id)
            if variant_row is None:
                row.variants.append(
                    VariantModel.from_dto(dto, product.tenant_id, position)
                )
                continue
            variant_row.apply_scalars(dto, position)
            _sync_rows(
                variant_row.warehouse_rows,
                dto.stock_by_warehouse,
                VariantWarehouseStockModel,
            )


class SqlRepositoryFactory:
    """
    Resolves a tenant-bound repository with a fresh session.

    One repository (and session) per request; callers close it when done.
    """

    def __init__(self, session_factory: sessionmaker[Session], read_retries: int = 0):
        self._session_factory = session_factory
        self._read_retries = read_retries

    @classmethod
    def from_settings(
        cls, session_factory: sessionmaker[Session], settings: CatalogSettings
    ) -> "SqlRepositoryFactory":
        return cls(session_factory, read_retries=settings.repository_read_retries)

    def __call__(self, tenant_id: str) -> SqlCatalogRepository:
        return SqlCatalogRepository(
            self._session_factory(), tenant_id, read_retries=self._read_retries
        )


def _sync_rows(rows: list, dtos: Sequence[WarehouseStock], model_cls) -> None:
    existing = {r.warehouse_id: r for r in rows}
    for position, dto in enumerate(dtos):
        row = existing.get(dto.warehouse_id)
        if row is None:
            row = model_cls(warehouse_id=dto.warehouse_id)
            rows.append(row)
        row.apply_dto(dto, position)


def _matches_stock(filter: ProductFilter, level: StockLevel) -> bool:
    if filter.out_of_stock and not is_out_of_stock(level):
        return False
    if filter.low_stock and not is_low_stock(level):
        return False
    return True


def violated_constraint(exc: IntegrityError) -> str | None:
    """
    Name of the unique constraint behind ``exc``, or None when unknown.

    PostgreSQL reports the name in the diagnostics; SQLite only lists the
    constrained columns, which are mapped back to the name.
    """
    diag = getattr(exc.orig, "diag", None)
    name = getattr(diag, "constraint_name", None)
    if name:
        return name
    message = str(exc.orig)
    for name, columns in _SQLITE_UNIQUE_COLUMNS.items():
        if message.endswith(columns):
            return name
    return None


def _first_repeated_sku(variants: Sequence[Variant]) -> str:
    counts = Counter(v.sku for v in variants)
    return next((sku for sku, n in counts.items() if n > 1), "")
