"""
Product -- Immutable catalog records.

Responsibility:
    Frozen dataclasses for products, variants, attribute definitions and
    warehouse stock rows, plus the query and result shapes the Catalog
    Service exchanges with its callers.  Mutation always produces a new
    instance via ``dataclasses.replace``.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  ORM models convert
    to and from these records; services and selectors return them.

Invariants enforced:
    - Quantities and prices are Decimal, never float.
    - ``sku`` is stored uppercase (normalized by the Catalog Service).
    - Collections are tuples so records stay immutable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

ZERO = Decimal("0")


class ProductKind(str, Enum):
    """Kind of catalog entry."""

    SIMPLE = "simple"
    KIT = "kit"
    VARIANT_PARENT = "variant-parent"


@dataclass(frozen=True)
class StockLevel:
    """Aggregate on-hand quantity with its reorder bounds."""

    quantity: Decimal = ZERO
    minimum: Decimal = ZERO
    maximum: Decimal = ZERO


@dataclass(frozen=True)
class WarehouseStock:
    """Stock of a product or variant held in one warehouse."""

    warehouse_id: str
    quantity: Decimal = ZERO
    minimum: Decimal = ZERO
    maximum: Decimal = ZERO


@dataclass(frozen=True)
class AttributeValue:
    value: str
    active: bool = True


@dataclass(frozen=True)
class Attribute:
    """Attribute definition supplied when generating variants."""

    name: str
    values: tuple[AttributeValue, ...] = ()


@dataclass(frozen=True)
class Variant:
    """
    One concrete attribute combination of a variant-parent product.

    ``combination`` maps the lower-cased attribute name to the chosen value.
    ``quantity`` is the legacy scalar quantity; it is written by stock
    operations that name no warehouse and is never read by aggregation.
    """

    sku: str
    combination: dict[str, str] = field(default_factory=dict)
    id: UUID = field(default_factory=uuid4)
    barcode: str | None = None
    stock_by_warehouse: tuple[WarehouseStock, ...] = ()
    price_delta: Decimal = ZERO
    active: bool = True
    quantity: Decimal = ZERO


@dataclass(frozen=True)
class Product:
    """
    A catalog entry scoped to one tenant.

    ``version`` is the optimistic concurrency token.  A record that has never
    been persisted carries version 0; the repository assigns 1 on insert and
    increments it on every save.
    """

    tenant_id: str
    sku: str
    name: str
    id: UUID = field(default_factory=uuid4)
    barcode: str | None = None
    family_id: str | None = None
    kind: ProductKind = ProductKind.SIMPLE
    active: bool = True
    base_price: Decimal = ZERO
    stock: StockLevel = field(default_factory=StockLevel)
    stock_by_warehouse: tuple[WarehouseStock, ...] = ()
    attributes: tuple[Attribute, ...] = ()
    variants: tuple[Variant, ...] = ()
    images: tuple[str, ...] = ()
    main_image: str | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def find_variant(self, variant_id: UUID) -> Variant | None:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None

    def barcodes(self) -> set[str]:
        """All barcodes used by this product and its variants."""
        codes = {v.barcode for v in self.variants if v.barcode}
        if self.barcode:
            codes.add(self.barcode)
        return codes


# ---------------------------------------------------------------------------
# Collaborator records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FamilyInfo:
    id: str
    active: bool
    name: str | None = None


@dataclass(frozen=True)
class Reference:
    """A document that references a product (e.g. an open sales order)."""

    kind: str
    id: str
    label: str | None = None


@dataclass(frozen=True)
class DeletabilityCheck:
    can_delete: bool
    related_records: tuple[Reference, ...] = ()


# ---------------------------------------------------------------------------
# Query shapes
# ---------------------------------------------------------------------------


class SortField(str, Enum):
    """Columns a product listing may be ordered by."""

    SKU = "sku"
    NAME = "name"
    BASE_PRICE = "base_price"
    CREATED_AT = "created_at"


@dataclass(frozen=True)
class Sort:
    field: SortField = SortField.NAME
    descending: bool = False


@dataclass(frozen=True)
class ProductFilter:
    """
    Listing filter.

    ``text`` matches SKU, name or barcode (case-insensitive substring).
    ``active=None`` lists active and inactive products alike.
    ``price_min``/``price_max`` bound ``base_price`` inclusively.
    ``out_of_stock`` and ``low_stock`` test the aggregated stock level, so
    warehouse rows and variants count the same way they do on read.
    """

    text: str | None = None
    family_id: str | None = None
    kind: ProductKind | None = None
    active: bool | None = True
    price_min: Decimal | None = None
    price_max: Decimal | None = None
    out_of_stock: bool = False
    low_stock: bool = False

    @property
    def filters_on_stock(self) -> bool:
        return self.out_of_stock or self.low_stock


@dataclass(frozen=True)
class ProductSummary:
    """List-view row with aggregated stock."""

    id: UUID
    sku: str
    name: str
    kind: ProductKind
    active: bool
    family_id: str | None
    barcode: str | None
    base_price: Decimal
    stock: StockLevel
    variant_count: int


@dataclass(frozen=True)
class ProductPage:
    items: tuple[ProductSummary, ...]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size


@dataclass(frozen=True)
class BulkDeleteResult:
    """
    Outcome of a best-effort bulk soft delete.

    ``failures`` pairs each product id that could not be deleted with the
    stable error code of the failure.
    """

    deleted: int
    already_inactive: int = 0
    failures: tuple[tuple[UUID, str], ...] = ()

    @property
    def failed(self) -> int:
        return len(self.failures)

    def to_dict(self) -> dict[str, Any]:
        return {
            "deleted": self.deleted,
            "already_inactive": self.already_inactive,
            "failed": self.failed,
            "failures": [
                {"product_id": str(pid), "code": code}
                for pid, code in self.failures
            ],
        }
