"""
Module: catalog_kernel.models.product
Responsibility: ORM persistence for products, their per-warehouse stock rows,
    their variants and the variants' per-warehouse stock rows.  Converts to
    and from the frozen records in catalog_kernel.domain.product.
Architecture position: Kernel > Models.  May import from db/ and domain/
    records only.  MUST NOT import from services/ or selectors/.

Invariants enforced:
    - uq_product_tenant_sku: SKU unique per tenant across active and inactive
      rows.  Authoritative backstop for concurrent creates.
    - uq_product_tenant_barcode / uq_variant_tenant_barcode: barcode unique
      per tenant within each table.
    - uq_barcode_tenant_barcode: every barcode held by a product or one of
      its variants has one product_barcodes row, so a barcode is unique per
      tenant across both tables.
    - uq_variant_product_sku: variant SKU unique within its parent.
    - ``version`` is the optimistic lock column.  It is assigned explicitly
      (version_id_generator=False) so every save issues an UPDATE guarded by
      the previous version, even when only child rows changed.

Failure modes:
    - IntegrityError on a unique constraint (mapped by the repository to
      DuplicateSkuError / DuplicateBarcodeError).
    - StaleDataError when the guarded UPDATE matches no row (mapped to
      OptimisticLockError).
"""

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from catalog_kernel.db.base import Base, TimestampedBase
from catalog_kernel.domain.product import (
    ZERO,
    Attribute,
    AttributeValue,
    Product,
    ProductKind,
    StockLevel,
    Variant,
    WarehouseStock,
)


def attributes_to_json(attributes) -> list[dict[str, Any]]:
    return [
        {
            "name": a.name,
            "values": [{"value": v.value, "active": v.active} for v in a.values],
        }
        for a in attributes
    ]


def attributes_from_json(data) -> tuple[Attribute, ...]:
    return tuple(
        Attribute(
            name=item["name"],
            values=tuple(
                AttributeValue(value=v["value"], active=bool(v.get("active", True)))
                for v in item.get("values", [])
            ),
        )
        for item in (data or [])
    )


class _WarehouseRowMixin:
    warehouse_id: Mapped[str] = mapped_column(String(64), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quantity: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    minimum: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    maximum: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    def to_dto(self) -> WarehouseStock:
        return WarehouseStock(
            warehouse_id=self.warehouse_id,
            quantity=self.quantity,
            minimum=self.minimum,
            maximum=self.maximum,
        )

    def apply_dto(self, dto: WarehouseStock, position: int) -> None:
        self.position = position
        self.quantity = dto.quantity
        self.minimum = dto.minimum
        self.maximum = dto.maximum


# =============================================================================
# ProductModel
# =============================================================================


class ProductModel(TimestampedBase):
    """
    A catalog entry of one tenant.

    Maps to: catalog_kernel.domain.product.Product (frozen dataclass).
    The legacy aggregate ``stock`` is flattened into the stock_* columns.
    """

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("tenant_id", "sku", name="uq_product_tenant_sku"),
        UniqueConstraint("tenant_id", "barcode", name="uq_product_tenant_barcode"),
        Index("idx_product_tenant_active", "tenant_id", "active"),
        Index("idx_product_tenant_family", "tenant_id", "family_id"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    barcode: Mapped[str | None] = mapped_column(String(100), nullable=True)
    family_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProductKind.SIMPLE.value
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    base_price: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    # Legacy aggregate stock (authoritative only without warehouse rows)
    stock_quantity: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    stock_minimum: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    stock_maximum: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    attributes: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    images: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    main_image: Mapped[str | None] = mapped_column(String(500), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {
        "version_id_col": version,
        "version_id_generator": False,
    }

    warehouse_rows: Mapped[list["ProductWarehouseStockModel"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductWarehouseStockModel.position",
        lazy="selectin",
    )

    variants: Mapped[list["VariantModel"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="VariantModel.position",
        lazy="selectin",
    )

    barcode_claims: Mapped[list["BarcodeClaimModel"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dto(self) -> Product:
        return Product(
            id=self.id,
            tenant_id=self.tenant_id,
            sku=self.sku,
            barcode=self.barcode,
            family_id=self.family_id,
            name=self.name,
            kind=ProductKind(self.kind),
            active=self.active,
            base_price=self.base_price,
            stock=StockLevel(
                quantity=self.stock_quantity,
                minimum=self.stock_minimum,
                maximum=self.stock_maximum,
            ),
            stock_by_warehouse=tuple(r.to_dto() for r in self.warehouse_rows),
            attributes=attributes_from_json(self.attributes),
            variants=tuple(v.to_dto() for v in self.variants),
            images=tuple(self.images or ()),
            main_image=self.main_image,
            version=self.version,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_dto(cls, dto: Product) -> "ProductModel":
        """Build a new row (and its children) from a product record."""
        model = cls(id=dto.id, tenant_id=dto.tenant_id, version=1)
        model.apply_scalars(dto)
        model.warehouse_rows = []
        for position, row in enumerate(dto.stock_by_warehouse):
            row_model = ProductWarehouseStockModel(warehouse_id=row.warehouse_id)
            row_model.apply_dto(row, position)
            model.warehouse_rows.append(row_model)
        model.variants = [
            VariantModel.from_dto(v, dto.tenant_id, position)
            for position, v in enumerate(dto.variants)
        ]
        model.barcode_claims = [
            BarcodeClaimModel(tenant_id=dto.tenant_id, barcode=code)
            for code in sorted(dto.barcodes())
        ]
        return model

    def apply_scalars(self, dto: Product) -> None:
        """Copy every non-collection field of ``dto`` onto the row."""
        self.sku = dto.sku
        self.barcode = dto.barcode
        self.family_id = dto.family_id
        self.name = dto.name
        self.kind = dto.kind.value
        self.active = dto.active
        self.base_price = dto.base_price
        self.stock_quantity = dto.stock.quantity
        self.stock_minimum = dto.stock.minimum
        self.stock_maximum = dto.stock.maximum
        self.attributes = attributes_to_json(dto.attributes)
        self.images = list(dto.images)
        self.main_image = dto.main_image

    def __repr__(self) -> str:
        return f"<ProductModel {self.sku} tenant={self.tenant_id} v{self.version}>"


class ProductWarehouseStockModel(_WarehouseRowMixin, Base):
    """Stock of a product in one warehouse."""

    __tablename__ = "product_warehouse_stock"

    __table_args__ = (
        UniqueConstraint(
            "product_id", "warehouse_id", name="uq_product_warehouse"
        ),
    )

    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )

    product: Mapped["ProductModel"] = relationship(back_populates="warehouse_rows")


# =============================================================================
# VariantModel
# =============================================================================


class VariantModel(Base):
    """
    One attribute combination of a variant-parent product.

    Maps to: catalog_kernel.domain.product.Variant (frozen dataclass).
    ``tenant_id`` is denormalized from the parent so barcode uniqueness and
    barcode lookups can be expressed per tenant.
    """

    __tablename__ = "product_variants"

    __table_args__ = (
        UniqueConstraint("product_id", "sku", name="uq_variant_product_sku"),
        UniqueConstraint("tenant_id", "barcode", name="uq_variant_tenant_barcode"),
        Index("idx_variant_tenant_sku", "tenant_id", "sku"),
    )

    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    barcode: Mapped[str | None] = mapped_column(String(100), nullable=True)
    combination: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    price_delta: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Legacy scalar quantity (see Variant.quantity)
    quantity: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    product: Mapped["ProductModel"] = relationship(back_populates="variants")

    warehouse_rows: Mapped[list["VariantWarehouseStockModel"]] = relationship(
        back_populates="variant",
        cascade="all, delete-orphan",
        order_by="VariantWarehouseStockModel.position",
        lazy="selectin",
    )

    def to_dto(self) -> Variant:
        return Variant(
            id=self.id,
            sku=self.sku,
            barcode=self.barcode,
            combination=dict(self.combination or {}),
            stock_by_warehouse=tuple(r.to_dto() for r in self.warehouse_rows),
            price_delta=self.price_delta,
            active=self.active,
            quantity=self.quantity,
        )

    @classmethod
    def from_dto(cls, dto: Variant, tenant_id: str, position: int) -> "VariantModel":
        model = cls(id=dto.id, tenant_id=tenant_id)
        model.apply_scalars(dto, position)
        model.warehouse_rows = []
        for row_position, row in enumerate(dto.stock_by_warehouse):
            row_model = VariantWarehouseStockModel(warehouse_id=row.warehouse_id)
            row_model.apply_dto(row, row_position)
            model.warehouse_rows.append(row_model)
        return model

    def apply_scalars(self, dto: Variant, position: int) -> None:
        self.sku = dto.sku
        self.barcode = dto.barcode
        self.combination = dict(dto.combination)
        self.price_delta = dto.price_delta
        self.active = dto.active
        self.quantity = dto.quantity
        self.position = position

    def __repr__(self) -> str:
        return f"<VariantModel {self.sku} product={self.product_id}>"


class VariantWarehouseStockModel(_WarehouseRowMixin, Base):
    """Stock of a variant in one warehouse."""

    __tablename__ = "variant_warehouse_stock"

    __table_args__ = (
        UniqueConstraint(
            "variant_id", "warehouse_id", name="uq_variant_warehouse"
        ),
    )

    variant_id: Mapped[UUID] = mapped_column(
        ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=False,
    )

    variant: Mapped["VariantModel"] = relationship(back_populates="warehouse_rows")


# =============================================================================
# BarcodeClaimModel
# =============================================================================


class BarcodeClaimModel(Base):
    """
    Tenant-wide barcode registry.

    One row per distinct barcode held by a product or any of its variants.
    The repository keeps the rows in step with the product on insert and
    save; the unique constraint rejects a barcode that another product
    already holds in either table.
    """

    __tablename__ = "product_barcodes"

    __table_args__ = (
        UniqueConstraint("tenant_id", "barcode", name="uq_barcode_tenant_barcode"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    barcode: Mapped[str] = mapped_column(String(100), nullable=False)
    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )

    product: Mapped["ProductModel"] = relationship(back_populates="barcode_claims")

    def __repr__(self) -> str:
        return f"<BarcodeClaimModel {self.barcode} product={self.product_id}>"
