"""
Typed Exception Hierarchy for the Catalog Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The presentation layer must render a specific message for every failure
("SKU already exists" vs "quota exceeded").  Parsing message strings for
that is fragile, so every error has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, stable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example:
    try:
        service.create_product(sku="ABC", name="Widget")
    except DuplicateSkuError as e:
        api_response(code=e.code, sku=e.sku)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CatalogKernelError (base)
    |
    +-- ProductError
    |   +-- ProductNotFoundError
    |   +-- VariantNotFoundError
    |   +-- DuplicateSkuError
    |   +-- DuplicateBarcodeError
    |   +-- DuplicateVariantSkuError
    |   +-- InvalidFamilyError
    |   +-- ReferentialIntegrityViolationError
    |   +-- CatalogValidationError
    |
    +-- LicenseError
    |   +-- QuotaExceededError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- InvalidStockAmountError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- InfrastructureError
        +-- RepositoryUnavailableError
        +-- StorageConstraintError
        +-- CounterUpdateError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                            | When Raised
----------------|---------------------------------|-------------------------------------
Product         | PRODUCT_NOT_FOUND               | Product id unknown in the tenant
                | VARIANT_NOT_FOUND               | Variant id unknown in the product
                | DUPLICATE_SKU                   | SKU already used in the tenant
                | DUPLICATE_BARCODE               | Barcode used by a product or variant
                | DUPLICATE_VARIANT_SKU           | Two variants of a parent share a SKU
                | INVALID_FAMILY                  | Family missing or inactive
                | REFERENTIAL_INTEGRITY_VIOLATION | Product referenced by open documents
                | CATALOG_VALIDATION_ERROR        | Malformed patch or field value
----------------|---------------------------------|-------------------------------------
License         | QUOTA_EXCEEDED                  | Plan product quota exhausted
----------------|---------------------------------|-------------------------------------
Stock           | INSUFFICIENT_STOCK              | Outbound larger than on-hand
                | INVALID_STOCK_AMOUNT            | Negative or non-finite amount
----------------|---------------------------------|-------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT        | Product modified by another writer
----------------|---------------------------------|-------------------------------------
Infrastructure  | REPOSITORY_UNAVAILABLE          | Store unreachable or timed out
                | STORAGE_CONSTRAINT_VIOLATION    | Unclassified store constraint failed
                | COUNTER_UPDATE_FAILED           | Family or quota sink failed after commit

Only RepositoryUnavailableError may be retried automatically, and only for
idempotent reads.  Every other error is terminal for the request.
"""

from __future__ import annotations

from typing import Any, Sequence


class CatalogKernelError(Exception):
    """
    Base exception for all catalog kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "CATALOG_KERNEL_ERROR"


# Product-related exceptions


class ProductError(CatalogKernelError):
    """Base exception for product-related errors."""

    code: str = "PRODUCT_ERROR"


class ProductNotFoundError(ProductError):
    """Product with given ID was not found in the tenant."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class VariantNotFoundError(ProductError):
    """Variant with given ID does not belong to the product."""

    code: str = "VARIANT_NOT_FOUND"

    def __init__(self, product_id: str, variant_id: str):
        self.product_id = product_id
        self.variant_id = variant_id
        super().__init__(f"Variant {variant_id} not found in product {product_id}")


class DuplicateSkuError(ProductError):
    """SKU is already used by another product of the tenant."""

    code: str = "DUPLICATE_SKU"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"A product with SKU '{sku}' already exists")


class DuplicateBarcodeError(ProductError):
    """Barcode is already used by a product or variant of the tenant."""

    code: str = "DUPLICATE_BARCODE"

    def __init__(self, barcode: str):
        self.barcode = barcode
        super().__init__(f"A product with barcode '{barcode}' already exists")


class DuplicateVariantSkuError(ProductError):
    """Two variants of the same parent would share a SKU."""

    code: str = "DUPLICATE_VARIANT_SKU"

    def __init__(self, product_id: str, sku: str):
        self.product_id = product_id
        self.sku = sku
        super().__init__(
            f"Variant SKU '{sku}' is not unique within product {product_id}"
        )


class InvalidFamilyError(ProductError):
    """Referenced family does not exist or is inactive."""

    code: str = "INVALID_FAMILY"

    def __init__(self, family_id: str, reason: str):
        self.family_id = family_id
        self.reason = reason
        super().__init__(f"Invalid family {family_id}: {reason}")


class ReferentialIntegrityViolationError(ProductError):
    """
    Product is referenced by other non-cancellable documents.

    Carries the blocking references so the caller can show them.
    """

    code: str = "REFERENTIAL_INTEGRITY_VIOLATION"

    def __init__(self, product_id: str, related_records: Sequence[Any]):
        self.product_id = product_id
        self.related_records = list(related_records)
        super().__init__(
            f"Product {product_id} is referenced by "
            f"{len(self.related_records)} record(s) and cannot be deleted"
        )


class CatalogValidationError(ProductError):
    """A field value or patch key is not acceptable."""

    code: str = "CATALOG_VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid value for '{field}': {reason}")


# License-related exceptions


class LicenseError(CatalogKernelError):
    """Base exception for license-related errors."""

    code: str = "LICENSE_ERROR"


class QuotaExceededError(LicenseError):
    """The tenant's plan allows no more products."""

    code: str = "QUOTA_EXCEEDED"

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(
            f"Tenant {tenant_id} has reached the product limit of its plan"
        )


# Stock-related exceptions


class StockError(CatalogKernelError):
    """Base exception for stock-related errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """Outbound quantity exceeds the quantity on hand."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, available: str, requested: str):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"available={available}, requested={requested}"
        )


class InvalidStockAmountError(StockError):
    """Stock operation amount is negative or not a finite number."""

    code: str = "INVALID_STOCK_AMOUNT"

    def __init__(self, amount: str):
        self.amount = amount
        super().__init__(
            f"Stock amount must be a finite non-negative number, got {amount}"
        )


# Concurrency-related exceptions


class ConcurrencyError(CatalogKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Infrastructure-related exceptions


class InfrastructureError(CatalogKernelError):
    """Base exception for infrastructure failures."""

    code: str = "INFRASTRUCTURE_ERROR"


class RepositoryUnavailableError(InfrastructureError):
    """The catalog store could not be reached or timed out."""

    code: str = "REPOSITORY_UNAVAILABLE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Catalog repository unavailable during {operation}: {reason}")


class StorageConstraintError(InfrastructureError):
    """A store constraint with no catalog meaning was violated on write."""

    code: str = "STORAGE_CONSTRAINT_VIOLATION"

    def __init__(self, operation: str, constraint: str | None):
        self.operation = operation
        self.constraint = constraint
        super().__init__(
            f"Store constraint {constraint or '<unknown>'} violated during {operation}"
        )


class CounterUpdateError(InfrastructureError):
    """A family or quota counter rejected an update after the product write committed."""

    code: str = "COUNTER_UPDATE_FAILED"

    def __init__(self, counter: str, product_id: str, reason: str):
        self.counter = counter
        self.product_id = product_id
        self.reason = reason
        super().__init__(
            f"{counter} counter update failed for product {product_id}: {reason}"
        )
