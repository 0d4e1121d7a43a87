"""
Catalog Kernel

Domain core of the multi-tenant product catalog:
- Product creation with tenant-scoped SKU and barcode uniqueness
- Attribute-driven variant generation
- Stock aggregation across warehouses and variants
- Stock mutation with optimistic concurrency (no negative stock)
"""

__version__ = "0.1.0"
