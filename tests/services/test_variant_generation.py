"""
Tests for CatalogService.generate_variants.

Variants are replaced wholesale from the active attribute combinations;
their SKUs derive from the parent SKU and value prefixes.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from catalog_config.schema import CatalogSettings
from catalog_kernel.domain.product import Attribute, AttributeValue, ProductKind
from catalog_kernel.domain.stock import StockOperation
from catalog_kernel.exceptions import DuplicateVariantSkuError, ProductNotFoundError

SHIRT_ATTRIBUTES = [
    {"name": "Color", "values": [{"value": "Red"}, {"value": "Blue", "active": True}]},
    {"name": "Size", "values": ["S", "M"]},
]


class TestGenerateVariants:
    def test_shirt_combinations(self, catalog_service):
        shirt = catalog_service.create_product(sku="SHIRT", name="Shirt")

        parent = catalog_service.generate_variants(shirt.id, SHIRT_ATTRIBUTES)

        assert parent.kind is ProductKind.VARIANT_PARENT
        assert [v.sku for v in parent.variants] == [
            "SHIRT-RED-S",
            "SHIRT-RED-M",
            "SHIRT-BLU-S",
            "SHIRT-BLU-M",
        ]
        assert parent.variants[0].combination == {"color": "Red", "size": "S"}
        assert all(v.price_delta == Decimal("0") for v in parent.variants)
        assert all(v.stock_by_warehouse == () for v in parent.variants)

    def test_persisted_and_reloaded_in_order(self, catalog_service):
        shirt = catalog_service.create_product(sku="SHIRT", name="Shirt")
        catalog_service.generate_variants(shirt.id, SHIRT_ATTRIBUTES)

        loaded = catalog_service.get_product(shirt.id)

        assert [v.sku for v in loaded.variants] == [
            "SHIRT-RED-S",
            "SHIRT-RED-M",
            "SHIRT-BLU-S",
            "SHIRT-BLU-M",
        ]
        assert [a.name for a in loaded.attributes] == ["Color", "Size"]

    def test_inactive_values_are_skipped(self, catalog_service):
        shirt = catalog_service.create_product(sku="SHIRT", name="Shirt")
        attributes = [
            Attribute("Color", (AttributeValue("Red"), AttributeValue("Blue", active=False))),
            Attribute("Size", (AttributeValue("S"), AttributeValue("M"))),
        ]

        parent = catalog_service.generate_variants(shirt.id, attributes)

        assert [v.combination for v in parent.variants] == [
            {"color": "Red", "size": "S"},
            {"color": "Red", "size": "M"},
        ]

    def test_regeneration_discards_previous_variants_and_stock(self, catalog_service):
        shirt = catalog_service.create_product(sku="SHIRT", name="Shirt")
        parent = catalog_service.generate_variants(shirt.id, SHIRT_ATTRIBUTES)
        first = parent.variants[0]
        catalog_service.update_stock(
            shirt.id,
            StockOperation("inbound", Decimal("4"), variant_id=first.id, warehouse_id="MAIN"),
        )
        assert catalog_service.get_stock(shirt.id).quantity == Decimal("4")

        regenerated = catalog_service.generate_variants(
            shirt.id, [{"name": "Size", "values": ["S", "M", "L"]}]
        )

        assert [v.sku for v in regenerated.variants] == ["SHIRT-S", "SHIRT-M", "SHIRT-L"]
        assert first.id not in {v.id for v in regenerated.variants}
        assert catalog_service.get_stock(shirt.id).quantity == Decimal("0")
        assert len(catalog_service.get_product(shirt.id).variants) == 3

    def test_same_skus_can_be_regenerated(self, catalog_service):
        shirt = catalog_service.create_product(sku="SHIRT", name="Shirt")
        catalog_service.generate_variants(shirt.id, SHIRT_ATTRIBUTES)

        again = catalog_service.generate_variants(shirt.id, SHIRT_ATTRIBUTES)

        assert len(again.variants) == 4
        assert again.version == 3

    def test_prefix_collision_rejected(self, catalog_service):
        tee = catalog_service.create_product(sku="TEE", name="Tee")

        with pytest.raises(DuplicateVariantSkuError) as exc_info:
            catalog_service.generate_variants(
                tee.id, [{"name": "Color", "values": ["Blue", "Blush"]}]
            )

        assert exc_info.value.sku == "TEE-BLU"
        assert catalog_service.get_product(tee.id).variants == ()

    def test_longer_prefix_resolves_collision(self, make_service, repository):
        service = make_service(repository, settings=CatalogSettings(variant_prefix_length=4))
        tee = service.create_product(sku="TEE", name="Tee")

        parent = service.generate_variants(
            tee.id, [{"name": "Color", "values": ["Blue", "Blush"]}]
        )

        assert [v.sku for v in parent.variants] == ["TEE-BLUE", "TEE-BLUS"]

    def test_no_active_values_clears_variants(self, catalog_service):
        shirt = catalog_service.create_product(sku="SHIRT", name="Shirt")
        catalog_service.generate_variants(shirt.id, SHIRT_ATTRIBUTES)

        parent = catalog_service.generate_variants(
            shirt.id, [{"name": "Color", "values": [{"value": "Red", "active": False}]}]
        )

        assert parent.variants == ()
        assert parent.kind is ProductKind.VARIANT_PARENT

    def test_variant_stock_summary(self, catalog_service):
        shirt = catalog_service.create_product(sku="SHIRT", name="Shirt")
        parent = catalog_service.generate_variants(shirt.id, SHIRT_ATTRIBUTES)
        target = parent.variants[1]
        catalog_service.update_stock(
            shirt.id,
            StockOperation("inbound", Decimal("6"), variant_id=target.id, warehouse_id="A"),
        )

        summary = catalog_service.get_variant_stock(shirt.id)

        assert [s.quantity for s in summary] == [0, 6, 0, 0]
        assert summary[1].sku == "SHIRT-RED-M"

    def test_unknown_product(self, catalog_service):
        with pytest.raises(ProductNotFoundError):
            catalog_service.generate_variants(uuid4(), SHIRT_ATTRIBUTES)
