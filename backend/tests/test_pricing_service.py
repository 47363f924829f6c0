import unittest

from shoeclean.catalog import SERVICES, build_catalog
from shoeclean.services.pricing_service import (
    CatalogMiss,
    apply_discount,
    build_line_item,
    compute_order_totals,
    price_line_item,
    price_or_zero,
)

from conftest import make_discount, make_line_item


class PriceLookupTests(unittest.TestCase):
    def test_known_variant_price(self):
        self.assertEqual(price_line_item("DEEP_CLEAN_EXPRESS", "gold"), 35000)
        self.assertEqual(price_line_item("RECOLOUR", "premium"), 115000)

    def test_incomplete_selection_raises_catalog_miss(self):
        with self.assertRaises(CatalogMiss) as ctx:
            price_line_item("DEEP_CLEAN_EXPRESS", None)
        self.assertEqual(ctx.exception.service_key, "DEEP_CLEAN_EXPRESS")

        with self.assertRaises(CatalogMiss):
            price_line_item("UNYELLOWING", "gold")  # variant not offered for this service
        with self.assertRaises(CatalogMiss):
            price_line_item("NOPE", "gold")

    def test_price_or_zero_for_form_state(self):
        self.assertEqual(price_or_zero(None, None), 0)
        self.assertEqual(price_or_zero("REPAINT", ""), 0)
        self.assertEqual(price_or_zero("REPAINT", "platinum"), 86000)

    def test_custom_catalog(self):
        catalog = build_catalog({"S1": {"name": "Service 1", "duration": "1 hari", "variants": {"gold": ("Gold", 35000)}}})
        self.assertEqual(price_line_item("S1", "gold", catalog), 35000)
        with self.assertRaises(TypeError):
            catalog["S2"] = None  # read-only

    def test_catalog_is_read_only(self):
        with self.assertRaises(TypeError):
            SERVICES["DEEP_CLEAN_EXPRESS"].variants["gold"] = None


class DiscountTests(unittest.TestCase):
    def test_percentage_truncates_to_whole_rupiah(self):
        self.assertEqual(apply_discount(35000, make_discount("percentage", 10)), 3500)
        self.assertEqual(apply_discount(33333, make_discount("percentage", 15)), 4999)

    def test_fixed_is_not_clamped_to_price(self):
        self.assertEqual(apply_discount(20000, make_discount("fixed", 5000)), 5000)
        self.assertEqual(apply_discount(20000, make_discount("fixed", 50000)), 50000)

    def test_no_discount_or_unknown_kind(self):
        self.assertEqual(apply_discount(35000, None), 0)
        self.assertEqual(apply_discount(35000, make_discount("bogus", 10)), 0)

    def test_property_percentage_is_floor(self):
        for price in (0, 1, 999, 19000, 33000, 115000):
            for pct in (0, 1, 7, 10, 33, 50, 100):
                self.assertEqual(apply_discount(price, make_discount("percentage", pct)), (price * pct) // 100)


class TotalsTests(unittest.TestCase):
    def test_totals_invariant(self):
        items = [
            make_line_item("a", price=35000, discount_amount=3500),
            make_line_item("b", price=22000, discount_amount=0),
            make_line_item("c", price=40000, discount_amount=5000),
        ]
        totals = compute_order_totals(items)
        self.assertEqual(totals.subtotal, 97000)
        self.assertEqual(totals.discount, 8500)
        self.assertEqual(totals.total, totals.subtotal - totals.discount)

    def test_empty_order(self):
        totals = compute_order_totals([])
        self.assertEqual((totals.subtotal, totals.discount, totals.total), (0, 0, 0))

    def test_total_can_go_negative(self):
        totals = compute_order_totals([make_line_item(price=20000, discount_amount=50000)])
        self.assertEqual(totals.total, -30000)


class BuildLineItemTests(unittest.TestCase):
    def test_scenario_gold_with_ten_percent(self):
        item = build_line_item(
            brand="Adidas",
            service_key="DEEP_CLEAN_EXPRESS",
            variant_key="gold",
            discount=make_discount("percentage", 10),
        )
        self.assertEqual(item.unit_price, 35000)
        self.assertEqual(item.discount_amount, 3500)
        self.assertEqual(item.discount_id, "disc-1")
        self.assertEqual(item.process_status, "received")

        totals = compute_order_totals([item])
        self.assertEqual((totals.subtotal, totals.discount, totals.total), (35000, 3500, 31500))

    def test_inactive_discount_is_ignored(self):
        item = build_line_item(
            brand="Vans",
            service_key="DEEP_CLEAN_REGULER",
            variant_key="silver",
            discount=make_discount("fixed", 5000, is_active=False),
        )
        self.assertEqual(item.discount_amount, 0)
        self.assertIsNone(item.discount_id)

    def test_item_ids_are_unique(self):
        a = build_line_item(brand="A", service_key="REPAINT", variant_key="premium")
        b = build_line_item(brand="B", service_key="REPAINT", variant_key="premium")
        self.assertNotEqual(a.id, b.id)
