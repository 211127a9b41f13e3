from decimal import Decimal

from django.test import SimpleTestCase

from quotations.services.reconcile import (
    MODE_SOURCE_INFERRED,
    MODE_SOURCE_STORED,
    StoredItem,
    implied_tax_percent,
    infer_tax_mode,
    reconcile_tax_mode,
    serialize_edit_state,
)
from quotations.services.totals import ItemIn, TaxMode, compute_quotation_totals


class ReconcileTaxModeTests(SimpleTestCase):
    def test_equal_derived_rates_infer_global(self):
        state = reconcile_tax_mode(
            [StoredItem("DVR", 1, "1000", "180.00"), StoredItem("Camera", 3, "50", "27.00")],
            "18",
        )
        self.assertEqual([i.tax_rate_percent for i in state.items], [Decimal("18.00"), Decimal("18.00")])
        self.assertIs(state.inferred_mode, TaxMode.GLOBAL)
        self.assertIs(state.tax_mode, TaxMode.GLOBAL)
        self.assertEqual(state.mode_source, MODE_SOURCE_INFERRED)

    def test_differing_rates_infer_per_item(self):
        state = reconcile_tax_mode(
            [StoredItem("DVR", 1, "100", "18.00"), StoredItem("Camera", 2, "100", "24.00")],
            "18",
        )
        self.assertEqual([i.tax_rate_percent for i in state.items], [Decimal("18.00"), Decimal("12.00")])
        self.assertIs(state.inferred_mode, TaxMode.PER_ITEM)

    def test_zero_taxable_falls_back_to_document_rate(self):
        state = reconcile_tax_mode([StoredItem("Free sample", 0, "50", "0")], "18")
        self.assertEqual(state.items[0].tax_rate_percent, Decimal("18.00"))
        self.assertEqual(implied_tax_percent(0, 50, 0, "12"), Decimal("12.00"))

    def test_single_item_is_always_global(self):
        state = reconcile_tax_mode([StoredItem("DVR", 1, "100", "5.00")], "18")
        self.assertIs(state.inferred_mode, TaxMode.GLOBAL)
        self.assertEqual(state.items[0].tax_rate_percent, Decimal("5.00"))

    def test_seeds_global_percent_from_stored_value(self):
        state = reconcile_tax_mode(
            [StoredItem("DVR", 1, "100", "18.00"), StoredItem("Camera", 1, "100", "28.00")],
            "12.00",
        )
        self.assertEqual(state.global_tax_percent, Decimal("12.00"))

    def test_stored_mode_wins_over_inference(self):
        state = reconcile_tax_mode(
            [StoredItem("DVR", 1, "100", "18.00"), StoredItem("Camera", 1, "200", "36.00")],
            "18",
            stored_mode="PER_ITEM",
        )
        self.assertIs(state.inferred_mode, TaxMode.GLOBAL)
        self.assertIs(state.tax_mode, TaxMode.PER_ITEM)
        self.assertEqual(state.mode_source, MODE_SOURCE_STORED)

    def test_persisted_amounts_are_returned_unchanged(self):
        state = reconcile_tax_mode(
            [
                StoredItem("DVR", 2, "100", "36.00", "236.00"),
                StoredItem("Camera", 2, "100", "36.00"),
            ],
            "18",
        )
        self.assertEqual(state.items[0].tax_amount, Decimal("36.00"))
        self.assertEqual(state.items[0].line_total, Decimal("236.00"))
        # missing line_total is derived from the stored tax amount
        self.assertEqual(state.items[1].line_total, Decimal("236.00"))

    def test_save_then_reload_reproduces_item_rates(self):
        rates = [18, 12, 5, 28]
        totals = compute_quotation_totals(
            [
                ItemIn("Camera", 2, "100", rates[0]),
                ItemIn("Dome camera", 3, "149.99", rates[1]),
                ItemIn("Service", 1, "999", rates[2]),
                ItemIn("Cable roll", 7, "12.50", rates[3]),
            ],
            TaxMode.PER_ITEM,
            18,
        )
        stored = [
            StoredItem(l.description, l.quantity, l.rate, l.tax_amount, l.line_total) for l in totals.items
        ]
        state = reconcile_tax_mode(stored, totals.global_tax_percent)

        for line, original in zip(state.items, rates):
            self.assertLessEqual(abs(line.tax_rate_percent - Decimal(original)), Decimal("0.01"))
        self.assertIs(state.inferred_mode, TaxMode.PER_ITEM)

    def test_infer_tax_mode_compares_against_first(self):
        self.assertIs(infer_tax_mode([]), TaxMode.GLOBAL)
        self.assertIs(infer_tax_mode([Decimal("18"), Decimal("18.00")]), TaxMode.GLOBAL)
        self.assertIs(infer_tax_mode([Decimal("18"), Decimal("18"), Decimal("5")]), TaxMode.PER_ITEM)

    def test_serialize_edit_state(self):
        data = serialize_edit_state(
            reconcile_tax_mode([StoredItem("DVR", 1, "1000", "180")], "18", stored_mode="GLOBAL")
        )
        self.assertEqual(data["tax_mode"], "GLOBAL")
        self.assertEqual(data["inferred_mode"], "GLOBAL")
        self.assertEqual(data["mode_source"], "stored")
        self.assertEqual(data["gst_percent"], "18.00")
        self.assertEqual(data["items"][0]["tax_rate_percent"], "18.00")
        self.assertEqual(data["items"][0]["line_total"], "1180.00")
