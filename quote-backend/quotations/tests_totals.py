from decimal import Decimal

from django.test import SimpleTestCase

from quotations.services.totals import (
    ItemIn,
    TaxMode,
    compute_quotation_totals,
    display_amount,
    line_total,
    money,
    normalize_item,
    serialize_totals,
    tax_amount,
    taxable_value,
    to_amount,
    to_quantity,
)


class MoneyPrimitiveTests(SimpleTestCase):
    def test_rounds_half_up_not_to_even(self):
        self.assertEqual(money(Decimal("0.025")), Decimal("0.03"))
        self.assertEqual(money(Decimal("0.015")), Decimal("0.02"))
        self.assertEqual(money(Decimal("2.675")), Decimal("2.68"))

    def test_tax_amount_is_rounded_line_total_adds_rounded_taxable(self):
        taxable = taxable_value(1, "0.25")
        self.assertEqual(taxable, Decimal("0.25"))
        self.assertEqual(tax_amount(taxable, 10), Decimal("0.03"))
        self.assertEqual(line_total(taxable, tax_amount(taxable, 10)), Decimal("0.28"))

    def test_taxable_value_is_not_rounded(self):
        self.assertEqual(taxable_value(3, "0.333"), Decimal("0.999"))

    def test_garbage_coerces_to_zero(self):
        for raw in (None, "", "   ", "abc", "-5", -1, True, float("inf"), float("nan"), "NaN", [1]):
            with self.subTest(raw=raw):
                self.assertEqual(to_amount(raw), Decimal("0"))

    def test_numeric_strings_and_floats(self):
        self.assertEqual(to_amount("1,000.50"), Decimal("1000.50"))
        self.assertEqual(to_amount(" 42 "), Decimal("42"))
        self.assertEqual(to_amount(0.1), Decimal("0.1"))
        self.assertEqual(to_amount(Decimal("12.5")), Decimal("12.5"))

    def test_quantity_truncates_to_whole_units(self):
        self.assertEqual(to_quantity("2.9"), 2)
        self.assertEqual(to_quantity("x"), 0)
        self.assertEqual(to_quantity(-3), 0)


class TaxModeParseTests(SimpleTestCase):
    def test_accepts_form_spellings(self):
        self.assertIs(TaxMode.parse("global"), TaxMode.GLOBAL)
        self.assertIs(TaxMode.parse("per-item"), TaxMode.PER_ITEM)
        self.assertIs(TaxMode.parse("PER_ITEM"), TaxMode.PER_ITEM)
        self.assertIs(TaxMode.parse("perItem"), TaxMode.PER_ITEM)
        self.assertIs(TaxMode.parse(TaxMode.GLOBAL), TaxMode.GLOBAL)

    def test_unknown_returns_default(self):
        self.assertIsNone(TaxMode.parse("bogus"))
        self.assertIsNone(TaxMode.parse(None))
        self.assertIs(TaxMode.parse("", default=TaxMode.GLOBAL), TaxMode.GLOBAL)


class NormalizeItemTests(SimpleTestCase):
    def test_single_item_at_eighteen_percent(self):
        line = normalize_item(ItemIn("Camera", 2, 100, 18), TaxMode.PER_ITEM, 0)
        self.assertEqual(line.tax_rate_percent, Decimal("18"))
        self.assertEqual(line.tax_amount, Decimal("36.00"))
        self.assertEqual(line.line_total, Decimal("236.00"))

    def test_global_mode_ignores_item_rate(self):
        line = normalize_item(ItemIn("Camera", 1, 100, 5), TaxMode.GLOBAL, 18)
        self.assertEqual(line.tax_rate_percent, Decimal("18"))
        self.assertEqual(line.tax_amount, Decimal("18.00"))

    def test_per_item_without_rate_uses_default(self):
        line = normalize_item(ItemIn("Cable", 1, 100), TaxMode.PER_ITEM, 5)
        self.assertEqual(line.tax_amount, Decimal("18.00"))

        line = normalize_item(ItemIn("Cable", 1, 100, ""), TaxMode.PER_ITEM, 5, default_tax_percent=12)
        self.assertEqual(line.tax_amount, Decimal("12.00"))

    def test_half_typed_row_prices_as_zero(self):
        line = normalize_item(ItemIn("", "", "abc", "x"), TaxMode.PER_ITEM, 18)
        self.assertEqual(line.quantity, 0)
        self.assertEqual(line.tax_amount, Decimal("0.00"))
        self.assertEqual(line.line_total, Decimal("0.00"))

    def test_description_is_trimmed(self):
        line = normalize_item(ItemIn("  Dome camera  ", 1, 10), TaxMode.GLOBAL, 18)
        self.assertEqual(line.description, "Dome camera")


class ComputeQuotationTotalsTests(SimpleTestCase):
    def test_two_items_global_eighteen(self):
        totals = compute_quotation_totals(
            [ItemIn("DVR", 1, 1000), ItemIn("Camera", 3, 50)],
            TaxMode.GLOBAL,
            18,
        )
        self.assertEqual([l.line_total for l in totals.items], [Decimal("1180.00"), Decimal("177.00")])
        self.assertEqual(totals.subtotal, Decimal("1150.00"))
        self.assertEqual(totals.tax_total, Decimal("207.00"))
        self.assertEqual(totals.grand_total, Decimal("1357.00"))
        self.assertIs(totals.tax_mode, TaxMode.GLOBAL)

    def test_grand_total_is_sum_of_rounded_lines(self):
        # each line rounds 0.005 tax up to 0.01; one document level rounding would give 0.02
        items = [ItemIn("Clip", 1, "0.05", 10) for _ in range(3)]
        totals = compute_quotation_totals(items, TaxMode.PER_ITEM, 18)
        self.assertEqual(totals.tax_total, Decimal("0.03"))
        self.assertEqual(totals.grand_total, Decimal("0.18"))
        self.assertEqual(totals.grand_total, sum(l.line_total for l in totals.items))

    def test_grand_total_matches_line_sum_for_mixed_rates(self):
        items = [
            ItemIn("Camera", 3, "149.99", 12),
            ItemIn("Hard disk", 1, "3499.50", 18),
            ItemIn("Cable roll", 7, "12.35", 28),
            ItemIn("Service", 1, "999", 5),
        ]
        totals = compute_quotation_totals(items, TaxMode.PER_ITEM, 18)
        self.assertEqual(totals.grand_total, sum(l.line_total for l in totals.items))
        self.assertEqual(totals.tax_total, sum(l.tax_amount for l in totals.items))

    def test_recompute_is_idempotent(self):
        first = compute_quotation_totals(
            [ItemIn("Camera", 3, "149.99", 12), ItemIn("Service", 1, "999", 5)],
            TaxMode.PER_ITEM,
            18,
        )
        again = compute_quotation_totals(
            [ItemIn(l.description, l.quantity, l.rate, l.tax_rate_percent) for l in first.items],
            TaxMode.PER_ITEM,
            18,
        )
        self.assertEqual(
            [(l.tax_amount, l.line_total) for l in first.items],
            [(l.tax_amount, l.line_total) for l in again.items],
        )
        self.assertEqual(first.grand_total, again.grand_total)

    def test_mode_string_is_parsed_and_unknown_falls_back_to_global(self):
        totals = compute_quotation_totals([ItemIn("A", 1, 100, 5)], "per-item", 18)
        self.assertEqual(totals.grand_total, Decimal("105.00"))

        totals = compute_quotation_totals([ItemIn("A", 1, 100, 5)], "whatever", 18)
        self.assertIs(totals.tax_mode, TaxMode.GLOBAL)
        self.assertEqual(totals.grand_total, Decimal("118.00"))

    def test_empty_collection(self):
        totals = compute_quotation_totals([], TaxMode.GLOBAL, 18)
        self.assertEqual(totals.grand_total, Decimal("0.00"))
        self.assertEqual(totals.items, [])

    def test_serialize_totals_uses_two_decimal_strings(self):
        data = serialize_totals(compute_quotation_totals([ItemIn("DVR", 1, 1000)], TaxMode.GLOBAL, 18))
        self.assertEqual(data["tax_mode"], "GLOBAL")
        self.assertEqual(data["gst_percent"], "18.00")
        self.assertEqual(data["subtotal"], "1000.00")
        self.assertEqual(data["tax_total"], "180.00")
        self.assertEqual(data["grand_total"], "1180.00")
        self.assertEqual(data["items"][0]["rate"], "1000.00")
        self.assertEqual(data["items"][0]["line_total"], "1180.00")

    def test_serialized_rate_shows_the_digits_it_was_priced_with(self):
        self.assertEqual(display_amount(Decimal("18")), "18.00")
        self.assertEqual(display_amount(Decimal("10.005")), "10.005")

        data = serialize_totals(compute_quotation_totals([ItemIn("Clip", 1, "10.005")], TaxMode.GLOBAL, "12.5"))
        self.assertEqual(data["gst_percent"], "12.50")
        self.assertEqual(data["items"][0]["rate"], "10.005")
        self.assertEqual(data["items"][0]["tax_amount"], "1.25")
        self.assertEqual(data["items"][0]["line_total"], "11.26")
