# documents/tests/test_totals.py

from decimal import Decimal

from django.test import SimpleTestCase, override_settings

from documents.services.totals import compute_totals


class TotalsCascadeTests(SimpleTestCase):
    """
    Discount -> levy -> tax -> stamp duty, in that order.
    """

    def _cascade_line(self):
        return {
            "quantity": Decimal("2"),
            "unit_price": Decimal("100"),
            "discount_pct": Decimal("10"),
            "tax_pct": Decimal("19"),
        }

    def test_cascade_order_matches_worked_example(self):
        totals = compute_totals(
            [self._cascade_line()],
            global_discount_pct=Decimal("5"),
            levy_enabled=True,
            levy_rate_pct=Decimal("1"),
            stamp_duty=Decimal("1"),
        )

        self.assertEqual(totals.base_amount, Decimal("171.00"))
        self.assertEqual(totals.levy_amount, Decimal("1.71"))
        self.assertEqual(totals.tax_amount, Decimal("32.81"))
        self.assertEqual(totals.total_amount, Decimal("206.52"))

    def test_running_twice_gives_identical_totals(self):
        lines = [
            self._cascade_line(),
            {"quantity": "3", "unit_price": "33.333", "discount_pct": "7", "tax_pct": "7"},
        ]
        kwargs = dict(global_discount_pct="2.5", levy_enabled=True, levy_rate_pct="1", stamp_duty="1")

        first = compute_totals(lines, **kwargs)
        second = compute_totals(lines, **kwargs)

        self.assertEqual(first, second)
        self.assertEqual(first.as_dict(), second.as_dict())

    def test_zero_lines_give_zero_totals_even_with_levy(self):
        totals = compute_totals([], levy_enabled=True, levy_rate_pct="1")

        self.assertEqual(totals.base_amount, Decimal("0.00"))
        self.assertEqual(totals.levy_amount, Decimal("0.00"))
        self.assertEqual(totals.tax_amount, Decimal("0.00"))
        self.assertEqual(totals.total_amount, Decimal("0.00"))

    def test_zero_lines_echo_stamp_duty_but_total_stays_zero(self):
        totals = compute_totals([], stamp_duty="1")

        self.assertEqual(totals.stamp_duty, Decimal("1"))
        self.assertEqual(totals.total_amount, Decimal("0.00"))

    def test_levy_disabled_adds_nothing(self):
        totals = compute_totals([self._cascade_line()], global_discount_pct="5", levy_rate_pct="1")

        self.assertEqual(totals.levy_amount, Decimal("0.00"))
        # 171.00 x 0.19 = 32.49
        self.assertEqual(totals.tax_amount, Decimal("32.49"))
        self.assertEqual(totals.total_amount, Decimal("203.49"))

    def test_mixed_tax_rates_are_taxed_per_line(self):
        totals = compute_totals(
            [
                {"quantity": "1", "unit_price": "100", "tax_pct": "19"},
                {"quantity": "1", "unit_price": "100", "tax_pct": "7"},
            ]
        )

        self.assertEqual(totals.base_amount, Decimal("200.00"))
        self.assertEqual(totals.tax_amount, Decimal("26.00"))
        self.assertEqual(totals.total_amount, Decimal("226.00"))

    def test_line_levy_override(self):
        totals = compute_totals(
            [
                {"quantity": "1", "unit_price": "100", "tax_pct": "0"},
                {"quantity": "1", "unit_price": "100", "tax_pct": "0", "levy_pct": "0"},
            ],
            levy_enabled=True,
            levy_rate_pct="1",
        )

        self.assertEqual(totals.levy_amount, Decimal("1.00"))
        self.assertEqual(totals.total_amount, Decimal("201.00"))

    def test_negative_quantities_produce_negative_totals(self):
        totals = compute_totals([{"quantity": "-2", "unit_price": "50", "tax_pct": "19"}])

        self.assertEqual(totals.base_amount, Decimal("-100.00"))
        self.assertEqual(totals.tax_amount, Decimal("-19.00"))
        self.assertEqual(totals.total_amount, Decimal("-119.00"))

    def test_missing_numbers_count_as_zero(self):
        totals = compute_totals([{"quantity": None, "unit_price": "abc", "tax_pct": ""}])
        self.assertEqual(totals.total_amount, Decimal("0.00"))

    @override_settings(DEFAULT_LEVY_RATE_PCT="2")
    def test_levy_rate_defaults_from_settings(self):
        totals = compute_totals([{"quantity": "1", "unit_price": "100"}], levy_enabled=True)
        self.assertEqual(totals.levy_amount, Decimal("2.00"))
