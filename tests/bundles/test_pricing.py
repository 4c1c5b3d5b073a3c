"""
Tests for bundle price and savings calculation.
"""

import pytest

from app.bundles.models import DiscountType
from app.bundles.services.pricing import (
    DiscountRule,
    PriceLine,
    PricingResult,
    compute_bundle_price,
    compute_effective_price,
    validate_discount_rule,
)
from app.core.exceptions import ValidationError

LINES = [PriceLine("A", 3000, 1), PriceLine("B", 2500, 1)]


class TestFixedPrice:
    def test_fixed_price_below_component_total(self):
        """fixed 5000 over 3000 + 2500 saves 500."""
        result = compute_effective_price(DiscountRule(DiscountType.FIXED, fixed_price=5000), LINES)

        assert result == PricingResult(effective_price=5000, total_savings=500, component_total=5500)

    def test_fixed_price_above_total_never_reports_negative_savings(self):
        result = compute_effective_price(DiscountRule(DiscountType.FIXED, fixed_price=6000), LINES)

        assert result.effective_price == 6000
        assert result.total_savings == 0
        assert result.discount_pct == 0.0

    def test_quantity_multiplies_unit_price(self):
        lines = [PriceLine("A", 3000, 2), PriceLine("B", 2500, 3)]

        result = compute_effective_price(DiscountRule(DiscountType.FIXED, fixed_price=10000), lines)

        assert result.component_total == 13500
        assert result.total_savings == 3500


class TestPercentOff:
    def test_percent_off_floors_result(self):
        """20% off 5500 is 4400."""
        result = compute_effective_price(DiscountRule(DiscountType.PERCENT, percent_off=20), LINES)

        assert result.effective_price == 4400
        assert result.total_savings == 1100
        assert result.discount_pct == pytest.approx(0.2)

    def test_percent_off_rounds_down_fractional_grosz(self):
        result = compute_effective_price(
            DiscountRule(DiscountType.PERCENT, percent_off=33), [PriceLine("A", 999, 1)]
        )

        # 999 * 0.67 = 669.33
        assert result.effective_price == 669
        assert result.total_savings == 330

    def test_percent_off_keeps_exact_values(self):
        result = compute_effective_price(
            DiscountRule(DiscountType.PERCENT, percent_off=7), [PriceLine("A", 100, 1)]
        )

        assert result.effective_price == 93

    def test_hundred_percent_off_is_free(self):
        result = compute_effective_price(DiscountRule(DiscountType.PERCENT, percent_off=100), LINES)

        assert result.effective_price == 0
        assert result.total_savings == 5500

    def test_zero_percent_off_is_full_price(self):
        result = compute_effective_price(DiscountRule(DiscountType.PERCENT, percent_off=0), LINES)

        assert result.effective_price == 5500
        assert result.total_savings == 0


class TestEdgeCases:
    def test_empty_items_price_at_zero(self):
        result = compute_effective_price(DiscountRule(DiscountType.FIXED, fixed_price=5000), [])

        assert result == PricingResult(0, 0, 0)
        assert result.discount_pct == 0.0

    def test_zero_priced_components_price_at_zero(self):
        result = compute_effective_price(
            DiscountRule(DiscountType.PERCENT, percent_off=10), [PriceLine("A", 0, 3)]
        )

        assert result.effective_price == 0
        assert result.total_savings == 0

    def test_same_inputs_give_same_outputs(self):
        rule = DiscountRule(DiscountType.PERCENT, percent_off=15.5)

        assert compute_effective_price(rule, LINES) == compute_effective_price(rule, LINES)


class TestDiscountRuleValidation:
    @pytest.mark.parametrize(
        ("rule", "field"),
        [
            (DiscountRule(DiscountType.FIXED), "fixed_price"),
            (DiscountRule(DiscountType.FIXED, fixed_price=-1), "fixed_price"),
            (DiscountRule(DiscountType.PERCENT), "percent_off"),
            (DiscountRule(DiscountType.PERCENT, percent_off=101), "percent_off"),
            (DiscountRule(DiscountType.PERCENT, percent_off=-5), "percent_off"),
        ],
    )
    def test_inconsistent_rules_are_reported(self, rule, field):
        errors = validate_discount_rule(rule)

        assert [e["field"] for e in errors] == [field]

    def test_compute_rejects_inconsistent_rule(self):
        with pytest.raises(ValidationError) as exc_info:
            compute_effective_price(DiscountRule(DiscountType.PERCENT, percent_off=150), LINES)

        assert exc_info.value.field == "percent_off"

    def test_percent_rule_ignores_fixed_price(self):
        assert validate_discount_rule(DiscountRule(DiscountType.PERCENT, fixed_price=-10, percent_off=5)) == []


class TestBundlePrice:
    def test_uses_item_snapshots(self, draft_bundle):
        result = compute_bundle_price(draft_bundle)

        assert result.component_total == 5500
        assert result.effective_price == 5000
