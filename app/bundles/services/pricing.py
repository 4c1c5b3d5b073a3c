"""Bundle price and savings calculation.

Pure functions: no database, no catalog, no clock. All money is in minor
currency units (grosz) and never rounded up.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

from app.bundles.models.bundle import Bundle, BundleItem, DiscountType
from app.core.constants import PERCENT_OFF_MAX, PERCENT_OFF_MIN
from app.core.exceptions import ValidationError


@dataclass(frozen=True)
class DiscountRule:
    discount_type: DiscountType
    fixed_price: int | None = None
    percent_off: float | None = None

    @classmethod
    def from_bundle(cls, bundle: Bundle) -> "DiscountRule":
        return cls(
            discount_type=bundle.discount_type,
            fixed_price=bundle.fixed_price,
            percent_off=bundle.percent_off,
        )


@dataclass(frozen=True)
class PriceLine:
    """Authoritative price of one bundle component."""

    variant_id: str
    unit_price: int
    quantity: int


@dataclass(frozen=True)
class PricingResult:
    effective_price: int
    total_savings: int
    component_total: int

    @property
    def discount_pct(self) -> float:
        """Bundle discount as a fraction of the component total (0.2 = 20%)."""
        if self.component_total <= 0:
            return 0.0
        return max(0.0, 1 - self.effective_price / self.component_total)


def validate_discount_rule(rule: DiscountRule) -> list[dict[str, str]]:
    """Return field-level problems with ``rule`` (empty when consistent)."""
    errors: list[dict[str, str]] = []
    if rule.discount_type == DiscountType.FIXED:
        if rule.fixed_price is None:
            errors.append({"field": "fixed_price", "message": "fixed_price is required for fixed bundles"})
        elif rule.fixed_price < 0:
            errors.append({"field": "fixed_price", "message": "fixed_price must not be negative"})
    elif rule.discount_type == DiscountType.PERCENT:
        if rule.percent_off is None:
            errors.append({"field": "percent_off", "message": "percent_off is required for percent bundles"})
        elif not PERCENT_OFF_MIN <= rule.percent_off <= PERCENT_OFF_MAX:
            errors.append({"field": "percent_off", "message": "percent_off must be between 0 and 100"})
    else:
        errors.append({"field": "discount_type", "message": f"Unknown discount type: {rule.discount_type}"})
    return errors


def ensure_valid_discount_rule(rule: DiscountRule) -> None:
    errors = validate_discount_rule(rule)
    if errors:
        raise ValidationError(errors[0]["message"], field=errors[0]["field"], errors=errors)


def price_lines_from_items(items: Iterable[BundleItem]) -> list[PriceLine]:
    """Price lines using the snapshot captured when each item was added."""
    return [
        PriceLine(
            variant_id=item.product_variant_id,
            unit_price=item.unit_price_snapshot,
            quantity=item.quantity,
        )
        for item in items
    ]


def component_total(lines: Iterable[PriceLine]) -> int:
    return sum(line.unit_price * line.quantity for line in lines)


def _apply_percent(total: int, percent_off: float) -> int:
    # Decimal keeps e.g. 7% off 100 at 93 instead of 92.999... -> 92
    factor = (Decimal(100) - Decimal(str(percent_off))) / Decimal(100)
    return int((Decimal(total) * factor).to_integral_value(rounding=ROUND_FLOOR))


def compute_effective_price(rule: DiscountRule, lines: Sequence[PriceLine]) -> PricingResult:
    """Derive the sale price and savings of a bundle.

    A zero component total always prices at 0/0; the availability check
    flags such a bundle as broken.

    Raises:
        ValidationError: The discount rule is internally inconsistent.
    """
    ensure_valid_discount_rule(rule)

    total = component_total(lines)
    if total <= 0:
        return PricingResult(effective_price=0, total_savings=0, component_total=0)

    if rule.discount_type == DiscountType.FIXED:
        effective = rule.fixed_price or 0
    else:
        effective = _apply_percent(total, rule.percent_off or 0.0)

    effective = max(0, effective)
    return PricingResult(
        effective_price=effective,
        total_savings=max(0, total - effective),
        component_total=total,
    )


def compute_bundle_price(bundle: Bundle) -> PricingResult:
    """Price ``bundle`` from its item snapshots."""
    return compute_effective_price(DiscountRule.from_bundle(bundle), price_lines_from_items(bundle.items))
