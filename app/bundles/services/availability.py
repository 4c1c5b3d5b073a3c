"""Stock-derived sellability of a bundle.

Everything here is a pure function over a catalog snapshot so results can
be recomputed on demand, on every read or from a sweep, with the same
outcome.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from app.bundles.catalog.gateway import VariantSnapshot
from app.bundles.models.bundle import BundleItem
from app.core.constants import BROKEN_REASON_MAX_VARIANTS

MISSING_VARIANT = "missing_variant"
DELETED_VARIANT = "deleted_variant"
DISABLED_VARIANT = "disabled_variant"
OUT_OF_STOCK = "out_of_stock"

# Issue types that make a bundle unsellable regardless of stock
BREAKING_ISSUES = (MISSING_VARIANT, DELETED_VARIANT, DISABLED_VARIANT)

_ISSUE_LABELS = {
    MISSING_VARIANT: "missing variants",
    DELETED_VARIANT: "deleted variants",
    DISABLED_VARIANT: "disabled variants",
}


@dataclass(frozen=True)
class ItemRequirement:
    variant_id: str
    quantity: int


@dataclass(frozen=True)
class AvailabilityIssue:
    variant_id: str
    issue_type: str
    message: str


@dataclass(frozen=True)
class AvailabilityResult:
    bundle_virtual_stock: int
    is_broken: bool
    broken_reason: str | None = None
    constraining_variants: tuple[str, ...] = ()
    issues: tuple[AvailabilityIssue, ...] = field(default_factory=tuple)


def requirements_from_items(items: Iterable[BundleItem]) -> list[ItemRequirement]:
    return [ItemRequirement(item.product_variant_id, item.quantity) for item in items]


def is_expired(valid_to: datetime | None, now: datetime) -> bool:
    """A bundle is expired once ``now`` is past ``valid_to``; None never expires."""
    return valid_to is not None and now > valid_to


def find_issues(
    requirements: Sequence[ItemRequirement], snapshot: Mapping[str, VariantSnapshot]
) -> list[AvailabilityIssue]:
    """List every per-variant problem, breaking or not, in item order."""
    issues: list[AvailabilityIssue] = []
    for req in requirements:
        variant = snapshot.get(req.variant_id)
        if variant is None:
            issues.append(AvailabilityIssue(req.variant_id, MISSING_VARIANT, "Variant no longer exists"))
        elif variant.deleted:
            issues.append(AvailabilityIssue(req.variant_id, DELETED_VARIANT, "Variant has been deleted"))
        elif not variant.enabled:
            issues.append(AvailabilityIssue(req.variant_id, DISABLED_VARIANT, "Variant is disabled"))
        elif variant.stock_on_hand < req.quantity:
            issues.append(
                AvailabilityIssue(
                    req.variant_id,
                    OUT_OF_STOCK,
                    f"Stock {max(variant.stock_on_hand, 0)} below required quantity {req.quantity}",
                )
            )
    return issues


def _describe(issues: Sequence[AvailabilityIssue]) -> str:
    parts: list[str] = []
    for issue_type in BREAKING_ISSUES:
        ids = [i.variant_id for i in issues if i.issue_type == issue_type]
        if not ids:
            continue
        shown = ", ".join(ids[:BROKEN_REASON_MAX_VARIANTS])
        if len(ids) > BROKEN_REASON_MAX_VARIANTS:
            shown += f" (+{len(ids) - BROKEN_REASON_MAX_VARIANTS} more)"
        parts.append(f"{_ISSUE_LABELS[issue_type].capitalize()}: {shown}")
    return "; ".join(parts)


def compute_availability(
    requirements: Sequence[ItemRequirement],
    snapshot: Mapping[str, VariantSnapshot],
    component_total: int | None = None,
) -> AvailabilityResult:
    """Compute virtual stock and the broken flag for one bundle.

    Args:
        requirements: (variant, quantity) pairs of the bundle.
        snapshot: Catalog answer for those variants; absent ids are missing.
        component_total: Priced component total, when known. Zero marks the
            bundle broken since it can never be a legitimate sale price.
    """
    if not requirements:
        return AvailabilityResult(0, True, "Bundle has no items")

    issues = find_issues(requirements, snapshot)
    breaking = [i for i in issues if i.issue_type in BREAKING_ISSUES]

    if breaking:
        return AvailabilityResult(
            bundle_virtual_stock=0,
            is_broken=True,
            broken_reason=_describe(breaking),
            constraining_variants=tuple(dict.fromkeys(i.variant_id for i in breaking)),
            issues=tuple(issues),
        )

    # Same variant listed twice shares one stock pool
    needed: dict[str, int] = {}
    for req in requirements:
        needed[req.variant_id] = needed.get(req.variant_id, 0) + req.quantity
    per_item = {
        variant_id: max(snapshot[variant_id].stock_on_hand, 0) // qty
        for variant_id, qty in needed.items()
    }

    virtual_stock = min(per_item.values())
    constraining = tuple(vid for vid, sellable in per_item.items() if sellable == virtual_stock)

    if component_total is not None and component_total <= 0:
        return AvailabilityResult(
            bundle_virtual_stock=virtual_stock,
            is_broken=True,
            broken_reason="Component total is zero",
            constraining_variants=constraining,
            issues=tuple(issues),
        )

    return AvailabilityResult(
        bundle_virtual_stock=virtual_stock,
        is_broken=False,
        constraining_variants=constraining,
        issues=tuple(issues),
    )
