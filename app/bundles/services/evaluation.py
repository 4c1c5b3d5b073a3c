"""Derived state of a bundle: price, stock, broken/expired flags.

Combines the pure pricing and availability calculations with one catalog
read. A failing catalog degrades to stale availability instead of raising,
unless the caller asks for a fresh answer.
"""

from dataclasses import dataclass
from datetime import datetime

import structlog

from app.bundles.catalog.gateway import CatalogGateway, VariantSnapshot
from app.bundles.models.bundle import Bundle, BundleStatus
from app.bundles.services.availability import (
    AvailabilityResult,
    compute_availability,
    is_expired,
    requirements_from_items,
)
from app.bundles.services.pricing import PricingResult, compute_bundle_price
from app.core.exceptions import AvailabilityDegradedError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BundleEvaluation:
    pricing: PricingResult
    availability: AvailabilityResult | None
    is_expired: bool
    availability_stale: bool
    last_known_broken: bool
    live_component_total: int | None = None

    @property
    def is_broken(self) -> bool:
        if self.availability is None:
            return self.last_known_broken
        return self.availability.is_broken

    @property
    def broken_reason(self) -> str | None:
        if self.availability is None:
            return None
        return self.availability.broken_reason

    @property
    def virtual_stock(self) -> int | None:
        if self.availability is None:
            return None
        return self.availability.bundle_virtual_stock


def _live_total(bundle: Bundle, snapshot: dict[str, VariantSnapshot]) -> int | None:
    total = 0
    for item in bundle.items:
        variant = snapshot.get(item.product_variant_id)
        if variant is None:
            return None
        total += variant.price * item.quantity
    return total


def evaluate_bundle(
    bundle: Bundle,
    catalog: CatalogGateway,
    now: datetime,
    *,
    require_fresh: bool = False,
) -> BundleEvaluation:
    """Recompute derived fields of ``bundle`` without touching the database.

    Args:
        require_fresh: Propagate ``AvailabilityDegradedError`` instead of
            returning stale availability. Used by publish and restore.
    """
    pricing = compute_bundle_price(bundle)
    expired = is_expired(bundle.valid_to, now)
    last_known_broken = bundle.status == BundleStatus.BROKEN

    try:
        snapshot = catalog.get_variants(item.product_variant_id for item in bundle.items)
    except AvailabilityDegradedError as e:
        if require_fresh:
            raise
        logger.warning(
            "bundle_availability_degraded",
            bundle_id=str(bundle.id),
            error=e.message,
            last_recomputed_at=bundle.last_recomputed_at.isoformat() if bundle.last_recomputed_at else None,
        )
        return BundleEvaluation(
            pricing=pricing,
            availability=None,
            is_expired=expired,
            availability_stale=True,
            last_known_broken=last_known_broken,
        )

    availability = compute_availability(
        requirements_from_items(bundle.items), snapshot, component_total=pricing.component_total
    )
    return BundleEvaluation(
        pricing=pricing,
        availability=availability,
        is_expired=expired,
        availability_stale=False,
        last_known_broken=last_known_broken,
        live_component_total=_live_total(bundle, snapshot),
    )
