"""In-process catalog used for local development and tests."""

from collections.abc import Iterable
from dataclasses import replace

import structlog

from app.bundles.catalog.gateway import CatalogGateway, VariantSnapshot
from app.core.exceptions import AvailabilityDegradedError

logger = structlog.get_logger(__name__)


class InMemoryCatalog(CatalogGateway):
    """Dictionary-backed catalog.

    ``fail_with_outage`` makes every lookup raise, which is how callers
    exercise the degraded-availability path without a network.
    """

    def __init__(self, variants: Iterable[VariantSnapshot] = ()) -> None:
        self._variants: dict[str, VariantSnapshot] = {v.variant_id: v for v in variants}
        self._outage: str | None = None

    def get_variants(self, variant_ids: Iterable[str]) -> dict[str, VariantSnapshot]:
        if self._outage is not None:
            logger.warning("catalog_outage_simulated", reason=self._outage)
            raise AvailabilityDegradedError(self._outage)
        return {vid: self._variants[vid] for vid in variant_ids if vid in self._variants}

    def upsert(self, snapshot: VariantSnapshot) -> None:
        self._variants[snapshot.variant_id] = snapshot

    def remove(self, variant_id: str) -> None:
        self._variants.pop(variant_id, None)

    def set_stock(self, variant_id: str, stock_on_hand: int) -> None:
        self._variants[variant_id] = replace(self._variants[variant_id], stock_on_hand=stock_on_hand)

    def set_enabled(self, variant_id: str, enabled: bool) -> None:
        self._variants[variant_id] = replace(self._variants[variant_id], enabled=enabled)

    def fail_with_outage(self, reason: str = "Catalog unavailable") -> None:
        self._outage = reason

    def recover(self) -> None:
        self._outage = None

    def clear(self) -> None:
        self._variants.clear()
        self._outage = None
