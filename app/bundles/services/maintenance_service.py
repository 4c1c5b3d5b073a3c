"""Periodic sweeps and safety checks over all bundles."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime

import structlog
from sqlalchemy.orm import Session

from app.bundles.catalog.gateway import CatalogGateway
from app.bundles.models.bundle import BundleStatus
from app.bundles.repository import BundleRepository
from app.bundles.services.availability import AvailabilityIssue, find_issues, requirements_from_items
from app.bundles.services.lifecycle import BundleLifecycleService
from app.core.config import settings
from app.core.datetime_utils import utcnow
from app.core.exceptions import NotFoundError

logger = structlog.get_logger(__name__)

RECOMPUTE_STATUSES = (BundleStatus.ACTIVE, BundleStatus.BROKEN)


@dataclass
class SweepSummary:
    checked: int = 0
    broken: int = 0
    expired: int = 0
    degraded: int = 0
    newly_broken: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, object]:
        return {
            "checked": self.checked,
            "broken": self.broken,
            "expired": self.expired,
            "degraded": self.degraded,
            "newly_broken": list(self.newly_broken),
        }


@dataclass(frozen=True)
class IntegrityReport:
    bundle_id: uuid.UUID
    issues: list[AvailabilityIssue]

    @property
    def is_valid(self) -> bool:
        return not self.issues


@dataclass(frozen=True)
class VariantUsage:
    variant_id: str
    bundle_ids: list[uuid.UUID]
    blocking_bundle_ids: list[uuid.UUID]

    @property
    def can_delete(self) -> bool:
        return not self.blocking_bundle_ids


class BundleMaintenanceService:
    def __init__(self, db: Session, catalog: CatalogGateway):
        self.db = db
        self.catalog = catalog
        self.bundles = BundleRepository(db)
        self.lifecycle = BundleLifecycleService(db, catalog)

    def expire_due_bundles(self, now: datetime | None = None) -> list[uuid.UUID]:
        """Move every ACTIVE bundle whose ``valid_to`` has passed to EXPIRED."""
        now = now or utcnow()
        expired: list[uuid.UUID] = []
        for bundle in self.bundles.active_due_for_expiry(now):
            if self.lifecycle.expire(bundle, now):
                expired.append(bundle.id)

        logger.info("bundles_auto_expired", count=len(expired))
        return expired

    def recompute_all(self, now: datetime | None = None, batch_size: int | None = None) -> SweepSummary:
        """Recompute ACTIVE and BROKEN bundles, applying automatic degradation."""
        now = now or utcnow()
        batch_size = batch_size or settings.BUNDLE_SWEEP_BATCH_SIZE
        summary = SweepSummary()

        # Keyset paging by id, so status changes never shift later pages
        for batch in self.bundles.iter_batches(RECOMPUTE_STATUSES, batch_size):
            for bundle in batch:
                before = bundle.status
                evaluation = self.lifecycle.recompute(bundle, now)
                summary.checked += 1
                if evaluation.availability_stale:
                    summary.degraded += 1
                if bundle.status == BundleStatus.BROKEN:
                    summary.broken += 1
                    if before == BundleStatus.ACTIVE:
                        summary.newly_broken.append(str(bundle.id))
                elif bundle.status == BundleStatus.EXPIRED:
                    summary.expired += 1

        logger.info("bundles_recomputed", **summary.as_dict())
        return summary

    def validate_integrity(self, bundle_id: uuid.UUID) -> IntegrityReport:
        """List component problems of one bundle without changing it.

        Raises:
            NotFoundError: Unknown bundle.
            AvailabilityDegradedError: Catalog could not be read.
        """
        bundle = self.bundles.get_with_items(bundle_id)
        if bundle is None:
            raise NotFoundError("Bundle not found", resource="bundle")

        snapshot = self.catalog.get_variants(item.product_variant_id for item in bundle.items)
        issues = find_issues(requirements_from_items(bundle.items), snapshot)
        return IntegrityReport(bundle_id=bundle.id, issues=issues)

    def variant_usage(self, variant_id: str) -> VariantUsage:
        """Which bundles reference ``variant_id`` and whether it is safe to delete."""
        bundles = self.bundles.using_variant(variant_id)
        return VariantUsage(
            variant_id=variant_id,
            bundle_ids=[b.id for b in bundles],
            blocking_bundle_ids=[b.id for b in bundles if b.status != BundleStatus.ARCHIVED],
        )
