"""Bundle status state machine.

::

    DRAFT --publish--> ACTIVE --(recompute)--> BROKEN | EXPIRED
    BROKEN | EXPIRED --restore--> ACTIVE
    ACTIVE | BROKEN | EXPIRED --archive--> ARCHIVED (terminal)
    DRAFT --delete--> (gone)

Every transition validates and writes inside one unit of work. Requests
from an illegal source status raise ``StateTransitionError``.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.bundles.catalog.gateway import CatalogGateway
from app.bundles.models.bundle import Bundle, BundleStatus
from app.bundles.repository import BundleRepository
from app.bundles.services.availability import is_expired
from app.bundles.services.evaluation import BundleEvaluation, evaluate_bundle
from app.bundles.services.pricing import DiscountRule, validate_discount_rule
from app.core.constants import REASON_MAX_LENGTH
from app.core.datetime_utils import utcnow
from app.core.exceptions import (
    AppError,
    ConcurrencyConflictError,
    NotFoundError,
    StateTransitionError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

ACTION_PUBLISH = "publish"
ACTION_RESTORE = "restore"
ACTION_ARCHIVE = "archive"
ACTION_DELETE = "delete"

DELETED = "deleted"

# action -> (legal source statuses, target status)
TRANSITIONS: dict[str, tuple[frozenset[BundleStatus], str]] = {
    ACTION_PUBLISH: (frozenset({BundleStatus.DRAFT}), BundleStatus.ACTIVE.value),
    ACTION_RESTORE: (
        frozenset({BundleStatus.BROKEN, BundleStatus.EXPIRED}),
        BundleStatus.ACTIVE.value,
    ),
    ACTION_ARCHIVE: (
        frozenset({BundleStatus.ACTIVE, BundleStatus.BROKEN, BundleStatus.EXPIRED}),
        BundleStatus.ARCHIVED.value,
    ),
    ACTION_DELETE: (frozenset({BundleStatus.DRAFT}), DELETED),
}

EDITABLE_STATUSES = frozenset({BundleStatus.DRAFT, BundleStatus.ACTIVE})


def ensure_transition(bundle: Bundle, action: str) -> None:
    sources, target = TRANSITIONS[action]
    if bundle.status not in sources:
        raise StateTransitionError(bundle.status.value, target, action)


def available_transitions(status: BundleStatus) -> list[str]:
    return [action for action, (sources, _) in TRANSITIONS.items() if status in sources]


@dataclass(frozen=True)
class DeleteResult:
    deleted: bool
    message: str


@dataclass(frozen=True)
class BulkResult:
    bundle_id: uuid.UUID
    success: bool
    status: BundleStatus | None = None
    error: str | None = None


def commit_bundle(db: Session, bundle: Bundle) -> None:
    """Commit pending bundle changes guarded by the optimistic row version.

    Raises:
        ConcurrencyConflictError: Another writer updated the row first.
    """
    try:
        db.commit()
    except StaleDataError as e:
        db.rollback()
        raise ConcurrencyConflictError(
            "Bundle was modified concurrently, reload and retry", resource="bundle"
        ) from e
    db.refresh(bundle)


def _truncate(reason: str | None) -> str | None:
    if reason is None:
        return None
    return reason[:REASON_MAX_LENGTH]


class BundleLifecycleService:
    def __init__(self, db: Session, catalog: CatalogGateway):
        self.db = db
        self.catalog = catalog
        self.bundles = BundleRepository(db)

    # ─── Admin transitions ──────────────────────────────────────────────

    def publish(self, bundle_id: uuid.UUID, now: datetime | None = None) -> Bundle:
        """Move a DRAFT bundle to ACTIVE, all-or-nothing.

        Raises:
            StateTransitionError: Bundle is not a draft.
            ValidationError: No items, inconsistent discount rule, broken
                components, non-positive price or a window already over.
            AvailabilityDegradedError: Catalog could not confirm components.
        """
        now = now or utcnow()
        bundle = self._load_for_update(bundle_id)
        ensure_transition(bundle, ACTION_PUBLISH)

        errors: list[dict[str, str]] = []
        if not bundle.items:
            errors.append({"field": "items", "message": "Bundle must contain at least one item"})
        errors.extend(validate_discount_rule(DiscountRule.from_bundle(bundle)))
        if errors:
            raise ValidationError(errors[0]["message"], field=errors[0]["field"], errors=errors)

        evaluation = evaluate_bundle(bundle, self.catalog, now, require_fresh=True)
        errors = self._sellability_errors(evaluation)
        if errors:
            raise ValidationError(errors[0]["message"], field=errors[0]["field"], errors=errors)

        from_status = bundle.status
        bundle.status = BundleStatus.ACTIVE
        bundle.version = bundle.version + 1
        bundle.broken_reason = None
        bundle.last_recomputed_at = now
        commit_bundle(self.db, bundle)

        self._log_transition(bundle, from_status, ACTION_PUBLISH, version=bundle.version)
        return bundle

    def restore(self, bundle_id: uuid.UUID, now: datetime | None = None) -> Bundle:
        """Re-validate a BROKEN or EXPIRED bundle and make it ACTIVE again.

        A failed restore writes nothing; the bundle keeps its status and
        recompute bookkeeping.
        """
        now = now or utcnow()
        bundle = self._load_for_update(bundle_id)
        ensure_transition(bundle, ACTION_RESTORE)

        evaluation = evaluate_bundle(bundle, self.catalog, now, require_fresh=True)
        errors = self._sellability_errors(evaluation)
        if errors:
            raise ValidationError(errors[0]["message"], field=errors[0]["field"], errors=errors)

        from_status = bundle.status
        bundle.status = BundleStatus.ACTIVE
        bundle.broken_reason = None
        bundle.last_recomputed_at = now
        commit_bundle(self.db, bundle)

        self._log_transition(bundle, from_status, ACTION_RESTORE)
        return bundle

    def archive(self, bundle_id: uuid.UUID, reason: str, now: datetime | None = None) -> Bundle:
        now = now or utcnow()
        bundle = self._load_for_update(bundle_id)
        ensure_transition(bundle, ACTION_ARCHIVE)

        from_status = bundle.status
        bundle.status = BundleStatus.ARCHIVED
        bundle.archived_reason = _truncate(reason)
        bundle.archived_at = now
        commit_bundle(self.db, bundle)

        self._log_transition(bundle, from_status, ACTION_ARCHIVE, reason=bundle.archived_reason)
        return bundle

    def delete(self, bundle_id: uuid.UUID) -> DeleteResult:
        bundle = self._load_for_update(bundle_id)
        ensure_transition(bundle, ACTION_DELETE)

        self.bundles.delete(bundle)
        self.db.commit()

        logger.info("bundle_deleted", bundle_id=str(bundle_id))
        return DeleteResult(deleted=True, message=f"Bundle {bundle_id} deleted")

    def bulk_archive(self, bundle_ids: list[uuid.UUID], reason: str) -> list[BulkResult]:
        """Archive each bundle independently; failures are reported, not raised."""
        results: list[BulkResult] = []
        for bundle_id in bundle_ids:
            try:
                bundle = self.archive(bundle_id, reason)
            except AppError as e:
                results.append(BulkResult(bundle_id=bundle_id, success=False, error=e.message))
                continue
            results.append(BulkResult(bundle_id=bundle_id, success=True, status=bundle.status))

        logger.info(
            "bundles_bulk_archived",
            requested=len(bundle_ids),
            archived=sum(1 for r in results if r.success),
        )
        return results

    # ─── Engine-driven transitions ──────────────────────────────────────

    def recompute(self, bundle: Bundle, now: datetime | None = None) -> BundleEvaluation:
        """Recompute derived state and apply automatic degradation.

        ACTIVE bundles that became broken move to BROKEN; ACTIVE bundles
        past ``valid_to`` move to EXPIRED. When the catalog is degraded the
        status and ``last_recomputed_at`` are left untouched.
        """
        now = now or utcnow()
        evaluation = evaluate_bundle(bundle, self.catalog, now)
        if evaluation.availability_stale:
            return evaluation

        from_status = bundle.status
        if bundle.status == BundleStatus.ACTIVE and evaluation.is_broken:
            bundle.status = BundleStatus.BROKEN
            bundle.broken_reason = _truncate(evaluation.broken_reason)
            logger.warning(
                "bundle_auto_degraded",
                bundle_id=str(bundle.id),
                reason=bundle.broken_reason,
            )
        elif bundle.status == BundleStatus.ACTIVE and evaluation.is_expired:
            bundle.status = BundleStatus.EXPIRED
        elif bundle.status == BundleStatus.BROKEN and evaluation.is_broken:
            bundle.broken_reason = _truncate(evaluation.broken_reason)

        bundle.last_recomputed_at = now
        try:
            commit_bundle(self.db, bundle)
        except ConcurrencyConflictError:
            # A concurrent admin write wins; the next read recomputes again
            logger.info("bundle_recompute_skipped", bundle_id=str(bundle.id))
            return evaluation

        if bundle.status != from_status:
            self._log_transition(bundle, from_status, "recompute")
        return evaluation

    def expire(self, bundle: Bundle, now: datetime | None = None) -> bool:
        """Persist EXPIRED for an ACTIVE bundle whose window has closed."""
        now = now or utcnow()
        if bundle.status != BundleStatus.ACTIVE or not is_expired(bundle.valid_to, now):
            return False
        bundle.status = BundleStatus.EXPIRED
        commit_bundle(self.db, bundle)
        self._log_transition(bundle, BundleStatus.ACTIVE, "expire", valid_to=bundle.valid_to.isoformat())
        return True

    # ─── Reporting ──────────────────────────────────────────────────────

    def lifecycle_statistics(self) -> dict[str, int | dict[str, int]]:
        counts = self.bundles.count_by_status()
        by_status = {status.value: counts.get(status, 0) for status in BundleStatus}
        return {"total": sum(by_status.values()), "by_status": by_status}

    # ─── Helpers ────────────────────────────────────────────────────────

    def _load_for_update(self, bundle_id: uuid.UUID) -> Bundle:
        bundle = self.bundles.get_for_update(bundle_id)
        if bundle is None:
            raise NotFoundError("Bundle not found", resource="bundle")
        return bundle

    @staticmethod
    def _sellability_errors(evaluation: BundleEvaluation) -> list[dict[str, str]]:
        errors: list[dict[str, str]] = []
        if evaluation.is_broken:
            errors.append(
                {"field": "items", "message": evaluation.broken_reason or "Bundle components are not sellable"}
            )
        elif evaluation.pricing.effective_price <= 0:
            errors.append({"field": "effective_price", "message": "Bundle price must be greater than zero"})
        if evaluation.is_expired:
            errors.append({"field": "valid_to", "message": "Bundle validity window has already ended"})
        return errors

    @staticmethod
    def _log_transition(bundle: Bundle, from_status: BundleStatus, action: str, **extra: object) -> None:
        logger.info(
            "bundle_status_changed",
            bundle_id=str(bundle.id),
            action=action,
            from_status=from_status.value,
            to_status=bundle.status.value,
            **extra,
        )
