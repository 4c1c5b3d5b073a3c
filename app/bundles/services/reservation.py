"""Cap & reservation tracker.

``reserved_open`` only moves through ``reserve`` and ``release``. Each
adjustment is a compare-and-set on ``reservation_version`` so concurrent
order placements never lose an update; a writer that keeps losing the race
gets ``ConcurrencyConflictError``.

Reservations are optimistic: crossing the cap is accepted and reported as
overbooked instead of being rejected.
"""

import uuid
from collections.abc import Callable
from dataclasses import dataclass

import structlog
from sqlalchemy.orm import Session
from sqlalchemy.orm.util import identity_key

from app.bundles.models.bundle import Bundle, BundleStatus
from app.bundles.repository import BundleRepository, ReservationCounter
from app.core.config import settings
from app.core.exceptions import (
    ConcurrencyConflictError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReservationResult:
    bundle_id: uuid.UUID
    accepted: bool
    is_overbooked: bool
    reserved_open: int
    bundle_cap: int | None


@dataclass(frozen=True)
class ReservationStatus:
    bundle_id: uuid.UUID
    bundle_cap: int | None
    reserved_open: int
    remaining: int | None
    is_overbooked: bool


def is_overbooked(reserved_open: int, bundle_cap: int | None) -> bool:
    return bundle_cap is not None and reserved_open > bundle_cap


class ReservationService:
    def __init__(self, db: Session, max_retries: int | None = None):
        self.db = db
        self.bundles = BundleRepository(db)
        self.max_retries = max_retries or settings.BUNDLE_RESERVATION_MAX_RETRIES

    def reserve(self, bundle_id: uuid.UUID, quantity: int = 1) -> ReservationResult:
        """Add ``quantity`` open reservations to an ACTIVE bundle.

        Raises:
            ValidationError: quantity below 1.
            NotFoundError: Unknown bundle.
            ConflictError: Bundle is not ACTIVE.
            ConcurrencyConflictError: Lost the race ``max_retries`` times.
        """
        self._check_quantity(quantity)

        def apply(counter: ReservationCounter) -> int:
            if counter.status != BundleStatus.ACTIVE:
                raise ConflictError(
                    f"Bundle is {counter.status.value}, only active bundles accept reservations",
                    resource="bundle",
                    error_code="BUNDLE_NOT_ACTIVE",
                    details={"current_status": counter.status.value},
                )
            return counter.reserved_open + quantity

        counter, new_value = self._adjust(bundle_id, apply, "reserve")
        overbooked = is_overbooked(new_value, counter.bundle_cap)
        if overbooked:
            logger.warning(
                "bundle_overbooked",
                bundle_id=str(bundle_id),
                reserved_open=new_value,
                bundle_cap=counter.bundle_cap,
            )
        return ReservationResult(
            bundle_id=bundle_id,
            accepted=True,
            is_overbooked=overbooked,
            reserved_open=new_value,
            bundle_cap=counter.bundle_cap,
        )

    def release(self, bundle_id: uuid.UUID, quantity: int = 1) -> ReservationResult:
        """Remove ``quantity`` open reservations, never going below zero.

        Allowed in every status so cancellations still settle after a
        bundle is archived.
        """
        self._check_quantity(quantity)

        def apply(counter: ReservationCounter) -> int:
            if quantity > counter.reserved_open:
                logger.warning(
                    "bundle_release_exceeds_reserved",
                    bundle_id=str(bundle_id),
                    reserved_open=counter.reserved_open,
                    quantity=quantity,
                )
            return max(0, counter.reserved_open - quantity)

        counter, new_value = self._adjust(bundle_id, apply, "release")
        return ReservationResult(
            bundle_id=bundle_id,
            accepted=True,
            is_overbooked=is_overbooked(new_value, counter.bundle_cap),
            reserved_open=new_value,
            bundle_cap=counter.bundle_cap,
        )

    def reservation_status(self, bundle_id: uuid.UUID) -> ReservationStatus:
        counter = self.bundles.read_reservation_counter(bundle_id)
        if counter is None:
            raise NotFoundError("Bundle not found", resource="bundle")
        remaining = (
            max(0, counter.bundle_cap - counter.reserved_open)
            if counter.bundle_cap is not None
            else None
        )
        return ReservationStatus(
            bundle_id=bundle_id,
            bundle_cap=counter.bundle_cap,
            reserved_open=counter.reserved_open,
            remaining=remaining,
            is_overbooked=is_overbooked(counter.reserved_open, counter.bundle_cap),
        )

    def _adjust(
        self,
        bundle_id: uuid.UUID,
        apply: Callable[[ReservationCounter], int],
        action: str,
    ) -> tuple[ReservationCounter, int]:
        for attempt in range(1, self.max_retries + 1):
            counter = self.bundles.read_reservation_counter(bundle_id)
            if counter is None:
                raise NotFoundError("Bundle not found", resource="bundle")

            new_value = apply(counter)
            if self.bundles.compare_and_set_reserved(bundle_id, counter.reservation_version, new_value):
                self.db.commit()
                self._expire_cached(bundle_id)
                logger.info(
                    "bundle_reservation_adjusted",
                    bundle_id=str(bundle_id),
                    action=action,
                    reserved_open=new_value,
                    bundle_cap=counter.bundle_cap,
                    attempt=attempt,
                )
                return counter, new_value

            logger.info("bundle_reservation_retry", bundle_id=str(bundle_id), action=action, attempt=attempt)

        logger.warning(
            "bundle_reservation_conflict",
            bundle_id=str(bundle_id),
            action=action,
            attempts=self.max_retries,
        )
        raise ConcurrencyConflictError(
            f"Could not {action} bundle reservation due to concurrent updates", resource="bundle"
        )

    def _expire_cached(self, bundle_id: uuid.UUID) -> None:
        cached = self.db.identity_map.get(identity_key(Bundle, bundle_id))
        if cached is not None:
            self.db.expire(cached, ["reserved_open", "reservation_version"])

    @staticmethod
    def _check_quantity(quantity: int) -> None:
        if quantity < 1:
            raise ValidationError("quantity must be at least 1", field="quantity")
