"""Order-side endpoints: cap reservations and promotion guard decisions."""

from uuid import UUID

from fastapi import APIRouter, Depends

from app.bundles.dependencies import get_guard_service, get_reservation_service
from app.bundles.schemas import (
    PromotionDecisionBatchResponse,
    PromotionDecisionRequest,
    PromotionDecisionResponse,
    ReservationRequest,
    ReservationResponse,
    ReservationStatusResponse,
)
from app.bundles.services import PromotionGuardService, ReservationService
from app.bundles.services.reservation import ReservationResult
from app.core.schemas import ErrorResponse

router = APIRouter(prefix="/bundles")

_errors: dict[int | str, dict] = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def _reservation_response(result: ReservationResult) -> ReservationResponse:
    return ReservationResponse(
        bundle_id=str(result.bundle_id),
        accepted=result.accepted,
        is_overbooked=result.is_overbooked,
        bundle_reserved_open=result.reserved_open,
        bundle_cap=result.bundle_cap,
    )


@router.post("/promotions/decide", response_model=PromotionDecisionBatchResponse, responses=_errors)
def decide_promotions(
    data: PromotionDecisionRequest,
    guard: PromotionGuardService = Depends(get_guard_service),
) -> PromotionDecisionBatchResponse:
    """Decide, per bundle line, whether an external coupon may also apply."""
    version, decisions = guard.decide_for_order(
        [
            (line.bundle_id, line.proposed_external_discount_pct, line.promotion_code)
            for line in data.lines
        ]
    )
    return PromotionDecisionBatchResponse(
        config_version=version,
        decisions=[
            PromotionDecisionResponse(
                bundle_id=str(bundle_id),
                allowed=d.allowed,
                clamped=d.clamped,
                bundle_discount_pct=d.bundle_discount_pct,
                external_discount_pct=d.external_discount_pct,
                effective_combined_discount_pct=d.effective_combined_discount_pct,
                deciding_policy=d.deciding_policy,
                reason=d.reason,
            )
            for bundle_id, d in decisions
        ],
    )


@router.post("/{bundle_id}/reserve", response_model=ReservationResponse, responses=_errors)
def reserve_bundle(
    bundle_id: UUID,
    data: ReservationRequest,
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    """Record open reservations at order placement. Crossing the cap is flagged, not refused."""
    return _reservation_response(service.reserve(bundle_id, data.quantity))


@router.post("/{bundle_id}/release", response_model=ReservationResponse, responses=_errors)
def release_bundle(
    bundle_id: UUID,
    data: ReservationRequest,
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    """Release reservations on order cancellation or fulfilment."""
    return _reservation_response(service.release(bundle_id, data.quantity))


@router.get("/{bundle_id}/reservation", response_model=ReservationStatusResponse, responses=_errors)
def get_reservation_status(
    bundle_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationStatusResponse:
    result = service.reservation_status(bundle_id)
    return ReservationStatusResponse(
        bundle_id=str(result.bundle_id),
        bundle_cap=result.bundle_cap,
        bundle_reserved_open=result.reserved_open,
        remaining=result.remaining,
        is_overbooked=result.is_overbooked,
    )
