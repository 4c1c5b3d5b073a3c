"""Schemas used by order-side collaborators: reservations and promotion checks."""

import uuid

from pydantic import BaseModel, Field

from app.core.constants import MAX_RESERVATION_QUANTITY


class ReservationRequest(BaseModel):
    quantity: int = Field(1, ge=1, le=MAX_RESERVATION_QUANTITY)


class ReservationResponse(BaseModel):
    bundle_id: str
    accepted: bool
    is_overbooked: bool
    bundle_reserved_open: int
    bundle_cap: int | None = None


class ReservationStatusResponse(BaseModel):
    bundle_id: str
    bundle_cap: int | None = None
    bundle_reserved_open: int
    remaining: int | None = None
    is_overbooked: bool


class PromotionLineInput(BaseModel):
    """One bundle-derived order line a coupon wants to discount."""

    bundle_id: uuid.UUID
    proposed_external_discount_pct: float = Field(..., ge=0, le=1)
    promotion_code: str | None = None


class PromotionDecisionRequest(BaseModel):
    lines: list[PromotionLineInput] = Field(..., min_length=1, max_length=100)


class PromotionDecisionResponse(BaseModel):
    bundle_id: str
    allowed: bool
    clamped: bool
    bundle_discount_pct: float
    external_discount_pct: float
    effective_combined_discount_pct: float
    deciding_policy: str
    reason: str


class PromotionDecisionBatchResponse(BaseModel):
    config_version: int
    decisions: list[PromotionDecisionResponse]


class GuardSummaryResponse(BaseModel):
    site_wide_promos_affect_bundles: str
    max_cumulative_discount_pct: float | None = None
    config_version: int
    bundles_total: int
    bundles_allowing_external_promos: int
    excluded_pattern_count: int
    whitelist_size: int
