"""Pydantic schemas for the global bundle promotion policy."""

from pydantic import BaseModel, ConfigDict

from app.bundles.models.config import PromoPolicy
from app.core.datetime_utils import UTCDatetime


class BundleConfigResponse(BaseModel):
    site_wide_promos_affect_bundles: PromoPolicy
    max_cumulative_discount_pct: float | None = None
    log_promotion_guard_decisions: bool
    excluded_promotion_patterns: list[str]
    allowed_promotion_codes: list[str]
    version: int
    updated_at: UTCDatetime

    model_config = ConfigDict(from_attributes=True)


class BundleConfigUpdate(BaseModel):
    """Partial policy update.

    Range checks happen in the service so that errors carry field detail;
    sending ``max_cumulative_discount_pct: null`` removes the ceiling.
    """

    site_wide_promos_affect_bundles: PromoPolicy | None = None
    max_cumulative_discount_pct: float | None = None
    log_promotion_guard_decisions: bool | None = None
    excluded_promotion_patterns: list[str] | None = None
    allowed_promotion_codes: list[str] | None = None
