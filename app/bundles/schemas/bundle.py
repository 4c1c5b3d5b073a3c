"""Pydantic schemas for bundle administration and storefront reads."""

import uuid
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.bundles.models.bundle import BundleStatus, DiscountType
from app.core.constants import MAX_ITEM_QUANTITY, MAX_ITEMS_PER_BUNDLE, REASON_MAX_LENGTH
from app.core.datetime_utils import UTCDatetime


class BundleItemInput(BaseModel):
    """One component when creating or replacing bundle items.

    ``unit_price_snapshot`` is optional: when omitted, the current catalog
    price is captured at the moment the item is added.
    """

    product_variant_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1, le=MAX_ITEM_QUANTITY)
    unit_price_snapshot: int | None = Field(None, ge=0)
    display_order: int | None = None


class BundleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    shell_product_id: str | None = None
    currency: str | None = Field(None, min_length=3, max_length=3)

    discount_type: DiscountType
    fixed_price: int | None = None
    percent_off: float | None = None

    valid_from: UTCDatetime | None = None
    valid_to: UTCDatetime | None = None

    bundle_cap: int | None = Field(None, ge=0)
    allow_external_promos: bool = False

    items: list[BundleItemInput] = Field(default_factory=list, max_length=MAX_ITEMS_PER_BUNDLE)

    @model_validator(mode="after")
    def validate_window(self) -> "BundleCreate":
        if self.valid_from and self.valid_to and self.valid_to <= self.valid_from:
            raise ValueError("valid_to must be after valid_from")
        return self


class BundleUpdate(BaseModel):
    """Partial update. Fields left out keep their value; explicit null clears
    nullable fields (valid_to, bundle_cap, ...). ``items`` replaces the list.
    """

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    shell_product_id: str | None = None

    discount_type: DiscountType | None = None
    fixed_price: int | None = None
    percent_off: float | None = None

    valid_from: UTCDatetime | None = None
    valid_to: UTCDatetime | None = None

    bundle_cap: int | None = Field(None, ge=0)
    allow_external_promos: bool | None = None

    items: list[BundleItemInput] | None = Field(None, max_length=MAX_ITEMS_PER_BUNDLE)


class ArchiveRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=REASON_MAX_LENGTH)


class BulkArchiveRequest(BaseModel):
    bundle_ids: list[uuid.UUID] = Field(..., min_length=1, max_length=100)
    reason: str = Field(..., min_length=1, max_length=REASON_MAX_LENGTH)


class BulkArchiveResult(BaseModel):
    bundle_id: str
    success: bool
    status: BundleStatus | None = None
    error: str | None = None


class DeleteBundleResponse(BaseModel):
    result: Literal["DELETED", "NOT_DELETED"]
    message: str


class BundleItemResponse(BaseModel):
    id: str
    product_variant_id: str
    quantity: int
    unit_price_snapshot: int
    display_order: int

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v: Any) -> str:
        return str(v)

    model_config = ConfigDict(from_attributes=True)


class BundleResponse(BaseModel):
    """Bundle with freshly derived pricing and availability fields."""

    id: str
    name: str
    description: str | None = None
    shell_product_id: str | None = None
    currency: str
    status: BundleStatus

    discount_type: DiscountType
    fixed_price: int | None = None
    percent_off: float | None = None

    valid_from: UTCDatetime | None = None
    valid_to: UTCDatetime | None = None

    bundle_cap: int | None = None
    bundle_reserved_open: int
    allow_external_promos: bool

    version: int
    broken_reason: str | None = None
    archived_reason: str | None = None
    archived_at: UTCDatetime | None = None
    last_recomputed_at: UTCDatetime | None = None

    items: list[BundleItemResponse]

    # Derived
    component_total: int
    effective_price: int
    total_savings: int
    discount_pct: float
    bundle_virtual_stock: int | None = None
    constraining_variants: list[str] = Field(default_factory=list)
    is_expired: bool
    is_broken: bool
    is_overbooked: bool
    availability_stale: bool = False
    live_component_total: int | None = None

    available_transitions: list[str] = Field(default_factory=list)

    created_at: UTCDatetime
    updated_at: UTCDatetime


class StorefrontBundleResponse(BaseModel):
    """Public view of an ACTIVE bundle."""

    id: str
    name: str
    description: str | None = None
    shell_product_id: str | None = None
    currency: str
    items: list[BundleItemResponse]
    component_total: int
    effective_price: int
    total_savings: int
    bundle_virtual_stock: int | None = None
    is_available: bool
    availability_stale: bool = False
    valid_to: UTCDatetime | None = None


class LifecycleStatisticsResponse(BaseModel):
    total: int
    by_status: dict[str, int]


class IntegrityIssueResponse(BaseModel):
    variant_id: str
    issue_type: str
    message: str


class IntegrityReportResponse(BaseModel):
    bundle_id: str
    is_valid: bool
    issues: list[IntegrityIssueResponse]


class VariantUsageResponse(BaseModel):
    variant_id: str
    can_delete: bool
    bundle_ids: list[str]
    blocking_bundle_ids: list[str]
