from app.bundles.schemas.bundle import (
    ArchiveRequest,
    BulkArchiveRequest,
    BulkArchiveResult,
    BundleCreate,
    BundleItemInput,
    BundleItemResponse,
    BundleResponse,
    BundleUpdate,
    DeleteBundleResponse,
    IntegrityIssueResponse,
    IntegrityReportResponse,
    LifecycleStatisticsResponse,
    StorefrontBundleResponse,
    VariantUsageResponse,
)
from app.bundles.schemas.config import BundleConfigResponse, BundleConfigUpdate
from app.bundles.schemas.order import (
    GuardSummaryResponse,
    PromotionDecisionBatchResponse,
    PromotionDecisionRequest,
    PromotionDecisionResponse,
    PromotionLineInput,
    ReservationRequest,
    ReservationResponse,
    ReservationStatusResponse,
)

__all__ = [
    "ArchiveRequest",
    "BulkArchiveRequest",
    "BulkArchiveResult",
    "BundleCreate",
    "BundleItemInput",
    "BundleItemResponse",
    "BundleResponse",
    "BundleUpdate",
    "DeleteBundleResponse",
    "IntegrityIssueResponse",
    "IntegrityReportResponse",
    "LifecycleStatisticsResponse",
    "StorefrontBundleResponse",
    "VariantUsageResponse",
    "BundleConfigResponse",
    "BundleConfigUpdate",
    "GuardSummaryResponse",
    "PromotionDecisionBatchResponse",
    "PromotionDecisionRequest",
    "PromotionDecisionResponse",
    "PromotionLineInput",
    "ReservationRequest",
    "ReservationResponse",
    "ReservationStatusResponse",
]
