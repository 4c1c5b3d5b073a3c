"""Administrative bundle endpoints: CRUD, lifecycle actions, policy, sweeps."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.bundles.dependencies import (
    get_bundle_service,
    get_config_service,
    get_guard_service,
    get_lifecycle_service,
    get_maintenance_service,
)
from app.bundles.models.bundle import BundleStatus
from app.bundles.schemas import (
    ArchiveRequest,
    BulkArchiveRequest,
    BulkArchiveResult,
    BundleConfigResponse,
    BundleConfigUpdate,
    BundleCreate,
    BundleResponse,
    BundleUpdate,
    DeleteBundleResponse,
    GuardSummaryResponse,
    IntegrityIssueResponse,
    IntegrityReportResponse,
    LifecycleStatisticsResponse,
    VariantUsageResponse,
)
from app.bundles.services import (
    BundleConfigService,
    BundleLifecycleService,
    BundleMaintenanceService,
    BundleService,
    PromotionGuardService,
)
from app.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.core.schemas import ErrorResponse, PaginatedResponse, paginated_response

router = APIRouter()

_errors: dict[int | str, dict] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.get("/bundles", response_model=PaginatedResponse[BundleResponse])
def list_bundles(
    status_filter: list[BundleStatus] | None = Query(None, alias="status"),
    search: str | None = Query(None, max_length=100),
    sort_by: str = Query("created_at"),
    sort_desc: bool = Query(True),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    service: BundleService = Depends(get_bundle_service),
) -> PaginatedResponse[BundleResponse]:
    """List bundles in every status with derived fields recomputed."""
    views, total = service.list_bundles(status_filter, search, sort_by, sort_desc, page, limit)
    return paginated_response([service.to_response(v) for v in views], total, page, limit)


@router.post(
    "/bundles",
    response_model=BundleResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_errors,
)
def create_bundle(
    data: BundleCreate,
    service: BundleService = Depends(get_bundle_service),
) -> BundleResponse:
    """Create a bundle in DRAFT status."""
    bundle = service.create_bundle(data)
    return service.to_response(service.get_bundle(bundle.id))


@router.get("/bundles/statistics", response_model=LifecycleStatisticsResponse)
def get_lifecycle_statistics(
    lifecycle: BundleLifecycleService = Depends(get_lifecycle_service),
) -> LifecycleStatisticsResponse:
    return LifecycleStatisticsResponse.model_validate(lifecycle.lifecycle_statistics())


@router.get("/bundles/variants/{variant_id}/usage", response_model=VariantUsageResponse)
def get_variant_usage(
    variant_id: str,
    maintenance: BundleMaintenanceService = Depends(get_maintenance_service),
) -> VariantUsageResponse:
    """Bundles referencing a catalog variant and whether it may be deleted."""
    usage = maintenance.variant_usage(variant_id)
    return VariantUsageResponse(
        variant_id=usage.variant_id,
        can_delete=usage.can_delete,
        bundle_ids=[str(i) for i in usage.bundle_ids],
        blocking_bundle_ids=[str(i) for i in usage.blocking_bundle_ids],
    )


@router.post("/bundles/bulk-archive", response_model=list[BulkArchiveResult])
def bulk_archive_bundles(
    data: BulkArchiveRequest,
    lifecycle: BundleLifecycleService = Depends(get_lifecycle_service),
) -> list[BulkArchiveResult]:
    results = lifecycle.bulk_archive(data.bundle_ids, data.reason)
    return [
        BulkArchiveResult(
            bundle_id=str(r.bundle_id),
            success=r.success,
            status=r.status,
            error=r.error,
        )
        for r in results
    ]


@router.post("/bundles/maintenance/expire")
def run_expire_sweep(
    maintenance: BundleMaintenanceService = Depends(get_maintenance_service),
) -> dict[str, object]:
    """Expire every ACTIVE bundle whose validity window has ended."""
    expired = maintenance.expire_due_bundles()
    return {"expired_count": len(expired), "bundle_ids": [str(i) for i in expired]}


@router.post("/bundles/maintenance/recompute")
def run_recompute_sweep(
    maintenance: BundleMaintenanceService = Depends(get_maintenance_service),
) -> dict[str, object]:
    """Recompute availability of ACTIVE and BROKEN bundles."""
    return maintenance.recompute_all().as_dict()


@router.get("/bundles/{bundle_id}", response_model=BundleResponse, responses=_errors)
def get_bundle(
    bundle_id: UUID,
    service: BundleService = Depends(get_bundle_service),
) -> BundleResponse:
    return service.to_response(service.get_bundle(bundle_id))


@router.patch("/bundles/{bundle_id}", response_model=BundleResponse, responses=_errors)
def update_bundle(
    bundle_id: UUID,
    data: BundleUpdate,
    service: BundleService = Depends(get_bundle_service),
) -> BundleResponse:
    """Update a DRAFT or ACTIVE bundle, or the validity window of an EXPIRED one."""
    service.update_bundle(bundle_id, data)
    return service.to_response(service.get_bundle(bundle_id))


@router.delete("/bundles/{bundle_id}", response_model=DeleteBundleResponse, responses=_errors)
def delete_bundle(
    bundle_id: UUID,
    service: BundleService = Depends(get_bundle_service),
) -> DeleteBundleResponse:
    """Delete a DRAFT bundle. Published bundles must be archived instead."""
    result = service.delete_bundle(bundle_id)
    return DeleteBundleResponse(
        result="DELETED" if result.deleted else "NOT_DELETED", message=result.message
    )


@router.post("/bundles/{bundle_id}/publish", response_model=BundleResponse, responses=_errors)
def publish_bundle(
    bundle_id: UUID,
    service: BundleService = Depends(get_bundle_service),
) -> BundleResponse:
    service.lifecycle.publish(bundle_id)
    return service.to_response(service.get_bundle(bundle_id))


@router.post("/bundles/{bundle_id}/restore", response_model=BundleResponse, responses=_errors)
def restore_bundle(
    bundle_id: UUID,
    service: BundleService = Depends(get_bundle_service),
) -> BundleResponse:
    service.lifecycle.restore(bundle_id)
    return service.to_response(service.get_bundle(bundle_id))


@router.post("/bundles/{bundle_id}/archive", response_model=BundleResponse, responses=_errors)
def archive_bundle(
    bundle_id: UUID,
    data: ArchiveRequest,
    service: BundleService = Depends(get_bundle_service),
) -> BundleResponse:
    service.lifecycle.archive(bundle_id, data.reason)
    return service.to_response(service.get_bundle(bundle_id))


@router.get(
    "/bundles/{bundle_id}/integrity", response_model=IntegrityReportResponse, responses=_errors
)
def check_bundle_integrity(
    bundle_id: UUID,
    maintenance: BundleMaintenanceService = Depends(get_maintenance_service),
) -> IntegrityReportResponse:
    report = maintenance.validate_integrity(bundle_id)
    return IntegrityReportResponse(
        bundle_id=str(report.bundle_id),
        is_valid=report.is_valid,
        issues=[
            IntegrityIssueResponse(
                variant_id=i.variant_id, issue_type=i.issue_type, message=i.message
            )
            for i in report.issues
        ],
    )


# ─── Global policy ──────────────────────────────────────────────────────


@router.get("/bundle-config", response_model=BundleConfigResponse)
def get_bundle_config(
    service: BundleConfigService = Depends(get_config_service),
) -> BundleConfigResponse:
    return BundleConfigResponse.model_validate(service.get_config())


@router.patch("/bundle-config", response_model=BundleConfigResponse, responses=_errors)
def update_bundle_config(
    data: BundleConfigUpdate,
    service: BundleConfigService = Depends(get_config_service),
) -> BundleConfigResponse:
    return BundleConfigResponse.model_validate(service.update_config(data))


@router.get("/bundle-config/guard-summary", response_model=GuardSummaryResponse)
def get_guard_summary(
    guard: PromotionGuardService = Depends(get_guard_service),
) -> GuardSummaryResponse:
    return GuardSummaryResponse.model_validate(guard.guard_summary())
