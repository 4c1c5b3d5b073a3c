"""Storefront bundle endpoints - ACTIVE bundles with live pricing and stock."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.bundles.dependencies import get_bundle_service
from app.bundles.schemas import StorefrontBundleResponse
from app.bundles.services import BundleService
from app.bundles.services.bundle_service import STOREFRONT_STATUSES
from app.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.core.schemas import PaginatedResponse, paginated_response

router = APIRouter(prefix="/bundles")


@router.get("", response_model=PaginatedResponse[StorefrontBundleResponse])
def list_storefront_bundles(
    search: str | None = Query(None, max_length=100),
    sort_by: str = Query("created_at"),
    sort_desc: bool = Query(True),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    service: BundleService = Depends(get_bundle_service),
) -> PaginatedResponse[StorefrontBundleResponse]:
    """
    List published bundles.

    Pricing and availability are recomputed on every request; a bundle that
    degrades while being read is still returned with ``is_available=false``.
    """
    views, total = service.list_bundles(
        STOREFRONT_STATUSES, search, sort_by, sort_desc, page, limit
    )
    return paginated_response(
        [service.to_storefront_response(v) for v in views], total, page, limit
    )


@router.get("/{bundle_id}", response_model=StorefrontBundleResponse)
def get_storefront_bundle(
    bundle_id: UUID,
    service: BundleService = Depends(get_bundle_service),
) -> StorefrontBundleResponse:
    return service.to_storefront_response(service.get_storefront_bundle(bundle_id))
