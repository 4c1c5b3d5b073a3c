from fastapi import Depends
from sqlalchemy.orm import Session

from app.bundles.catalog import CatalogGateway, get_catalog
from app.bundles.services import (
    BundleConfigService,
    BundleLifecycleService,
    BundleMaintenanceService,
    BundleService,
    PromotionGuardService,
    ReservationService,
)
from app.db.session import get_db


def get_bundle_service(
    db: Session = Depends(get_db), catalog: CatalogGateway = Depends(get_catalog)
) -> BundleService:
    return BundleService(db, catalog)


def get_lifecycle_service(
    db: Session = Depends(get_db), catalog: CatalogGateway = Depends(get_catalog)
) -> BundleLifecycleService:
    return BundleLifecycleService(db, catalog)


def get_maintenance_service(
    db: Session = Depends(get_db), catalog: CatalogGateway = Depends(get_catalog)
) -> BundleMaintenanceService:
    return BundleMaintenanceService(db, catalog)


def get_config_service(db: Session = Depends(get_db)) -> BundleConfigService:
    return BundleConfigService(db)


def get_guard_service(db: Session = Depends(get_db)) -> PromotionGuardService:
    return PromotionGuardService(db)


def get_reservation_service(db: Session = Depends(get_db)) -> ReservationService:
    return ReservationService(db)
