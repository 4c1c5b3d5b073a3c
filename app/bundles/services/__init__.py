from app.bundles.services.bundle_service import BundleService, BundleView
from app.bundles.services.config_service import BundleConfigService, PromotionPolicy
from app.bundles.services.lifecycle import BundleLifecycleService
from app.bundles.services.maintenance_service import BundleMaintenanceService
from app.bundles.services.promotion_guard import GuardDecision, PromotionGuardService, decide
from app.bundles.services.reservation import ReservationService

__all__ = [
    "BundleService",
    "BundleView",
    "BundleConfigService",
    "PromotionPolicy",
    "BundleLifecycleService",
    "BundleMaintenanceService",
    "GuardDecision",
    "PromotionGuardService",
    "decide",
    "ReservationService",
]
