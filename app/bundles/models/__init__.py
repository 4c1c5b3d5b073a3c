from app.bundles.models.bundle import Bundle, BundleItem, BundleStatus, DiscountType
from app.bundles.models.config import BUNDLE_CONFIG_ID, BundleConfig, PromoPolicy

__all__ = [
    "Bundle",
    "BundleItem",
    "BundleStatus",
    "DiscountType",
    "BundleConfig",
    "PromoPolicy",
    "BUNDLE_CONFIG_ID",
]
