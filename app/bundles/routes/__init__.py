from app.bundles.routes.admin_bundles import router as admin_router
from app.bundles.routes.bundles import router as storefront_router
from app.bundles.routes.orders import router as orders_router

__all__ = ["admin_router", "storefront_router", "orders_router"]
