"""Catalog collaborator selection.

``get_catalog`` is used as a FastAPI dependency and by Celery tasks. Tests
swap the implementation with ``set_catalog`` or a dependency override.
"""

from app.bundles.catalog.gateway import CatalogGateway, VariantSnapshot
from app.bundles.catalog.http import HttpCatalog
from app.bundles.catalog.memory import InMemoryCatalog
from app.core.config import settings

_catalog: CatalogGateway | None = None


def _build_default() -> CatalogGateway:
    if settings.uses_remote_catalog:
        return HttpCatalog(settings.CATALOG_API_URL, timeout=settings.CATALOG_TIMEOUT_SECONDS)
    return InMemoryCatalog()


def get_catalog() -> CatalogGateway:
    global _catalog
    if _catalog is None:
        _catalog = _build_default()
    return _catalog


def set_catalog(catalog: CatalogGateway) -> None:
    global _catalog
    _catalog = catalog


def reset_catalog() -> None:
    global _catalog
    _catalog = None


__all__ = [
    "CatalogGateway",
    "VariantSnapshot",
    "HttpCatalog",
    "InMemoryCatalog",
    "get_catalog",
    "set_catalog",
    "reset_catalog",
]
