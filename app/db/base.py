"""
Database base module - imports all models for Alembic migration detection.

While the imports appear unused, they register every table on
``Base.metadata`` before migrations or ``create_all`` run.
"""

from app.bundles.models.bundle import Bundle, BundleItem
from app.bundles.models.config import BundleConfig
from app.db.session import Base

__all__ = ["Base", "Bundle", "BundleItem", "BundleConfig"]
