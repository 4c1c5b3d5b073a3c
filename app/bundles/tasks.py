"""Celery tasks for periodic bundle sweeps."""

import logging
import time
from typing import Any

from app.bundles.catalog import get_catalog
from app.bundles.services.maintenance_service import BundleMaintenanceService
from app.core.celery_app import celery_app
from app.core.config import settings
from app.db.session import SessionLocal

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=0)
def expire_bundles_task(self: Any) -> dict[str, Any]:
    """Move ACTIVE bundles whose validity window has closed to EXPIRED.

    Returns:
        Dict with expired_count, bundle_ids and execution time.
    """
    start_time = time.time()

    if not settings.BUNDLE_AUTO_EXPIRE_ENABLED:
        logger.info("Bundle auto-expire disabled, skipping")
        return {"expired_count": 0, "bundle_ids": [], "skipped": True}

    db = SessionLocal()
    try:
        expired = BundleMaintenanceService(db, get_catalog()).expire_due_bundles()
        execution_time = time.time() - start_time
        logger.info(f"Bundle expire sweep complete: expired={len(expired)}, time={execution_time:.2f}s")
        return {
            "expired_count": len(expired),
            "bundle_ids": [str(i) for i in expired],
            "skipped": False,
            "execution_time_seconds": execution_time,
        }
    except Exception as exc:
        logger.exception(f"Bundle expire sweep failed: {exc}")
        raise
    finally:
        db.close()


@celery_app.task(bind=True, max_retries=0)
def recompute_bundles_task(self: Any) -> dict[str, Any]:
    """Recompute availability of ACTIVE/BROKEN bundles and degrade broken ones.

    Catalog outages do not fail the task; affected bundles are counted as
    degraded and keep their status.
    """
    start_time = time.time()

    db = SessionLocal()
    try:
        summary = BundleMaintenanceService(db, get_catalog()).recompute_all()
        result = summary.as_dict()
        result["execution_time_seconds"] = time.time() - start_time
        logger.info(
            f"Bundle recompute sweep complete: checked={summary.checked}, "
            f"broken={summary.broken}, degraded={summary.degraded}"
        )
        return result
    except Exception as exc:
        logger.exception(f"Bundle recompute sweep failed: {exc}")
        raise
    finally:
        db.close()
