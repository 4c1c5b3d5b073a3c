import ssl

from celery import Celery
from celery.schedules import crontab

import app.db.base  # noqa: F401 - register all models so relationships resolve
from app.core.config import settings
from app.core.constants import EXPIRE_SWEEP_INTERVAL_MINUTES, RECOMPUTE_SWEEP_INTERVAL_MINUTES

_uses_tls = settings.REDIS_URL.startswith("rediss://")

celery_app = Celery(
    "bundle_engine",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    task_track_started=True,
    result_expires=3600,
    beat_schedule={
        "expire-bundles": {
            "task": "app.bundles.tasks.expire_bundles_task",
            "schedule": crontab(minute=f"*/{EXPIRE_SWEEP_INTERVAL_MINUTES}"),
        },
        "recompute-bundles": {
            "task": "app.bundles.tasks.recompute_bundles_task",
            "schedule": crontab(minute=f"*/{RECOMPUTE_SWEEP_INTERVAL_MINUTES}"),
        },
    },
)

if _uses_tls:
    celery_app.conf.update(
        broker_use_ssl={"ssl_cert_reqs": ssl.CERT_NONE},
        redis_backend_use_ssl={"ssl_cert_reqs": ssl.CERT_NONE},
    )

celery_app.autodiscover_tasks(["app.bundles"])
