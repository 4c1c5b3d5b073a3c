"""
Tests for bundle sweeps, integrity checks and the Celery tasks that run them.
"""

import uuid
from datetime import timedelta
from unittest.mock import patch

import pytest

from app.bundles.models import BundleStatus
from app.bundles.services.availability import MISSING_VARIANT, OUT_OF_STOCK
from app.bundles.services.maintenance_service import BundleMaintenanceService
from app.bundles.tasks import expire_bundles_task, recompute_bundles_task
from app.core.datetime_utils import utcnow
from app.core.exceptions import AvailabilityDegradedError, NotFoundError
from tests.utils.factories import create_test_bundle


class TestExpireDueBundles:
    def test_expires_only_active_bundles_past_window(self, db_session, catalog):
        past = utcnow() - timedelta(hours=1)
        due = create_test_bundle(db_session, status=BundleStatus.ACTIVE, valid_to=past)
        running = create_test_bundle(
            db_session, status=BundleStatus.ACTIVE, valid_to=utcnow() + timedelta(days=1)
        )
        draft = create_test_bundle(db_session, status=BundleStatus.DRAFT, valid_to=past)

        expired = BundleMaintenanceService(db_session, catalog).expire_due_bundles()

        assert expired == [due.id]
        assert due.status == BundleStatus.EXPIRED
        assert running.status == BundleStatus.ACTIVE
        assert draft.status == BundleStatus.DRAFT

    def test_nothing_due(self, db_session, catalog, active_bundle):
        assert BundleMaintenanceService(db_session, catalog).expire_due_bundles() == []

    def test_window_end_is_exclusive(self, db_session, catalog):
        end = utcnow() - timedelta(minutes=10)
        bundle = create_test_bundle(db_session, status=BundleStatus.ACTIVE, valid_to=end)
        service = BundleMaintenanceService(db_session, catalog)

        assert service.expire_due_bundles(now=end) == []
        assert bundle.status == BundleStatus.ACTIVE
        assert service.expire_due_bundles(now=end + timedelta(microseconds=1)) == [bundle.id]


class TestRecomputeAll:
    def test_sweep_degrades_broken_bundles(self, db_session, catalog):
        healthy = create_test_bundle(db_session, status=BundleStatus.ACTIVE)
        broken = create_test_bundle(
            db_session, status=BundleStatus.ACTIVE, items=[("A", 1, 3000), ("GONE", 1, 100)]
        )
        create_test_bundle(db_session, status=BundleStatus.DRAFT, items=[("GONE", 1, 100)])

        summary = BundleMaintenanceService(db_session, catalog).recompute_all(batch_size=1)

        assert summary.checked == 2
        assert summary.broken == 1
        assert summary.newly_broken == [str(broken.id)]
        assert healthy.status == BundleStatus.ACTIVE
        assert broken.status == BundleStatus.BROKEN

    def test_sweep_counts_expired(self, db_session, catalog):
        create_test_bundle(
            db_session, status=BundleStatus.ACTIVE, valid_to=utcnow() - timedelta(minutes=5)
        )

        summary = BundleMaintenanceService(db_session, catalog).recompute_all()

        assert summary.expired == 1

    def test_sweep_during_outage_changes_nothing(self, db_session, catalog, active_bundle):
        catalog.fail_with_outage()

        summary = BundleMaintenanceService(db_session, catalog).recompute_all()

        assert summary.checked == 1
        assert summary.degraded == 1
        assert active_bundle.status == BundleStatus.ACTIVE


class TestValidateIntegrity:
    def test_reports_every_issue(self, db_session, catalog):
        catalog.set_stock("B", 0)
        bundle = create_test_bundle(
            db_session, items=[("A", 1, 3000), ("B", 1, 2500), ("GONE", 1, 100)]
        )

        report = BundleMaintenanceService(db_session, catalog).validate_integrity(bundle.id)

        assert report.is_valid is False
        assert [(i.variant_id, i.issue_type) for i in report.issues] == [
            ("B", OUT_OF_STOCK),
            ("GONE", MISSING_VARIANT),
        ]

    def test_healthy_bundle_is_valid(self, db_session, catalog, draft_bundle):
        report = BundleMaintenanceService(db_session, catalog).validate_integrity(draft_bundle.id)

        assert report.is_valid is True

    def test_outage_propagates(self, db_session, catalog, draft_bundle):
        catalog.fail_with_outage()

        with pytest.raises(AvailabilityDegradedError):
            BundleMaintenanceService(db_session, catalog).validate_integrity(draft_bundle.id)

    def test_unknown_bundle(self, db_session, catalog):
        with pytest.raises(NotFoundError):
            BundleMaintenanceService(db_session, catalog).validate_integrity(uuid.uuid4())


class TestVariantUsage:
    def test_archived_bundles_do_not_block_deletion(self, db_session, catalog):
        archived = create_test_bundle(db_session, status=BundleStatus.ARCHIVED)

        usage = BundleMaintenanceService(db_session, catalog).variant_usage("A")

        assert usage.bundle_ids == [archived.id]
        assert usage.can_delete is True

    def test_live_bundle_blocks_deletion(self, db_session, catalog, active_bundle):
        usage = BundleMaintenanceService(db_session, catalog).variant_usage("B")

        assert usage.blocking_bundle_ids == [active_bundle.id]
        assert usage.can_delete is False

    def test_unused_variant(self, db_session, catalog, active_bundle):
        usage = BundleMaintenanceService(db_session, catalog).variant_usage("Z")

        assert usage.bundle_ids == []
        assert usage.can_delete is True


class TestSweepTasks:
    def test_expire_task(self, db_session, catalog):
        bundle = create_test_bundle(
            db_session, status=BundleStatus.ACTIVE, valid_to=utcnow() - timedelta(hours=2)
        )

        with (
            patch("app.bundles.tasks.SessionLocal", return_value=db_session),
            patch.object(db_session, "close"),
        ):
            result = expire_bundles_task()

        assert result["expired_count"] == 1
        assert result["bundle_ids"] == [str(bundle.id)]
        assert result["skipped"] is False

    def test_expire_task_respects_switch(self, db_session, catalog):
        with (
            patch("app.bundles.tasks.settings.BUNDLE_AUTO_EXPIRE_ENABLED", False),
            patch("app.bundles.tasks.SessionLocal") as session_factory,
        ):
            result = expire_bundles_task()

        assert result["skipped"] is True
        session_factory.assert_not_called()

    def test_recompute_task(self, db_session, catalog):
        create_test_bundle(db_session, status=BundleStatus.ACTIVE, items=[("GONE", 1, 100)])

        with (
            patch("app.bundles.tasks.SessionLocal", return_value=db_session),
            patch.object(db_session, "close") as close,
        ):
            result = recompute_bundles_task()

        assert result["checked"] == 1
        assert result["broken"] == 1
        assert "execution_time_seconds" in result
        close.assert_called_once()
