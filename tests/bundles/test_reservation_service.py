"""
Tests for the cap and reservation tracker.
"""

import uuid

import pytest

from app.bundles.models import BundleStatus
from app.bundles.repository import BundleRepository
from app.bundles.services.reservation import ReservationService, is_overbooked
from app.core.exceptions import (
    ConcurrencyConflictError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from tests.utils.factories import create_test_bundle


class TestReserve:
    def test_reserve_past_cap_is_accepted_and_flagged(self, db_session):
        """cap 10 with 9 open: reserving 2 gives 11 and overbooked."""
        bundle = create_test_bundle(
            db_session, status=BundleStatus.ACTIVE, bundle_cap=10, reserved_open=9
        )

        result = ReservationService(db_session).reserve(bundle.id, 2)

        assert result.accepted is True
        assert result.is_overbooked is True
        assert result.reserved_open == 11

    def test_reserve_within_cap(self, db_session):
        bundle = create_test_bundle(db_session, status=BundleStatus.ACTIVE, bundle_cap=10)

        result = ReservationService(db_session).reserve(bundle.id, 3)

        assert result.is_overbooked is False
        assert result.reserved_open == 3

    def test_reaching_cap_exactly_is_not_overbooked(self, db_session):
        bundle = create_test_bundle(
            db_session, status=BundleStatus.ACTIVE, bundle_cap=5, reserved_open=4
        )

        result = ReservationService(db_session).reserve(bundle.id, 1)

        assert result.reserved_open == 5
        assert result.is_overbooked is False

    def test_no_cap_is_never_overbooked(self, db_session):
        bundle = create_test_bundle(db_session, status=BundleStatus.ACTIVE, reserved_open=500)

        result = ReservationService(db_session).reserve(bundle.id, 100)

        assert result.reserved_open == 600
        assert result.is_overbooked is False

    def test_reserve_updates_loaded_bundle(self, db_session):
        bundle = create_test_bundle(db_session, status=BundleStatus.ACTIVE)

        ReservationService(db_session).reserve(bundle.id, 2)

        assert bundle.reserved_open == 2
        assert bundle.reservation_version == 1

    @pytest.mark.parametrize(
        "status", [BundleStatus.DRAFT, BundleStatus.BROKEN, BundleStatus.EXPIRED, BundleStatus.ARCHIVED]
    )
    def test_only_active_bundles_accept_reservations(self, db_session, status):
        bundle = create_test_bundle(db_session, status=status)

        with pytest.raises(ConflictError) as exc_info:
            ReservationService(db_session).reserve(bundle.id, 1)

        assert exc_info.value.error_code == "BUNDLE_NOT_ACTIVE"

    def test_quantity_must_be_positive(self, db_session):
        bundle = create_test_bundle(db_session, status=BundleStatus.ACTIVE)

        with pytest.raises(ValidationError):
            ReservationService(db_session).reserve(bundle.id, 0)

    def test_unknown_bundle(self, db_session):
        with pytest.raises(NotFoundError):
            ReservationService(db_session).reserve(uuid.uuid4(), 1)

    def test_lost_races_raise_after_retries(self, db_session, monkeypatch):
        bundle = create_test_bundle(db_session, status=BundleStatus.ACTIVE)
        attempts = []

        def always_stale(self, bundle_id, expected_version, new_value):
            attempts.append(expected_version)
            return False

        monkeypatch.setattr(BundleRepository, "compare_and_set_reserved", always_stale)

        with pytest.raises(ConcurrencyConflictError):
            ReservationService(db_session, max_retries=3).reserve(bundle.id, 1)

        assert len(attempts) == 3

    def test_retry_succeeds_after_one_lost_race(self, db_session, monkeypatch):
        bundle = create_test_bundle(db_session, status=BundleStatus.ACTIVE)
        original = BundleRepository.compare_and_set_reserved
        calls = []

        def stale_once(self, bundle_id, expected_version, new_value):
            calls.append(expected_version)
            if len(calls) == 1:
                return False
            return original(self, bundle_id, expected_version, new_value)

        monkeypatch.setattr(BundleRepository, "compare_and_set_reserved", stale_once)

        result = ReservationService(db_session).reserve(bundle.id, 1)

        assert result.reserved_open == 1
        assert len(calls) == 2

    def test_stale_expected_version_writes_nothing(self, db_session):
        bundle = create_test_bundle(db_session, status=BundleStatus.ACTIVE)
        repo = BundleRepository(db_session)

        assert repo.compare_and_set_reserved(bundle.id, 0, 1) is True
        assert repo.compare_and_set_reserved(bundle.id, 0, 5) is False
        assert repo.read_reservation_counter(bundle.id).reserved_open == 1


class TestRelease:
    def test_release_decrements(self, db_session):
        bundle = create_test_bundle(
            db_session, status=BundleStatus.ACTIVE, bundle_cap=10, reserved_open=11
        )

        result = ReservationService(db_session).release(bundle.id, 2)

        assert result.reserved_open == 9
        assert result.is_overbooked is False

    def test_release_never_goes_negative(self, db_session):
        bundle = create_test_bundle(db_session, status=BundleStatus.ACTIVE, reserved_open=1)

        result = ReservationService(db_session).release(bundle.id, 5)

        assert result.reserved_open == 0

    def test_release_allowed_after_archive(self, db_session):
        bundle = create_test_bundle(db_session, status=BundleStatus.ARCHIVED, reserved_open=3)

        result = ReservationService(db_session).release(bundle.id, 1)

        assert result.reserved_open == 2


class TestReservationStatus:
    def test_remaining_capacity(self, db_session):
        bundle = create_test_bundle(
            db_session, status=BundleStatus.ACTIVE, bundle_cap=10, reserved_open=4
        )

        status = ReservationService(db_session).reservation_status(bundle.id)

        assert status.remaining == 6
        assert status.is_overbooked is False

    def test_overbooked_has_no_remaining(self, db_session):
        bundle = create_test_bundle(
            db_session, status=BundleStatus.ACTIVE, bundle_cap=2, reserved_open=3
        )

        status = ReservationService(db_session).reservation_status(bundle.id)

        assert status.remaining == 0
        assert status.is_overbooked is True

    def test_unlimited_cap(self, db_session):
        bundle = create_test_bundle(db_session, status=BundleStatus.ACTIVE)

        assert ReservationService(db_session).reservation_status(bundle.id).remaining is None


class TestIsOverbooked:
    @pytest.mark.parametrize(
        ("reserved", "cap", "expected"),
        [(0, None, False), (11, 10, True), (10, 10, False), (1, 0, True)],
    )
    def test_is_overbooked(self, reserved, cap, expected):
        assert is_overbooked(reserved, cap) is expected
