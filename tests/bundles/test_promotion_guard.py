"""
Tests for the promotion guard decision and its service wrapper.
"""

import uuid

import pytest

from app.bundles.models import PromoPolicy
from app.bundles.services.config_service import PromotionPolicy
from app.bundles.services.promotion_guard import (
    POLICY_ALLOWED,
    POLICY_BUNDLE,
    POLICY_DISCOUNT_CAP,
    POLICY_GLOBAL,
    POLICY_PATTERN,
    POLICY_WHITELIST,
    PromotionGuardService,
    decide,
)
from app.core.exceptions import NotFoundError
from tests.utils.factories import create_bundle_config, create_test_bundle

ALLOW = PromotionPolicy(site_wide_promos_affect_bundles=PromoPolicy.ALLOW)


class TestDecide:
    @pytest.mark.parametrize("bundle_flag", [True, False])
    def test_global_exclude_denies_every_bundle(self, bundle_flag):
        policy = PromotionPolicy(site_wide_promos_affect_bundles=PromoPolicy.EXCLUDE)

        decision = decide(0.1, bundle_flag, policy, 0.2)

        assert decision.allowed is False
        assert decision.deciding_policy == POLICY_GLOBAL
        assert decision.external_discount_pct == 0.0
        assert decision.effective_combined_discount_pct == pytest.approx(0.1)

    def test_bundle_flag_narrows_global_allow(self):
        decision = decide(0.1, False, ALLOW, 0.2)

        assert decision.allowed is False
        assert decision.deciding_policy == POLICY_BUNDLE

    def test_allowed_without_ceiling(self):
        decision = decide(0.1, True, ALLOW, 0.2)

        assert decision.allowed is True
        assert decision.clamped is False
        assert decision.deciding_policy == POLICY_ALLOWED
        assert decision.effective_combined_discount_pct == pytest.approx(0.3)

    def test_ceiling_clamps_external_discount(self):
        """20% bundle + 40% coupon under a 50% ceiling ends at 50%."""
        policy = PromotionPolicy(
            site_wide_promos_affect_bundles=PromoPolicy.ALLOW, max_cumulative_discount_pct=0.5
        )

        decision = decide(0.2, True, policy, 0.4)

        assert decision.allowed is True
        assert decision.clamped is True
        assert decision.deciding_policy == POLICY_DISCOUNT_CAP
        assert decision.external_discount_pct == pytest.approx(0.3)
        assert decision.effective_combined_discount_pct == pytest.approx(0.5)

    def test_within_ceiling_is_not_clamped(self):
        policy = PromotionPolicy(
            site_wide_promos_affect_bundles=PromoPolicy.ALLOW, max_cumulative_discount_pct=0.5
        )

        decision = decide(0.2, True, policy, 0.3)

        assert decision.allowed is True
        assert decision.clamped is False
        assert decision.effective_combined_discount_pct == pytest.approx(0.5)

    def test_bundle_at_ceiling_clamps_external_to_zero(self):
        policy = PromotionPolicy(
            site_wide_promos_affect_bundles=PromoPolicy.ALLOW, max_cumulative_discount_pct=0.2
        )

        decision = decide(0.2, True, policy, 0.1)

        assert decision.allowed is True
        assert decision.clamped is True
        assert decision.deciding_policy == POLICY_DISCOUNT_CAP
        assert decision.external_discount_pct == 0.0
        assert decision.effective_combined_discount_pct == pytest.approx(0.2)

    def test_bundle_above_ceiling_keeps_its_own_discount(self):
        policy = PromotionPolicy(
            site_wide_promos_affect_bundles=PromoPolicy.ALLOW, max_cumulative_discount_pct=0.3
        )

        decision = decide(0.35, True, policy, 0.1)

        assert decision.allowed is True
        assert decision.clamped is True
        assert decision.external_discount_pct == 0.0
        assert decision.effective_combined_discount_pct == pytest.approx(0.35)

    def test_zero_proposal_is_always_allowed(self):
        policy = PromotionPolicy(
            site_wide_promos_affect_bundles=PromoPolicy.ALLOW, max_cumulative_discount_pct=0.1
        )

        decision = decide(0.5, True, policy, 0.0)

        assert decision.allowed is True
        assert decision.external_discount_pct == 0.0

    def test_excluded_pattern_denies_matching_code(self):
        policy = PromotionPolicy(
            site_wide_promos_affect_bundles=PromoPolicy.ALLOW,
            excluded_promotion_patterns=(r"^BLACKFRIDAY",),
        )

        denied = decide(0.1, True, policy, 0.2, "BLACKFRIDAY25")
        allowed = decide(0.1, True, policy, 0.2, "SPRING10")

        assert denied.allowed is False
        assert denied.deciding_policy == POLICY_PATTERN
        assert allowed.allowed is True

    def test_whitelist_requires_listed_code(self):
        policy = PromotionPolicy(
            site_wide_promos_affect_bundles=PromoPolicy.ALLOW,
            allowed_promotion_codes=("VIP10",),
        )

        assert decide(0.1, True, policy, 0.1, "vip10").allowed is True
        assert decide(0.1, True, policy, 0.1, "OTHER").deciding_policy == POLICY_WHITELIST
        assert decide(0.1, True, policy, 0.1, None).allowed is False

    def test_pattern_wins_over_whitelist(self):
        policy = PromotionPolicy(
            site_wide_promos_affect_bundles=PromoPolicy.ALLOW,
            excluded_promotion_patterns=("VIP",),
            allowed_promotion_codes=("VIP10",),
        )

        assert decide(0.1, True, policy, 0.1, "VIP10").deciding_policy == POLICY_PATTERN


class TestPromotionGuardService:
    def test_decide_uses_bundle_pricing(self, db_session):
        create_bundle_config(db_session, max_cumulative_discount_pct=0.5)
        bundle = create_test_bundle(
            db_session,
            discount_type="percent",
            fixed_price=None,
            percent_off=20,
            allow_external_promos=True,
        )

        decision = PromotionGuardService(db_session).decide(bundle.id, 0.4)

        assert decision.bundle_discount_pct == pytest.approx(0.2)
        assert decision.clamped is True
        assert decision.effective_combined_discount_pct == pytest.approx(0.5)

    def test_default_policy_excludes(self, db_session):
        bundle = create_test_bundle(db_session, allow_external_promos=True)

        decision = PromotionGuardService(db_session).decide(bundle.id, 0.1)

        assert decision.allowed is False
        assert decision.deciding_policy == POLICY_GLOBAL

    def test_decide_for_order_uses_one_policy_version(self, db_session):
        create_bundle_config(db_session)
        open_bundle = create_test_bundle(db_session, allow_external_promos=True)
        closed_bundle = create_test_bundle(db_session, allow_external_promos=False)

        version, decisions = PromotionGuardService(db_session).decide_for_order(
            [(open_bundle.id, 0.1, None), (closed_bundle.id, 0.1, None)]
        )

        assert version == 1
        assert [d.allowed for _, d in decisions] == [True, False]

    def test_unknown_bundle_raises(self, db_session):
        with pytest.raises(NotFoundError):
            PromotionGuardService(db_session).decide(uuid.uuid4(), 0.1)

    def test_guard_summary(self, db_session):
        create_bundle_config(db_session, max_cumulative_discount_pct=0.4)
        create_test_bundle(db_session, allow_external_promos=True)
        create_test_bundle(db_session)

        summary = PromotionGuardService(db_session).guard_summary()

        assert summary["site_wide_promos_affect_bundles"] == "allow"
        assert summary["bundles_total"] == 2
        assert summary["bundles_allowing_external_promos"] == 1
        assert summary["max_cumulative_discount_pct"] == 0.4
