"""Promotion guard: may an external coupon also discount a bundle's lines?

Precedence, first match wins:

1. global policy ``exclude`` denies every bundle
2. the bundle's own ``allow_external_promos`` flag
3. excluded promotion patterns
4. promotion code whitelist (when configured)
5. cumulative discount ceiling, which clamps the external share (down to
   zero when the bundle discount alone already reaches it)

The bundle flag can only narrow the global policy, never widen it.
"""

import re
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy.orm import Session

from app.bundles.models.bundle import Bundle, DiscountType
from app.bundles.models.config import PromoPolicy
from app.bundles.repository import BundleRepository
from app.bundles.services.config_service import BundleConfigService, PromotionPolicy
from app.bundles.services.pricing import compute_bundle_price
from app.core.constants import DISCOUNT_PCT_EPSILON
from app.core.exceptions import NotFoundError

logger = structlog.get_logger(__name__)

POLICY_GLOBAL = "global"
POLICY_BUNDLE = "bundle"
POLICY_PATTERN = "pattern"
POLICY_WHITELIST = "whitelist"
POLICY_DISCOUNT_CAP = "discount_cap"
POLICY_ALLOWED = "allowed"


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    clamped: bool
    bundle_discount_pct: float
    external_discount_pct: float
    effective_combined_discount_pct: float
    deciding_policy: str
    reason: str


def _deny(bundle_pct: float, policy: str, reason: str) -> GuardDecision:
    return GuardDecision(
        allowed=False,
        clamped=False,
        bundle_discount_pct=bundle_pct,
        external_discount_pct=0.0,
        effective_combined_discount_pct=bundle_pct,
        deciding_policy=policy,
        reason=reason,
    )


def _matching_pattern(patterns: Sequence[str], code: str | None) -> str | None:
    if not code:
        return None
    for pattern in patterns:
        if re.search(pattern, code):
            return pattern
    return None


def decide(
    bundle_discount_pct: float,
    allow_external_promos: bool,
    policy: PromotionPolicy,
    proposed_external_discount_pct: float,
    promotion_code: str | None = None,
) -> GuardDecision:
    """Decide whether an external discount may stack on a bundle.

    Args:
        bundle_discount_pct: The bundle's own discount as a fraction.
        allow_external_promos: The bundle-level opt-in flag.
        policy: Snapshot of the global policy for this evaluation.
        proposed_external_discount_pct: Coupon discount as a fraction.
        promotion_code: Coupon code, checked against patterns and whitelist.
    """
    bundle_pct = max(0.0, bundle_discount_pct)
    proposed = max(0.0, proposed_external_discount_pct)

    if policy.site_wide_promos_affect_bundles == PromoPolicy.EXCLUDE:
        return _deny(bundle_pct, POLICY_GLOBAL, "Site-wide promotions are excluded from bundles")

    if not allow_external_promos:
        return _deny(bundle_pct, POLICY_BUNDLE, "Bundle does not accept external promotions")

    matched = _matching_pattern(policy.excluded_promotion_patterns, promotion_code)
    if matched is not None:
        return _deny(
            bundle_pct,
            POLICY_PATTERN,
            f"Promotion code {promotion_code!r} matches excluded pattern {matched!r}",
        )

    if policy.allowed_promotion_codes:
        allowed_codes = {c.casefold() for c in policy.allowed_promotion_codes}
        if not promotion_code or promotion_code.casefold() not in allowed_codes:
            return _deny(
                bundle_pct,
                POLICY_WHITELIST,
                f"Promotion code {promotion_code!r} is not whitelisted for bundles",
            )

    ceiling = policy.max_cumulative_discount_pct
    if (
        ceiling is not None
        and proposed > 0
        and bundle_pct + proposed > ceiling + DISCOUNT_PCT_EPSILON
    ):
        external = max(0.0, ceiling - bundle_pct)
        if external <= DISCOUNT_PCT_EPSILON:
            external = 0.0
        return GuardDecision(
            allowed=True,
            clamped=True,
            bundle_discount_pct=bundle_pct,
            external_discount_pct=external,
            effective_combined_discount_pct=bundle_pct + external,
            deciding_policy=POLICY_DISCOUNT_CAP,
            reason=(
                f"External discount clamped from {proposed:.2%} to {external:.2%} "
                f"by the {ceiling:.2%} ceiling"
            ),
        )

    return GuardDecision(
        allowed=True,
        clamped=False,
        bundle_discount_pct=bundle_pct,
        external_discount_pct=proposed,
        effective_combined_discount_pct=bundle_pct + proposed,
        deciding_policy=POLICY_ALLOWED,
        reason="External promotion allowed",
    )


def decide_for_bundle(
    bundle: Bundle,
    policy: PromotionPolicy,
    proposed_external_discount_pct: float,
    promotion_code: str | None = None,
) -> GuardDecision:
    """Run ``decide`` with the bundle's own discount.

    Percent bundles use ``percent_off`` directly; fixed bundles use the
    fraction saved against the component total.
    """
    if bundle.discount_type == DiscountType.PERCENT:
        bundle_pct = (bundle.percent_off or 0.0) / 100
    else:
        bundle_pct = compute_bundle_price(bundle).discount_pct
    return decide(
        bundle_pct,
        bundle.allow_external_promos,
        policy,
        proposed_external_discount_pct,
        promotion_code,
    )


class PromotionGuardService:
    def __init__(self, db: Session):
        self.db = db
        self.bundles = BundleRepository(db)
        self.config_service = BundleConfigService(db)

    def decide(
        self,
        bundle_id: uuid.UUID,
        proposed_external_discount_pct: float,
        promotion_code: str | None = None,
    ) -> GuardDecision:
        bundle = self.bundles.get_with_items(bundle_id)
        if bundle is None:
            raise NotFoundError("Bundle not found", resource="bundle")
        policy = self.config_service.get_policy()
        decision = decide_for_bundle(bundle, policy, proposed_external_discount_pct, promotion_code)
        self._log(policy, bundle.id, promotion_code, decision)
        return decision

    def decide_for_order(
        self, lines: Sequence[tuple[uuid.UUID, float, str | None]]
    ) -> tuple[int, list[tuple[uuid.UUID, GuardDecision]]]:
        """Evaluate several bundle lines against one policy snapshot.

        Args:
            lines: (bundle_id, proposed external pct, promotion code) per line.

        Returns:
            The policy version used and one decision per line, in order.

        Raises:
            NotFoundError: A line references an unknown bundle.
        """
        policy = self.config_service.get_policy()
        bundles = self.bundles.by_ids(line[0] for line in lines)

        decisions: list[tuple[uuid.UUID, GuardDecision]] = []
        for bundle_id, proposed, code in lines:
            bundle = bundles.get(bundle_id)
            if bundle is None:
                raise NotFoundError(f"Bundle {bundle_id} not found", resource="bundle")
            decision = decide_for_bundle(bundle, policy, proposed, code)
            self._log(policy, bundle_id, code, decision)
            decisions.append((bundle_id, decision))

        return policy.version, decisions

    def guard_summary(self) -> dict[str, Any]:
        policy = self.config_service.get_policy()
        counts = self.bundles.count_by_status()
        return {
            "site_wide_promos_affect_bundles": policy.site_wide_promos_affect_bundles.value,
            "max_cumulative_discount_pct": policy.max_cumulative_discount_pct,
            "config_version": policy.version,
            "bundles_total": sum(counts.values()),
            "bundles_allowing_external_promos": self.bundles.count_allowing_external_promos(),
            "excluded_pattern_count": len(policy.excluded_promotion_patterns),
            "whitelist_size": len(policy.allowed_promotion_codes),
        }

    @staticmethod
    def _log(
        policy: PromotionPolicy,
        bundle_id: uuid.UUID,
        promotion_code: str | None,
        decision: GuardDecision,
    ) -> None:
        if not policy.log_decisions:
            return
        logger.info(
            "promotion_guard_decision",
            bundle_id=str(bundle_id),
            promotion_code=promotion_code,
            allowed=decision.allowed,
            clamped=decision.clamped,
            deciding_policy=decision.deciding_policy,
            external_discount_pct=decision.external_discount_pct,
            combined_discount_pct=decision.effective_combined_discount_pct,
            config_version=policy.version,
        )
