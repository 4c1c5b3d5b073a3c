"""Global promotion policy record.

The policy is read fresh for every evaluation and handed out as an
immutable ``PromotionPolicy`` so concurrent readers never see a
half-applied update.
"""

import re
from dataclasses import dataclass

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.bundles.models.config import BUNDLE_CONFIG_ID, BundleConfig, PromoPolicy
from app.bundles.schemas.config import BundleConfigUpdate
from app.core.constants import CUMULATIVE_DISCOUNT_MAX, CUMULATIVE_DISCOUNT_MIN
from app.core.exceptions import ValidationError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PromotionPolicy:
    site_wide_promos_affect_bundles: PromoPolicy = PromoPolicy.EXCLUDE
    max_cumulative_discount_pct: float | None = None
    log_decisions: bool = False
    excluded_promotion_patterns: tuple[str, ...] = ()
    allowed_promotion_codes: tuple[str, ...] = ()
    version: int = 1

    @classmethod
    def from_record(cls, config: BundleConfig) -> "PromotionPolicy":
        return cls(
            site_wide_promos_affect_bundles=config.site_wide_promos_affect_bundles,
            max_cumulative_discount_pct=config.max_cumulative_discount_pct,
            log_decisions=config.log_promotion_guard_decisions,
            excluded_promotion_patterns=tuple(config.excluded_promotion_patterns or ()),
            allowed_promotion_codes=tuple(config.allowed_promotion_codes or ()),
            version=config.version,
        )


class BundleConfigService:
    def __init__(self, db: Session):
        self.db = db

    def get_config(self) -> BundleConfig:
        """Return the policy row, creating it with safe defaults on first use."""
        config = self.db.get(BundleConfig, BUNDLE_CONFIG_ID)
        if config is not None:
            return config

        config = BundleConfig(
            id=BUNDLE_CONFIG_ID,
            site_wide_promos_affect_bundles=PromoPolicy.EXCLUDE,
            max_cumulative_discount_pct=None,
            log_promotion_guard_decisions=False,
            excluded_promotion_patterns=[],
            allowed_promotion_codes=[],
            version=1,
        )
        self.db.add(config)
        try:
            self.db.commit()
        except IntegrityError:
            # Another request created the row first
            self.db.rollback()
            existing = self.db.get(BundleConfig, BUNDLE_CONFIG_ID)
            if existing is None:
                raise
            return existing

        self.db.refresh(config)
        logger.info("bundle_config_initialized", version=config.version)
        return config

    def get_policy(self) -> PromotionPolicy:
        return PromotionPolicy.from_record(self.get_config())

    def update_config(self, data: BundleConfigUpdate) -> BundleConfig:
        """Validate every provided field, then apply all of them or none.

        Raises:
            ValidationError: A ceiling outside [0, 1] or a pattern that is not
                a valid regular expression.
        """
        provided = data.model_dump(exclude_unset=True)
        errors = self._validate(provided)
        if errors:
            raise ValidationError(errors[0]["message"], field=errors[0]["field"], errors=errors)

        config = self.get_config()
        for key, value in provided.items():
            if key == "site_wide_promos_affect_bundles" and value is None:
                continue
            if key == "log_promotion_guard_decisions" and value is None:
                continue
            if key in ("excluded_promotion_patterns", "allowed_promotion_codes"):
                value = self._normalize_list(value)
            setattr(config, key, value)

        config.version = config.version + 1
        self.db.commit()
        self.db.refresh(config)

        logger.info(
            "bundle_config_updated",
            version=config.version,
            policy=config.site_wide_promos_affect_bundles.value,
            max_cumulative_discount_pct=config.max_cumulative_discount_pct,
            fields=sorted(provided),
        )
        return config

    @staticmethod
    def _normalize_list(values: list[str] | None) -> list[str]:
        seen: dict[str, None] = {}
        for v in values or []:
            stripped = v.strip()
            if stripped:
                seen.setdefault(stripped, None)
        return list(seen)

    @staticmethod
    def _validate(provided: dict) -> list[dict[str, str]]:
        errors: list[dict[str, str]] = []

        pct = provided.get("max_cumulative_discount_pct")
        if pct is not None and not CUMULATIVE_DISCOUNT_MIN <= pct <= CUMULATIVE_DISCOUNT_MAX:
            errors.append(
                {
                    "field": "max_cumulative_discount_pct",
                    "message": "max_cumulative_discount_pct must be between 0 and 1",
                }
            )

        for index, pattern in enumerate(provided.get("excluded_promotion_patterns") or []):
            try:
                re.compile(pattern)
            except re.error as e:
                errors.append(
                    {
                        "field": f"excluded_promotion_patterns[{index}]",
                        "message": f"Invalid pattern {pattern!r}: {e}",
                    }
                )

        return errors
