"""Global bundle promotion policy, stored as a single versioned row."""

import enum
from datetime import datetime

from sqlalchemy import JSON, Enum
from sqlalchemy.orm import Mapped, mapped_column

from app.core.datetime_utils import utcnow
from app.db.session import Base

BUNDLE_CONFIG_ID = 1


class PromoPolicy(str, enum.Enum):
    EXCLUDE = "exclude"
    ALLOW = "allow"


class BundleConfig(Base):
    __tablename__ = "bundle_config"

    id: Mapped[int] = mapped_column(primary_key=True, default=BUNDLE_CONFIG_ID)

    site_wide_promos_affect_bundles: Mapped[PromoPolicy] = mapped_column(
        Enum(
            PromoPolicy,
            name="bundlepromopolicy",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        default=PromoPolicy.EXCLUDE,
    )
    # Fraction in [0, 1]; None disables the ceiling
    max_cumulative_discount_pct: Mapped[float | None] = mapped_column(default=None)
    log_promotion_guard_decisions: Mapped[bool] = mapped_column(default=False)

    # Regular expressions; matching promotion codes never touch bundle lines
    excluded_promotion_patterns: Mapped[list] = mapped_column(JSON, default=list)
    # When non-empty, only these codes may touch bundle lines
    allowed_promotion_codes: Mapped[list] = mapped_column(JSON, default=list)

    version: Mapped[int] = mapped_column(default=1)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return (
            f"<BundleConfig(policy={self.site_wide_promos_affect_bundles}, "
            f"cap={self.max_cumulative_discount_pct}, version={self.version})>"
        )
