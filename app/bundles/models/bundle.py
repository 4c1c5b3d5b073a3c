"""Bundle aggregate: a discounted group of catalog variants sold as one unit."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Enum, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.datetime_utils import utcnow
from app.db.session import Base


class BundleStatus(str, enum.Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    BROKEN = "broken"
    EXPIRED = "expired"
    ARCHIVED = "archived"


class DiscountType(str, enum.Enum):
    FIXED = "fixed"
    PERCENT = "percent"


class Bundle(Base):
    """
    Sellable bundle of component variants.

    Attributes:
        shell_product_id: Catalog product used to list the bundle in the storefront
        discount_type: fixed (absolute price) or percent (off the component total)
        fixed_price: Bundle price in minor units, meaningful for fixed bundles
        percent_off: Percent points off (0-100), meaningful for percent bundles
        valid_from / valid_to: Sale window, None means unbounded
        bundle_cap: Maximum open reservations, None means unlimited
        reserved_open: Open reservations, changed only by the reservation tracker
        reservation_version: Compare-and-set counter for reserved_open
        version: Incremented on every successful publish
        row_version: Optimistic lock for administrative writes
        last_recomputed_at: When availability was last recomputed successfully

    Price, savings, virtual stock, broken and expired flags are derived on
    every read and are never stored here.
    """

    __tablename__ = "bundles"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4, index=True)
    name: Mapped[str] = mapped_column(index=True)
    description: Mapped[str | None] = mapped_column(default=None)
    shell_product_id: Mapped[str | None] = mapped_column(default=None, index=True)
    currency: Mapped[str] = mapped_column(default="PLN")

    status: Mapped[BundleStatus] = mapped_column(
        Enum(
            BundleStatus,
            name="bundlestatus",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        default=BundleStatus.DRAFT,
        index=True,
    )

    # Discount rule
    discount_type: Mapped[DiscountType] = mapped_column(
        Enum(
            DiscountType,
            name="bundlediscounttype",
            values_callable=lambda obj: [e.value for e in obj],
        )
    )
    fixed_price: Mapped[int | None] = mapped_column(default=None)  # In grosz
    percent_off: Mapped[float | None] = mapped_column(default=None)

    # Validity window
    valid_from: Mapped[datetime | None] = mapped_column(default=None)
    valid_to: Mapped[datetime | None] = mapped_column(default=None, index=True)

    # Cap & reservations
    bundle_cap: Mapped[int | None] = mapped_column(default=None)
    reserved_open: Mapped[int] = mapped_column(default=0)
    reservation_version: Mapped[int] = mapped_column(default=0)

    allow_external_promos: Mapped[bool] = mapped_column(default=False)

    # Audit
    version: Mapped[int] = mapped_column(default=1)
    broken_reason: Mapped[str | None] = mapped_column(default=None)
    archived_reason: Mapped[str | None] = mapped_column(default=None)
    archived_at: Mapped[datetime | None] = mapped_column(default=None)
    last_recomputed_at: Mapped[datetime | None] = mapped_column(default=None)

    row_version: Mapped[int] = mapped_column(default=1)

    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    items: Mapped[list["BundleItem"]] = relationship(
        back_populates="bundle",
        cascade="all, delete-orphan",
        order_by="BundleItem.display_order",
    )

    __mapper_args__ = {"version_id_col": row_version}

    __table_args__ = (
        CheckConstraint("reserved_open >= 0", name="ck_bundles_reserved_open_non_negative"),
        Index("idx_bundles_status_valid_to", "status", "valid_to"),
    )

    def __repr__(self) -> str:
        return f"<Bundle(id={self.id}, name={self.name}, status={self.status})>"


class BundleItem(Base):
    """One component (variant x quantity) of a bundle."""

    __tablename__ = "bundle_items"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4, index=True)
    bundle_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bundles.id", ondelete="CASCADE"), index=True
    )
    product_variant_id: Mapped[str] = mapped_column(index=True)
    quantity: Mapped[int] = mapped_column(default=1)
    unit_price_snapshot: Mapped[int] = mapped_column()  # In grosz, captured when added
    display_order: Mapped[int] = mapped_column(default=0)

    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    bundle: Mapped[Bundle] = relationship(back_populates="items")

    __table_args__ = (CheckConstraint("quantity >= 1", name="ck_bundle_items_quantity_positive"),)

    def __repr__(self) -> str:
        return (
            f"<BundleItem(bundle_id={self.bundle_id}, variant={self.product_variant_id}, "
            f"qty={self.quantity})>"
        )
