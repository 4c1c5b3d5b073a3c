from datetime import datetime

from faker import Faker
from sqlalchemy.orm import Session

from app.bundles.catalog import VariantSnapshot
from app.bundles.models import (
    BUNDLE_CONFIG_ID,
    Bundle,
    BundleConfig,
    BundleItem,
    BundleStatus,
    DiscountType,
    PromoPolicy,
)

fake = Faker()

DEFAULT_ITEMS = (("A", 1, 3000), ("B", 1, 2500))


def create_variant(
    variant_id: str | None = None,
    price: int = 1000,
    stock_on_hand: int = 10,
    enabled: bool = True,
    deleted: bool = False,
) -> VariantSnapshot:
    return VariantSnapshot(
        variant_id=variant_id or fake.uuid4(),
        price=price,
        stock_on_hand=stock_on_hand,
        enabled=enabled,
        deleted=deleted,
        name=fake.word(),
    )


def create_test_bundle(
    db_session: Session,
    name: str | None = None,
    items: tuple[tuple[str, int, int], ...] | list[tuple[str, int, int]] = DEFAULT_ITEMS,
    status: BundleStatus = BundleStatus.DRAFT,
    discount_type: DiscountType | str = DiscountType.FIXED,
    fixed_price: int | None = 5000,
    percent_off: float | None = None,
    valid_from: datetime | None = None,
    valid_to: datetime | None = None,
    bundle_cap: int | None = None,
    reserved_open: int = 0,
    allow_external_promos: bool = False,
) -> Bundle:
    """
    Factory function to create test bundles.

    Args:
        db_session: Database session
        name: Bundle name (generates random if None)
        items: (variant id, quantity, unit price snapshot) per component
        status: Stored lifecycle status
        discount_type: "fixed" or "percent"
        fixed_price / percent_off: Discount rule values

    Returns:
        Created Bundle instance
    """
    bundle = Bundle(
        name=name or fake.catch_phrase(),
        description=fake.sentence(),
        shell_product_id=fake.uuid4(),
        currency="PLN",
        status=status,
        discount_type=DiscountType(discount_type),
        fixed_price=fixed_price,
        percent_off=percent_off,
        valid_from=valid_from,
        valid_to=valid_to,
        bundle_cap=bundle_cap,
        reserved_open=reserved_open,
        reservation_version=0,
        allow_external_promos=allow_external_promos,
        version=1,
    )
    bundle.items = [
        BundleItem(
            product_variant_id=variant_id,
            quantity=quantity,
            unit_price_snapshot=price,
            display_order=index,
        )
        for index, (variant_id, quantity, price) in enumerate(items)
    ]

    db_session.add(bundle)
    db_session.commit()
    db_session.refresh(bundle)

    return bundle


def create_bundle_config(
    db_session: Session,
    policy: PromoPolicy = PromoPolicy.ALLOW,
    max_cumulative_discount_pct: float | None = None,
    excluded_promotion_patterns: list[str] | None = None,
    allowed_promotion_codes: list[str] | None = None,
    log_decisions: bool = False,
) -> BundleConfig:
    config = BundleConfig(
        id=BUNDLE_CONFIG_ID,
        site_wide_promos_affect_bundles=policy,
        max_cumulative_discount_pct=max_cumulative_discount_pct,
        log_promotion_guard_decisions=log_decisions,
        excluded_promotion_patterns=excluded_promotion_patterns or [],
        allowed_promotion_codes=allowed_promotion_codes or [],
        version=1,
    )

    db_session.add(config)
    db_session.commit()
    db_session.refresh(config)

    return config
