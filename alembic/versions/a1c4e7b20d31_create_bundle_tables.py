"""Create bundle engine tables

Revision ID: a1c4e7b20d31
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1c4e7b20d31"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

bundle_status = sa.Enum(
    "draft", "active", "broken", "expired", "archived", name="bundlestatus"
)
discount_type = sa.Enum("fixed", "percent", name="bundlediscounttype")
promo_policy = sa.Enum("exclude", "allow", name="bundlepromopolicy")


def upgrade() -> None:
    # bundles: the sellable aggregate
    op.create_table(
        "bundles",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("shell_product_id", sa.String(), nullable=True),
        sa.Column("currency", sa.String(), nullable=False, server_default="PLN"),
        sa.Column("status", bundle_status, nullable=False, server_default="draft"),
        sa.Column("discount_type", discount_type, nullable=False),
        sa.Column("fixed_price", sa.Integer(), nullable=True),
        sa.Column("percent_off", sa.Float(), nullable=True),
        sa.Column("valid_from", sa.DateTime(), nullable=True),
        sa.Column("valid_to", sa.DateTime(), nullable=True),
        sa.Column("bundle_cap", sa.Integer(), nullable=True),
        sa.Column("reserved_open", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reservation_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("allow_external_promos", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("broken_reason", sa.String(), nullable=True),
        sa.Column("archived_reason", sa.String(), nullable=True),
        sa.Column("archived_at", sa.DateTime(), nullable=True),
        sa.Column("last_recomputed_at", sa.DateTime(), nullable=True),
        sa.Column("row_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("reserved_open >= 0", name="ck_bundles_reserved_open_non_negative"),
    )
    op.create_index(op.f("ix_bundles_id"), "bundles", ["id"])
    op.create_index(op.f("ix_bundles_name"), "bundles", ["name"])
    op.create_index(op.f("ix_bundles_shell_product_id"), "bundles", ["shell_product_id"])
    op.create_index(op.f("ix_bundles_status"), "bundles", ["status"])
    op.create_index(op.f("ix_bundles_valid_to"), "bundles", ["valid_to"])
    op.create_index("idx_bundles_status_valid_to", "bundles", ["status", "valid_to"])

    # bundle_items: ordered components with their captured price
    op.create_table(
        "bundle_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("bundle_id", sa.Uuid(), nullable=False),
        sa.Column("product_variant_id", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("unit_price_snapshot", sa.Integer(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["bundle_id"], ["bundles.id"], ondelete="CASCADE"),
        sa.CheckConstraint("quantity >= 1", name="ck_bundle_items_quantity_positive"),
    )
    op.create_index(op.f("ix_bundle_items_id"), "bundle_items", ["id"])
    op.create_index(op.f("ix_bundle_items_bundle_id"), "bundle_items", ["bundle_id"])
    op.create_index(
        op.f("ix_bundle_items_product_variant_id"), "bundle_items", ["product_variant_id"]
    )

    # bundle_config: single-row global promotion policy
    op.create_table(
        "bundle_config",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "site_wide_promos_affect_bundles",
            promo_policy,
            nullable=False,
            server_default="exclude",
        ),
        sa.Column("max_cumulative_discount_pct", sa.Float(), nullable=True),
        sa.Column(
            "log_promotion_guard_decisions", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column("excluded_promotion_patterns", sa.JSON(), nullable=False),
        sa.Column("allowed_promotion_codes", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("bundle_config")

    op.drop_index(op.f("ix_bundle_items_product_variant_id"), table_name="bundle_items")
    op.drop_index(op.f("ix_bundle_items_bundle_id"), table_name="bundle_items")
    op.drop_index(op.f("ix_bundle_items_id"), table_name="bundle_items")
    op.drop_table("bundle_items")

    op.drop_index("idx_bundles_status_valid_to", table_name="bundles")
    op.drop_index(op.f("ix_bundles_valid_to"), table_name="bundles")
    op.drop_index(op.f("ix_bundles_status"), table_name="bundles")
    op.drop_index(op.f("ix_bundles_shell_product_id"), table_name="bundles")
    op.drop_index(op.f("ix_bundles_name"), table_name="bundles")
    op.drop_index(op.f("ix_bundles_id"), table_name="bundles")
    op.drop_table("bundles")

    promo_policy.drop(op.get_bind(), checkfirst=True)
    discount_type.drop(op.get_bind(), checkfirst=True)
    bundle_status.drop(op.get_bind(), checkfirst=True)
