"""Bundle administration and read operations.

Reads always recompute pricing and availability; stored status changes
only through ``BundleLifecycleService``.
"""

import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy.orm import Session

from app.bundles.catalog.gateway import CatalogGateway
from app.bundles.models.bundle import Bundle, BundleItem, BundleStatus, DiscountType
from app.bundles.repository import BundleRepository
from app.bundles.schemas.bundle import (
    BundleCreate,
    BundleItemInput,
    BundleItemResponse,
    BundleResponse,
    BundleUpdate,
    StorefrontBundleResponse,
)
from app.bundles.services.evaluation import BundleEvaluation
from app.bundles.services.lifecycle import (
    EDITABLE_STATUSES,
    BundleLifecycleService,
    DeleteResult,
    available_transitions,
    commit_bundle,
)
from app.bundles.services.pricing import (
    DiscountRule,
    compute_effective_price,
    price_lines_from_items,
    validate_discount_rule,
)
from app.bundles.services.reservation import is_overbooked
from app.core.config import settings
from app.core.datetime_utils import as_naive_utc, utcnow
from app.core.exceptions import NotFoundError, StateTransitionError, ValidationError

logger = structlog.get_logger(__name__)

WINDOW_FIELDS = frozenset({"valid_from", "valid_to"})

STOREFRONT_STATUSES = (BundleStatus.ACTIVE,)


@dataclass(frozen=True)
class BundleView:
    """A bundle together with its freshly derived state."""

    bundle: Bundle
    evaluation: BundleEvaluation

    @property
    def is_overbooked(self) -> bool:
        return is_overbooked(self.bundle.reserved_open, self.bundle.bundle_cap)


def _raise_errors(errors: list[dict[str, str]]) -> None:
    if errors:
        raise ValidationError(errors[0]["message"], field=errors[0]["field"], errors=errors)


class BundleService:
    def __init__(self, db: Session, catalog: CatalogGateway):
        self.db = db
        self.catalog = catalog
        self.bundles = BundleRepository(db)
        self.lifecycle = BundleLifecycleService(db, catalog)

    # ─── Admin mutations ────────────────────────────────────────────────

    def create_bundle(self, data: BundleCreate) -> Bundle:
        """Create a DRAFT bundle.

        Raises:
            ValidationError: Inconsistent discount rule, validity window or
                duplicated items.
            NotFoundError: An item without a price refers to a variant the
                catalog does not know.
        """
        rule = DiscountRule(data.discount_type, data.fixed_price, data.percent_off)
        errors = validate_discount_rule(rule)
        errors.extend(self._window_errors(data.valid_from, data.valid_to))
        _raise_errors(errors)

        bundle = Bundle(
            name=data.name,
            description=data.description,
            shell_product_id=data.shell_product_id,
            currency=(data.currency or settings.BUNDLE_DEFAULT_CURRENCY).upper(),
            status=BundleStatus.DRAFT,
            discount_type=data.discount_type,
            fixed_price=data.fixed_price if data.discount_type == DiscountType.FIXED else None,
            percent_off=data.percent_off if data.discount_type == DiscountType.PERCENT else None,
            valid_from=as_naive_utc(data.valid_from),
            valid_to=as_naive_utc(data.valid_to),
            bundle_cap=data.bundle_cap,
            allow_external_promos=data.allow_external_promos,
            reserved_open=0,
            reservation_version=0,
            version=1,
        )
        bundle.items = self._build_items(data.items, existing={})

        self.bundles.add(bundle)
        self.db.commit()
        self.db.refresh(bundle)

        logger.info(
            "bundle_created",
            bundle_id=str(bundle.id),
            discount_type=bundle.discount_type.value,
            item_count=len(bundle.items),
        )
        return bundle

    def update_bundle(self, bundle_id: uuid.UUID, data: BundleUpdate) -> Bundle:
        """Apply a partial update to a DRAFT or ACTIVE bundle.

        EXPIRED bundles accept window-only edits (``valid_from``, ``valid_to``)
        so the window can be extended before ``restore``.

        The merged result is validated before anything is written. An
        ACTIVE bundle must stay sellable in shape (items present, positive
        price); component breakage is picked up by the following recompute.

        Raises:
            StateTransitionError: Bundle is ARCHIVED or BROKEN, or EXPIRED and
                the update touches more than the validity window.
            ValidationError: The merged bundle would be inconsistent.
        """
        bundle = self.bundles.get_for_update(bundle_id)
        if bundle is None:
            raise NotFoundError("Bundle not found", resource="bundle")
        # raw attributes; model_dump would serialize datetimes to strings
        provided = {key: getattr(data, key) for key in data.model_fields_set}
        window_only = provided.keys() <= WINDOW_FIELDS
        if bundle.status not in EDITABLE_STATUSES and not (
            bundle.status == BundleStatus.EXPIRED and window_only
        ):
            raise StateTransitionError(bundle.status.value, "editable", "update")
        provided.pop("items", None)

        discount_type = provided.get("discount_type") or bundle.discount_type
        fixed_price = provided.get("fixed_price", bundle.fixed_price)
        percent_off = provided.get("percent_off", bundle.percent_off)
        valid_from = as_naive_utc(provided["valid_from"]) if "valid_from" in provided else bundle.valid_from
        valid_to = as_naive_utc(provided["valid_to"]) if "valid_to" in provided else bundle.valid_to

        errors = validate_discount_rule(DiscountRule(discount_type, fixed_price, percent_off))
        errors.extend(self._window_errors(valid_from, valid_to))
        if data.items is not None and bundle.status == BundleStatus.ACTIVE and not data.items:
            errors.append({"field": "items", "message": "An active bundle must keep at least one item"})
        _raise_errors(errors)

        new_items: list[BundleItem] | None = None
        if data.items is not None:
            existing = {item.product_variant_id: item.unit_price_snapshot for item in bundle.items}
            new_items = self._build_items(data.items, existing=existing)

        if bundle.status == BundleStatus.ACTIVE:
            lines = price_lines_from_items(new_items if new_items is not None else bundle.items)
            pricing = compute_effective_price(DiscountRule(discount_type, fixed_price, percent_off), lines)
            if pricing.effective_price <= 0:
                raise ValidationError("Bundle price must be greater than zero", field="effective_price")

        for key in ("name", "description", "shell_product_id", "bundle_cap"):
            if key in provided and not (key == "name" and provided[key] is None):
                setattr(bundle, key, provided[key])
        if provided.get("allow_external_promos") is not None:
            bundle.allow_external_promos = provided["allow_external_promos"]

        bundle.discount_type = discount_type
        bundle.fixed_price = fixed_price if discount_type == DiscountType.FIXED else None
        bundle.percent_off = percent_off if discount_type == DiscountType.PERCENT else None
        bundle.valid_from = valid_from
        bundle.valid_to = valid_to
        if new_items is not None:
            bundle.items = new_items

        commit_bundle(self.db, bundle)

        logger.info(
            "bundle_updated",
            bundle_id=str(bundle.id),
            status=bundle.status.value,
            fields=sorted(data.model_fields_set),
        )
        if bundle.status == BundleStatus.ACTIVE:
            self.lifecycle.recompute(bundle)
        return bundle

    def delete_bundle(self, bundle_id: uuid.UUID) -> DeleteResult:
        return self.lifecycle.delete(bundle_id)

    # ─── Reads ──────────────────────────────────────────────────────────

    def get_bundle(self, bundle_id: uuid.UUID, now: datetime | None = None) -> BundleView:
        bundle = self.bundles.get_with_items(bundle_id)
        if bundle is None:
            raise NotFoundError("Bundle not found", resource="bundle")
        return self._view(bundle, now)

    def get_storefront_bundle(self, bundle_id: uuid.UUID, now: datetime | None = None) -> BundleView:
        """Fetch a bundle visible in the storefront (ACTIVE before recompute)."""
        bundle = self.bundles.get_with_items(bundle_id)
        if bundle is None or bundle.status not in STOREFRONT_STATUSES:
            raise NotFoundError("Bundle not found", resource="bundle")
        return self._view(bundle, now)

    def list_bundles(
        self,
        statuses: Sequence[BundleStatus] | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        sort_desc: bool = True,
        page: int = 1,
        limit: int = 20,
        now: datetime | None = None,
    ) -> tuple[list[BundleView], int]:
        stmt = self.bundles.list_query(statuses, search, sort_by, sort_desc)
        bundles, total = self.bundles.paginate(stmt, page, limit)
        now = now or utcnow()
        return [self._view(bundle, now) for bundle in bundles], total

    def _view(self, bundle: Bundle, now: datetime | None) -> BundleView:
        evaluation = self.lifecycle.recompute(bundle, now)
        return BundleView(bundle=bundle, evaluation=evaluation)

    # ─── Response mapping ───────────────────────────────────────────────

    @staticmethod
    def to_response(view: BundleView) -> BundleResponse:
        bundle, evaluation = view.bundle, view.evaluation
        availability = evaluation.availability
        return BundleResponse(
            id=str(bundle.id),
            name=bundle.name,
            description=bundle.description,
            shell_product_id=bundle.shell_product_id,
            currency=bundle.currency,
            status=bundle.status,
            discount_type=bundle.discount_type,
            fixed_price=bundle.fixed_price,
            percent_off=bundle.percent_off,
            valid_from=bundle.valid_from,
            valid_to=bundle.valid_to,
            bundle_cap=bundle.bundle_cap,
            bundle_reserved_open=bundle.reserved_open,
            allow_external_promos=bundle.allow_external_promos,
            version=bundle.version,
            broken_reason=bundle.broken_reason or evaluation.broken_reason,
            archived_reason=bundle.archived_reason,
            archived_at=bundle.archived_at,
            last_recomputed_at=bundle.last_recomputed_at,
            items=[BundleItemResponse.model_validate(item) for item in bundle.items],
            component_total=evaluation.pricing.component_total,
            effective_price=evaluation.pricing.effective_price,
            total_savings=evaluation.pricing.total_savings,
            discount_pct=round(evaluation.pricing.discount_pct, 6),
            bundle_virtual_stock=evaluation.virtual_stock,
            constraining_variants=list(availability.constraining_variants) if availability else [],
            is_expired=evaluation.is_expired,
            is_broken=evaluation.is_broken,
            is_overbooked=view.is_overbooked,
            availability_stale=evaluation.availability_stale,
            live_component_total=evaluation.live_component_total,
            available_transitions=available_transitions(bundle.status),
            created_at=bundle.created_at,
            updated_at=bundle.updated_at,
        )

    @staticmethod
    def to_storefront_response(view: BundleView) -> StorefrontBundleResponse:
        bundle, evaluation = view.bundle, view.evaluation
        sellable = (
            bundle.status == BundleStatus.ACTIVE
            and not evaluation.is_broken
            and not evaluation.is_expired
            and (evaluation.virtual_stock is None or evaluation.virtual_stock > 0)
        )
        return StorefrontBundleResponse(
            id=str(bundle.id),
            name=bundle.name,
            description=bundle.description,
            shell_product_id=bundle.shell_product_id,
            currency=bundle.currency,
            items=[BundleItemResponse.model_validate(item) for item in bundle.items],
            component_total=evaluation.pricing.component_total,
            effective_price=evaluation.pricing.effective_price,
            total_savings=evaluation.pricing.total_savings,
            bundle_virtual_stock=evaluation.virtual_stock,
            is_available=sellable,
            availability_stale=evaluation.availability_stale,
            valid_to=bundle.valid_to,
        )

    # ─── Helpers ────────────────────────────────────────────────────────

    @staticmethod
    def _window_errors(valid_from: datetime | None, valid_to: datetime | None) -> list[dict[str, str]]:
        valid_from, valid_to = as_naive_utc(valid_from), as_naive_utc(valid_to)
        if valid_from and valid_to and valid_to <= valid_from:
            return [{"field": "valid_to", "message": "valid_to must be after valid_from"}]
        return []

    def _build_items(
        self, inputs: Sequence[BundleItemInput], existing: dict[str, int]
    ) -> list[BundleItem]:
        """Turn item inputs into rows, capturing missing price snapshots.

        A variant already in the bundle keeps its snapshot unless a new one is
        given explicitly; otherwise the current catalog price is captured.
        """
        errors: list[dict[str, str]] = []
        seen: set[str] = set()
        for index, item in enumerate(inputs):
            if item.product_variant_id in seen:
                errors.append(
                    {
                        "field": f"items[{index}].product_variant_id",
                        "message": f"Variant {item.product_variant_id} is listed twice",
                    }
                )
            seen.add(item.product_variant_id)
        _raise_errors(errors)

        to_lookup = [
            item.product_variant_id
            for item in inputs
            if item.unit_price_snapshot is None and item.product_variant_id not in existing
        ]
        prices: dict[str, int] = {}
        if to_lookup:
            # Snapshot capture needs a fresh answer; degraded catalog propagates
            snapshot = self.catalog.get_variants(to_lookup)
            missing = [vid for vid in to_lookup if vid not in snapshot]
            if missing:
                raise NotFoundError(f"Unknown variants: {', '.join(missing)}", resource="variant")
            prices = {vid: snapshot[vid].price for vid in to_lookup}

        rows: list[BundleItem] = []
        for index, item in enumerate(inputs):
            if item.unit_price_snapshot is not None:
                price = item.unit_price_snapshot
            elif item.product_variant_id in existing:
                price = existing[item.product_variant_id]
            else:
                price = prices[item.product_variant_id]
            rows.append(
                BundleItem(
                    product_variant_id=item.product_variant_id,
                    quantity=item.quantity,
                    unit_price_snapshot=price,
                    display_order=item.display_order if item.display_order is not None else index,
                )
            )
        return rows

