"""Query construction for bundles."""

import uuid
from collections.abc import Iterable, Iterator
from datetime import datetime
from typing import Any, NamedTuple

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.orm import Session, selectinload

from app.bundles.models.bundle import Bundle, BundleItem, BundleStatus
from app.core.repository import BaseRepository

SORT_FIELDS: dict[str, Any] = {
    "created_at": Bundle.created_at,
    "updated_at": Bundle.updated_at,
    "name": Bundle.name,
    "status": Bundle.status,
    "valid_to": Bundle.valid_to,
}


class ReservationCounter(NamedTuple):
    status: BundleStatus
    bundle_cap: int | None
    reserved_open: int
    reservation_version: int


class BundleRepository(BaseRepository[Bundle]):
    def __init__(self, db: Session):
        super().__init__(db, Bundle)

    def get_with_items(self, bundle_id: uuid.UUID) -> Bundle | None:
        stmt = select(Bundle).where(Bundle.id == bundle_id).options(selectinload(Bundle.items))
        return self.db.execute(stmt).scalars().first()

    def list_query(
        self,
        statuses: Iterable[BundleStatus] | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        sort_desc: bool = True,
    ) -> Select[Any]:
        stmt = select(Bundle).options(selectinload(Bundle.items))
        status_list = list(statuses or [])
        if status_list:
            stmt = stmt.where(Bundle.status.in_(status_list))
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Bundle.name).like(pattern),
                    func.lower(func.coalesce(Bundle.description, "")).like(pattern),
                )
            )
        column = SORT_FIELDS.get(sort_by, Bundle.created_at)
        return stmt.order_by(column.desc() if sort_desc else column.asc(), Bundle.id)

    def iter_batches(
        self, statuses: Iterable[BundleStatus], batch_size: int
    ) -> Iterator[list[Bundle]]:
        """Yield bundles in the given statuses, ``batch_size`` at a time, by id."""
        status_list = list(statuses)
        last_id: uuid.UUID | None = None
        while True:
            stmt = (
                select(Bundle)
                .where(Bundle.status.in_(status_list))
                .options(selectinload(Bundle.items))
                .order_by(Bundle.id)
                .limit(batch_size)
            )
            if last_id is not None:
                stmt = stmt.where(Bundle.id > last_id)
            batch = list(self.db.execute(stmt).scalars().all())
            if not batch:
                return
            yield batch
            last_id = batch[-1].id

    def active_due_for_expiry(self, now: datetime) -> list[Bundle]:
        stmt = select(Bundle).where(
            Bundle.status == BundleStatus.ACTIVE,
            Bundle.valid_to.is_not(None),
            Bundle.valid_to < now,
        )
        return list(self.db.execute(stmt).scalars().all())

    def count_by_status(self) -> dict[BundleStatus, int]:
        rows = self.db.execute(select(Bundle.status, func.count()).group_by(Bundle.status)).all()
        return {status: int(count) for status, count in rows}

    def count_allowing_external_promos(self) -> int:
        stmt = select(func.count()).select_from(Bundle).where(
            Bundle.allow_external_promos.is_(True),
            Bundle.status != BundleStatus.ARCHIVED,
        )
        return int(self.db.execute(stmt).scalar_one())

    def using_variant(self, variant_id: str) -> list[Bundle]:
        stmt = (
            select(Bundle)
            .join(BundleItem, BundleItem.bundle_id == Bundle.id)
            .where(BundleItem.product_variant_id == variant_id)
            .distinct()
            .order_by(Bundle.created_at)
        )
        return list(self.db.execute(stmt).scalars().all())

    def by_ids(self, bundle_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, Bundle]:
        ids = list(set(bundle_ids))
        if not ids:
            return {}
        stmt = select(Bundle).where(Bundle.id.in_(ids)).options(selectinload(Bundle.items))
        return {b.id: b for b in self.db.execute(stmt).scalars().all()}

    # ─── Reservation counter ────────────────────────────────────────────

    def read_reservation_counter(self, bundle_id: uuid.UUID) -> ReservationCounter | None:
        """Read the counter straight from the database, bypassing the identity map."""
        row = self.db.execute(
            select(
                Bundle.status,
                Bundle.bundle_cap,
                Bundle.reserved_open,
                Bundle.reservation_version,
            ).where(Bundle.id == bundle_id)
        ).first()
        if row is None:
            return None
        return ReservationCounter(*row)

    def compare_and_set_reserved(
        self, bundle_id: uuid.UUID, expected_version: int, new_value: int
    ) -> bool:
        """Write ``new_value`` only if nobody changed the counter since it was read."""
        result = self.db.execute(
            update(Bundle)
            .where(Bundle.id == bundle_id, Bundle.reservation_version == expected_version)
            .values(reserved_open=new_value, reservation_version=expected_version + 1)
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount == 1)
