"""Base repository pattern implementation.

Feature packages subclass ``BaseRepository`` to keep query construction out
of their services.
"""

from typing import Any, Generic, TypeVar, cast
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

ModelType = TypeVar("ModelType")


class BaseRepository(Generic[ModelType]):
    """Generic repository with common read/write operations.

    Example:
        ```python
        class BundleRepository(BaseRepository[Bundle]):
            def __init__(self, db: Session):
                super().__init__(db, Bundle)
        ```
    """

    def __init__(self, db: Session, model: type[ModelType]):
        self.db = db
        self.model = model

    def get_for_update(self, entity_id: UUID) -> ModelType | None:
        """Load an entity holding a row lock until the unit of work ends.

        Backends without row locks (SQLite) ignore ``FOR UPDATE``.
        """
        stmt = select(self.model).where(self.model.id == entity_id).with_for_update()  # type: ignore[attr-defined]
        return cast(ModelType | None, self.db.execute(stmt).scalars().first())

    def count(self, stmt: Select[Any] | None = None) -> int:
        """Count rows of ``stmt`` (or of the whole table)."""
        base = stmt if stmt is not None else select(self.model)
        total = self.db.execute(select(func.count()).select_from(base.order_by(None).subquery()))
        return int(total.scalar_one())

    def paginate(self, stmt: Select[Any], page: int, limit: int) -> tuple[list[ModelType], int]:
        """Return one page of ``stmt`` together with the total row count.

        Args:
            stmt: Filtered and ordered select over the model.
            page: Page number (1-indexed).
            limit: Items per page.

        Returns:
            Tuple of (items on page, total matching rows).
        """
        total = self.count(stmt)
        rows = self.db.execute(stmt.offset((page - 1) * limit).limit(limit)).scalars().all()
        return cast(list[ModelType], list(rows)), total

    def add(self, instance: ModelType) -> ModelType:
        self.db.add(instance)
        self.db.flush()
        return instance

    def delete(self, instance: ModelType) -> None:
        self.db.delete(instance)
        self.db.flush()
