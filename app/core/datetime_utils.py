from datetime import UTC, datetime
from typing import Annotated

from pydantic.functional_serializers import PlainSerializer


def _serialize_utc_datetime(v: datetime | None) -> str | None:
    if v is None:
        return None
    if v.tzinfo is None:
        v = v.replace(tzinfo=UTC)
    return v.isoformat()


UTCDatetime = Annotated[datetime, PlainSerializer(_serialize_utc_datetime)]


def utcnow() -> datetime:
    """Naive UTC now, matching how timestamps are stored in the database."""
    return datetime.now(UTC).replace(tzinfo=None)


def as_naive_utc(v: datetime | None) -> datetime | None:
    """Normalize an incoming datetime to naive UTC for storage/comparison."""
    if v is None or v.tzinfo is None:
        return v
    return v.astimezone(UTC).replace(tzinfo=None)
