import threading
import time
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, BigInteger, MetaData, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Document-shaped columns: JSONB on PostgreSQL, generic JSON elsewhere.
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def new_id() -> str:
    """Return an opaque document identifier."""

    return str(uuid.uuid4())


def utcnow_iso() -> str:
    """Return the current UTC instant as an ISO-8601 string."""

    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


_sequence_lock = threading.Lock()
_last_sequence = 0


def next_sequence() -> int:
    """Return a strictly increasing nanosecond stamp used to order inserts."""

    global _last_sequence
    with _sequence_lock:
        _last_sequence = max(_last_sequence + 1, time.time_ns())
        return _last_sequence


class Base(DeclarativeBase):
    """Base declarative class with default metadata convention."""

    metadata = MetaData(naming_convention=convention)


class TimestampMixin:
    """Mixin providing created and updated timestamps as ISO strings."""

    created_at: Mapped[str] = mapped_column(String(32), default=utcnow_iso, index=True)
    updated_at: Mapped[str] = mapped_column(
        String(32), default=utcnow_iso, onupdate=utcnow_iso
    )
    # Tie-breaker for rows sharing a createdAt millisecond.
    created_seq: Mapped[int] = mapped_column(BigInteger, default=next_sequence)

    def touch(self) -> None:
        self.updated_at = utcnow_iso()
