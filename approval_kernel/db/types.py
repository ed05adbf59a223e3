"""
Module: approval_kernel.db.types
Responsibility: Column types shared by every model.
Architecture position: Kernel > DB.  May be imported by models/ and
    selectors/.  MUST NOT import from either.

Invariants enforced:
    - Timestamps are timezone-aware UTC on every backend.  SQLite stores
      DATETIME without an offset, so UTCDateTime normalises on the way in
      and re-attaches UTC on the way out; the waiting-time and
      cancellation-window arithmetic never mixes naive and aware values.

Failure modes:
    - ValueError when a naive datetime is bound.
"""

from datetime import timezone

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamp.

    Contract:
        Accepts only aware datetimes; always returns aware UTC datetimes.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime cannot be stored: {value!r}")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
