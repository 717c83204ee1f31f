"""
galley/features/usage/service.py

Server-side usage ledger.

Handles:
- Lazy creation of the per-user usage row
- Atomic check-and-increment (one conditional UPDATE)
- Period resets (admin only, never from the request path)

Counters only grow within a period; there is no decrement.
"""

from datetime import datetime, timezone
from typing import Dict, Tuple

from sqlalchemy import select, insert, update
from sqlalchemy.exc import IntegrityError

from galley.core.database import get_db_session, user_usage
from galley.core.errors import ValidationError
from galley.core.logging import log_event
from galley.core.tracing import start_span
from galley.models.usage import Feature, UNLIMITED


def _column(feature: Feature):
    return user_usage.c[Feature(feature).value]


def ensure_usage_row(user_id: str) -> None:
    """Create the usage row on first use. A concurrent creator wins harmlessly."""
    with get_db_session() as session:
        exists = session.execute(
            select(user_usage.c.user_id).where(user_usage.c.user_id == user_id)
        ).first()
    if exists:
        return

    now = datetime.now(timezone.utc)
    try:
        with get_db_session() as session:
            session.execute(insert(user_usage).values(user_id=user_id, period_start=now, updated_at=now))
    except IntegrityError:
        # Lost the insert race; the row exists now
        return


def get_usage(user_id: str) -> Dict[str, int]:
    """All six counters, zero-filled when the user has no row yet."""
    with get_db_session() as session:
        row = session.execute(
            select(*[_column(f) for f in Feature]).where(user_usage.c.user_id == user_id)
        ).first()
    if row is None:
        return {f.value: 0 for f in Feature}
    mapping = row._mapping
    return {f.value: int(mapping[f.value] or 0) for f in Feature}


def increment_usage(user_id: str, feature: Feature, amount: int, limit: int) -> Tuple[bool, int]:
    """
    Add `amount` to a counter unless that would pass `limit`.

    The limit check and the write are a single UPDATE statement, so two
    concurrent callers can never both take the last unit.

    Returns:
        (applied, current_count)
    """
    if amount < 1:
        raise ValidationError("amount must be a positive integer")

    feature = Feature(feature)
    col = _column(feature)
    ensure_usage_row(user_id)

    with start_span("usage.increment", {"feature": feature.value, "amount": amount}):
        with get_db_session() as session:
            stmt = update(user_usage).where(user_usage.c.user_id == user_id)
            if limit != UNLIMITED:
                stmt = stmt.where(col + amount <= limit)
            result = session.execute(
                stmt.values({col.name: col + amount, "updated_at": datetime.now(timezone.utc)})
            )
            applied = result.rowcount == 1
            current = session.execute(
                select(col).where(user_usage.c.user_id == user_id)
            ).scalar_one()

    return applied, int(current)


def reset_usage(user_id: str) -> Dict[str, int]:
    """Zero every counter and start a new billing period."""
    ensure_usage_row(user_id)
    now = datetime.now(timezone.utc)
    with get_db_session() as session:
        session.execute(
            update(user_usage)
            .where(user_usage.c.user_id == user_id)
            .values({**{f.value: 0 for f in Feature}, "period_start": now, "updated_at": now})
        )
    log_event("info", "usage.reset", user_id=user_id, event_type="usage.reset")
    return get_usage(user_id)
