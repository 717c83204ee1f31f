"""
galley/core/idempotency.py
Idempotency key management for user-initiated actions.

A key moves in_flight -> completed. A duplicate submission while the first is
in flight is a conflict; after completion the stored response is replayed.
A failed attempt releases its key so the client can retry.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError

from galley.core.database import get_db_session, idempotency_keys
from galley.core.errors import ConflictError

STATUS_IN_FLIGHT = "in_flight"
STATUS_COMPLETED = "completed"


def scoped_key(key: str, scope: str, user_id: Optional[str] = None) -> str:
    return f"{scope}:{user_id or '-'}:{key}"


def begin(key: str, scope: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Claim an idempotency key (atomic via the primary key constraint).

    Returns:
        None if the key is new and the caller should do the work,
        or the stored {"status_code", "body"} of a completed earlier attempt.

    Raises:
        ConflictError: the same key is still being processed
    """
    full_key = scoped_key(key, scope, user_id)
    try:
        with get_db_session() as session:
            session.execute(
                idempotency_keys.insert().values(
                    key=full_key,
                    scope=scope,
                    user_id=user_id,
                    status=STATUS_IN_FLIGHT,
                    created_at=datetime.now(timezone.utc),
                )
            )
        return None
    except IntegrityError:
        pass

    with get_db_session() as session:
        row = session.execute(
            select(
                idempotency_keys.c.status,
                idempotency_keys.c.status_code,
                idempotency_keys.c.response_json,
            ).where(idempotency_keys.c.key == full_key)
        ).first()

    if row is None:
        # Released between our insert and select; treat as a fresh claim
        return begin(key, scope, user_id)
    if row.status == STATUS_COMPLETED:
        return {"status_code": row.status_code or 200, "body": row.response_json}
    raise ConflictError("A request with this Idempotency-Key is already in progress")


def complete(key: str, scope: str, response: Dict[str, Any], *, user_id: Optional[str] = None, status_code: int = 200) -> None:
    """Store the response for replay."""
    with get_db_session() as session:
        session.execute(
            update(idempotency_keys)
            .where(idempotency_keys.c.key == scoped_key(key, scope, user_id))
            .values(
                status=STATUS_COMPLETED,
                status_code=status_code,
                response_json=response,
                completed_at=datetime.now(timezone.utc),
            )
        )


def release(key: str, scope: str, user_id: Optional[str] = None) -> None:
    """Forget an in-flight key after a failed attempt."""
    with get_db_session() as session:
        session.execute(
            delete(idempotency_keys).where(
                idempotency_keys.c.key == scoped_key(key, scope, user_id),
                idempotency_keys.c.status == STATUS_IN_FLIGHT,
            )
        )


def check_key(key: str, scope: str, user_id: Optional[str] = None) -> bool:
    """True if the key has been claimed (read-only)."""
    with get_db_session() as session:
        result = session.execute(
            select(idempotency_keys.c.key).where(
                idempotency_keys.c.key == scoped_key(key, scope, user_id)
            )
        ).first()
        return result is not None
