"""
Admin action ledger.

Appends one immutable AdminAction row per administrative mutation. Callers
pass the session of the transaction that performs the mutation; the entry is
never committed here. A failed write aborts the enclosing operation: an
unaudited state change is worse than a rejected request.
"""
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shopledger.core.database import admin_actions, as_utc, utc_now
from shopledger.core.errors import LedgerWriteError
from shopledger.core.identity import new_key, to_external_id
from shopledger.models.admin_action import ActionType, AdminAction

logger = logging.getLogger("shopledger.ledger")


def serialize_details(details: Optional[Dict[str, Any]]) -> str:
    """Datetimes and decimals are written as strings."""
    return json.dumps(details or {}, default=str)


def _parse_details(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        return {"raw": raw}
    return parsed if isinstance(parsed, dict) else {"value": parsed}


def record(
    session: Session,
    admin_key: bytes,
    shop_key: bytes,
    action_type: Union[ActionType, str],
    details: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> AdminAction:
    """
    Insert one ledger entry inside the caller's open transaction.

    Args:
        session: Session of the transaction performing the documented change
        admin_key: Acting admin key
        shop_key: Owning shop key
        action_type: One of ActionType (strings are converted; unknown values raise ValueError)
        details: Structured details, stored as JSON text
        now: Timestamp of the documented change (defaults to the current time)

    Returns:
        The AdminAction as written

    Raises:
        LedgerWriteError: If the insert fails (no retry)
    """
    action = ActionType(action_type)
    action_key = new_key()
    created_at = as_utc(now) if now else utc_now()
    payload = serialize_details(details)

    try:
        session.execute(
            insert(admin_actions).values(
                id=action_key,
                admin_id=admin_key,
                shop_id=shop_key,
                action_type=action.value,
                details=payload,
                created_at=created_at,
            )
        )
    except SQLAlchemyError as e:
        logger.error(f"[ledger] CRITICAL: admin action write failed: {e}", exc_info=True)
        raise LedgerWriteError(
            f"Admin action write failed ({action.value}): {e}",
            code="admin_audit_failed",
            status_code=500,
        ) from e

    return AdminAction(
        action_id=to_external_id(action_key),
        admin_id=to_external_id(admin_key),
        shop_id=to_external_id(shop_key),
        action_type=action,
        details=json.loads(payload),
        created_at=created_at,
    )


def list_recent_actions(session: Session, shop_key: bytes, limit: int = 5) -> List[AdminAction]:
    """Most recent ledger entries for a shop, newest first."""
    rows = session.execute(
        select(admin_actions)
        .where(admin_actions.c.shop_id == shop_key)
        .order_by(admin_actions.c.created_at.desc())
        .limit(limit)
    ).fetchall()

    return [
        AdminAction(
            action_id=to_external_id(row.id),
            admin_id=to_external_id(row.admin_id),
            shop_id=to_external_id(row.shop_id),
            action_type=ActionType(row.action_type),
            details=_parse_details(row.details),
            created_at=as_utc(row.created_at),
        )
        for row in rows
    ]
