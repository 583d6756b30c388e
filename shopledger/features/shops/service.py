"""
Shop-level admin operations.

Handles:
- Shop status changes, cascading deactivation to the shop's other users
- Shop profile updates
- Backup requests (tracking row only)
- Settings overview reads

Mutating functions take the session of an open transaction and write their
ledger entry in it; see shopledger.core.transaction.run_atomic.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from sqlalchemy import func, insert, select, update
from sqlalchemy.orm import Session

from shopledger.core.config import settings
from shopledger.core.database import app_users, as_utc, backups, shops, utc_now
from shopledger.core.errors import ConflictError, InvalidStatusError, NotFoundError, ValidationError
from shopledger.core.identity import new_key, to_external_id
from shopledger.features.ledger import service as ledger
from shopledger.features.plans.service import list_active_plans
from shopledger.features.subscriptions.service import get_current_subscription, list_subscription_history
from shopledger.models.admin_action import ActionType
from shopledger.models.backup import Backup
from shopledger.models.shop import Shop, ShopStatus
from shopledger.models.user import UserStatus

logger = logging.getLogger("shopledger.shops")

DEFAULT_STATUS_REASON = "No reason provided"

UPDATABLE_FIELDS = ("name", "email", "phone", "address", "currency", "primary_color", "secondary_color")


def shop_from_row(row) -> Shop:
    return Shop(
        shop_id=to_external_id(row.id),
        name=row.name,
        email=row.email,
        phone=row.phone,
        address=row.address,
        logo=row.logo,
        currency=row.currency,
        primary_color=row.primary_color,
        secondary_color=row.secondary_color,
        plan=row.plan,
        status=ShopStatus(row.status),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


def get_shop(session: Session, shop_key: bytes) -> Shop:
    row = session.execute(select(shops).where(shops.c.id == shop_key)).first()
    if not row:
        raise NotFoundError(f"Shop not found: {to_external_id(shop_key)}", code="shop_not_found")
    return shop_from_row(row)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

def validate_status(status: Any) -> ShopStatus:
    """Checked before any transaction is opened."""
    try:
        return ShopStatus(status)
    except ValueError:
        raise InvalidStatusError(f"Invalid status: {status!r}")


def set_shop_status(
    session: Session,
    shop_key: bytes,
    admin_key: bytes,
    status: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> int:
    """
    Apply a shop status transition.

    inactive/suspended force every other user of the shop inactive; the
    acting admin keeps their status. Reactivation does not touch users.

    Returns:
        Number of users deactivated by the cascade
    """
    new_status = validate_status(status)
    now = now or utc_now()

    session.execute(
        update(shops)
        .where(shops.c.id == shop_key)
        .values(status=new_status.value, updated_at=now)
    )

    deactivated = 0
    if new_status.cascades_to_users:
        result = session.execute(
            update(app_users)
            .where(app_users.c.shop_id == shop_key)
            .where(app_users.c.id != admin_key)
            .where(app_users.c.status != UserStatus.INACTIVE.value)
            .values(status=UserStatus.INACTIVE.value, updated_at=now)
        )
        deactivated = int(result.rowcount or 0)

    ledger.record(
        session,
        admin_key,
        shop_key,
        ActionType.SHOP_STATUS_UPDATE,
        {
            "action": f"Shop status changed to {new_status.value}",
            "reason": reason or DEFAULT_STATUS_REASON,
        },
        now=now,
    )
    return deactivated


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

def normalize_shop_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate and default shop profile fields. Every updatable field is
    written on each update; blanks become NULL or the configured default.
    """
    name = (fields.get("name") or "").strip()
    if not name:
        raise ValidationError("Shop name is required")

    def _blank_to_none(key: str) -> Optional[str]:
        value = fields.get(key)
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    return {
        "name": name,
        "email": _blank_to_none("email"),
        "phone": _blank_to_none("phone"),
        "address": _blank_to_none("address"),
        "currency": _blank_to_none("currency") or settings.DEFAULT_CURRENCY,
        "primary_color": _blank_to_none("primary_color") or settings.DEFAULT_PRIMARY_COLOR,
        "secondary_color": _blank_to_none("secondary_color") or settings.DEFAULT_SECONDARY_COLOR,
    }


def update_shop(
    session: Session,
    shop_key: bytes,
    admin_key: bytes,
    fields: Mapping[str, Any],
    logo_filename: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[Shop, Optional[str]]:
    """
    Update the shop profile.

    Returns:
        (updated shop, previous logo filename when a new logo replaced it)

    Raises:
        ConflictError: Email already registered with another shop
    """
    values = normalize_shop_fields(fields)
    now = now or utc_now()

    if values["email"]:
        taken = session.execute(
            select(shops.c.id)
            .where(shops.c.email == values["email"])
            .where(shops.c.id != shop_key)
        ).first()
        if taken:
            raise ConflictError("Email already registered with another shop", code="email_taken")

    previous_logo = None
    if logo_filename:
        previous_logo = session.execute(
            select(shops.c.logo).where(shops.c.id == shop_key)
        ).scalar()
        values["logo"] = logo_filename

    session.execute(
        update(shops)
        .where(shops.c.id == shop_key)
        .values(**values, updated_at=now)
    )

    ledger.record(
        session,
        admin_key,
        shop_key,
        ActionType.SHOP_UPDATE,
        {"action": "Updated shop settings", "fields": sorted(values.keys())},
        now=now,
    )

    return get_shop(session, shop_key), previous_logo


# ---------------------------------------------------------------------------
# Backups
# ---------------------------------------------------------------------------

def backup_filename(shop_id: str, now: datetime) -> str:
    """backup-<shop uuid>-<UTC ISO timestamp with ':' and '.' replaced by '-'>.sql"""
    now = as_utc(now)
    stamp = now.strftime("%Y-%m-%dT%H:%M:%S") + f".{now.microsecond // 1000:03d}Z"
    stamp = stamp.replace(":", "-").replace(".", "-")
    return f"{settings.BACKUP_FILENAME_PREFIX}-{shop_id}-{stamp}.sql"


def request_backup(
    session: Session,
    shop_key: bytes,
    admin_key: bytes,
    now: Optional[datetime] = None,
) -> Backup:
    """Record a pending backup request. No file is produced here."""
    now = now or utc_now()
    shop_id = to_external_id(shop_key)
    filename = backup_filename(shop_id, now)
    backup_key = new_key()

    session.execute(
        insert(backups).values(
            id=backup_key,
            shop_id=shop_key,
            filename=filename,
            status="pending",
            created_at=now,
        )
    )

    ledger.record(
        session,
        admin_key,
        shop_key,
        ActionType.BACKUP_CREATED,
        {"action": "Backup requested", "filename": filename},
        now=now,
    )

    return Backup(
        backup_id=to_external_id(backup_key),
        shop_id=shop_id,
        filename=filename,
        status="pending",
        created_at=now,
    )


# ---------------------------------------------------------------------------
# Overview
# ---------------------------------------------------------------------------

def count_active_users(session: Session, shop_key: bytes) -> int:
    return session.execute(
        select(func.count())
        .select_from(app_users)
        .where(app_users.c.shop_id == shop_key)
        .where(app_users.c.status == UserStatus.ACTIVE.value)
    ).scalar() or 0


def get_settings_overview(session: Session, shop_key: bytes) -> Dict[str, Any]:
    """Everything the shop settings page shows, in one read."""
    return {
        "shop": get_shop(session, shop_key),
        "active_subscription": get_current_subscription(session, shop_key),
        "subscription_history": list_subscription_history(session, shop_key, limit=10),
        "pricing_plans": list_active_plans(session),
        "active_users": count_active_users(session, shop_key),
        "recent_actions": ledger.list_recent_actions(session, shop_key, limit=5),
    }
