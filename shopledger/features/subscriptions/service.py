"""
Subscription lifecycle for shops.

Handles:
- Price selection per duration tier
- Start date (immediate, or deferred to the day after the current term)
- Expiry by calendar-month addition
- Subscribe / cancel / extend, each with its ledger entry

All mutating functions take the session of an open transaction (see
shopledger.core.transaction.run_atomic) and never commit themselves.

Renewal does not retire the previous active row. Several rows may read
status=active at once; the current one is always the active row with the
latest expires_at. Cancellation cancels every active row.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, List, Optional, Union

from dateutil.relativedelta import relativedelta
from sqlalchemy import insert, select, update
from sqlalchemy.orm import Session

from shopledger.core.config import settings
from shopledger.core.database import as_utc, shops, subscriptions, utc_now
from shopledger.core.errors import NotFoundError, PlanNotFoundError, ValidationError
from shopledger.core.identity import coerce_key, new_key, to_external_id
from shopledger.features.ledger import service as ledger
from shopledger.features.plans.service import get_plan
from shopledger.models.admin_action import ActionType
from shopledger.models.plan import PricingPlan
from shopledger.models.subscription import DurationTier, Subscription, SubscriptionStatus

logger = logging.getLogger("shopledger.subscriptions")

DURATION_MONTHS = {
    DurationTier.MONTHLY: 1,
    DurationTier.QUARTERLY: 3,
    DurationTier.YEARLY: 12,
}

_TRUTHY_FORM_VALUES = {"on", "true", "1", "yes"}

# Unknown tiers are stored verbatim, so they must fit the column
DURATION_MAX_LENGTH = subscriptions.c.duration.type.length


def resolve_tier(duration: Optional[str]) -> Optional[DurationTier]:
    """Map a duration string to a tier; None when unrecognised."""
    try:
        return DurationTier(duration)
    except ValueError:
        return None


def validate_duration(duration: Any) -> str:
    """Unknown tiers are accepted (priced as monthly) but must be a storable string."""
    if not isinstance(duration, str) or not duration.strip():
        raise ValidationError("Subscription duration is required")
    if len(duration) > DURATION_MAX_LENGTH:
        raise ValidationError(f"Subscription duration must be at most {DURATION_MAX_LENGTH} characters")
    return duration


def select_price(plan: PricingPlan, duration: Optional[str]) -> Decimal:
    """Plan price for the tier. Unknown tiers are charged the monthly price."""
    tier = resolve_tier(duration)
    if tier is DurationTier.QUARTERLY:
        return plan.quarterly_price
    if tier is DurationTier.YEARLY:
        return plan.yearly_price
    return plan.monthly_price


def compute_start_date(current_expires_at: Optional[datetime], now: datetime) -> datetime:
    """
    Start immediately, unless the current term is still running, in which
    case start the day after it expires so paid periods never overlap.
    """
    now = as_utc(now)
    current_expires_at = as_utc(current_expires_at)
    if current_expires_at is not None and current_expires_at > now:
        return current_expires_at + timedelta(days=1)
    return now


def compute_expiry(started_at: datetime, duration: Optional[str]) -> datetime:
    """
    Add 1/3/12 calendar months (unknown tier: 1).

    A day past the end of the target month rolls over into the next month:
    Jan 31 + 1 month = Mar 2 (leap year) / Mar 3, and Feb 29 + 1 year = Mar 1.
    """
    tier = resolve_tier(duration) or DurationTier.MONTHLY
    expires_at = started_at + relativedelta(months=DURATION_MONTHS[tier])
    if expires_at.day < started_at.day:
        # relativedelta clamped to the month end; carry the overflow days
        expires_at += timedelta(days=started_at.day - expires_at.day)
    return expires_at


def parse_auto_renew(value: Any) -> bool:
    """Accept booleans and HTML form values ("on")."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY_FORM_VALUES


def subscription_from_row(row) -> Subscription:
    return Subscription(
        subscription_id=to_external_id(row.id),
        shop_id=to_external_id(row.shop_id),
        plan_name=row.plan_name,
        price=row.price,
        duration=row.duration,
        started_at=as_utc(row.started_at),
        expires_at=as_utc(row.expires_at),
        status=SubscriptionStatus(row.status),
        payment_method=row.payment_method,
        auto_renew=bool(row.auto_renew),
        created_at=as_utc(row.created_at),
    )


def _current_subscription_row(session: Session, shop_key: bytes):
    return session.execute(
        select(subscriptions)
        .where(subscriptions.c.shop_id == shop_key)
        .where(subscriptions.c.status == SubscriptionStatus.ACTIVE.value)
        .order_by(subscriptions.c.expires_at.desc())
        .limit(1)
    ).first()


def get_current_subscription(session: Session, shop_key: bytes) -> Optional[Subscription]:
    """The active subscription with the latest expires_at, if any."""
    row = _current_subscription_row(session, shop_key)
    return subscription_from_row(row) if row else None


def list_subscription_history(session: Session, shop_key: bytes, limit: int = 10) -> List[Subscription]:
    rows = session.execute(
        select(subscriptions)
        .where(subscriptions.c.shop_id == shop_key)
        .order_by(subscriptions.c.started_at.desc())
        .limit(limit)
    ).fetchall()
    return [subscription_from_row(row) for row in rows]


def create_subscription(
    session: Session,
    shop_key: bytes,
    admin_key: bytes,
    plan_id: Union[str, bytes],
    duration: str,
    payment_method: Optional[str] = None,
    auto_renew: Any = False,
    now: Optional[datetime] = None,
) -> Subscription:
    """
    Subscribe a shop to a plan.

    Inserts a new active row, copies the plan name onto the shop and writes a
    subscription_update ledger entry. Prior active rows are left untouched.

    Raises:
        PlanNotFoundError: Plan missing or not selectable
        InvalidIdentifierError: Malformed plan id
        ValidationError: Duration missing or too long to store
    """
    duration = validate_duration(duration)
    now = as_utc(now) if now else utc_now()
    plan = get_plan(session, coerce_key(plan_id))
    if plan is None or not plan.is_selectable:
        raise PlanNotFoundError(f"Selected plan not found: {plan_id}")

    price = select_price(plan, duration)
    current = _current_subscription_row(session, shop_key)
    started_at = compute_start_date(current.expires_at if current else None, now)
    expires_at = compute_expiry(started_at, duration)

    subscription_key = new_key()
    values = dict(
        id=subscription_key,
        shop_id=shop_key,
        plan_name=plan.name,
        price=price,
        duration=duration,
        started_at=started_at,
        expires_at=expires_at,
        status=SubscriptionStatus.ACTIVE.value,
        payment_method=payment_method or settings.DEFAULT_PAYMENT_METHOD,
        auto_renew=parse_auto_renew(auto_renew),
        created_at=now,
        updated_at=now,
    )
    session.execute(insert(subscriptions).values(**values))

    session.execute(
        update(shops)
        .where(shops.c.id == shop_key)
        .values(plan=plan.name, updated_at=now)
    )

    ledger.record(
        session,
        admin_key,
        shop_key,
        ActionType.SUBSCRIPTION_UPDATE,
        {
            "action": f"Subscribed to {plan.name} ({duration})",
            "amount": str(price),
            "expires_at": expires_at.isoformat(),
        },
        now=now,
    )

    if current is not None and started_at != now:
        logger.info(f"[subscriptions] deferred start to {started_at.isoformat()} after current term")

    return Subscription(
        subscription_id=to_external_id(subscription_key),
        shop_id=to_external_id(shop_key),
        plan_name=plan.name,
        price=price,
        duration=duration,
        started_at=started_at,
        expires_at=expires_at,
        status=SubscriptionStatus.ACTIVE,
        payment_method=values["payment_method"],
        auto_renew=values["auto_renew"],
        created_at=now,
    )


def cancel_subscription(
    session: Session,
    shop_key: bytes,
    admin_key: bytes,
    now: Optional[datetime] = None,
) -> int:
    """
    Cancel every active subscription of the shop and reset its plan.

    Succeeds (and is still logged) when nothing is active.

    Returns:
        Number of subscription rows cancelled
    """
    now = now or utc_now()
    result = session.execute(
        update(subscriptions)
        .where(subscriptions.c.shop_id == shop_key)
        .where(subscriptions.c.status == SubscriptionStatus.ACTIVE.value)
        .values(status=SubscriptionStatus.CANCELLED.value, updated_at=now)
    )
    cancelled = int(result.rowcount or 0)

    session.execute(
        update(shops)
        .where(shops.c.id == shop_key)
        .values(plan=settings.DEFAULT_PLAN_NAME, updated_at=now)
    )

    ledger.record(
        session,
        admin_key,
        shop_key,
        ActionType.SUBSCRIPTION_CANCELLED,
        {"action": "Cancelled subscription", "cancelled_count": cancelled},
        now=now,
    )
    return cancelled


def validate_extension_days(days: Any) -> int:
    try:
        value = int(days)
    except (TypeError, ValueError):
        raise ValidationError(f"Extension days must be an integer, got {days!r}")
    if value <= 0:
        raise ValidationError("Extension days must be positive")
    return value


def extend_subscription(
    session: Session,
    shop_key: bytes,
    admin_key: bytes,
    days: int,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Subscription:
    """
    Push the current subscription's expiry forward by `days`.

    Raises:
        NotFoundError: No active subscription
    """
    days = validate_extension_days(days)
    now = now or utc_now()
    current = _current_subscription_row(session, shop_key)
    if current is None:
        raise NotFoundError("No active subscription found", code="subscription_not_found")

    old_expiry = as_utc(current.expires_at)
    new_expiry = old_expiry + timedelta(days=days)
    session.execute(
        update(subscriptions)
        .where(subscriptions.c.id == current.id)
        .values(expires_at=new_expiry, updated_at=now)
    )

    ledger.record(
        session,
        admin_key,
        shop_key,
        ActionType.SUBSCRIPTION_EXTENSION,
        {
            "days": days,
            "reason": reason,
            "old_expiry": old_expiry.isoformat(),
            "new_expiry": new_expiry.isoformat(),
        },
        now=now,
    )

    extended = subscription_from_row(current)
    return extended.model_copy(update={"expires_at": new_expiry})
