"""
shopledger/models/subscription.py

Subscription term for a shop.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, ConfigDict


class DurationTier(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class Subscription(BaseModel):
    """
    One subscription term.

    `duration` is kept as received, so an unrecognised tier is stored
    verbatim even though it was priced and dated as monthly.
    Renewals add a new row; the previous active row is not retired.
    """
    model_config = ConfigDict(frozen=True)

    subscription_id: str
    shop_id: str
    plan_name: str
    price: Decimal
    duration: str
    started_at: datetime
    expires_at: datetime
    status: SubscriptionStatus
    payment_method: str
    auto_renew: bool
    created_at: datetime
