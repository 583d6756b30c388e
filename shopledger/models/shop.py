"""
shopledger/models/shop.py

Shop (tenant) record as seen by admin operations.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class ShopStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"

    @property
    def cascades_to_users(self) -> bool:
        """Deactivating statuses force the shop's other users inactive."""
        return self in (ShopStatus.INACTIVE, ShopStatus.SUSPENDED)


class Shop(BaseModel):
    """
    Shop represents one tenant.

    `plan` mirrors the plan name of the current active subscription,
    or the default plan name ("Free") when there is none.
    """
    model_config = ConfigDict(frozen=True)

    shop_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    logo: Optional[str] = None
    currency: str = "PKR"
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    plan: str = "Free"
    status: ShopStatus = ShopStatus.ACTIVE
    created_at: datetime
    updated_at: datetime
