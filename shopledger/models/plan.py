"""
shopledger/models/plan.py

Pricing plan from the catalog. Read-only for admin operations.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict


class PricingPlan(BaseModel):
    """
    A selectable plan with one price per duration tier.

    Prices are currency-agnostic decimals; the shop's currency applies.
    """
    model_config = ConfigDict(frozen=True)

    plan_id: str
    name: str
    description: Optional[str] = None
    monthly_price: Decimal
    quarterly_price: Decimal
    yearly_price: Decimal
    features: Optional[Any] = None
    status: str = "active"
    created_at: datetime

    @property
    def is_selectable(self) -> bool:
        return self.status == "active"
