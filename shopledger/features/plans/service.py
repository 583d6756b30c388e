"""
shopledger/features/plans/service.py

Pricing plan lookups. The catalog itself is managed elsewhere; this module
only reads it.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from shopledger.core.database import pricing_plans, as_utc
from shopledger.core.identity import to_external_id
from shopledger.models.plan import PricingPlan


def plan_from_row(row) -> PricingPlan:
    return PricingPlan(
        plan_id=to_external_id(row.id),
        name=row.name,
        description=row.description,
        monthly_price=row.monthly_price,
        quarterly_price=row.quarterly_price,
        yearly_price=row.yearly_price,
        features=row.features,
        status=row.status,
        created_at=as_utc(row.created_at),
    )


def get_plan(session: Session, plan_key: bytes) -> Optional[PricingPlan]:
    """Get plan by key, regardless of status."""
    row = session.execute(
        select(pricing_plans).where(pricing_plans.c.id == plan_key)
    ).first()

    if not row:
        return None

    return plan_from_row(row)


def list_active_plans(session: Session) -> List[PricingPlan]:
    """Selectable plans, cheapest monthly price first."""
    rows = session.execute(
        select(pricing_plans)
        .where(pricing_plans.c.status == "active")
        .order_by(pricing_plans.c.monthly_price)
    ).fetchall()

    return [plan_from_row(row) for row in rows]
