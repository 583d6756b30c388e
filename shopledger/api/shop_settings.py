"""
Shop settings admin router.

Every mutating endpoint runs through run_atomic: the state change and its
admin_actions ledger entry commit together or not at all. Caller identity
comes from the auth gateway headers (see shopledger.core.admin_auth).
"""

import logging
from functools import partial
from typing import List, Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from shopledger.core.admin_auth import AdminContext, require_admin
from shopledger.core.database import get_db
from shopledger.core.identity import to_internal_key
from shopledger.core.transaction import run_atomic
from shopledger.features.shops import service as shops_service
from shopledger.features.subscriptions import service as subscriptions_service
from shopledger.models.admin_action import AdminAction
from shopledger.models.backup import Backup
from shopledger.models.plan import PricingPlan
from shopledger.models.shop import Shop
from shopledger.models.subscription import Subscription

logger = logging.getLogger("shopledger.shop_settings")

router = APIRouter(prefix="/v1/shop-settings")


# ============================================================================
# Pydantic Models
# ============================================================================

class ShopUpdateRequest(BaseModel):
    """Shop profile update. The logo file is stored upstream; only its filename arrives here."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    currency: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    logo_filename: Optional[str] = Field(None, description="Filename of an already-uploaded logo")


class ShopUpdateResponse(BaseModel):
    success: bool = True
    message: str
    shop: Shop
    replaced_logo: Optional[str] = Field(None, description="Previous logo filename, for cleanup by the upload layer")


class SubscribeRequest(BaseModel):
    plan_id: str = Field(..., description="UUID of the pricing plan")
    duration: str = Field(default="monthly", description="monthly | quarterly | yearly")
    payment_method: Optional[str] = None
    auto_renew: Union[bool, str, None] = False


class SubscriptionResponse(BaseModel):
    success: bool = True
    message: str
    subscription: Subscription


class CancelResponse(BaseModel):
    success: bool = True
    message: str
    cancelled: int


class ExtendRequest(BaseModel):
    days: int
    reason: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: str
    reason: Optional[str] = None


class StatusUpdateResponse(BaseModel):
    success: bool = True
    message: str
    status: str
    users_deactivated: int


class BackupResponse(BaseModel):
    success: bool = True
    message: str
    backup: Backup


class ShopSettingsOverview(BaseModel):
    shop: Shop
    active_subscription: Optional[Subscription]
    subscription_history: List[Subscription]
    pricing_plans: List[PricingPlan]
    active_users: int
    recent_actions: List[AdminAction]


# ============================================================================
# Endpoints
# ============================================================================

@router.get("", response_model=ShopSettingsOverview)
def get_shop_settings(
    ctx: AdminContext = Depends(require_admin),
    session: Session = Depends(get_db),
):
    """Shop profile, subscriptions, selectable plans and recent admin actions."""
    overview = shops_service.get_settings_overview(session, ctx.shop_key)
    return ShopSettingsOverview(**overview)


@router.post("/update", response_model=ShopUpdateResponse)
def update_shop(req: ShopUpdateRequest, ctx: AdminContext = Depends(require_admin)):
    fields = req.model_dump(exclude={"logo_filename"})
    shops_service.normalize_shop_fields(fields)

    shop, replaced_logo = run_atomic(
        ctx.shop_id,
        ctx.admin_id,
        partial(shops_service.update_shop, fields=fields, logo_filename=req.logo_filename),
        action="shop_update",
    )
    return ShopUpdateResponse(
        message="Shop information updated successfully",
        shop=shop,
        replaced_logo=replaced_logo,
    )


@router.post("/subscribe", response_model=SubscriptionResponse)
def subscribe(req: SubscribeRequest, ctx: AdminContext = Depends(require_admin)):
    to_internal_key(req.plan_id)
    subscriptions_service.validate_duration(req.duration)

    logger.info(f"[shop_settings] subscribe requested by {ctx.admin_id}: plan={req.plan_id} duration={req.duration}")
    subscription = run_atomic(
        ctx.shop_id,
        ctx.admin_id,
        partial(
            subscriptions_service.create_subscription,
            plan_id=req.plan_id,
            duration=req.duration,
            payment_method=req.payment_method,
            auto_renew=req.auto_renew,
        ),
        action="subscription_update",
    )
    return SubscriptionResponse(message="Subscription activated successfully", subscription=subscription)


@router.post("/cancel-subscription", response_model=CancelResponse)
def cancel_subscription(ctx: AdminContext = Depends(require_admin)):
    cancelled = run_atomic(
        ctx.shop_id,
        ctx.admin_id,
        subscriptions_service.cancel_subscription,
        action="subscription_cancelled",
    )
    return CancelResponse(message="Subscription cancelled successfully", cancelled=cancelled)


@router.post("/extend-subscription", response_model=SubscriptionResponse)
def extend_subscription(req: ExtendRequest, ctx: AdminContext = Depends(require_admin)):
    days = subscriptions_service.validate_extension_days(req.days)

    subscription = run_atomic(
        ctx.shop_id,
        ctx.admin_id,
        partial(subscriptions_service.extend_subscription, days=days, reason=req.reason),
        action="subscription_extension",
    )
    return SubscriptionResponse(message=f"Subscription extended by {days} days", subscription=subscription)


@router.post("/update-status", response_model=StatusUpdateResponse)
def update_status(req: StatusUpdateRequest, ctx: AdminContext = Depends(require_admin)):
    new_status = shops_service.validate_status(req.status)

    deactivated = run_atomic(
        ctx.shop_id,
        ctx.admin_id,
        partial(shops_service.set_shop_status, status=new_status.value, reason=req.reason),
        action="shop_status_update",
    )
    message = "Shop activated successfully" if not new_status.cascades_to_users else "Shop deactivated successfully"
    return StatusUpdateResponse(message=message, status=new_status.value, users_deactivated=deactivated)


@router.post("/backup", response_model=BackupResponse)
def request_backup(ctx: AdminContext = Depends(require_admin)):
    backup = run_atomic(
        ctx.shop_id,
        ctx.admin_id,
        shops_service.request_backup,
        action="backup_created",
    )
    return BackupResponse(message="Backup request submitted successfully", backup=backup)
