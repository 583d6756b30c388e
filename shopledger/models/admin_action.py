"""
shopledger/models/admin_action.py

Ledger entry describing one administrative mutation.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict
from pydantic import BaseModel, ConfigDict


class ActionType(str, Enum):
    SHOP_UPDATE = "shop_update"
    SUBSCRIPTION_UPDATE = "subscription_update"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"
    SUBSCRIPTION_EXTENSION = "subscription_extension"
    SHOP_STATUS_UPDATE = "shop_status_update"
    BACKUP_CREATED = "backup_created"
    PROFILE_UPDATE = "profile_update"
    SECURITY = "security"


class AdminAction(BaseModel):
    """
    Immutable audit record. Written in the same transaction as the change
    it documents; never updated or deleted.
    """
    model_config = ConfigDict(frozen=True)

    action_id: str
    admin_id: str
    shop_id: str
    action_type: ActionType
    details: Dict[str, Any]
    created_at: datetime
