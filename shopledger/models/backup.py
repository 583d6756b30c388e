from datetime import datetime
from pydantic import BaseModel, ConfigDict


class Backup(BaseModel):
    """Tracking row for a requested shop backup."""
    model_config = ConfigDict(frozen=True)

    backup_id: str
    shop_id: str
    filename: str
    status: str = "pending"
    created_at: datetime
