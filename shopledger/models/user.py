from enum import Enum


class UserStatus(str, Enum):
    """Shop user account status. Accounts themselves are managed by the identity service."""
    ACTIVE = "active"
    INACTIVE = "inactive"
