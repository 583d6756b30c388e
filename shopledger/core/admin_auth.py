"""
Admin caller identity.

Authentication and sessions live in the upstream auth gateway. It forwards
the authenticated caller as two headers:
- X-Shop-Id: shop the admin is acting on (UUID)
- X-Admin-Id: acting admin's user id (UUID)

Every admin operation is scoped to that pair and audited with it.
"""
from dataclasses import dataclass
from fastapi import Request, HTTPException

from shopledger.core.identity import to_internal_key

SHOP_HEADER = "X-Shop-Id"
ADMIN_HEADER = "X-Admin-Id"


@dataclass(frozen=True)
class AdminContext:
    """Authenticated admin acting on one shop."""
    shop_id: str
    admin_id: str

    @property
    def shop_key(self) -> bytes:
        return to_internal_key(self.shop_id)

    @property
    def admin_key(self) -> bytes:
        return to_internal_key(self.admin_id)


def require_admin(request: Request) -> AdminContext:
    """
    FastAPI dependency: require the forwarded admin identity.
    Raises HTTPException (401) if either header is missing and
    InvalidIdentifierError (400) if either is not a UUID.

    Usage:
        @router.post("/v1/shop-settings/backup")
        def backup(ctx: AdminContext = Depends(require_admin)):
            pass
    """
    shop_id = request.headers.get(SHOP_HEADER, "").strip()
    admin_id = request.headers.get(ADMIN_HEADER, "").strip()

    if not shop_id or not admin_id:
        raise HTTPException(
            status_code=401,
            detail="Missing admin identity: X-Shop-Id and X-Admin-Id headers are required",
        )

    # Validate both at the boundary so bad ids never reach a transaction
    to_internal_key(shop_id)
    to_internal_key(admin_id)

    return AdminContext(shop_id=shop_id.lower(), admin_id=admin_id.lower())
