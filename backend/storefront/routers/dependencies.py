"""
Router Dependencies
====================

Shared FastAPI dependencies for router authentication and authorization.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth_middleware import Identity, get_current_identity
from storefront.database import get_db
from storefront.errors import PermissionDeniedError
from storefront.models import AdminUser
from storefront.services.admin_users import AdminUserService
from storefront.services.permissions import has_any_permission


async def require_admin(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> AdminUser:
    """
    Dependency that validates the JWT and returns the active AdminUser.

    Raises:
        HTTPException(401): If the JWT is invalid.
        PermissionDeniedError(403): If the identity is not an active admin.
    """
    admin = await AdminUserService(db).get_by_uid(identity.uid)
    if admin is None:
        raise PermissionDeniedError(f"User {identity.uid} is not an active admin")
    return admin


def require_permission(*permissions: str):
    """
    Dependency factory: the caller must hold at least one of ``permissions``.

    Usage:
        @router.get("/orders")
        async def list_orders(admin: AdminUser = Depends(require_permission("orders.view"))):
    """

    async def _check(admin: AdminUser = Depends(require_admin)) -> AdminUser:
        if not has_any_permission(admin, permissions):
            raise PermissionDeniedError(
                f"Missing permission: {' or '.join(permissions)}"
            )
        return admin

    return _check
