"""
Admin Users API Router.

Back-office staff management, the permission matrix, access checks for the
admin console, and first-time setup.
"""

import hmac
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth_middleware import Identity, get_current_identity
from storefront.config import get_settings
from storefront.database import get_db
from storefront.errors import ValidationError
from storefront.models import AdminUser
from storefront.routers.dependencies import require_permission
from storefront.schemas import CamelModel
from storefront.services.admin_users import AdminUserService
from storefront.services.permissions import get_permission_matrix, get_role_level

logger = logging.getLogger(__name__)

router = APIRouter()


class AdminUserResponse(CamelModel):
    id: str
    uid: str
    email: str
    name: Optional[str] = None
    role: str
    permissions: List[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime


class AdminUserListResponse(CamelModel):
    users: List[AdminUserResponse]
    count: int


class CreateAdminUserRequest(CamelModel):
    uid: str
    email: str
    name: Optional[str] = None
    role: str


class ChangeRoleRequest(CamelModel):
    role: str


class AccessResponse(CamelModel):
    has_access: bool
    is_admin: bool
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None
    role_level: int = 0
    permissions: List[str] = []


class SetupRequest(CamelModel):
    secret: str


@router.get("/users", response_model=AdminUserListResponse)
async def list_admin_users(
    admin: AdminUser = Depends(require_permission("admin.list.view", "admin.list.edit")),
    db: AsyncSession = Depends(get_db),
):
    users = await AdminUserService(db).list_active()
    return AdminUserListResponse(
        users=[AdminUserResponse.model_validate(u) for u in users],
        count=len(users),
    )


@router.post("/users", response_model=AdminUserResponse, status_code=201)
async def create_admin_user(
    request: CreateAdminUserRequest,
    admin: AdminUser = Depends(require_permission("admin.permissions.edit")),
    db: AsyncSession = Depends(get_db),
):
    user = await AdminUserService(db).upsert(
        uid=request.uid,
        email=request.email,
        name=request.name,
        role=request.role,
    )
    logger.info(f"Admin user {request.uid} saved by {admin.uid}")
    return AdminUserResponse.model_validate(user)


@router.delete("/users/{uid}")
async def delete_admin_user(
    uid: str,
    admin: AdminUser = Depends(require_permission("admin.permissions.edit")),
    db: AsyncSession = Depends(get_db),
):
    if uid == admin.uid:
        raise ValidationError("Admins cannot deactivate themselves", field="uid")
    await AdminUserService(db).deactivate(uid)
    return {"success": True, "uid": uid}


@router.put("/users/{uid}/role", response_model=AdminUserResponse)
async def change_admin_role(
    uid: str,
    request: ChangeRoleRequest,
    admin: AdminUser = Depends(require_permission("admin.permissions.edit")),
    db: AsyncSession = Depends(get_db),
):
    user = await AdminUserService(db).change_role(uid, request.role)
    return AdminUserResponse.model_validate(user)


@router.get("/permissions")
async def permission_matrix(
    admin: AdminUser = Depends(require_permission("admin.login")),
) -> Dict[str, Any]:
    """Permission matrix for display plus the caller's own permissions."""
    return {
        "matrix": get_permission_matrix(),
        "role": admin.role,
        "permissions": admin.permissions,
    }


@router.post("/check-access", response_model=AccessResponse)
async def check_access(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Whether the signed-in identity may use the admin console."""
    admin = await AdminUserService(db).get_by_uid(identity.uid)
    if admin is None:
        return AccessResponse(has_access=False, is_admin=False, uid=identity.uid, email=identity.email)

    return AccessResponse(
        has_access="admin.login" in (admin.permissions or []),
        is_admin=True,
        uid=admin.uid,
        email=admin.email,
        name=admin.name,
        role=admin.role,
        role_level=get_role_level(admin.role),
        permissions=admin.permissions or [],
    )


@router.post("/setup")
async def setup(
    request: SetupRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    First-time deployment: create the default super admin when none exists.
    Guarded by ADMIN_SETUP_SECRET.
    """
    expected = get_settings().ADMIN_SETUP_SECRET
    if not expected or not hmac.compare_digest(request.secret.encode(), expected.encode()):
        logger.warning("Rejected admin setup attempt with invalid secret")
        raise HTTPException(status_code=401, detail="Unauthorized")

    created = await AdminUserService(db).initialize_defaults()
    return {
        "success": True,
        "created": created is not None,
        "message": "Default super admin created." if created else "Admin users already exist.",
    }
