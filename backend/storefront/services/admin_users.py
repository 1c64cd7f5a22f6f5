# storefront/services/admin_users.py
"""
Admin user management: back-office staff keyed by identity-provider uid.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import get_settings
from storefront.errors import NotFoundError, ValidationError
from storefront.models import AdminUser
from storefront.services.permissions import get_role_permissions, validate_role

logger = logging.getLogger(__name__)


class AdminUserService:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _find(self, uid: str) -> Optional[AdminUser]:
        result = await self.session.execute(select(AdminUser).where(AdminUser.uid == uid))
        return result.scalars().first()

    async def upsert(self, uid: str, email: str, name: Optional[str] = None, role: str = "general") -> AdminUser:
        """
        Create or update an admin user. Permissions always follow the role;
        an existing user keeps its original creation date and is reactivated.
        """
        if not uid or not email:
            raise ValidationError("uid and email are required", field="uid")
        validate_role(role)

        now = datetime.utcnow()
        user = await self._find(uid)
        if user is None:
            user = AdminUser(
                uid=uid,
                email=email,
                name=name,
                role=role,
                permissions=get_role_permissions(role),
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            self.session.add(user)
            action = "Created"
        else:
            user.email = email
            user.name = name
            user.role = role
            user.permissions = get_role_permissions(role)
            user.is_active = True
            user.updated_at = now
            action = "Updated"

        await self.session.flush()
        logger.info(f"{action} admin user {uid} ({role})")
        return user

    async def get_by_uid(self, uid: str) -> Optional[AdminUser]:
        """Active admin user for ``uid``, or None."""
        result = await self.session.execute(
            select(AdminUser).where(AdminUser.uid == uid, AdminUser.is_active.is_(True))
        )
        return result.scalars().first()

    async def list_active(self) -> List[AdminUser]:
        result = await self.session.execute(
            select(AdminUser).where(AdminUser.is_active.is_(True)).order_by(desc(AdminUser.created_at))
        )
        return list(result.scalars().all())

    async def deactivate(self, uid: str) -> AdminUser:
        """Soft delete."""
        user = await self._find(uid)
        if user is None:
            raise NotFoundError("AdminUser", uid)
        user.is_active = False
        user.updated_at = datetime.utcnow()
        await self.session.flush()
        logger.info(f"Deactivated admin user {uid}")
        return user

    async def change_role(self, uid: str, role: str) -> AdminUser:
        validate_role(role)
        user = await self.get_by_uid(uid)
        if user is None:
            raise NotFoundError("AdminUser", uid)

        previous = user.role
        user.role = role
        user.permissions = get_role_permissions(role)
        user.updated_at = datetime.utcnow()
        await self.session.flush()
        logger.info(f"Admin user {uid} role {previous} -> {role}")
        return user

    async def initialize_defaults(self) -> Optional[AdminUser]:
        """Create the configured super admin when no active admin exists."""
        existing = await self.list_active()
        if existing:
            logger.info(f"Found {len(existing)} existing admin users")
            return None

        settings = get_settings()
        logger.info("No admin users found, creating default super admin")
        return await self.upsert(
            uid=settings.DEFAULT_ADMIN_UID,
            email=settings.DEFAULT_ADMIN_EMAIL,
            name="Default Super Admin",
            role="super_admin",
        )
