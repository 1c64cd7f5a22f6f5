"""
Admin user model - back-office staff resolved from identity-provider uids.
"""

from typing import Optional, List

from sqlalchemy import String, Boolean, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from storefront.models.base import Base, UUIDMixin, TimestampMixin


ADMIN_ROLES = ("super_admin", "admin", "general", "test_mode")


class AdminUser(Base, UUIDMixin, TimestampMixin):
    """
    A back-office user. Permissions are copied from the role's static table
    whenever the role is assigned; there is no per-user composition.
    """
    __tablename__ = "admin_users"

    uid: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(20), nullable=False)  # see ADMIN_ROLES
    permissions: Mapped[List[str]] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    __table_args__ = (
        Index("idx_admin_user_active", "is_active"),
    )
