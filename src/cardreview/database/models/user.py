"""User and organizational role models for cardreview.

Users carry a board-wide permission level and any number of free-text
company roles ("Lead Artist", "PO", ...). Evaluator roles are derived from
those names at read time and are never stored.
"""

from __future__ import annotations

import enum
import uuid

from sqlalchemy import Enum, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cardreview.database.models.base import Base, TimestampMixin


class PermissionLevel(str, enum.Enum):
    """Board permission levels, lowest first.

    Levels:
        VIEWER: Read-only access; never sees quality data.
        MEMBER: Regular board member.
        ADMIN: Board administrator.
        SUPER_ADMIN: Organization administrator; manages review dimensions.
    """

    VIEWER = "VIEWER"
    MEMBER = "MEMBER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"

    @property
    def rank(self) -> int:
        return _PERMISSION_RANK[self]

    def at_least(self, other: PermissionLevel) -> bool:
        """Whether this level grants everything ``other`` grants."""
        return self.rank >= other.rank


_PERMISSION_RANK = {
    PermissionLevel.VIEWER: 0,
    PermissionLevel.MEMBER: 1,
    PermissionLevel.ADMIN: 2,
    PermissionLevel.SUPER_ADMIN: 3,
}


class User(TimestampMixin, Base):
    """A board user.

    Attributes:
        name: Display name.
        permission: Board permission level.
        company_role_links: Association rows to the user's company roles.
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    permission: Mapped[PermissionLevel] = mapped_column(
        Enum(PermissionLevel, name="permission_level"),
        default=PermissionLevel.MEMBER,
        nullable=False,
    )

    company_role_links: Mapped[list[UserCompanyRole]] = relationship(
        "UserCompanyRole",
        back_populates="user",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def role_names(self) -> list[str]:
        """Names of the user's company roles."""
        return [link.company_role.name for link in self.company_role_links]


class CompanyRole(TimestampMixin, Base):
    """A free-text organizational role such as "Lead Artist" or "PO"."""

    __tablename__ = "company_roles"

    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)


class UserCompanyRole(TimestampMixin, Base):
    """Association between a user and one company role."""

    __tablename__ = "user_company_roles"
    __table_args__ = (
        UniqueConstraint("user_id", "company_role_id", name="uq_user_company_roles_user_role"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    company_role_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("company_roles.id", ondelete="CASCADE"),
        nullable=False,
    )

    user: Mapped[User] = relationship("User", back_populates="company_role_links")
    company_role: Mapped[CompanyRole] = relationship("CompanyRole", lazy="selectin")
