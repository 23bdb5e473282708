# carebase/models/organization.py
from __future__ import annotations

import enum

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from carebase.db.base import Base, MYSQL_ARGS
from carebase.utils.timezone import utcnow


class OrgType(str, enum.Enum):
    HOSPITAL = "HOSPITAL"
    PHARMACY = "PHARMACY"
    LAB = "LAB"


class OrgStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class OrgRole(str, enum.Enum):
    ORG_ADMIN = "ORG_ADMIN"
    DOCTOR = "DOCTOR"
    PHARMACIST = "PHARMACIST"
    LAB_TECH = "LAB_TECH"


class InviteStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    EXPIRED = "EXPIRED"


class Organization(Base):
    __tablename__ = "organizations"
    __table_args__ = MYSQL_ARGS

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(191), nullable=False)
    type = Column(Enum(OrgType, name="org_type"), nullable=False)
    status = Column(Enum(OrgStatus, name="org_status"),
                    nullable=False,
                    default=OrgStatus.ACTIVE)
    # e.g. "citypharmacy.lk"; invites must match when set
    domain = Column(String(191), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    members = relationship("OrgMember",
                           back_populates="org",
                           cascade="all, delete-orphan")


class OrgMember(Base):
    __tablename__ = "org_members"
    __table_args__ = (
        UniqueConstraint("user_id", "org_id", name="uq_org_members_user_org"),
        MYSQL_ARGS,
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer,
                     ForeignKey("users.id", ondelete="CASCADE"),
                     nullable=False,
                     index=True)
    org_id = Column(Integer,
                    ForeignKey("organizations.id", ondelete="CASCADE"),
                    nullable=False,
                    index=True)
    role = Column(Enum(OrgRole, name="org_role"), nullable=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="memberships")
    org = relationship("Organization", back_populates="members")


class OrgInvite(Base):
    """
    Invite to join an organization with a given role.
    PENDING -> ACCEPTED | EXPIRED, never back.
    """
    __tablename__ = "org_invites"
    __table_args__ = (
        Index("ix_org_invites_org_email_status", "org_id", "email", "status"),
        MYSQL_ARGS,
    )

    id = Column(Integer, primary_key=True, index=True)
    org_id = Column(Integer,
                    ForeignKey("organizations.id", ondelete="CASCADE"),
                    nullable=False)
    email = Column(String(191), nullable=False)
    role = Column(Enum(OrgRole, name="org_invite_role"), nullable=False)

    token = Column(String(128), unique=True, nullable=False)
    status = Column(Enum(InviteStatus, name="org_invite_status"),
                    nullable=False,
                    default=InviteStatus.PENDING)
    expires_at = Column(DateTime, nullable=False)

    invited_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    org = relationship("Organization")
