# carebase/models/guardian.py
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
from carebase.models.organization import InviteStatus
from carebase.utils.timezone import utcnow


class GuardianStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    REVOKED = "REVOKED"


class GuardianLink(Base):
    """
    Grants guardian_id read / limited-write access to patient_id's records.
    """
    __tablename__ = "guardian_links"
    __table_args__ = (
        UniqueConstraint("patient_id",
                         "guardian_id",
                         name="uq_guardian_links_patient_guardian"),
        MYSQL_ARGS,
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer,
                        ForeignKey("users.id", ondelete="CASCADE"),
                        nullable=False)
    guardian_id = Column(Integer,
                         ForeignKey("users.id", ondelete="CASCADE"),
                         nullable=False,
                         index=True)
    status = Column(Enum(GuardianStatus, name="guardian_status"),
                    nullable=False,
                    default=GuardianStatus.ACTIVE)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    patient = relationship("User", foreign_keys=[patient_id])
    guardian = relationship("User", foreign_keys=[guardian_id])


class GuardianInvite(Base):
    __tablename__ = "guardian_invites"
    __table_args__ = (
        Index("ix_guardian_invites_patient_email_status", "patient_id",
              "email", "status"),
        MYSQL_ARGS,
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer,
                        ForeignKey("users.id", ondelete="CASCADE"),
                        nullable=False)
    email = Column(String(191), nullable=False)

    token = Column(String(128), unique=True, nullable=False)
    status = Column(Enum(InviteStatus, name="guardian_invite_status"),
                    nullable=False,
                    default=InviteStatus.PENDING)
    expires_at = Column(DateTime, nullable=False)

    invited_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    patient = relationship("User", foreign_keys=[patient_id])
