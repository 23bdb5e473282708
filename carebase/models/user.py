# carebase/models/user.py
from __future__ import annotations

import enum

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String
from sqlalchemy.orm import relationship

from carebase.db.base import Base, MYSQL_ARGS
from carebase.utils.timezone import utcnow


class GlobalRole(str, enum.Enum):
    ROOT_ADMIN = "ROOT_ADMIN"
    USER = "USER"


class User(Base):
    __tablename__ = "users"
    __table_args__ = MYSQL_ARGS

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(191), unique=True, nullable=False)
    name = Column(String(120), nullable=True)
    password_hash = Column(String(255), nullable=False)

    global_role = Column(Enum(GlobalRole, name="user_global_role"),
                         nullable=False,
                         default=GlobalRole.USER)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    memberships = relationship("OrgMember",
                               back_populates="user",
                               cascade="all, delete-orphan")
    patient_profile = relationship("PatientProfile",
                                   back_populates="user",
                                   uselist=False)
