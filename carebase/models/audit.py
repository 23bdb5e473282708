# carebase/models/audit.py
from sqlalchemy import JSON, Column, DateTime, Integer, String

from carebase.db.base import Base, MYSQL_ARGS
from carebase.utils.timezone import utcnow


class AuditLog(Base):
    """
    Append-only audit trail. Written after the business transaction commits.
    """
    __tablename__ = "audit_logs"
    __table_args__ = MYSQL_ARGS

    id = Column(Integer, primary_key=True, index=True)

    action = Column(String(64), nullable=False)  # "prescription.dispense"
    actor_user_id = Column(Integer, nullable=True)  # system jobs may be null

    target_type = Column(String(64), nullable=False)
    target_id = Column(String(100), nullable=True)  # stored as string
    org_id = Column(Integer, nullable=True)

    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=True)

    ip_address = Column(String(45), nullable=True)  # IPv4/IPv6
    user_agent = Column(String(255), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
