# carebase/models/patient.py
from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from carebase.db.base import Base, MYSQL_ARGS
from carebase.utils.timezone import utcnow


class PatientProfile(Base):
    """
    Demographics for a user who is a patient. Records are keyed by the
    user id, so a patient without a profile is still a valid patient.
    """
    __tablename__ = "patient_profiles"
    __table_args__ = MYSQL_ARGS

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer,
                     ForeignKey("users.id", ondelete="CASCADE"),
                     nullable=False,
                     unique=True)

    nic = Column(String(12), nullable=False, unique=True)  # national ID
    name = Column(String(120), nullable=True)
    dob = Column(Date, nullable=True)
    location = Column(String(191), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User", back_populates="patient_profile")
