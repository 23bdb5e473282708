# carebase/models/medicine.py
from sqlalchemy import Column, DateTime, Integer, String, Text

from carebase.db.base import Base, MYSQL_ARGS
from carebase.utils.timezone import utcnow


class Medicine(Base):
    __tablename__ = "medicines"
    __table_args__ = MYSQL_ARGS

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(191), nullable=False)
    generic_name = Column(String(191), nullable=True)
    strength = Column(String(64), nullable=True)  # "500mg"
    form = Column(String(32), nullable=False)  # TABLET / SYRUP / ...
    manufacturer = Column(String(191), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
