# carebase/models/prescription.py
from __future__ import annotations

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from carebase.db.base import Base, MYSQL_ARGS
from carebase.utils.timezone import utcnow


class PrescriptionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PARTIALLY_DISPENSED = "PARTIALLY_DISPENSED"
    DISPENSED = "DISPENSED"
    CANCELLED = "CANCELLED"


class DispenseStatus(str, enum.Enum):
    PARTIAL = "PARTIAL"
    FULL = "FULL"


class Prescription(Base):
    """
    Prescription header written by a doctor for a patient.

    Items are fixed at creation. The only later write is ``status``:
      ACTIVE -> PARTIALLY_DISPENSED -> DISPENSED  (driven by dispensing)
      ACTIVE / PARTIALLY_DISPENSED -> CANCELLED   (outside this service)
    """

    __tablename__ = "prescriptions"
    __table_args__ = MYSQL_ARGS

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer,
                        ForeignKey("users.id"),
                        nullable=False,
                        index=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    status = Column(Enum(PrescriptionStatus, name="prescription_status"),
                    nullable=False,
                    default=PrescriptionStatus.ACTIVE)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    items = relationship(
        "PrescriptionItem",
        back_populates="prescription",
        order_by="PrescriptionItem.id",
        cascade="all, delete-orphan",
    )
    dispense_records = relationship(
        "DispenseRecord",
        back_populates="prescription",
        order_by="DispenseRecord.id",
    )

    patient = relationship("User", foreign_keys=[patient_id])
    doctor = relationship("User", foreign_keys=[doctor_id])


class PrescriptionItem(Base):
    __tablename__ = "prescription_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_prescription_items_qty"),
        MYSQL_ARGS,
    )

    id = Column(Integer, primary_key=True, index=True)
    prescription_id = Column(
        Integer,
        ForeignKey("prescriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    medicine_id = Column(Integer, ForeignKey("medicines.id"), nullable=False)

    dose = Column(String(64), nullable=False)  # "1 tab", "5 ml"
    frequency = Column(String(64), nullable=False)  # "2x daily", "1-0-1"
    duration_days = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)  # prescribed, fixed

    prescription = relationship("Prescription", back_populates="items")
    medicine = relationship("Medicine")


class DispenseRecord(Base):
    """
    One dispense event at a pharmacy. Append-only: never updated or deleted.
    """

    __tablename__ = "dispense_records"
    __table_args__ = MYSQL_ARGS

    id = Column(Integer, primary_key=True, index=True)
    prescription_id = Column(Integer,
                             ForeignKey("prescriptions.id"),
                             nullable=False,
                             index=True)
    dispensed_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    pharmacy_org_id = Column(Integer,
                             ForeignKey("organizations.id"),
                             nullable=False)

    status = Column(Enum(DispenseStatus, name="dispense_status"),
                    nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    items = relationship(
        "DispenseItem",
        back_populates="dispense_record",
        order_by="DispenseItem.id",
        cascade="all, delete-orphan",
    )
    prescription = relationship("Prescription",
                                back_populates="dispense_records")
    pharmacy_org = relationship("Organization")
    dispensed_by = relationship("User")


class DispenseItem(Base):
    __tablename__ = "dispense_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_dispense_items_qty"),
        MYSQL_ARGS,
    )

    id = Column(Integer, primary_key=True, index=True)
    dispense_record_id = Column(
        Integer,
        ForeignKey("dispense_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    prescription_item_id = Column(Integer,
                                  ForeignKey("prescription_items.id"),
                                  nullable=False,
                                  index=True)
    quantity = Column(Integer, nullable=False)

    dispense_record = relationship("DispenseRecord", back_populates="items")
    prescription_item = relationship("PrescriptionItem")
