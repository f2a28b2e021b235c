"""Notification outbox: one row per intended SMS, written with the state change that caused it."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.core.enums import NotificationStatus
from app.core.models.base import utcnow
from app.db.session import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    # Set for fee lifecycle notifications; a fee deletion leaves the history in place
    fee_record_id = Column(Uuid(as_uuid=True), ForeignKey("fee_records.id", ondelete="SET NULL"), nullable=True, index=True)
    notification_type = Column(String(30), nullable=False)  # fee_assigned, payment_reminder, payment_confirmed, manual
    message = Column(Text, nullable=False)
    phone_number = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default=NotificationStatus.pending.value, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    next_attempt_at = Column(DateTime(timezone=True), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    student = relationship("Student", back_populates="notifications")
