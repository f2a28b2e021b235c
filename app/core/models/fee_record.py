"""Fee record: one student's obligation for one billing period."""

import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.core.enums import FeeStatus
from app.core.models.base import utcnow
from app.db.session import Base


class FeeRecord(Base):
    """
    Lifecycle: pending -> overdue (due date passed) -> paid, or pending -> paid.
    paid is terminal. overdue_at is set once and never cleared, so is_overdue survives settlement.
    """

    __tablename__ = "fee_records"
    __table_args__ = (
        UniqueConstraint("student_id", "billing_period_id", name="uq_fee_record_student_period"),
        CheckConstraint("status IN ('pending','overdue','paid')", name="chk_fee_record_status"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    billing_period_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("billing_periods.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=FeeStatus.pending.value)
    overdue_at = Column(DateTime(timezone=True), nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    transaction_id = Column(String(100), nullable=True)
    provider_payment_id = Column(String(100), nullable=True)
    reminder_sent = Column(Boolean, nullable=False, default=False)
    notification_sent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    student = relationship("Student", back_populates="fee_records")
    billing_period = relationship("BillingPeriod", back_populates="fee_records")

    @property
    def is_overdue(self) -> bool:
        return self.overdue_at is not None
