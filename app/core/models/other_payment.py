"""Ad hoc named charge (uniform, activity fee, ...) outside the monthly billing periods."""

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import relationship

from app.core.enums import OtherPaymentStatus
from app.core.models.base import utcnow
from app.db.session import Base


class OtherPayment(Base):
    """The same student may receive the same named charge more than once."""

    __tablename__ = "other_payments"
    __table_args__ = (
        CheckConstraint("status IN ('pending','paid')", name="chk_other_payment_status"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_name = Column(String(255), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=OtherPaymentStatus.pending.value)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    transaction_id = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    student = relationship("Student", back_populates="other_payments")
