import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.core.models.base import utcnow
from app.db.session import Base


class BillingPeriod(Base):
    """One month of an academic year, carrying the fee due date."""

    __tablename__ = "billing_periods"
    __table_args__ = (
        UniqueConstraint("academic_year_id", "month_number", name="uq_billing_period_year_month"),
        CheckConstraint("month_number BETWEEN 1 AND 12", name="chk_billing_period_month_number"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    academic_year_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("academic_years.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    month_number = Column(Integer, nullable=False)
    month_name = Column(String(50), nullable=False)  # e.g. "March 2025"
    due_date = Column(Date, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    academic_year = relationship("AcademicYear", back_populates="billing_periods")
    fee_records = relationship("FeeRecord", back_populates="billing_period", cascade="all, delete-orphan")
