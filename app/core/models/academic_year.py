import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, Uuid
from sqlalchemy.orm import relationship

from app.core.models.base import utcnow
from app.db.session import Base


class AcademicYear(Base):
    """
    School year (e.g. 2025). Calendar year is unique.
    At most one year should be active; activation goes through the service, which clears the others.
    """

    __tablename__ = "academic_years"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    year = Column(Integer, nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    billing_periods = relationship(
        "BillingPeriod",
        back_populates="academic_year",
        cascade="all, delete-orphan",
        order_by="BillingPeriod.month_number",
    )
