import uuid

from sqlalchemy import Column, DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.core.models.base import utcnow
from app.db.session import Base


class Student(Base):
    """
    Enrolled child. login_id + password are the parent portal credentials;
    only the bcrypt hash of the password is stored.
    """

    __tablename__ = "students"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    login_id = Column(String(100), nullable=False, unique=True)
    full_name = Column(String(255), nullable=False)
    class_name = Column(String(20), nullable=False)  # KG1, KG2, Nursery, Pre-KG
    year_joined = Column(Integer, nullable=False, index=True)
    parent_phone = Column(String(50), nullable=False, index=True)
    parent_email = Column(String(255), nullable=True)
    password_hash = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    fee_records = relationship("FeeRecord", back_populates="student", cascade="all, delete-orphan")
    other_payments = relationship("OtherPayment", back_populates="student", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="student", cascade="all, delete-orphan")
