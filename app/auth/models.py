import uuid

from sqlalchemy import Boolean, Column, DateTime, String, Text, Uuid

from app.core.models.base import utcnow
from app.db.session import Base


class AdminUser(Base):
    """School office staff with full access to the admin API."""

    __tablename__ = "admin_users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(255), nullable=False)
    password_hash = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
