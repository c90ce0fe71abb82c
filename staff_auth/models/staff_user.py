from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from staff_auth.core.database import Base

STAFF_ROLES = ("admin", "owner", "waiter", "chef")


class StaffUser(Base):
    __tablename__ = "staff_users"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    # Sempre gravado em minúsculas; unicidade case-insensitive vem daí.
    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    language = Column(String, nullable=False, default="en")
    password_hash = Column(String, nullable=False)
    role = Column(String, nullable=False, default="waiter")  # admin | owner | waiter | chef
    is_active = Column(Boolean, nullable=False, default=True)

    failed_attempt_count = Column(Integer, nullable=False, default=0)
    locked_until = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    tenant = relationship("Tenant", lazy="joined")
