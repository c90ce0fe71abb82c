from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from staff_auth.core.database import Base


class AuthSession(Base):
    __tablename__ = "auth_sessions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("staff_users.id", ondelete="CASCADE"), nullable=False, index=True)
    tenant_id = Column(Integer, nullable=False, index=True)

    # SHA-256 do token opaco; o valor em claro só existe no cookie.
    token_hash = Column(String(64), nullable=False, unique=True, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False, index=True)
    last_activity_at = Column(DateTime, nullable=False, default=datetime.utcnow)
