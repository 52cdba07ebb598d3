"""
SQLAlchemy model for administrator accounts.
Shares the declarative Base with the API key tables so one engine creates all of them.
"""

from sqlalchemy import Column, DateTime, Integer, String

from apikeys.expiry import utcnow
from apikeys.models import Base


class AdminAccount(Base):
    """Administrators authenticate with email + password and receive session tokens"""
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<AdminAccount(id={self.id}, email='{self.email}')>"
