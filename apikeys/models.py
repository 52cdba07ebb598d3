"""
Database models for API keys and the accounts that hold them.

Models:
- ApiKey: key string, expiry and liveness flag
- Account: end user who owns exactly one key (table "users")

Admin accounts live in auth/models.py on the same Base.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, desc
from sqlalchemy.orm import declarative_base, relationship

from apikeys.expiry import utcnow

Base = declarative_base()


class ApiKey(Base):
    """
    An issued API key.

    Attributes:
        id: Surrogate key
        api_key: The key string presented by clients (unique)
        out_of_date: valid_until; fixed at creation, never extended
        is_active: Liveness flag; starts True and is only ever cleared
        created_at: Creation instant
    """

    __tablename__ = "api_keys"

    id = Column(Integer, primary_key=True, autoincrement=True)

    api_key = Column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        doc="Opaque key string"
    )

    out_of_date = Column(
        DateTime,
        nullable=False,
        doc="Key is valid until this instant"
    )

    is_active = Column(
        Boolean,
        default=True,
        nullable=False,
        index=True,
        doc="Cleared by the expiry/inactivity sweep or account deletion"
    )

    created_at = Column(DateTime, default=utcnow, nullable=False)

    account = relationship("Account", back_populates="api_key", uselist=False)

    def __repr__(self):
        return f"<ApiKey(id={self.id}, is_active={self.is_active}, out_of_date={self.out_of_date})>"

    @property
    def status(self) -> str:
        return "active" if self.is_active else "inactive"


class Account(Base):
    """End user. Exists only as the holder of one API key."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    # Not unique: the same person may register more than once
    email = Column(String(255), nullable=False, index=True)

    api_key_id = Column(
        Integer,
        ForeignKey("api_keys.id"),
        nullable=True,
        unique=True,
        doc="Owned key; NULL only if the key row is gone"
    )

    last_login = Column(
        DateTime,
        nullable=True,
        doc="Last successful key validation (or creation)"
    )

    created_at = Column(DateTime, default=utcnow, nullable=False)

    api_key = relationship("ApiKey", back_populates="account")

    __table_args__ = (
        # Dashboard ordering
        Index("idx_users_created", desc(created_at)),
        # Inactivity sweep
        Index("idx_users_last_login", last_login),
    )

    def __repr__(self):
        return f"<Account(id={self.id}, email='{self.email}', api_key_id={self.api_key_id})>"

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "email": self.email,
        }
