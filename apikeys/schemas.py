"""
Pydantic schemas for the key API.

These schemas handle:
1. Request validation (what clients send)
2. Results returned by KeyLifecycleService
3. Response serialization (what the API returns)
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_serializer, field_validator

from apikeys.expiry import to_utc_iso


class KeyStatus(str, Enum):
    """Dashboard status label for an account's key."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    NO_KEY = "no_key"   # Account has no key row


# ============ Request Schemas ============

class CreateUserRequest(BaseModel):
    """
    Register an end user and issue their API key.

    Example:
        {"firstName": "Ann", "lastName": "Lee", "email": "ann@x.com"}
    """
    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(..., alias="firstName", max_length=100)
    last_name: str = Field(..., alias="lastName", max_length=100)
    email: EmailStr

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_and_require(cls, v):
        if isinstance(v, str):
            v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v


class CheckApiRequest(BaseModel):
    """Missing or blank apiKey is reported by the route as 400, not as a schema error."""
    api_key: Optional[str] = Field(None, alias="apiKey")

    model_config = ConfigDict(populate_by_name=True)


# ============ Service Results ============

class IssuedKey(BaseModel):
    """Result of issuing a key for a new account."""
    user_id: int
    api_key: str
    out_of_date: datetime

    def to_response(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "apiKey": self.api_key,
            "out_of_date": to_utc_iso(self.out_of_date),
        }


class AccountSummary(BaseModel):
    id: int
    first_name: str
    email: str


class KeyVerdict(BaseModel):
    """
    Outcome of validating a presented key.

    An invalid verdict carries no other data, so a key that never existed and
    a key that is inactive are indistinguishable.
    """
    valid: bool
    id: Optional[int] = None
    api_key: Optional[str] = None
    out_of_date: Optional[datetime] = None
    status: Optional[KeyStatus] = None
    user: Optional[AccountSummary] = None

    @classmethod
    def invalid(cls) -> "KeyVerdict":
        return cls(valid=False)

    def to_response(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "apiKey": self.api_key,
            "out_of_date": to_utc_iso(self.out_of_date),
            "status": self.status.value if self.status else None,
            "user": self.user.model_dump() if self.user else None,
        }


class AccountView(BaseModel):
    """One dashboard row: an account left-joined with its key."""
    user_id: int
    first_name: str
    last_name: str
    email: str
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    api_key: Optional[str] = None
    out_of_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    status: KeyStatus

    @field_serializer("last_login", "created_at", "out_of_date")
    def serialize_instant(self, value: Optional[datetime]) -> Optional[str]:
        return to_utc_iso(value)

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
