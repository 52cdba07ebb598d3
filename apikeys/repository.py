"""
Data access layer for keys and accounts.

The repository pattern isolates database operations from business logic.
Repositories never commit; the caller's session_scope owns the transaction.

Repository methods:
- ApiKey: create, get_by_id, find_active_by_string, deactivate,
  deactivate_expired, deactivate_idle
- Account: create, get_by_id, list_with_keys, touch_last_login, delete
"""

from datetime import datetime
from typing import List, Optional, Tuple

from loguru import logger
from sqlalchemy import and_, desc, or_, select
from sqlalchemy.orm import Session

from apikeys.models import Account, ApiKey

# Largest id a 64-bit INTEGER primary key can hold
MAX_ROW_ID = 2**63 - 1


def _valid_row_id(row_id: int) -> bool:
    return 0 < row_id <= MAX_ROW_ID


class ApiKeyRepository:
    """Repository for ApiKey database operations."""

    @staticmethod
    def create(db: Session, api_key: str, out_of_date: datetime, created_at: datetime) -> ApiKey:
        """Insert an active key and flush so its id is available."""
        key = ApiKey(
            api_key=api_key,
            out_of_date=out_of_date,
            is_active=True,
            created_at=created_at,
        )
        db.add(key)
        db.flush()
        return key

    @staticmethod
    def get_by_id(db: Session, key_id: int) -> Optional[ApiKey]:
        if not _valid_row_id(key_id):
            return None
        return db.get(ApiKey, key_id)

    @staticmethod
    def find_active_by_string(db: Session, api_key: str) -> Optional[Tuple[ApiKey, Optional[Account]]]:
        """
        Look up a live key by exact string, together with its owner.

        Inactive keys are not returned: to the caller they do not exist.
        """
        row = (
            db.query(ApiKey, Account)
            .outerjoin(Account, Account.api_key_id == ApiKey.id)
            .filter(ApiKey.api_key == api_key, ApiKey.is_active == True)  # noqa: E712
            .first()
        )
        if row is None:
            return None
        return row[0], row[1]

    @staticmethod
    def deactivate(db: Session, key_id: int) -> bool:
        """
        Clear the liveness flag. Idempotent.

        Returns:
            True if the key exists (whether or not it was already inactive)
        """
        if not _valid_row_id(key_id):
            return False
        key = db.get(ApiKey, key_id)
        if key is None:
            return False
        if key.is_active:
            key.is_active = False
            db.flush()
            logger.debug(f"[KEY] Deactivated key {key_id}")
        return True

    @staticmethod
    def deactivate_expired(db: Session, now: datetime) -> int:
        """Expiry rule: active keys with out_of_date < now become inactive."""
        return (
            db.query(ApiKey)
            .filter(ApiKey.is_active == True, ApiKey.out_of_date < now)  # noqa: E712
            .update({ApiKey.is_active: False}, synchronize_session=False)
        )

    @staticmethod
    def deactivate_idle(db: Session, cutoff: datetime) -> int:
        """
        Inactivity rule: active keys whose owner has no last_login, or one
        older than `cutoff`, become inactive. Keys without an owner are left alone.
        """
        idle_key_ids = select(Account.api_key_id).where(
            and_(
                Account.api_key_id.isnot(None),
                or_(Account.last_login.is_(None), Account.last_login < cutoff),
            )
        )
        return (
            db.query(ApiKey)
            .filter(ApiKey.is_active == True, ApiKey.id.in_(idle_key_ids))  # noqa: E712
            .update({ApiKey.is_active: False}, synchronize_session=False)
        )


class AccountRepository:
    """Repository for Account database operations."""

    @staticmethod
    def create(
        db: Session,
        first_name: str,
        last_name: str,
        email: str,
        api_key_id: int,
        created_at: datetime,
    ) -> Account:
        """Insert an account that owns `api_key_id`; last_login starts at creation."""
        account = Account(
            first_name=first_name,
            last_name=last_name,
            email=email,
            api_key_id=api_key_id,
            last_login=created_at,
            created_at=created_at,
        )
        db.add(account)
        db.flush()
        return account

    @staticmethod
    def get_by_id(db: Session, account_id: int) -> Optional[Account]:
        if not _valid_row_id(account_id):
            return None
        return db.get(Account, account_id)

    @staticmethod
    def list_with_keys(db: Session) -> List[Tuple[Account, Optional[ApiKey]]]:
        """All accounts left-joined with their key, newest account first."""
        rows = (
            db.query(Account, ApiKey)
            .outerjoin(ApiKey, Account.api_key_id == ApiKey.id)
            .order_by(desc(Account.created_at), desc(Account.id))
            .all()
        )
        return [(account, key) for account, key in rows]

    @staticmethod
    def touch_last_login(db: Session, account: Account, now: datetime) -> None:
        account.last_login = now
        db.flush()

    @staticmethod
    def delete(db: Session, account_id: int) -> Optional[Account]:
        """
        Hard delete an account.

        Returns:
            The deleted Account (detached), or None if not found
        """
        if not _valid_row_id(account_id):
            return None
        account = db.get(Account, account_id)
        if account is None:
            return None
        db.delete(account)
        db.flush()
        return account
