"""
Business logic for the API key lifecycle.

The service layer sits between the HTTP routes and the repositories.
It handles:
- Issuing an account together with its key, atomically
- Validating presented keys and recording usage
- The maintenance sweep and the admin listing built on top of it
- Account deletion

Every public method runs in its own scoped transaction and takes the current
instant from the injected clock unless `now` is passed explicitly.
"""

from datetime import datetime
from typing import Callable, List, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from apikeys.config import ServiceConfig
from apikeys.database import DatabaseManager
from apikeys.errors import StoreError
from apikeys.expiry import compute_expiry, utcnow
from apikeys.generator import generate_api_key, mask_key
from apikeys.maintenance import MaintenanceReport, apply_deactivation_rules
from apikeys.models import Account, ApiKey
from apikeys.repository import AccountRepository, ApiKeyRepository
from apikeys.schemas import AccountSummary, AccountView, IssuedKey, KeyStatus, KeyVerdict

# A key string collision surfaces as IntegrityError; retry with a fresh key
MAX_ISSUE_ATTEMPTS = 3


class KeyLifecycleService:
    """Issue, validate, sweep and list API keys."""

    def __init__(
        self,
        db: DatabaseManager,
        config: ServiceConfig,
        clock: Callable[[], datetime] = utcnow,
        key_factory: Callable[..., str] = generate_api_key,
    ):
        self.db = db
        self.config = config
        self.clock = clock
        self.key_factory = key_factory

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self.clock()

    # ==================== ISSUE ====================

    def issue_for(
        self,
        first_name: str,
        last_name: str,
        email: str,
        now: Optional[datetime] = None,
    ) -> IssuedKey:
        """
        Create an account and its API key in one transaction.

        The key row is inserted first so the account can reference it. If
        anything fails before commit, both inserts are rolled back.

        Returns:
            IssuedKey with the new account id, key string and valid_until

        Raises:
            StoreError: if the store rejects the writes
        """
        now = self._now(now)
        out_of_date = compute_expiry(now, self.config.key_ttl_days)

        for attempt in range(1, MAX_ISSUE_ATTEMPTS + 1):
            api_key = self.key_factory(prefix=self.config.key_prefix, now=now)
            try:
                with self.db.session_scope() as session:
                    key = ApiKeyRepository.create(session, api_key, out_of_date, created_at=now)
                    account = AccountRepository.create(
                        session,
                        first_name=first_name,
                        last_name=last_name,
                        email=email,
                        api_key_id=key.id,
                        created_at=now,
                    )
                    account_id = account.id
            except IntegrityError as e:
                logger.warning(f"[ISSUE] Integrity error on attempt {attempt}: {type(e).__name__}")
                if attempt == MAX_ISSUE_ATTEMPTS:
                    raise StoreError("Could not create user and API key") from e
                continue
            except SQLAlchemyError as e:
                logger.error(f"[ISSUE] Store error: {type(e).__name__}: {e}")
                raise StoreError("Could not create user and API key") from e

            logger.info(f"[ISSUE] Issued key {mask_key(api_key)} for account {account_id}")
            return IssuedKey(user_id=account_id, api_key=api_key, out_of_date=out_of_date)

    # ==================== VALIDATE ====================

    def validate(self, api_key: str, now: Optional[datetime] = None) -> KeyVerdict:
        """
        Validate a presented key and record usage.

        A key that does not exist and a key that is inactive produce the same
        invalid verdict. A valid key that has an owner refreshes the owner's
        last_login; this path never writes the liveness flag.
        """
        now = self._now(now)
        if not api_key:
            return KeyVerdict.invalid()

        try:
            with self.db.session_scope() as session:
                found = ApiKeyRepository.find_active_by_string(session, api_key)
                if found is None:
                    logger.info(f"[VALIDATE] Rejected key {mask_key(api_key)}")
                    return KeyVerdict.invalid()

                key, account = found
                summary = None
                if account is not None:
                    AccountRepository.touch_last_login(session, account, now)
                    summary = AccountSummary(**account.to_summary())
                else:
                    logger.debug(f"[VALIDATE] Key {key.id} has no owning account")

                verdict = KeyVerdict(
                    valid=True,
                    id=key.id,
                    api_key=key.api_key,
                    out_of_date=key.out_of_date,
                    status=KeyStatus(key.status),
                    user=summary,
                )
        except SQLAlchemyError as e:
            logger.error(f"[VALIDATE] Store error: {type(e).__name__}: {e}")
            raise StoreError() from e

        logger.debug(f"[VALIDATE] Accepted key {mask_key(api_key)}")
        return verdict

    # ==================== DEACTIVATE / SWEEP ====================

    def deactivate_key(self, key_id: int) -> bool:
        """Clear a key's liveness flag. Idempotent; False if the key does not exist."""
        try:
            with self.db.session_scope() as session:
                return ApiKeyRepository.deactivate(session, key_id)
        except SQLAlchemyError as e:
            logger.error(f"[KEY] Store error deactivating {key_id}: {e}")
            raise StoreError() from e

    def apply_maintenance(self, now: Optional[datetime] = None) -> MaintenanceReport:
        """Run the expiry and inactivity rules once."""
        now = self._now(now)
        try:
            with self.db.session_scope() as session:
                return apply_deactivation_rules(session, now, self.config.inactivity_days)
        except SQLAlchemyError as e:
            logger.error(f"[SWEEP] Store error: {type(e).__name__}: {e}")
            raise StoreError() from e

    # ==================== ADMIN VIEW ====================

    def list_accounts_with_keys(self) -> List[AccountView]:
        """Every account with its key, newest account first. Read only."""
        try:
            with self.db.session_scope() as session:
                rows = AccountRepository.list_with_keys(session)
                return [self._to_view(account, key) for account, key in rows]
        except SQLAlchemyError as e:
            logger.error(f"[DASHBOARD] Store error: {type(e).__name__}: {e}")
            raise StoreError() from e

    def list_with_maintenance(self, now: Optional[datetime] = None) -> List[AccountView]:
        """Sweep first, then list. The sweep is a precondition of the read."""
        self.apply_maintenance(now)
        return self.list_accounts_with_keys()

    def get_account(self, account_id: int) -> Optional[AccountView]:
        try:
            with self.db.session_scope() as session:
                account = AccountRepository.get_by_id(session, account_id)
                if account is None:
                    return None
                return self._to_view(account, account.api_key)
        except SQLAlchemyError as e:
            logger.error(f"[ACCOUNT] Store error: {type(e).__name__}: {e}")
            raise StoreError() from e

    def delete_account(self, account_id: int) -> bool:
        """
        Delete an account.

        Its key is deactivated in the same transaction and the key row kept,
        so no live key is left without an owner.

        Returns:
            True if deleted, False if no such account
        """
        try:
            with self.db.session_scope() as session:
                account = AccountRepository.delete(session, account_id)
                if account is None:
                    logger.warning(f"[DELETE] Account not found: {account_id}")
                    return False
                if account.api_key_id is not None:
                    ApiKeyRepository.deactivate(session, account.api_key_id)
        except SQLAlchemyError as e:
            logger.error(f"[DELETE] Store error: {type(e).__name__}: {e}")
            raise StoreError() from e

        logger.info(f"[DELETE] Deleted account {account_id}")
        return True

    @staticmethod
    def _to_view(account: Account, key: Optional[ApiKey]) -> AccountView:
        if key is None:
            return AccountView(
                user_id=account.id,
                first_name=account.first_name,
                last_name=account.last_name,
                email=account.email,
                last_login=account.last_login,
                created_at=account.created_at,
                status=KeyStatus.NO_KEY,
            )
        return AccountView(
            user_id=account.id,
            first_name=account.first_name,
            last_name=account.last_name,
            email=account.email,
            last_login=account.last_login,
            created_at=account.created_at,
            api_key=key.api_key,
            out_of_date=key.out_of_date,
            is_active=bool(key.is_active),
            status=KeyStatus(key.status),
        )
