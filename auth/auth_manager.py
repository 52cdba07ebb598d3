"""
Admin authentication manager with bcrypt hashing and JWT session tokens
"""

from datetime import datetime, timedelta
from typing import Callable, Optional

import bcrypt
import jwt
from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from apikeys.config import ServiceConfig
from apikeys.database import DatabaseManager
from apikeys.errors import ConflictError, StoreError, UnauthorizedError, ValidationError
from apikeys.expiry import utcnow
from auth.models import AdminAccount

SESSION_TOKEN_TYPE = "admin_session"
INVALID_CREDENTIALS = "Invalid email or password"


class AuthManager:
    """Registers admins, checks their credentials and issues session tokens"""

    def __init__(self, db: DatabaseManager, config: ServiceConfig,
                 clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.config = config
        self.clock = clock
        self.jwt_secret = config.jwt_secret
        self.jwt_algorithm = config.jwt_algorithm
        self.session_expiry = timedelta(hours=config.session_ttl_hours)
        logger.info("AuthManager initialized")

    # ==================== PASSWORD HASHING ====================

    def _hash_password(self, password: str) -> str:
        """Hash password using bcrypt"""
        # bcrypt only looks at the first 72 bytes
        password_bytes = password.encode('utf-8')[:72]
        salt = bcrypt.gensalt(rounds=self.config.bcrypt_rounds)
        return bcrypt.hashpw(password_bytes, salt).decode('utf-8')

    def _verify_password(self, password: str, password_hash: str) -> bool:
        """Verify password against hash"""
        if not password_hash:
            logger.error("[VERIFY] Password hash is None or empty")
            return False
        try:
            return bcrypt.checkpw(password.encode('utf-8')[:72], password_hash.encode('utf-8'))
        except ValueError as e:
            logger.error(f"[VERIFY] Malformed password hash: {e}")
            return False

    # ==================== REGISTRATION ====================

    def register(self, email: str, password: str) -> int:
        """
        Register a new admin.

        Returns:
            The new admin id

        Raises:
            ConflictError: email already registered
            ValidationError: password too short
        """
        logger.info(f"[REGISTER] Starting admin registration for email: {email}")

        if len(password) < self.config.min_password_length:
            logger.warning(f"[REGISTER] Password too short for email: {email}")
            raise ValidationError(
                f"Password must be at least {self.config.min_password_length} characters"
            )

        try:
            with self.db.session_scope() as session:
                existing = session.query(AdminAccount).filter_by(email=email).first()
                if existing:
                    logger.warning(f"[REGISTER] Email already exists: {email}")
                    raise ConflictError("Admin email already registered")

                admin = AdminAccount(
                    email=email,
                    password_hash=self._hash_password(password),
                    created_at=self.clock(),
                )
                session.add(admin)
                session.flush()
                admin_id = admin.id
        except IntegrityError as e:
            # Lost a race with a concurrent registration for the same email
            logger.warning(f"[REGISTER] Unique constraint hit for: {email}")
            raise ConflictError("Admin email already registered") from e
        except SQLAlchemyError as e:
            logger.error(f"[REGISTER] Registration error: {type(e).__name__}: {e}")
            raise StoreError("Admin registration failed") from e

        logger.info(f"[REGISTER] Admin registered successfully: {email}")
        return admin_id

    # ==================== LOGIN ====================

    def login(self, email: str, password: str) -> str:
        """
        Check admin credentials and return a session token.

        Unknown email and wrong password raise the same UnauthorizedError;
        only the log lines differ.
        """
        logger.info(f"[LOGIN] Starting login for email: {email}")
        try:
            with self.db.session_scope() as session:
                admin = session.query(AdminAccount).filter_by(email=email).first()
                if admin is None:
                    logger.warning(f"[LOGIN] Admin not found: {email}")
                    raise UnauthorizedError(INVALID_CREDENTIALS)

                if not self._verify_password(password, admin.password_hash):
                    logger.warning(f"[LOGIN] Password verification failed for: {email}")
                    raise UnauthorizedError(INVALID_CREDENTIALS)

                admin_id, admin_email = admin.id, admin.email
        except SQLAlchemyError as e:
            logger.error(f"[LOGIN] Login error: {type(e).__name__}: {e}")
            raise StoreError("Login failed") from e

        token = self.create_session_token(admin_id, admin_email)
        logger.info(f"[LOGIN] Admin logged in successfully: {email}")
        return token

    # ==================== SESSION TOKENS ====================

    def create_session_token(self, admin_id: int, email: str,
                             now: Optional[datetime] = None) -> str:
        """
        Signed token carrying admin id and email, valid for session_ttl_hours.

        Stamped from the wall clock, not self.clock: PyJWT checks iat and exp
        against real time.
        """
        now = now if now is not None else utcnow()
        return jwt.encode(
            {
                "sub": str(admin_id),
                "email": email,
                "type": SESSION_TOKEN_TYPE,
                "iat": now,
                "exp": now + self.session_expiry,
            },
            self.jwt_secret,
            algorithm=self.jwt_algorithm,
        )

    def verify_token(self, token: str) -> Optional[dict]:
        """Verify JWT token and return payload"""
        logger.debug("[TOKEN_VERIFY] Verifying JWT token")
        try:
            payload = jwt.decode(token, self.jwt_secret, algorithms=[self.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("[TOKEN_VERIFY] Token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"[TOKEN_VERIFY] Invalid token: {e}")
            return None

        if payload.get("type") != SESSION_TOKEN_TYPE:
            logger.warning(f"[TOKEN_VERIFY] Invalid token type: {payload.get('type')}")
            return None

        logger.debug(f"[TOKEN_VERIFY] Token verified successfully for admin: {payload.get('sub')}")
        return payload
