"""
FastAPI dependencies protecting the admin routes.
"""

from typing import Optional

from fastapi import Depends, Header, Request
from loguru import logger

from apikeys.errors import UnauthorizedError
from auth.auth_manager import AuthManager


def get_auth_manager(request: Request) -> AuthManager:
    """The AuthManager the app was built with"""
    return request.app.state.auth_manager


def parse_bearer(authorization: Optional[str]) -> Optional[str]:
    """
    Extract the token from an Authorization header.

    The header must be exactly "Bearer <token>"; anything else gives None.
    """
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


async def verify_admin_token(
    authorization: Optional[str] = Header(None),
    auth_manager: AuthManager = Depends(get_auth_manager),
) -> dict:
    """
    Dependency: verify the admin session token and return the admin identity.
    """
    if not authorization:
        raise UnauthorizedError()

    token = parse_bearer(authorization)
    if token is None:
        logger.warning("[AUTH] Malformed Authorization header")
        raise UnauthorizedError("Invalid token format")

    payload = auth_manager.verify_token(token)
    if not payload:
        raise UnauthorizedError("Invalid or expired token")

    try:
        admin_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        logger.warning("[AUTH] Token subject is not an admin id")
        raise UnauthorizedError("Invalid or expired token")

    return {"id": admin_id, "email": payload.get("email")}
