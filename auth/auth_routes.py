"""
FastAPI admin authentication endpoints.
"""

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel, EmailStr, Field

from apikeys.config import ServiceConfig
from auth.auth_manager import AuthManager
from auth.dependencies import get_auth_manager

router = APIRouter(prefix="/admin", tags=["admin-auth"])

# ==================== REQUEST MODELS ====================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=ServiceConfig.min_password_length)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

# ==================== REGISTER & LOGIN ====================

@router.post("/register")
def register(data: RegisterRequest, auth_manager: AuthManager = Depends(get_auth_manager)):
    """Register a new admin. Duplicate emails are rejected with 400."""
    admin_id = auth_manager.register(email=data.email, password=data.password)
    logger.info(f"Admin registered: {data.email}")
    return {
        "success": True,
        "message": "Admin registered",
        "adminId": admin_id,
    }


@router.post("/login")
def login(data: LoginRequest, auth_manager: AuthManager = Depends(get_auth_manager)):
    """Login admin and return a session token (8 hours by default)."""
    token = auth_manager.login(email=data.email, password=data.password)
    return {
        "success": True,
        "message": "Login successful",
        "token": token,
    }
