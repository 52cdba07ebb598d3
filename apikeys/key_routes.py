"""
API key endpoints.

Exposed endpoints:
- POST /create-user         - Register an end user and issue their key
- POST /checkapi            - Validate a key (records usage)
- GET /admin/dashboard      - Sweep, then list every account with its key (admin)
- DELETE /admin/user/{id}   - Delete an account (admin)
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from loguru import logger

from apikeys.errors import NotFoundError
from apikeys.schemas import CheckApiRequest, CreateUserRequest
from apikeys.service import KeyLifecycleService
from auth.dependencies import verify_admin_token

router = APIRouter(tags=["api-keys"])

INVALID_KEY_MESSAGE = "API key is invalid or inactive"


def get_key_service(request: Request) -> KeyLifecycleService:
    """The KeyLifecycleService the app was built with"""
    return request.app.state.key_service


@router.post("/create-user")
def create_user(data: CreateUserRequest, service: KeyLifecycleService = Depends(get_key_service)):
    """
    Register a user and generate their API key.

    Example request:
        {"firstName": "Ann", "lastName": "Lee", "email": "ann@x.com"}

    Returns:
        userId, apiKey and out_of_date (now + key TTL)
    """
    issued = service.issue_for(
        first_name=data.first_name,
        last_name=data.last_name,
        email=data.email,
    )
    return {
        "success": True,
        "message": "User and API key created",
        "data": issued.to_response(),
    }


@router.post("/checkapi")
def check_api_key(data: CheckApiRequest, service: KeyLifecycleService = Depends(get_key_service)):
    """
    Validate an API key.

    Unknown and inactive keys get the same 401 response.
    """
    if not data.api_key or not data.api_key.strip():
        return JSONResponse(
            status_code=400,
            content={"success": False, "valid": False, "message": "API key must not be empty"},
        )

    verdict = service.validate(data.api_key)
    if not verdict.valid:
        return JSONResponse(
            status_code=401,
            content={"success": False, "valid": False, "message": INVALID_KEY_MESSAGE},
        )

    return {
        "success": True,
        "valid": True,
        "message": "API key valid",
        "data": verdict.to_response(),
    }


@router.get("/admin/dashboard")
def dashboard(
    admin: dict = Depends(verify_admin_token),
    service: KeyLifecycleService = Depends(get_key_service),
):
    """
    List every account with its key and status.

    Expired keys and keys of accounts idle for longer than the inactivity
    window are deactivated before the list is read.
    """
    views = service.list_with_maintenance()
    logger.info(f"[DASHBOARD] Admin {admin['id']} listed {len(views)} account(s)")
    return {
        "success": True,
        "total": len(views),
        "users": [view.to_response() for view in views],
    }


@router.delete("/admin/user/{user_id}")
def delete_user(
    user_id: int,
    admin: dict = Depends(verify_admin_token),
    service: KeyLifecycleService = Depends(get_key_service),
):
    """Delete an account. Its key is deactivated."""
    if not service.delete_account(user_id):
        raise NotFoundError("User not found")
    logger.info(f"[DELETE] Admin {admin['id']} deleted account {user_id}")
    return {"success": True, "message": "User deleted"}
