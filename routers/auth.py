from typing import Annotated
from fastapi import APIRouter, Body, Request
from starlette import status
from schemas.auth_schemas import (AuthResponse, DeviceInfo, LoginRequest, LogoutRequest,
                                  RefreshTokenRequest, ValidateTokenResponse)
from utils.deps import (session_manager_dependency, user_dependency, admin_dependency,
                        cleanup_worker_dependency)
from middleware.rate_limiter import limiter, LOGIN_RATE_LIMIT
from utils.logger import get_logger

# Setup logger
logger = get_logger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(LOGIN_RATE_LIMIT)
def login(request: Request, body: LoginRequest, manager: session_manager_dependency):
    """
    Log in and receive an access/refresh pair.

    At the device limit this fails with 409 and lists the active devices;
    repeat the call with `device_id_to_revoke` to sign one of them out.
    """
    return manager.login(body, user_agent=request.headers.get("User-Agent"))


@router.post("/refresh", response_model=AuthResponse)
@limiter.limit("10/minute")
def refresh_token(request: Request, body: RefreshTokenRequest, manager: session_manager_dependency):
    """
    Exchange a refresh token for a new pair. The old refresh token stops working.
    """
    response = manager.refresh(body.refresh_token)

    logger.info("Access token refreshed", extra={"user_id": response.user.id})

    return response


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
def logout(request: Request, body: LogoutRequest, user: user_dependency, manager: session_manager_dependency):
    """
    Revoke the given refresh token, or every token with `logout_all_devices`.
    """
    manager.logout(body, current_user_id=user["user_id"])


@router.post("/validate", response_model=ValidateTokenResponse)
@limiter.limit("30/minute")
def validate_token(request: Request, token: Annotated[str, Body()], manager: session_manager_dependency):
    return {"valid": manager.validate(token)}


@router.get("/devices", response_model=list[DeviceInfo])
@limiter.limit("30/minute")
def list_devices(request: Request, user: user_dependency, manager: session_manager_dependency):
    return manager.active_devices(user["user_id"])


@router.delete("/devices/{device_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
def revoke_device(request: Request, device_id: str, user: user_dependency, manager: session_manager_dependency):
    manager.revoke_device(user["user_id"], device_id)

    logger.info("Device signed out by user", extra={"user_id": user["user_id"], "device_id": device_id})


@router.post("/revoke/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
def revoke_user_tokens(request: Request, user_id: int, admin: admin_dependency, manager: session_manager_dependency):
    """
    Force logout of a user everywhere (admin only).
    """
    logger.info(
        "Admin revoking all tokens for user",
        extra={"admin_id": admin["user_id"], "user_id": user_id}
    )
    manager.revoke_user_tokens(user_id, f"admin:{admin['email']} ({admin['user_id']})")


@router.post("/cleanup", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
async def cleanup_expired_tokens(request: Request, admin: admin_dependency, worker: cleanup_worker_dependency):
    """
    Delete expired tokens now instead of waiting for the background sweep (admin only).
    Skipped when a sweep is already running.
    """
    deleted = await worker.run_once()

    logger.info(
        "Token cleanup triggered by admin",
        extra={"admin_id": admin["user_id"], "deleted": deleted, "skipped": deleted is None}
    )
