"""Auth API router: register, verify, login, refresh, logout, passwords, me."""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from pds_api.core.config import settings
from pds_api.core.dependencies import get_auth_service
from pds_api.core.rate_limiter import limiter
from pds_api.core.security import get_current_user
from pds_api.db.session import get_db
from pds_api.models.user import User
from pds_api.schemas.schemas import (
    ChangePasswordRequest, EmailRequest, LoginRequest, MessageResponse,
    ProfileUpdateRequest, RefreshRequest, RegisterRequest, ResetPasswordRequest,
    TokenRequest, UserOut,
)
from pds_api.services.audit_service import request_origin
from pds_api.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])

# Endpoints that send mail are plain defs so the SMTP round trip runs in the threadpool


def _user_payload(user: User) -> dict:
    return UserOut.model_validate(user).model_dump(mode="json")


def _set_refresh_cookie(response: Response, token: str, max_age: int) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=token,
        max_age=max_age,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


def _presented_refresh_token(request: Request, body: Optional[RefreshRequest]) -> Optional[str]:
    return request.cookies.get(settings.REFRESH_COOKIE_NAME) or (body.refresh_token if body else None)


@router.post("/register", status_code=201)
def register(
    body: RegisterRequest,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """Create an account and send the verification email."""
    result = auth.register(db, body.model_dump(exclude={"confirm_password"}))
    data = {"user": _user_payload(result["user"]), "email_sent": result["email_sent"]}
    if "verification_token" in result:
        data["verification_token"] = result["verification_token"]
    return {
        "success": True,
        "message": "Registration successful. Please check your email to verify your account.",
        "data": data,
    }


@router.post("/verify-email")
def verify_email(
    body: TokenRequest,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    user = auth.verify_email(db, body.token)
    return {
        "success": True,
        "message": "Email verified successfully. You can now log in.",
        "data": {"user": _user_payload(user)},
    }


@router.post("/resend-verification")
def resend_verification(
    body: EmailRequest,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    result = auth.resend_verification(db, body.email)
    payload = {"success": True, "message": result["message"]}
    if "verification_token" in result:
        payload["data"] = {"verification_token": result["verification_token"]}
    return payload


@router.post("/login")
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """Authenticate; the refresh token is only ever sent as an http-only cookie."""
    result = auth.login(
        db, body.email, body.password,
        remember_me=body.remember_me,
        device_info=request.headers.get("user-agent"),
        origin=request_origin(request),
    )
    _set_refresh_cookie(response, result["refresh_token"], result["refresh_max_age"])
    user = result["user"]
    return {
        "success": True,
        "message": "Login successful",
        "data": {
            "user_id": user.id,
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "role": user.role_name,
            "access_token": result["access_token"],
            "token_type": result["token_type"],
        },
    }


@router.post("/refresh")
async def refresh(
    request: Request,
    body: Optional[RefreshRequest] = None,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """Mint a new access token from the refresh cookie (or body)."""
    result = auth.refresh_access_token(db, _presented_refresh_token(request, body))
    return {"success": True, "data": result}


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    body: Optional[RefreshRequest] = None,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    auth.logout(db, _presented_refresh_token(request, body), origin=request_origin(request))
    response.delete_cookie(settings.REFRESH_COOKIE_NAME)
    return MessageResponse(message="Logged out successfully")


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def forgot_password(
    request: Request,
    body: EmailRequest,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    return MessageResponse(message=auth.forgot_password(db, body.email))


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    auth.reset_password(db, body.token, body.new_password, origin=request_origin(request))
    return MessageResponse(message="Password has been reset. Please log in with your new password.")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
):
    auth.change_password(
        db, user, body.current_password, body.new_password,
        current_refresh_token=(
            request.cookies.get(settings.REFRESH_COOKIE_NAME) or body.refresh_token
        ),
        origin=request_origin(request),
    )
    return MessageResponse(message="Password changed successfully")


@router.get("/me")
async def get_me(user: User = Depends(get_current_user)):
    """Current user profile (never includes the password)."""
    return {"success": True, "data": _user_payload(user)}


@router.put("/me")
async def update_me(
    body: ProfileUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
):
    updated = auth.update_profile(db, user, body.model_dump(exclude_unset=True))
    return {"success": True, "message": "Profile updated", "data": _user_payload(updated)}
