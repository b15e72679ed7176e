from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from ....application.services.account_service import AccountService
from ....core.dependencies import get_account_service
from ....domain.errors import MarketplaceError
from ....domain.models import User
from ...api.dependencies import get_current_user
from ...api.errors import to_http_exception
from ...api.schemas.auth import LoginPayload, RegisterPayload, ResendOtpPayload, VerifyEmailPayload
from ...api.serializers import serialize_profile

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterPayload,
    service: AccountService = Depends(get_account_service),
) -> Dict[str, Any]:
    try:
        user = service.register(payload.as_fields())
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return {
        "message": "Registration successful. Please check your email for the verification code.",
        "userId": user.id,
        "email": user.email,
        "otpSent": True,
    }


@router.post("/verify-email")
def verify_email(
    payload: VerifyEmailPayload,
    service: AccountService = Depends(get_account_service),
) -> Dict[str, Any]:
    try:
        user, token = service.verify_email(payload.as_fields())
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return {"message": "Email verified successfully", "token": token, "user": serialize_profile(user)}


@router.post("/resend-otp")
def resend_otp(
    payload: ResendOtpPayload,
    service: AccountService = Depends(get_account_service),
) -> Dict[str, Any]:
    try:
        service.resend_otp(payload.as_fields())
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return {"message": "A new verification code has been sent to your email", "otpSent": True}


@router.post("/login")
def login(
    payload: LoginPayload,
    service: AccountService = Depends(get_account_service),
) -> Dict[str, Any]:
    try:
        user, token = service.login(payload.as_fields())
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return {"message": "Login successful", "token": token, "user": serialize_profile(user)}


@router.get("/profile")
def profile(
    current_user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> Dict[str, Any]:
    try:
        user = service.get_profile(current_user.id)
    except MarketplaceError as exc:
        raise to_http_exception(exc) from exc
    return serialize_profile(user)
