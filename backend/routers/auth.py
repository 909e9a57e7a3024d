import logging
import os
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from auth import (
    ACCESS_COOKIE_NAME,
    REFRESH_COOKIE_NAME,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    get_password_hash,
    password_problems,
    verify_password,
)
from database import get_db
from email_workflows import (
    clear_password_reset,
    issue_password_reset,
    issue_verification,
    reset_password_with_otp,
    verify_email_otp,
)
from models import User
from responses import ApiError, api_response
from schemas import (
    EmailRequest,
    EmailVerificationRequest,
    LoginResponse,
    RefreshTokenRequest,
    ResetPasswordRequest,
    TokenPairResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)
from security import require_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

IS_PRODUCTION = os.environ.get("APP_ENV", "development").lower() == "production"
COOKIE_MAX_AGE_SECONDS = 15 * 24 * 60 * 60

OTP_FAILURE_MESSAGES = {
    "missing": "No OTP found. Please request a new OTP.",
    "expired": "OTP has expired. Please request a new OTP.",
    "invalid": "Invalid OTP",
}
RESET_FAILURE_MESSAGES = {
    "missing": "No password reset OTP found. Please request a new one.",
    "expired": "OTP has expired. Please request a new password reset.",
    "invalid": "Invalid OTP",
}


def _cookie_options() -> dict:
    return {
        "httponly": True,
        "secure": IS_PRODUCTION,
        "samesite": "strict" if IS_PRODUCTION else "lax",
        "path": "/",
    }


def _set_session_cookies(response: JSONResponse, access_token: str, refresh_token: str) -> None:
    response.set_cookie(ACCESS_COOKIE_NAME, access_token, max_age=COOKIE_MAX_AGE_SECONDS, **_cookie_options())
    response.set_cookie(REFRESH_COOKIE_NAME, refresh_token, max_age=COOKIE_MAX_AGE_SECONDS, **_cookie_options())


def _clear_session_cookies(response: JSONResponse) -> None:
    response.delete_cookie(ACCESS_COOKIE_NAME, **_cookie_options())
    response.delete_cookie(REFRESH_COOKIE_NAME, **_cookie_options())


def _ensure_strong_password(password: str) -> None:
    problems = password_problems(password)
    if problems:
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            f"Password requirements not met: {'; '.join(problems)}",
            problems,
        )


def _get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.strip().lower()).first()


def _issue_session(db: Session, user: User):
    access_token = create_access_token(user)
    refresh_token = create_refresh_token(user)
    # Only the most recently issued refresh token is accepted
    user.refresh_token = refresh_token
    db.commit()
    return access_token, refresh_token


@router.post("/register")
def register(user_data: UserRegister, db: Session = Depends(get_db)):
    _ensure_strong_password(user_data.password)

    email = user_data.email.lower()
    existing_user = db.query(User).filter((User.email == email) | (User.usn == user_data.usn)).first()
    if existing_user:
        if existing_user.email == email:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with this email already exists")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with this USN already exists")

    user = User(
        full_name=user_data.full_name,
        email=email,
        hashed_password=get_password_hash(user_data.password),
        usn=user_data.usn,
        semester=user_data.semester,
        department=user_data.department,
        is_email_verified=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    try:
        issue_verification(db, user)
    except Exception as exc:
        logger.error("Verification email to %s failed, removing new user %s: %s", user.email, user.id, exc)
        db.delete(user)
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send verification email. Please try again.",
        )

    return api_response(
        status.HTTP_201_CREATED,
        {"user_id": user.id, "email": user.email},
        "User registered successfully! Please check your email for verification OTP.",
    )


@router.post("/verify-email")
def verify_email(payload: EmailVerificationRequest, db: Session = Depends(get_db)):
    user = _get_user_by_email(db, payload.email)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.is_email_verified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is already verified")

    reason = verify_email_otp(db, user, payload.otp.strip())
    if reason:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=OTP_FAILURE_MESSAGES[reason])

    return api_response(status.HTTP_200_OK, {"email": user.email}, "Email verified successfully! You can now login.")


@router.post("/resend-otp")
def resend_otp(payload: EmailRequest, db: Session = Depends(get_db)):
    user = _get_user_by_email(db, payload.email)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if user.is_email_verified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is already verified")

    try:
        issue_verification(db, user)
    except Exception as exc:
        logger.error("Resending verification email to %s failed: %s", user.email, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send verification email")

    return api_response(status.HTTP_200_OK, {"email": user.email}, "OTP sent successfully! Please check your email.")


@router.post("/login")
def login(login_data: UserLogin, db: Session = Depends(get_db)):
    user = _get_user_by_email(db, login_data.email)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid email or password")
    if not user.is_email_verified:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Please verify your email before logging in. Check your email for the OTP.",
        )
    if not verify_password(login_data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    access_token, refresh_token = _issue_session(db, user)
    db.refresh(user)
    payload = LoginResponse(
        user=UserResponse.model_validate(user),
        access_token=access_token,
        refresh_token=refresh_token,
    )
    response = api_response(status.HTTP_200_OK, payload, "User logged in successfully")
    _set_session_cookies(response, access_token, refresh_token)
    return response


@router.post("/logout")
def logout(user: User = Depends(require_user), db: Session = Depends(get_db)):
    user.refresh_token = None
    db.commit()

    response = api_response(status.HTTP_200_OK, {}, "User logged out successfully")
    _clear_session_cookies(response)
    return response


@router.post("/forgot-password")
def forgot_password(payload: EmailRequest, db: Session = Depends(get_db)):
    user = _get_user_by_email(db, payload.email)
    if not user:
        # Same answer whether or not the account exists
        return api_response(status.HTTP_200_OK, {}, "If the email exists, a password reset OTP has been sent.")

    try:
        issue_password_reset(db, user)
    except Exception as exc:
        logger.error("Password reset email to %s failed: %s", user.email, exc)
        clear_password_reset(db, user)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send password reset email")

    return api_response(status.HTTP_200_OK, {}, "Password reset OTP sent successfully! Please check your email.")


@router.post("/reset-password")
def reset_password(payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    _ensure_strong_password(payload.new_password)

    user = _get_user_by_email(db, payload.email)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    reason = reset_password_with_otp(db, user, payload.otp.strip(), payload.new_password)
    if reason:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=RESET_FAILURE_MESSAGES[reason])

    return api_response(
        status.HTTP_200_OK,
        {},
        "Password reset successfully! You can now login with your new password.",
    )


@router.post("/refresh-token")
def refresh_access_token(
    request: Request,
    payload: Optional[RefreshTokenRequest] = Body(None),
    db: Session = Depends(get_db),
):
    incoming = request.cookies.get(REFRESH_COOKIE_NAME) or (payload.refresh_token if payload else None)
    if not incoming:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized request")

    token_payload = decode_refresh_token(incoming)
    if token_payload.get("type") != "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    try:
        user_id = int(token_payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    if incoming != user.refresh_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token is expired or used")

    access_token, refresh_token = _issue_session(db, user)
    response = api_response(
        status.HTTP_200_OK,
        TokenPairResponse(access_token=access_token, refresh_token=refresh_token),
        "Access token refreshed",
    )
    _set_session_cookies(response, access_token, refresh_token)
    return response


@router.get("/current-user")
def current_user(user: User = Depends(require_user)):
    return api_response(status.HTTP_200_OK, UserResponse.model_validate(user), "User fetched successfully")
