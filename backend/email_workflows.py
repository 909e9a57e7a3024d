from typing import Optional

from sqlalchemy.orm import Session

from auth import get_password_hash
from email_templates import build_verification_email, build_reset_email
from emailer import send_email
from models import User
from otp import OTP_TTL_SECONDS, check_otp, generate_otp
from time_utils import expires_in

OTP_VALIDITY_MINUTES = OTP_TTL_SECONDS // 60


def _send_verification_email(user: User, otp: str) -> None:
    subject, html, text = build_verification_email(user.full_name, otp, validity_minutes=OTP_VALIDITY_MINUTES)
    send_email(user.email, subject, html, text)


def _send_reset_email(user: User, otp: str) -> None:
    subject, html, text = build_reset_email(user.full_name, otp, validity_minutes=OTP_VALIDITY_MINUTES)
    send_email(user.email, subject, html, text)


def issue_verification(db: Session, user: User) -> None:
    """Store a fresh verification code on the user and mail it. Mail errors propagate."""
    otp = generate_otp()
    user.email_verification_otp = otp
    user.email_verification_expires_at = expires_in(OTP_TTL_SECONDS)
    db.commit()

    _send_verification_email(user, otp)


def verify_email_otp(db: Session, user: User, otp: str) -> Optional[str]:
    reason = check_otp(user.email_verification_otp, user.email_verification_expires_at, otp)
    if reason:
        return reason

    user.is_email_verified = True
    user.email_verification_otp = None
    user.email_verification_expires_at = None
    db.commit()
    return None


def issue_password_reset(db: Session, user: User) -> None:
    otp = generate_otp()
    user.password_reset_otp = otp
    user.password_reset_expires_at = expires_in(OTP_TTL_SECONDS)
    db.commit()

    _send_reset_email(user, otp)


def clear_password_reset(db: Session, user: User) -> None:
    user.password_reset_otp = None
    user.password_reset_expires_at = None
    db.commit()


def reset_password_with_otp(db: Session, user: User, otp: str, new_password: str) -> Optional[str]:
    reason = check_otp(user.password_reset_otp, user.password_reset_expires_at, otp)
    if reason:
        return reason

    user.hashed_password = get_password_hash(new_password)
    user.password_reset_otp = None
    user.password_reset_expires_at = None
    # Existing sessions end with the old password
    user.refresh_token = None
    db.commit()
    return None
