import secrets
from typing import Optional

from time_utils import has_expired

OTP_LENGTH = 6
OTP_TTL_SECONDS = 10 * 60


def generate_otp() -> str:
    # 100000-999999, never a leading zero
    return str(100000 + secrets.randbelow(900000))


def check_otp(stored_otp: Optional[str], expires_at, supplied_otp: str) -> Optional[str]:
    """Return None when the supplied code is accepted, otherwise a failure reason:
    "missing", "expired" or "invalid"."""
    if not stored_otp:
        return "missing"
    if has_expired(expires_at):
        return "expired"
    if stored_otp != supplied_otp:
        return "invalid"
    return None
