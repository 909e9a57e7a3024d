from html import escape
from typing import Tuple

APP_NAME = "UniConnect"


def _otp_html(heading: str, name: str, intro: str, code_label: str, otp: str, validity_minutes: int, footer_note: str) -> str:
    return f"""
    <html>
      <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #1b1f24;">
        <div style="max-width: 560px; margin: 0 auto; padding: 24px; border: 1px solid #e6e6e6; border-radius: 12px;">
          <h2 style="margin-top: 0;">{heading}</h2>
          <p>Hello <strong>{escape(name)}</strong>,</p>
          <p>{intro}</p>
          <div style="text-align: center; margin: 24px 0; padding: 16px; border: 2px dashed #667eea; border-radius: 8px;">
            <p style="margin: 0; color: #666; font-size: 14px;">{code_label}</p>
            <p style="margin: 8px 0 0; font-size: 32px; font-weight: bold; letter-spacing: 8px; color: #667eea;">{otp}</p>
          </div>
          <p><strong>Important:</strong> this code expires in <strong>{validity_minutes} minutes</strong>.</p>
          <p>{footer_note}</p>
          <hr style="border: none; border-top: 1px solid #e6e6e6; margin: 24px 0;" />
          <p style="margin-bottom: 0;">Best regards,<br><strong>{APP_NAME} Team</strong></p>
          <p style="color: #999; font-size: 12px;">This is an automated email. Please do not reply to this message.</p>
        </div>
      </body>
    </html>
    """


def build_verification_email(full_name: str, otp: str, validity_minutes: int = 10) -> Tuple[str, str, str]:
    subject = f"Verify Your Email - {APP_NAME}"
    text = (
        f"Hello {full_name},\n\n"
        f"Thank you for registering with {APP_NAME}. Your email verification code is:\n\n"
        f"    {otp}\n\n"
        f"This code expires in {validity_minutes} minutes.\n\n"
        f"If you did not create an account with {APP_NAME}, you can safely ignore this email.\n\n"
        "Best regards,\n"
        f"{APP_NAME} Team\n"
    )
    html = _otp_html(
        "Email Verification",
        full_name,
        f"Thank you for registering with <strong>{APP_NAME}</strong>! To complete your registration, "
        "please verify your email address using the code below.",
        "Your verification code is:",
        otp,
        validity_minutes,
        f"If you didn't create an account with {APP_NAME}, please ignore this email.",
    )
    return subject, html, text


def build_reset_email(full_name: str, otp: str, validity_minutes: int = 10) -> Tuple[str, str, str]:
    subject = f"Password Reset Request - {APP_NAME}"
    text = (
        f"Hello {full_name},\n\n"
        f"We received a request to reset the password of your {APP_NAME} account. Your reset code is:\n\n"
        f"    {otp}\n\n"
        f"This code expires in {validity_minutes} minutes.\n\n"
        "If you did not request this, you can safely ignore this email.\n\n"
        "Best regards,\n"
        f"{APP_NAME} Team\n"
    )
    html = _otp_html(
        "Password Reset",
        full_name,
        f"We received a request to reset the password of your <strong>{APP_NAME}</strong> account. "
        "Use the code below to choose a new password.",
        "Your password reset code is:",
        otp,
        validity_minutes,
        "If you did not request a password reset, you can safely ignore this email.",
    )
    return subject, html, text
