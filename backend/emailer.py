import os
import smtplib
import ssl
import logging
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 20


@dataclass
class SMTPConfig:
    host: str
    port: int
    user: Optional[str]
    password: Optional[str]
    use_tls: bool
    use_ssl: bool
    sender: str


def _bool_env(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_smtp_config() -> SMTPConfig:
    user = os.environ.get("SMTP_USER")
    sender = os.environ.get("EMAIL_FROM") or user
    if not sender:
        raise RuntimeError("EMAIL_FROM or SMTP_USER must be configured to send email")

    port_raw = os.environ.get("SMTP_PORT", "587")
    try:
        port = int(port_raw)
    except ValueError:
        raise RuntimeError(f"Invalid SMTP_PORT: {port_raw}")

    return SMTPConfig(
        host=os.environ.get("SMTP_HOST", "smtp.gmail.com"),
        port=port,
        user=user,
        password=os.environ.get("SMTP_PASS"),
        use_tls=_bool_env(os.environ.get("SMTP_TLS"), default=True),
        use_ssl=_bool_env(os.environ.get("SMTP_SSL"), default=False),
        sender=sender,
    )


def _send_via_config(config: SMTPConfig, message: EmailMessage) -> None:
    if config.use_ssl:
        context = ssl.create_default_context()
        with smtplib.SMTP_SSL(config.host, config.port, context=context, timeout=SMTP_TIMEOUT_SECONDS) as server:
            if config.user and config.password:
                server.login(config.user, config.password)
            server.send_message(message)
        return

    with smtplib.SMTP(config.host, config.port, timeout=SMTP_TIMEOUT_SECONDS) as server:
        server.ehlo()
        if config.use_tls:
            server.starttls(context=ssl.create_default_context())
            server.ehlo()
        if config.user and config.password:
            server.login(config.user, config.password)
        server.send_message(message)


def send_email(to_email: str, subject: str, html: str, text: str) -> None:
    config = load_smtp_config()

    message = EmailMessage()
    message["From"] = config.sender
    message["To"] = to_email
    message["Subject"] = subject
    message.set_content(text)
    message.add_alternative(html, subtype="html")

    _send_via_config(config, message)
    logger.info("Email '%s' sent to %s", subject, to_email)
