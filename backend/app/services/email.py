from __future__ import annotations

from dataclasses import dataclass
from email.message import EmailMessage
import logging
import smtplib
import ssl

from app.core.config import Settings
from app.core.exceptions import ConfigurationError, DeliveryError

logger = logging.getLogger(__name__)

OTP_EMAIL_SUBJECT = "Your OTP Code"


@dataclass(frozen=True)
class _SmtpEndpoint:
    host: str
    port: int
    username: str | None
    password: str
    from_email: str
    from_name: str | None
    use_tls: bool
    use_ssl: bool
    timeout: int


def _classify_smtp_data_error(exc: smtplib.SMTPDataError) -> str:
    smtp_error = exc.smtp_error
    if isinstance(smtp_error, bytes):
        message = smtp_error.decode("utf-8", errors="ignore").lower()
    else:
        message = str(smtp_error).lower()

    if "sending limit" in message or "quota" in message or "rate limit" in message or "too many messages" in message:
        return "SMTP sender rate limited"
    if "recipient address rejected" in message or "recipient rejected" in message:
        return "SMTP recipient rejected"
    if "sender address rejected" in message or "sender rejected" in message:
        return "SMTP sender rejected"
    return "SMTP data rejected"


def _build_from_header(from_email: str, from_name: str | None) -> str:
    if from_name:
        return f"{from_name} <{from_email}>"
    return from_email


def _resolve_smtp_password(host: str | None, raw_password: str | None) -> str:
    password = raw_password or ""
    if host and host.lower() == "smtp.gmail.com":
        # Gmail app-passwords are often copied with spaces; normalize transparently.
        return "".join(password.split())
    return password


def _build_endpoint(settings: Settings) -> _SmtpEndpoint:
    if not settings.smtp_host or not settings.smtp_from_email:
        raise ConfigurationError("SMTP configuration is missing")
    if settings.smtp_username and not settings.smtp_password:
        raise ConfigurationError("SMTP configuration is missing")
    return _SmtpEndpoint(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=_resolve_smtp_password(settings.smtp_host, settings.smtp_password),
        from_email=settings.smtp_from_email,
        from_name=settings.smtp_from_name,
        use_tls=settings.smtp_use_tls,
        use_ssl=settings.smtp_use_ssl,
        timeout=max(1, settings.smtp_timeout_seconds),
    )


def build_otp_email(*, code: str, expire_minutes: int) -> tuple[str, str]:
    text_content = (
        f"Your one-time password is: {code}\n"
        f"This code will expire in {expire_minutes} minutes.\n\n"
        "If you didn't request this code, please ignore this email."
    )
    html_content = (
        "<html><body>"
        "<h2>Your OTP Code</h2>"
        f"<p>Your one-time password is: <strong>{code}</strong></p>"
        f"<p>This code will expire in {expire_minutes} minutes.</p>"
        "<p>If you didn't request this code, please ignore this email.</p>"
        "</body></html>"
    )
    return text_content, html_content


class EmailSender:
    """Delivers OTP codes over SMTP."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def send_code(self, recipient: str, code: str) -> None:
        endpoint = _build_endpoint(self._settings)
        text_content, html_content = build_otp_email(
            code=code,
            expire_minutes=self._settings.otp_expire_minutes,
        )
        message = EmailMessage()
        message["From"] = _build_from_header(endpoint.from_email, endpoint.from_name)
        message["To"] = recipient
        message["Subject"] = OTP_EMAIL_SUBJECT
        message.set_content(text_content)
        message.add_alternative(html_content, subtype="html")
        self._deliver(endpoint, message)

    def _deliver(self, endpoint: _SmtpEndpoint, message: EmailMessage) -> None:
        try:
            if endpoint.use_ssl:
                with smtplib.SMTP_SSL(endpoint.host, endpoint.port, timeout=endpoint.timeout) as smtp:
                    if endpoint.username:
                        smtp.login(endpoint.username, endpoint.password)
                    smtp.send_message(message)
                return

            with smtplib.SMTP(endpoint.host, endpoint.port, timeout=endpoint.timeout) as smtp:
                if endpoint.use_tls:
                    smtp.starttls(context=ssl.create_default_context())
                if endpoint.username:
                    smtp.login(endpoint.username, endpoint.password)
                smtp.send_message(message)
        except smtplib.SMTPAuthenticationError as exc:
            raise DeliveryError("SMTP authentication failed") from exc
        except smtplib.SMTPDataError as exc:
            raise DeliveryError(_classify_smtp_data_error(exc)) from exc
        except smtplib.SMTPRecipientsRefused as exc:
            raise DeliveryError("SMTP recipient rejected") from exc
        except smtplib.SMTPSenderRefused as exc:
            raise DeliveryError("SMTP sender rejected") from exc
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("SMTP delivery to %s:%s failed: %s", endpoint.host, endpoint.port, exc)
            raise DeliveryError("SMTP connection failed") from exc
