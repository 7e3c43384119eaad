from __future__ import annotations

import logging

import httpx

from app.core.config import Settings
from app.core.exceptions import ConfigurationError, DeliveryError

logger = logging.getLogger(__name__)


def build_otp_sms(*, code: str, expire_minutes: int) -> str:
    return f"Your OTP code is: {code}. This code will expire in {expire_minutes} minutes."


class TwilioSmsSender:
    """Delivers OTP codes through the Twilio Messages REST endpoint."""

    def __init__(self, settings: Settings, *, transport: httpx.BaseTransport | None = None) -> None:
        self._settings = settings
        self._transport = transport

    def _credentials(self) -> tuple[str, str, str]:
        settings = self._settings
        if not (settings.twilio_account_sid and settings.twilio_auth_token and settings.twilio_from_number):
            raise ConfigurationError("Twilio configuration is missing")
        return settings.twilio_account_sid, settings.twilio_auth_token, settings.twilio_from_number

    def send_code(self, recipient: str, code: str) -> None:
        account_sid, auth_token, from_number = self._credentials()
        url = f"{self._settings.twilio_api_base_url.rstrip('/')}/Accounts/{account_sid}/Messages.json"
        payload = {
            "To": recipient,
            "From": from_number,
            "Body": build_otp_sms(code=code, expire_minutes=self._settings.otp_expire_minutes),
        }
        try:
            with httpx.Client(
                auth=(account_sid, auth_token),
                timeout=self._settings.sms_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = client.post(url, data=payload)
        except httpx.TimeoutException as exc:
            raise DeliveryError("Failed to send SMS: provider timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("Twilio request failed: %s", exc)
            raise DeliveryError(f"Failed to send SMS: {exc}") from exc

        if response.is_success:
            return
        raise DeliveryError(
            f"Failed to send SMS: {response.text}",
            details={"status_code": response.status_code},
        )
