from __future__ import annotations

from typing import Mapping, Protocol

from app.core.config import Settings
from app.models.otp_code import ChannelType
from app.services.email import EmailSender
from app.services.sms import TwilioSmsSender


class OtpSender(Protocol):
    def send_code(self, recipient: str, code: str) -> None:  # pragma: no cover - interface
        ...


def build_senders(settings: Settings) -> Mapping[ChannelType, OtpSender]:
    return {
        ChannelType.email: EmailSender(settings),
        ChannelType.sms: TwilioSmsSender(settings),
    }
