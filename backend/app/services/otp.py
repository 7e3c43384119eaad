from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
import re
from typing import Mapping

from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.exceptions import DeliveryError, ExpiredCodeError, InvalidCodeError, ValidationError
from app.core.security import Clock, generate_otp_code, utcnow
from app.models.otp_code import ChannelType, OtpCode
from app.models.otp_log import OtpAction
from app.services.audit import log_otp_event, mask_recipient
from app.services.delivery import OtpSender
from app.services.otp_store import OtpStore

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")

INVALID_CODE_MESSAGE = "Invalid OTP code"
EXPIRED_CODE_MESSAGE = "OTP has expired"


def validate_recipient(channel_type: ChannelType, recipient: str) -> None:
    if channel_type == ChannelType.email:
        if not EMAIL_PATTERN.match(recipient):
            raise ValidationError("Invalid email format")
        return
    if not E164_PATTERN.match(recipient):
        raise ValidationError("Invalid phone format (use E.164 format, e.g., +1234567890)")


def normalize_dt(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class OtpIssuer:
    def __init__(
        self,
        db: Session,
        settings: Settings,
        senders: Mapping[ChannelType, OtpSender],
        *,
        clock: Clock = utcnow,
        code_generator=generate_otp_code,
    ) -> None:
        self._db = db
        self._store = OtpStore(db)
        self._senders = senders
        self._lifetime = timedelta(minutes=settings.otp_expire_minutes)
        self._clock = clock
        self._generate_code = code_generator

    def issue(self, channel_type: ChannelType, recipient: str) -> OtpCode:
        validate_recipient(channel_type, recipient)

        now = self._clock()
        record = self._store.create(
            channel_type=channel_type,
            recipient=recipient,
            code=self._generate_code(),
            created_at=now,
            expires_at=now + self._lifetime,
        )
        # The record outlives a failed delivery; resend issues a fresh one.
        self._store.commit()

        sender = self._senders[channel_type]
        try:
            sender.send_code(recipient, record.code)
        except Exception as exc:
            error_message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
            logger.warning(
                "OTP delivery failed | type=%s | to=%s | error=%s",
                channel_type.value,
                mask_recipient(channel_type, recipient),
                error_message,
            )
            log_otp_event(
                self._db,
                action=OtpAction.send,
                channel_type=channel_type,
                recipient=recipient,
                success=False,
                error_message=error_message,
                created_at=self._clock(),
            )
            self._store.commit()
            raise DeliveryError(f"Failed to send OTP: {error_message}") from exc

        log_otp_event(
            self._db,
            action=OtpAction.send,
            channel_type=channel_type,
            recipient=recipient,
            success=True,
            created_at=self._clock(),
        )
        self._store.commit()
        logger.info("OTP sent | type=%s | to=%s", channel_type.value, mask_recipient(channel_type, recipient))
        return record


class OtpVerifier:
    def __init__(self, db: Session, *, clock: Clock = utcnow) -> None:
        self._db = db
        self._store = OtpStore(db)
        self._clock = clock

    def _fail(self, channel_type: ChannelType, recipient: str, message: str) -> None:
        log_otp_event(
            self._db,
            action=OtpAction.verify,
            channel_type=channel_type,
            recipient=recipient,
            success=False,
            error_message=message,
            created_at=self._clock(),
        )
        self._store.commit()
        logger.info(
            "OTP verification rejected | type=%s | to=%s | reason=%s",
            channel_type.value,
            mask_recipient(channel_type, recipient),
            message,
        )

    def verify(self, channel_type: ChannelType, recipient: str, code: str) -> OtpCode:
        now = self._clock()
        record = self._store.find_latest_unverified(channel_type=channel_type, recipient=recipient, code=code)
        if record is None:
            self._fail(channel_type, recipient, INVALID_CODE_MESSAGE)
            raise InvalidCodeError(INVALID_CODE_MESSAGE)

        if normalize_dt(record.expires_at) < now:
            self._fail(channel_type, recipient, EXPIRED_CODE_MESSAGE)
            raise ExpiredCodeError(EXPIRED_CODE_MESSAGE)

        if not self._store.mark_verified(record.id):
            # A concurrent request consumed the code between lookup and update.
            self._store.rollback()
            self._fail(channel_type, recipient, INVALID_CODE_MESSAGE)
            raise InvalidCodeError(INVALID_CODE_MESSAGE)

        log_otp_event(
            self._db,
            action=OtpAction.verify,
            channel_type=channel_type,
            recipient=recipient,
            success=True,
            created_at=now,
        )
        self._store.commit()
        logger.info("OTP verified | type=%s | to=%s", channel_type.value, mask_recipient(channel_type, recipient))
        return record
