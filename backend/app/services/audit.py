from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.otp_code import ChannelType
from app.models.otp_log import OtpAction, OtpLog


def log_otp_event(
    db: Session,
    *,
    action: OtpAction,
    channel_type: ChannelType,
    recipient: str,
    success: bool,
    created_at: datetime,
    error_message: str | None = None,
) -> OtpLog:
    record = OtpLog(
        action=action,
        channel_type=channel_type,
        recipient=recipient,
        success=success,
        error_message=None if success else error_message,
        created_at=created_at,
    )
    db.add(record)
    return record


def list_otp_events(db: Session, *, limit: int) -> list[OtpLog]:
    query = select(OtpLog).order_by(OtpLog.created_at.desc()).limit(limit)
    return list(db.execute(query).scalars())


def mask_recipient(channel_type: ChannelType, value: str) -> str:
    """Display form of a recipient: ``ab***@domain.com`` or ``+155******67``."""
    if channel_type == ChannelType.email:
        name, sep, domain = value.partition("@")
        if not sep:
            return f"{value[:2]}***"
        return f"{name[:2]}***@{domain}"
    if len(value) <= 6:
        return f"{value[:1]}{'*' * max(0, len(value) - 1)}"
    return f"{value[:4]}******{value[-2:]}"
