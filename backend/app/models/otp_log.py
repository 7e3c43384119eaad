import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base
from app.models.otp_code import ChannelType


class OtpAction(str, Enum):
    send = "send"
    verify = "verify"


class OtpLog(Base):
    __tablename__ = "otp_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    action: Mapped[OtpAction] = mapped_column(SAEnum(OtpAction, name="otp_log_action"), nullable=False)
    channel_type: Mapped[ChannelType] = mapped_column(
        "type", SAEnum(ChannelType, name="otp_log_channel_type"), nullable=False
    )
    # Stored unmasked; masking happens when entries are displayed.
    recipient: Mapped[str] = mapped_column("value", String(320), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
