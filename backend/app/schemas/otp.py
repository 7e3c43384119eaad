from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from app.models.otp_code import ChannelType
from app.models.otp_log import OtpAction


class OtpSendRequest(BaseModel):
    type: ChannelType
    value: str = Field(min_length=1, max_length=320)

    @field_validator("value")
    @classmethod
    def strip_value(cls, value: str) -> str:
        return value.strip()


class OtpVerifyRequest(OtpSendRequest):
    code: str = Field(min_length=1, max_length=32)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        digits = "".join(ch for ch in value if ch.isdigit())
        if len(digits) != 6:
            raise ValueError("OTP code must contain exactly 6 digits")
        return digits


class OtpMessageOut(BaseModel):
    message: str


class OtpVerifyOut(OtpMessageOut):
    token: str


class OtpLogOut(BaseModel):
    id: str
    action: OtpAction
    type: ChannelType
    value: str
    success: bool
    error_message: str | None
    created_at: datetime
