from app.models.otp_code import ChannelType, OtpCode  # noqa: F401
from app.models.otp_log import OtpAction, OtpLog  # noqa: F401
