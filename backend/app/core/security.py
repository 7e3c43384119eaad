from __future__ import annotations

import binascii
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import secrets

from jose import JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

from app.core.config import Settings
from app.core.exceptions import ConfigurationError, ExpiredTokenError, InvalidTokenError
from app.models.otp_code import ChannelType

Clock = Callable[[], datetime]

OTP_CODE_MIN = 100_000
OTP_CODE_MAX = 999_999


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_otp_code() -> str:
    return str(OTP_CODE_MIN + secrets.randbelow(OTP_CODE_MAX - OTP_CODE_MIN + 1))


@dataclass(frozen=True)
class SessionClaims:
    subject: str
    channel_type: ChannelType
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class IssuedSession:
    token: str
    claims: SessionClaims


def _is_canonical_segment(segment: str) -> bool:
    # base64url leaves spare low bits in the final character; only the encoder's own form is accepted.
    try:
        raw = segment.encode("ascii")
        return base64url_encode(base64url_decode(raw)) == raw
    except (UnicodeEncodeError, binascii.Error):
        return False


def _require_secret(settings: Settings) -> str:
    secret = settings.jwt_secret_key
    if not secret:
        raise ConfigurationError("Server configuration error: JWT secret is not configured")
    return secret


class SessionIssuer:
    """Mints signed session tokens for recipients that passed OTP verification."""

    def __init__(self, settings: Settings, *, clock: Clock = utcnow) -> None:
        self._secret = _require_secret(settings)
        self._algorithm = settings.jwt_algorithm
        self._lifetime = timedelta(hours=settings.session_expire_hours)
        self._clock = clock

    def issue(self, subject: str, channel_type: ChannelType) -> IssuedSession:
        issued_at = self._clock().replace(microsecond=0)
        expires_at = issued_at + self._lifetime
        payload = {
            "sub": subject,
            "type": channel_type.value,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self._secret, algorithm=self._algorithm)
        claims = SessionClaims(
            subject=subject,
            channel_type=channel_type,
            issued_at=issued_at,
            expires_at=expires_at,
        )
        return IssuedSession(token=token, claims=claims)


class SessionValidator:
    def __init__(self, settings: Settings, *, clock: Clock = utcnow) -> None:
        self._secret = _require_secret(settings)
        self._algorithm = settings.jwt_algorithm
        self._clock = clock

    def validate(self, token: str) -> SessionClaims:
        segments = token.split(".")
        if len(segments) != 3 or not all(segments) or not all(_is_canonical_segment(part) for part in segments):
            raise InvalidTokenError()

        try:
            # Expiry is checked against the injected clock below, after the signature.
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as exc:
            raise InvalidTokenError() from exc

        subject = payload.get("sub")
        raw_type = payload.get("type")
        exp = payload.get("exp")
        iat = payload.get("iat")
        if not isinstance(subject, str) or not subject or not isinstance(exp, int):
            raise InvalidTokenError()
        try:
            channel_type = ChannelType(raw_type)
        except ValueError as exc:
            raise InvalidTokenError() from exc

        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
        if expires_at <= self._clock():
            raise ExpiredTokenError()

        issued_at = datetime.fromtimestamp(iat, tz=timezone.utc) if isinstance(iat, int) else expires_at
        return SessionClaims(
            subject=subject,
            channel_type=channel_type,
            issued_at=issued_at,
            expires_at=expires_at,
        )
