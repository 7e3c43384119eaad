from collections.abc import Generator, Mapping

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.exceptions import InvalidTokenError
from app.core.security import Clock, SessionClaims, SessionIssuer, SessionValidator, utcnow
from app.db.session import SessionLocal
from app.models.otp_code import ChannelType
from app.services.delivery import OtpSender, build_senders
from app.services.otp import OtpIssuer, OtpVerifier

bearer = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_clock() -> Clock:
    return utcnow


def get_senders(settings: Settings = Depends(get_settings)) -> Mapping[ChannelType, OtpSender]:
    return build_senders(settings)


def get_otp_issuer(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    senders: Mapping[ChannelType, OtpSender] = Depends(get_senders),
    clock: Clock = Depends(get_clock),
) -> OtpIssuer:
    return OtpIssuer(db, settings, senders, clock=clock)


def get_otp_verifier(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> OtpVerifier:
    return OtpVerifier(db, clock=clock)


def get_session_issuer(
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
) -> SessionIssuer:
    return SessionIssuer(settings, clock=clock)


def get_session_validator(
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
) -> SessionValidator:
    return SessionValidator(settings, clock=clock)


def get_current_session(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    settings: Settings = Depends(get_settings),
    validator: SessionValidator = Depends(get_session_validator),
) -> SessionClaims:
    token = credentials.credentials if credentials is not None else request.cookies.get(settings.session_cookie_name)
    if not token:
        raise InvalidTokenError("Not authenticated")
    return validator.validate(token)
