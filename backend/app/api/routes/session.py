import logging

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from app.api.deps import get_clock, get_current_session
from app.core.config import Settings, get_settings
from app.core.exceptions import ConfigurationError, ExpiredTokenError, InvalidTokenError
from app.core.security import Clock, SessionClaims, SessionValidator
from app.models.otp_code import ChannelType
from app.schemas.session import SessionUserOut, SessionValidOut, SessionValidateRequest
from app.services.audit import mask_recipient
from app.services.rate_limit import enforce_rate_limit

router = APIRouter()
logger = logging.getLogger(__name__)


def session_user(claims: SessionClaims) -> SessionUserOut:
    return SessionUserOut(
        id=claims.subject,
        email=claims.subject if claims.channel_type == ChannelType.email else None,
        phone=claims.subject if claims.channel_type == ChannelType.sms else None,
    )


def _invalid(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"valid": False, "error": error})


@router.post("/validate", response_model=SessionValidOut, response_model_exclude_none=True)
def validate_session(
    payload: SessionValidateRequest,
    request: Request,
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
):
    enforce_rate_limit(
        request=request,
        scope="session.validate",
        limit=settings.session_rate_limit_validate_max_requests,
        window_seconds=settings.otp_rate_limit_window_seconds,
        trust_forwarded=settings.trust_forwarded_headers,
    )
    try:
        validator = SessionValidator(settings, clock=clock)
    except ConfigurationError:
        logger.error("Session validation requested but JWT secret is not configured")
        return _invalid(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server configuration error")

    if not payload.token:
        return _invalid(status.HTTP_400_BAD_REQUEST, "Token is required")

    try:
        claims = validator.validate(payload.token)
    except (InvalidTokenError, ExpiredTokenError) as exc:
        logger.info("Session token rejected: %s", exc.message)
        return _invalid(status.HTTP_401_UNAUTHORIZED, exc.message)

    logger.info("Session validated for %s", mask_recipient(claims.channel_type, claims.subject))
    return SessionValidOut(valid=True, user=session_user(claims))


@router.get("/me", response_model=SessionUserOut)
def me(claims: SessionClaims = Depends(get_current_session)) -> SessionUserOut:
    return session_user(claims)


@router.post("/logout")
def logout(response: Response, settings: Settings = Depends(get_settings)) -> dict:
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="strict",
    )
    return {"success": True}
