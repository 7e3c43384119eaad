from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from app.api.deps import get_current_session, get_db, get_otp_issuer, get_otp_verifier, get_session_issuer
from app.core.config import Settings, get_settings
from app.core.security import SessionClaims, SessionIssuer
from app.schemas.otp import OtpLogOut, OtpMessageOut, OtpSendRequest, OtpVerifyOut, OtpVerifyRequest
from app.services.audit import list_otp_events, mask_recipient
from app.services.otp import OtpIssuer, OtpVerifier
from app.services.rate_limit import enforce_rate_limit

router = APIRouter()


@router.post("/send", response_model=OtpMessageOut)
def send_otp(
    payload: OtpSendRequest,
    request: Request,
    settings: Settings = Depends(get_settings),
    issuer: OtpIssuer = Depends(get_otp_issuer),
) -> OtpMessageOut:
    enforce_rate_limit(
        request=request,
        scope="otp.send",
        limit=settings.otp_rate_limit_send_max_requests,
        window_seconds=settings.otp_rate_limit_window_seconds,
        identity=f"{payload.type.value}:{payload.value}",
        trust_forwarded=settings.trust_forwarded_headers,
    )
    issuer.issue(payload.type, payload.value)
    return OtpMessageOut(message="OTP sent successfully")


@router.post("/verify", response_model=OtpVerifyOut)
def verify_otp(
    payload: OtpVerifyRequest,
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
    verifier: OtpVerifier = Depends(get_otp_verifier),
    session_issuer: SessionIssuer = Depends(get_session_issuer),
) -> OtpVerifyOut:
    enforce_rate_limit(
        request=request,
        scope="otp.verify",
        limit=settings.otp_rate_limit_verify_max_requests,
        window_seconds=settings.otp_rate_limit_window_seconds,
        identity=f"{payload.type.value}:{payload.value}",
        trust_forwarded=settings.trust_forwarded_headers,
    )
    record = verifier.verify(payload.type, payload.value, payload.code)
    session = session_issuer.issue(record.recipient, record.channel_type)

    response.set_cookie(
        key=settings.session_cookie_name,
        value=session.token,
        max_age=settings.session_expire_hours * 3600,
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="strict",
    )
    return OtpVerifyOut(message="OTP verified successfully", token=session.token)


@router.get("/logs", response_model=list[OtpLogOut])
def list_otp_logs(
    limit: int | None = Query(default=None, ge=1),
    settings: Settings = Depends(get_settings),
    _: SessionClaims = Depends(get_current_session),
    db: Session = Depends(get_db),
) -> list[OtpLogOut]:
    effective_limit = min(limit or settings.otp_logs_default_limit, settings.otp_logs_max_limit)
    return [
        OtpLogOut(
            id=entry.id,
            action=entry.action,
            type=entry.channel_type,
            value=mask_recipient(entry.channel_type, entry.recipient),
            success=entry.success,
            error_message=entry.error_message,
            created_at=entry.created_at,
        )
        for entry in list_otp_events(db, limit=effective_limit)
    ]
