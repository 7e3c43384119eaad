from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.core.config import Settings, get_settings
from app.db.bootstrap import inspect_schema

router = APIRouter()


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/health/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/health/ready")
def health_ready(settings: Settings = Depends(get_settings)) -> JSONResponse:
    report = inspect_schema()
    session_configured = bool(settings.jwt_secret_key)
    ready = report.schema_ok and session_configured

    payload = {
        "status": "ok" if ready else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": {
            "ok": report.database_ok,
            "schema_ok": report.schema_ok,
            "missing_tables": report.missing_tables,
            "missing_columns": report.missing_columns,
            "error": report.error,
        },
        "session": {"configured": session_configured, "algorithm": settings.jwt_algorithm},
        "smtp": {
            "configured": bool(settings.smtp_host and settings.smtp_from_email),
            "host": settings.smtp_host,
            "port": settings.smtp_port,
            "use_tls": settings.smtp_use_tls,
            "use_ssl": settings.smtp_use_ssl,
        },
        "sms": {
            "configured": bool(
                settings.twilio_account_sid and settings.twilio_auth_token and settings.twilio_from_number
            ),
        },
    }
    return JSONResponse(status_code=200 if ready else 503, content=payload)
