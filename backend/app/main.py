from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import health, otp, session
from app.core.config import get_settings
from app.core.exceptions import AppError, RateLimitError
from app.core.middleware import RequestLoggingMiddleware, RequestSizeLimitMiddleware, SecurityHeadersMiddleware
from app.db.bootstrap import check_runtime_schema

settings = get_settings()
logger = logging.getLogger(__name__)

# Validate-session answers every failure with its {valid, error} envelope.
SESSION_VALIDATE_PATH = f"{settings.api_prefix}/session/validate"


@asynccontextmanager
async def lifespan(_: FastAPI):
    check_runtime_schema()
    if not settings.jwt_secret_key:
        logger.warning("JWT_SECRET_KEY is not set; OTP verification and session validation will fail")
    yield


async def app_error_handler(request: Request, exc: AppError):
    headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, RateLimitError) else None
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message}, headers=headers)


async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    if request.url.path == SESSION_VALIDATE_PATH:
        return JSONResponse(status_code=400, content={"valid": False, "error": message})
    return JSONResponse(status_code=400, content={"error": message})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_size_bytes)
app.add_middleware(SecurityHeadersMiddleware, settings=settings)
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(otp.router, prefix=f"{settings.api_prefix}/otp", tags=["otp"])
app.include_router(session.router, prefix=f"{settings.api_prefix}/session", tags=["session"])
