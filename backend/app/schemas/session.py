from pydantic import BaseModel


class SessionValidateRequest(BaseModel):
    token: str | None = None


class SessionUserOut(BaseModel):
    id: str
    email: str | None = None
    phone: str | None = None


class SessionValidOut(BaseModel):
    valid: bool
    user: SessionUserOut | None = None
    error: str | None = None
