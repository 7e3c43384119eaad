from app.api.deps import get_settings
from app.core.security import SessionIssuer
from app.main import app
from app.models.otp_code import ChannelType
from conftest import make_settings


def login(client, senders, channel: str, value: str) -> str:
    assert client.post("/api/otp/send", json={"type": channel, "value": value}).status_code == 200
    code = senders[ChannelType(channel)].last_code
    response = client.post("/api/otp/verify", json={"type": channel, "value": value, "code": code})
    assert response.status_code == 200
    return response.json()["token"]


def test_validate_accepts_fresh_email_token(client, senders):
    token = login(client, senders, "email", "user@example.com")

    response = client.post("/api/session/validate", json={"token": token})

    assert response.status_code == 200
    assert response.json() == {
        "valid": True,
        "user": {"id": "user@example.com", "email": "user@example.com"},
    }


def test_validate_reports_phone_for_sms_tokens(client, senders):
    token = login(client, senders, "sms", "+15551234567")

    response = client.post("/api/session/validate", json={"token": token})

    assert response.status_code == 200
    assert response.json()["user"] == {"id": "+15551234567", "phone": "+15551234567"}


def test_validate_requires_token(client):
    for body in ({}, {"token": ""}):
        response = client.post("/api/session/validate", json=body)
        assert response.status_code == 400
        assert response.json() == {"valid": False, "error": "Token is required"}


def test_validate_rejects_tampered_token(client, senders):
    token = login(client, senders, "email", "user@example.com")
    header, payload, signature = token.split(".")
    tampered = f"{header}.{payload}.{signature[:10]}{'x' if signature[10] != 'x' else 'y'}{signature[11:]}"

    response = client.post("/api/session/validate", json={"token": tampered})

    assert response.status_code == 401
    assert response.json() == {"valid": False, "error": "Invalid token"}


def test_validate_rejects_expired_token(client, senders, clock):
    token = login(client, senders, "email", "user@example.com")
    clock.advance(hours=24, seconds=1)

    response = client.post("/api/session/validate", json={"token": token})

    assert response.status_code == 401
    assert response.json() == {"valid": False, "error": "Token expired"}


def test_validate_without_secret_is_server_error(client, settings, clock):
    token = SessionIssuer(settings, clock=clock).issue("user@example.com", ChannelType.email).token
    app.dependency_overrides[get_settings] = lambda: make_settings(jwt_secret_key=None)

    response = client.post("/api/session/validate", json={"token": token})

    assert response.status_code == 500
    assert response.json() == {"valid": False, "error": "Server configuration error"}


def test_rotated_secret_invalidates_existing_sessions(client, settings, clock):
    token = SessionIssuer(settings, clock=clock).issue("user@example.com", ChannelType.email).token
    app.dependency_overrides[get_settings] = lambda: make_settings(jwt_secret_key="rotated-secret")

    response = client.post("/api/session/validate", json={"token": token})

    assert response.status_code == 401


def test_me_accepts_bearer_header_and_cookie(client, senders):
    token = login(client, senders, "email", "user@example.com")

    by_header = client.get("/api/session/me", headers={"Authorization": f"Bearer {token}"})
    assert by_header.status_code == 200
    assert by_header.json()["email"] == "user@example.com"

    client.cookies.set("session", token)
    by_cookie = client.get("/api/session/me")
    assert by_cookie.status_code == 200
    assert by_cookie.json()["id"] == "user@example.com"


def test_me_without_credentials_is_unauthorized(client):
    response = client.get("/api/session/me")
    assert response.status_code == 401
    assert response.json() == {"error": "Not authenticated"}


def test_logout_clears_cookie(client):
    response = client.post("/api/session/logout")

    assert response.status_code == 200
    assert response.json() == {"success": True}
    cookie = response.headers["set-cookie"].lower()
    assert cookie.startswith("session=")
    assert "max-age=0" in cookie


def test_validate_keeps_envelope_for_malformed_bodies(client):
    not_json = client.post(
        "/api/session/validate",
        content=b"token=abc",
        headers={"Content-Type": "application/json"},
    )
    assert not_json.status_code == 400
    assert not_json.json()["valid"] is False
    assert not_json.json()["error"]

    wrong_type = client.post("/api/session/validate", json={"token": 12345})
    assert wrong_type.status_code == 400
    assert wrong_type.json()["valid"] is False
