from __future__ import annotations

import smtplib

import pytest

from app.core.exceptions import ConfigurationError, DeliveryError
from app.services import email as email_service
from app.services.email import EmailSender, build_otp_email
from conftest import make_settings


def smtp_settings(**overrides):
    values = dict(
        smtp_host="smtp.primary.test",
        smtp_port=587,
        smtp_username="primary-user",
        smtp_password="primary-pass",
        smtp_from_email="otp@example.com",
        smtp_from_name="OTP Login",
        smtp_use_tls=True,
        smtp_use_ssl=False,
        smtp_timeout_seconds=5,
    )
    values.update(overrides)
    return make_settings(**values)


class FakeSMTP:
    instances: list["FakeSMTP"] = []
    fail_with: Exception | None = None

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.started_tls = False
        self.logged_in_as: str | None = None
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def starttls(self, context=None):
        self.started_tls = True

    def login(self, username, password):
        self.logged_in_as = username

    def send_message(self, message):
        if FakeSMTP.fail_with is not None:
            raise FakeSMTP.fail_with
        self.messages.append(message)
        return {}


@pytest.fixture(autouse=True)
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.fail_with = None
    monkeypatch.setattr(email_service.smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(email_service.smtplib, "SMTP_SSL", FakeSMTP)
    yield FakeSMTP


def test_otp_email_mentions_code_and_expiry():
    text_content, html_content = build_otp_email(code="123456", expire_minutes=5)
    assert "123456" in text_content
    assert "5 minutes" in text_content
    assert "<strong>123456</strong>" in html_content


def test_send_code_uses_starttls_and_login(fake_smtp):
    EmailSender(smtp_settings()).send_code("user@example.com", "654321")

    [smtp] = fake_smtp.instances
    assert (smtp.host, smtp.port, smtp.timeout) == ("smtp.primary.test", 587, 5)
    assert smtp.started_tls is True
    assert smtp.logged_in_as == "primary-user"
    [message] = smtp.messages
    assert message["To"] == "user@example.com"
    assert message["From"] == "OTP Login <otp@example.com>"
    assert message["Subject"] == "Your OTP Code"
    assert "654321" in message.get_body(preferencelist=("plain",)).get_content()


def test_ssl_transport_skips_starttls(fake_smtp):
    EmailSender(smtp_settings(smtp_port=465, smtp_use_ssl=True, smtp_use_tls=False)).send_code(
        "user@example.com", "654321"
    )
    [smtp] = fake_smtp.instances
    assert smtp.port == 465
    assert smtp.started_tls is False


def test_missing_smtp_configuration_raises_configuration_error(fake_smtp):
    with pytest.raises(ConfigurationError):
        EmailSender(make_settings()).send_code("user@example.com", "654321")
    with pytest.raises(ConfigurationError):
        EmailSender(smtp_settings(smtp_password=None)).send_code("user@example.com", "654321")
    assert fake_smtp.instances == []


@pytest.mark.parametrize(
    ("error", "message"),
    [
        (smtplib.SMTPAuthenticationError(535, b"bad credentials"), "SMTP authentication failed"),
        (smtplib.SMTPDataError(550, b"Daily user sending limit exceeded"), "SMTP sender rate limited"),
        (smtplib.SMTPDataError(550, b"Recipient address rejected"), "SMTP recipient rejected"),
        (smtplib.SMTPRecipientsRefused({"user@example.com": (550, b"no")}), "SMTP recipient rejected"),
        (smtplib.SMTPServerDisconnected("gone"), "SMTP connection failed"),
        (TimeoutError("timed out"), "SMTP connection failed"),
    ],
)
def test_transport_failures_raise_delivery_error(fake_smtp, error, message):
    fake_smtp.fail_with = error
    with pytest.raises(DeliveryError) as exc_info:
        EmailSender(smtp_settings()).send_code("user@example.com", "654321")
    assert exc_info.value.message == message


def test_gmail_app_password_spaces_are_removed(fake_smtp, monkeypatch):
    captured = {}

    def login(self, username, password):
        captured["password"] = password

    monkeypatch.setattr(FakeSMTP, "login", login)
    EmailSender(smtp_settings(smtp_host="smtp.gmail.com", smtp_password="abcd efgh ijkl mnop")).send_code(
        "user@example.com", "654321"
    )
    assert captured["password"] == "abcdefghijklmnop"
