import logging
from datetime import timedelta

import pytest

from auth_service.exceptions import EmailError, RateLimitError
from auth_service.middleware import rate_limit
from auth_service.middleware.rate_limit import FixedWindowLimiter
from auth_service.utils import email, security
from auth_service.utils.logger import log_oauth_operation
from auth_service.utils.time import parse_duration


@pytest.mark.parametrize("value, expected", [
    ("15m", timedelta(minutes=15)),
    ("7d", timedelta(days=7)),
    ("1h", timedelta(hours=1)),
    ("30s", timedelta(seconds=30)),
    ("500ms", timedelta(milliseconds=500)),
    ("2w", timedelta(weeks=2)),
    ("1day", timedelta(days=1)),
    ("3Hours", timedelta(hours=3)),
])
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


@pytest.mark.parametrize("value", ["", "15", "m", "1.5h", "-1d", "10y", None])
def test_parse_duration_rejects_malformed_values(value):
    with pytest.raises(ValueError):
        parse_duration(value)


def test_limiter_blocks_after_max_hits():
    limiter = FixedWindowLimiter("test", 2, timedelta(minutes=1), "Slow down")
    limiter.consume("1.2.3.4")
    limiter.consume("1.2.3.4")
    with pytest.raises(RateLimitError) as excinfo:
        limiter.consume("1.2.3.4")
    assert excinfo.value.message == "Slow down"
    assert excinfo.value.status_code == 429

    # Other clients have their own window
    limiter.consume("5.6.7.8")


def test_limiter_window_expires():
    limiter = FixedWindowLimiter("test", 1, timedelta(seconds=0), "Slow down")
    limiter.consume("1.2.3.4")
    limiter.consume("1.2.3.4")


def test_limiter_can_be_disabled(restore_settings):
    restore_settings.RATE_LIMIT_ENABLED = False
    limiter = FixedWindowLimiter("test", 1, timedelta(minutes=1), "Slow down")
    for _ in range(3):
        limiter.consume("1.2.3.4")


def test_password_hashing():
    hashed = security.get_password_hash("Password123!")
    assert hashed != "Password123!"
    assert security.verify_password("Password123!", hashed)
    assert not security.verify_password("Password124!", hashed)
    assert not security.verify_password("Password123!", None)


def test_refresh_token_cannot_pass_as_access_token():
    refresh = security.create_refresh_token(7)
    assert security.decode_refresh_token(refresh)["sub"] == "7"
    assert security.decode_access_token(refresh) is None
    assert security.decode_refresh_token(security.create_access_token(7)) is None


def test_send_email_requires_smtp_settings(restore_settings):
    restore_settings.SMTP_HOST = None
    with pytest.raises(EmailError) as excinfo:
        email.send_email("user@example.com", "Hi", html_content="<p>Hi</p>")
    assert "SMTP_HOST" in excinfo.value.details["missing_settings"]


class FakeResponse:
    def __init__(self, success=True, error=None):
        self.success = success
        self.error = error


class FakeMessage:
    sent = []
    response = FakeResponse()

    def __init__(self, mail_from, subject, html):
        self.mail_from = mail_from
        self.subject = subject
        self.html = html

    def send(self, to, smtp):
        FakeMessage.sent.append({"to": to, "smtp": smtp, "message": self})
        return FakeMessage.response


@pytest.fixture
def smtp(monkeypatch, restore_settings):
    restore_settings.SMTP_HOST = "smtp.example.com"
    restore_settings.SMTP_PORT = 587
    restore_settings.SMTP_USER = "mailer"
    restore_settings.SMTP_PASSWORD = "secret"
    restore_settings.EMAILS_FROM = "noreply@example.com"
    FakeMessage.sent = []
    FakeMessage.response = FakeResponse()
    monkeypatch.setattr(email.emails, "Message", FakeMessage)
    return FakeMessage


def test_send_verification_email(smtp):
    assert email.send_verification_email("user@example.com", "abc123", "someone")

    sent = smtp.sent[0]
    assert sent["to"] == "user@example.com"
    assert sent["smtp"]["host"] == "smtp.example.com"
    assert "http://testserver/local/email/verify-email?token=abc123" in sent["message"].html
    assert "someone" in sent["message"].html


def test_dispatch_verification_email_swallows_delivery_failure(smtp):
    smtp.response = FakeResponse(success=False, error="mailbox unavailable")
    email.dispatch_verification_email("user@example.com", "abc123", "someone")
    assert len(smtp.sent) == 1

    with pytest.raises(EmailError):
        email.send_verification_email("user@example.com", "abc123", "someone")


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_limiter_forgets_clients_after_window(monkeypatch):
    clock = FakeClock()
    monkeypatch.setattr(rate_limit.time, "monotonic", clock)
    limiter = FixedWindowLimiter("test", 5, timedelta(minutes=1), "Slow down")

    for i in range(100):
        limiter.consume(f"10.0.0.{i}")
    assert len(limiter._windows) == 100

    clock.now += 30
    limiter.consume("10.0.1.1")
    assert len(limiter._windows) == 101

    clock.now += 31
    limiter.consume("10.0.1.2")
    # Only the client seen within the last minute is kept
    assert set(limiter._windows) == {"10.0.1.1", "10.0.1.2"}


def test_limiter_sweep_keeps_active_counts(monkeypatch):
    clock = FakeClock()
    monkeypatch.setattr(rate_limit.time, "monotonic", clock)
    limiter = FixedWindowLimiter("test", 2, timedelta(minutes=1), "Slow down")

    clock.now += 59
    limiter.consume("1.2.3.4")
    limiter.consume("1.2.3.4")
    clock.now += 2
    limiter.consume("5.6.7.8")
    with pytest.raises(RateLimitError):
        limiter.consume("1.2.3.4")


def test_email_operation_logs_recipient(smtp, caplog):
    with caplog.at_level(logging.INFO, logger="auth_service.email"):
        email.send_verification_email("user@example.com", "abc123", "someone")
    assert "Email operation 'send verification email' for user@example.com completed successfully" in caplog.text


def test_oauth_operation_logs_duration_and_failure(caplog):
    @log_oauth_operation("Google")
    def exchange(code):
        if code == "bad":
            raise RuntimeError("Google said no")
        return {"access_token": "t"}

    with caplog.at_level(logging.INFO, logger="auth_service.oauth"):
        assert exchange("good") == {"access_token": "t"}
        with pytest.raises(RuntimeError):
            exchange("bad")

    assert "Google OAuth operation 'exchange' completed in" in caplog.text
    assert "Google OAuth operation 'exchange' failed after" in caplog.text
    assert "Google said no" in caplog.text
